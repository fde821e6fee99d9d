import logging
import math
from dataclasses import dataclass
from typing import List, Optional, Sequence

from .config import DEFAULT_PAGE_SIZE
from .db import AssetRecord, Database
from .natsort import natural_key
from .query import Predicate, build_query_filter, parse_tag_query

LOGGER = logging.getLogger("artshelf.search")


@dataclass
class SearchPage:
    items: List[AssetRecord]
    total: int
    page: int
    page_size: int
    total_pages: int

    def to_dict(self) -> dict:
        return {
            "items": [item.to_dict() for item in self.items],
            "pagination": {
                "total": self.total,
                "page": self.page,
                "limit": self.page_size,
                "totalPages": self.total_pages,
            },
        }


def sort_assets(records: Sequence[AssetRecord]) -> List[AssetRecord]:
    return sorted(records, key=lambda r: (natural_key(r.artist), natural_key(r.name), r.path))


def paginate(records: Sequence[AssetRecord], page: int, page_size: int) -> SearchPage:
    page = max(1, int(page or 1))
    page_size = int(page_size or 0)
    if page_size < 1:
        page_size = DEFAULT_PAGE_SIZE
    total = len(records)
    offset = (page - 1) * page_size
    return SearchPage(
        items=list(records[offset:offset + page_size]),
        total=total,
        page=page,
        page_size=page_size,
        total_pages=math.ceil(total / page_size),
    )


def search_predicate(
    db: Database,
    predicate: Predicate,
    text: Optional[str] = None,
    page: int = 1,
    page_size: int = DEFAULT_PAGE_SIZE,
) -> SearchPage:
    records = db.query_assets(build_query_filter(predicate, text))
    return paginate(sort_assets(records), page, page_size)


def search(
    db: Database,
    tag_query: Optional[str] = None,
    text_query: Optional[str] = None,
    page: int = 1,
    page_size: int = DEFAULT_PAGE_SIZE,
) -> SearchPage:
    predicate = parse_tag_query(tag_query)
    result = search_predicate(db, predicate, text_query, page, page_size)
    LOGGER.debug(
        "search q=%r text=%r page=%d -> %d of %d",
        tag_query,
        text_query,
        result.page,
        len(result.items),
        result.total,
    )
    return result
