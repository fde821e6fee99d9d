import json
import os
import sqlite3
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Iterable, List, Optional, Sequence, Tuple

from .errors import RepositoryError

_DB_FILENAME = "artshelf.sqlite"

ASSET_IMAGE = "image"
ASSET_STORY = "story"

_TAG_SEPARATOR = "\x1f"


@dataclass
class AssetRecord:
    id: int
    path: str
    type: str
    artist: str
    name: str
    pages: List[str] = field(default_factory=list)
    tags: List[str] = field(default_factory=list)

    @property
    def is_story(self) -> bool:
        return self.type == ASSET_STORY

    @property
    def cover_path(self) -> str:
        return self.pages[0] if self.pages else self.path

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "path": self.path,
            "type": self.type,
            "artist": self.artist,
            "name": self.name,
            "pages": list(self.pages) if self.is_story else None,
            "tags": list(self.tags),
        }


@dataclass(frozen=True)
class SqlClause:
    """A SQL fragment together with the parameters its placeholders consume."""

    sql: str
    params: Tuple[object, ...] = ()


@dataclass(frozen=True)
class QueryFilter:
    join_tags: bool = False
    where: Tuple[SqlClause, ...] = ()
    having: Optional[SqlClause] = None


def _contains_folded(haystack: Optional[str], needle: Optional[str]) -> int:
    if haystack is None or needle is None:
        return 0
    return 1 if needle.casefold() in haystack.casefold() else 0


def _row_to_record(row: sqlite3.Row) -> AssetRecord:
    pages = json.loads(row["pages"]) if row["pages"] else []
    tags = sorted(row["tags"].split(_TAG_SEPARATOR)) if row["tags"] else []
    return AssetRecord(
        id=int(row["id"]),
        path=row["path"],
        type=row["type"],
        artist=row["artist"],
        name=row["name"],
        pages=pages,
        tags=tags,
    )


class Database:
    def __init__(self, base_dir: str) -> None:
        self.base_dir = os.path.abspath(base_dir)
        self.db_path = os.path.join(self.base_dir, _DB_FILENAME)
        os.makedirs(self.base_dir, exist_ok=True)
        self._initialize_schema()

    @contextmanager
    def connect(self):
        try:
            conn = sqlite3.connect(self.db_path)
        except sqlite3.Error as exc:
            raise RepositoryError(f"cannot open {self.db_path}: {exc}") from exc
        conn.row_factory = sqlite3.Row
        try:
            conn.execute("PRAGMA foreign_keys = ON")
            conn.create_function("contains_folded", 2, _contains_folded, deterministic=True)
            yield conn
        except sqlite3.Error as exc:
            raise RepositoryError(str(exc)) from exc
        finally:
            conn.close()

    def _initialize_schema(self) -> None:
        with self.connect() as conn:
            cur = conn.cursor()
            cur.executescript(
                """
                PRAGMA journal_mode=WAL;
                PRAGMA synchronous=NORMAL;

                CREATE TABLE IF NOT EXISTS assets (
                    id INTEGER PRIMARY KEY,
                    path TEXT NOT NULL UNIQUE,
                    type TEXT NOT NULL,
                    artist TEXT NOT NULL,
                    name TEXT NOT NULL,
                    pages TEXT,
                    created_at DATETIME DEFAULT CURRENT_TIMESTAMP
                );

                CREATE INDEX IF NOT EXISTS idx_assets_artist ON assets(artist);

                CREATE TABLE IF NOT EXISTS asset_tags (
                    asset_id INTEGER NOT NULL,
                    tag TEXT NOT NULL,
                    PRIMARY KEY (asset_id, tag),
                    FOREIGN KEY (asset_id) REFERENCES assets(id) ON DELETE CASCADE
                );

                CREATE INDEX IF NOT EXISTS idx_asset_tags_tag ON asset_tags(tag);
                """
            )
            conn.commit()

    def upsert_asset(
        self,
        *,
        path: str,
        type: str,
        artist: str,
        name: str,
        pages: Optional[Sequence[str]] = None,
    ) -> int:
        pages_json = json.dumps(list(pages)) if pages else None
        with self.connect() as conn:
            cur = conn.cursor()
            cur.execute(
                """
                INSERT INTO assets (path, type, artist, name, pages)
                VALUES (?, ?, ?, ?, ?)
                ON CONFLICT(path) DO UPDATE SET
                    type=excluded.type,
                    artist=excluded.artist,
                    name=excluded.name,
                    pages=excluded.pages
                """,
                (path, type, artist, name, pages_json),
            )
            conn.commit()
            asset_id = cur.execute(
                "SELECT id FROM assets WHERE path=?",
                (path,),
            ).fetchone()[0]
            return int(asset_id)

    def replace_tags(self, asset_id: int, tags: Iterable[str]) -> None:
        unique_tags = list(dict.fromkeys(t for t in tags if t))
        with self.connect() as conn:
            cur = conn.cursor()
            cur.execute("DELETE FROM asset_tags WHERE asset_id=?", (asset_id,))
            cur.executemany(
                "INSERT OR IGNORE INTO asset_tags(asset_id, tag) VALUES (?, ?)",
                [(asset_id, tag) for tag in unique_tags],
            )
            conn.commit()

    def query_assets(self, query_filter: Optional[QueryFilter] = None) -> List[AssetRecord]:
        """Return every asset passing ``query_filter``, unordered.

        Parameters are appended in clause order: WHERE clauses first, then
        the HAVING clause, so each clause stays self-contained.
        """
        query_filter = query_filter or QueryFilter()
        sql = (
            "SELECT a.id, a.path, a.type, a.artist, a.name, a.pages, "
            f"(SELECT group_concat(tag, char({ord(_TAG_SEPARATOR)})) FROM asset_tags WHERE asset_id = a.id) AS tags "
            "FROM assets a"
        )
        params: List[object] = []
        if query_filter.join_tags:
            sql += " JOIN asset_tags t ON t.asset_id = a.id"
        if query_filter.where:
            sql += " WHERE " + " AND ".join(f"({c.sql})" for c in query_filter.where)
            for clause in query_filter.where:
                params.extend(clause.params)
        if query_filter.join_tags:
            sql += " GROUP BY a.id"
            if query_filter.having is not None:
                sql += f" HAVING {query_filter.having.sql}"
                params.extend(query_filter.having.params)
        with self.connect() as conn:
            rows = conn.execute(sql, params).fetchall()
            return [_row_to_record(row) for row in rows]

    def get_asset(self, asset_id: int) -> Optional[AssetRecord]:
        records = self.query_assets(QueryFilter(where=(SqlClause("a.id = ?", (asset_id,)),)))
        return records[0] if records else None

    def all_tags(self) -> List[str]:
        with self.connect() as conn:
            rows = conn.execute("SELECT DISTINCT tag FROM asset_tags ORDER BY tag ASC").fetchall()
            return [r[0] for r in rows]

    def count_assets(self) -> int:
        with self.connect() as conn:
            return int(conn.execute("SELECT COUNT(*) FROM assets").fetchone()[0])

    def wipe_all(self) -> None:
        with self.connect() as conn:
            cur = conn.cursor()
            cur.execute("DELETE FROM asset_tags")
            cur.execute("DELETE FROM assets")
            conn.commit()
