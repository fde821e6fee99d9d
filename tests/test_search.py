from pathlib import Path

import pytest

from artshelf.config import LibraryConfig
from artshelf.db import Database
from artshelf.natsort import natural_key, natural_sorted
from artshelf.scanner import scan_library
from artshelf.search import search

from conftest import make_tree


def test_natural_sort() -> None:
    assert natural_sorted(["a2", "a10", "a1"]) == ["a1", "a2", "a10"]
    assert natural_sorted(["page10.jpg", "Page2.jpg", "page1.jpg"]) == ["page1.jpg", "Page2.jpg", "page10.jpg"]
    assert natural_key("artist2") < natural_key("Artist10")


@pytest.fixture
def scanned(library_root: Path, db: Database, config: LibraryConfig) -> Database:
    scan_library(str(library_root), db, config)
    return db


def _names(page) -> list:
    return [item.name for item in page.items]


def test_empty_query_returns_everything_sorted(scanned: Database) -> None:
    page = search(scanned, "", "", page=1, page_size=50)
    assert page.total == 6
    assert [(i.artist, i.name) for i in page.items] == [
        ("alice", "Beach Trip"),
        ("alice", "render.png"),
        ("alice", "solo.png"),
        ("alice", "sunset.jpg"),
        ("bob", "doodle.gif"),
        ("bob", "NSFW+Unknown"),
    ]


def test_and_or_not_queries(scanned: Database) -> None:
    assert _names(search(scanned, "SFW,CG")) == ["render.png"]
    assert _names(search(scanned, "SFW")) == ["Beach Trip", "render.png", "sunset.jpg"]
    assert _names(search(scanned, "CG|Monochrome")) == ["render.png", "doodle.gif"]
    assert set(_names(search(scanned, "-SFW"))) == {"doodle.gif", "NSFW+Unknown", "solo.png"}
    assert _names(search(scanned, "SFW,Monochrome")) == []
    assert _names(search(scanned, "SFW, CG|Story")) == ["Beach Trip", "render.png"]
    assert _names(search(scanned, "Story, -SFW")) == ["NSFW+Unknown"]


def test_text_filter_is_case_insensitive_and_combined(scanned: Database) -> None:
    assert _names(search(scanned, "", "BOB")) == ["doodle.gif", "NSFW+Unknown"]
    assert _names(search(scanned, "", "beach")) == ["Beach Trip"]
    assert _names(search(scanned, "Story", "bob")) == ["NSFW+Unknown"]
    assert _names(search(scanned, "", "%")) == []


def test_story_record_has_pages_and_tags(scanned: Database) -> None:
    story = search(scanned, "", "Beach").items[0]
    assert story.is_story
    assert story.tags == ["SFW", "Story"]
    assert [Path(p).name for p in story.pages] == ["bonus.jpg", "page1.jpg", "page2.jpg", "page10.jpg"]
    assert story.cover_path == story.pages[0]


def test_pagination(tmp_path: Path) -> None:
    root = tmp_path / "lib"
    make_tree(root, [f"artist{n}/img{n}.jpg" for n in range(1, 26)])
    config = LibraryConfig(root_directory=str(root), allowed_extensions=frozenset({".jpg"}), data_dir=str(tmp_path / "d"))
    db = Database(base_dir=config.data_dir)
    scan_library(str(root), db, config)

    first = search(db, "", "", page=1, page_size=12)
    assert len(first.items) == 12
    assert first.total == 25
    assert first.total_pages == 3
    assert [i.artist for i in first.items[:3]] == ["artist1", "artist2", "artist3"]

    third = search(db, "", "", page=3, page_size=12)
    assert [i.artist for i in third.items] == ["artist25"]

    beyond = search(db, "", "", page=4, page_size=12)
    assert beyond.items == []
    assert beyond.total == 25


def test_invalid_page_arguments_fall_back(scanned: Database) -> None:
    page = search(scanned, "", "", page=0, page_size=0)
    assert page.page == 1
    assert page.page_size == 12


def test_rescan_is_idempotent(library_root: Path, scanned: Database, config: LibraryConfig) -> None:
    before = {(i.id, i.path, tuple(i.tags)) for i in search(scanned, "", "", page_size=100).items}
    scan_library(str(library_root), scanned, config)
    after = {(i.id, i.path, tuple(i.tags)) for i in search(scanned, "", "", page_size=100).items}
    assert before == after
    assert scanned.count_assets() == len(before)


def test_rescan_after_allowlist_change(tmp_path: Path) -> None:
    root = tmp_path / "lib"
    make_tree(root, ["alice/SFW/pic.jpg"])
    config = LibraryConfig(
        root_directory=str(root),
        allowed_tags=frozenset({"SFW", "CG"}),
        allowed_extensions=frozenset({".jpg"}),
        data_dir=str(tmp_path / "d"),
    )
    db = Database(base_dir=config.data_dir)
    scan_library(str(root), db, config)
    image = search(db, "SFW").items[0]

    config.allowed_tags = frozenset({"CG"})
    scan_library(str(root), db, config)
    story = search(db, "Story").items[0]
    assert story.name == "SFW"
    assert story.tags == ["Story"]
    assert story.pages == [image.path]

    # full rescans do not prune paths that are no longer produced
    assert search(db, "SFW").items[0].id == image.id


def test_reset_wipes_catalog(scanned: Database) -> None:
    scanned.wipe_all()
    assert scanned.count_assets() == 0
    assert scanned.all_tags() == []
    assert search(scanned).total == 0


def test_text_filter_keeps_surrounding_whitespace(tmp_path: Path) -> None:
    root = tmp_path / "lib"
    make_tree(root, ["artist/c10.jpg", "artist/page c1.jpg"])
    config = LibraryConfig(root_directory=str(root), allowed_extensions=frozenset({".jpg"}), data_dir=str(tmp_path / "d"))
    db = Database(base_dir=config.data_dir)
    scan_library(str(root), db, config)

    assert _names(search(db, "", " c1")) == ["page c1.jpg"]
    assert _names(search(db, "", "c1")) == ["c10.jpg", "page c1.jpg"]
