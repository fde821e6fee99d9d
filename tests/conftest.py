from pathlib import Path
from typing import Iterable

import pytest

from artshelf.config import LibraryConfig
from artshelf.db import Database

ALLOWED_TAGS = {"SFW", "NSFW", "CG", "Monochrome", "Sketch"}


def touch(path: Path, data: bytes = b"x") -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(data)
    return path


def make_tree(root: Path, files: Iterable[str]) -> None:
    for rel in files:
        touch(root / rel)


@pytest.fixture
def library_root(tmp_path: Path) -> Path:
    root = tmp_path / "library"
    make_tree(
        root,
        [
            "cover.jpg",
            "alice/solo.png",
            "alice/notes.txt",
            "alice/SFW/sunset.jpg",
            "alice/SFW+CG/render.png",
            "alice/SFW/Beach Trip/page10.jpg",
            "alice/SFW/Beach Trip/page2.jpg",
            "alice/SFW/Beach Trip/page1.jpg",
            "alice/SFW/Beach Trip/extras/bonus.jpg",
            "alice/SFW/Beach Trip/readme.txt",
            "bob/NSFW+Unknown/one.jpg",
            "bob/Empty Story/readme.txt",
            "bob/Monochrome/Sketch/doodle.gif",
        ],
    )
    return root


@pytest.fixture
def config(library_root: Path, tmp_path: Path) -> LibraryConfig:
    return LibraryConfig(
        root_directory=str(library_root),
        allowed_tags=frozenset(ALLOWED_TAGS),
        allowed_extensions=frozenset({".jpg", ".png", ".gif"}),
        data_dir=str(tmp_path / "data"),
    )


@pytest.fixture
def db(config: LibraryConfig) -> Database:
    return Database(base_dir=config.data_dir)
