import logging
import os
from dataclasses import dataclass
from typing import Iterator, List, Optional, Tuple, Union

from .config import LibraryConfig
from .natsort import natural_sorted

LOGGER = logging.getLogger("artshelf.classifier")

TAG_SEPARATOR = "+"
STORY_TAG = "Story"


# Classification of a single directory entry.


@dataclass(frozen=True)
class ArtistFolder:
    artist: str


@dataclass(frozen=True)
class TagFolder:
    tags: Tuple[str, ...]


@dataclass(frozen=True)
class StoryBoundary:
    pass


@dataclass(frozen=True)
class StandaloneAsset:
    pass


@dataclass(frozen=True)
class Ignored:
    reason: str


Classification = Union[ArtistFolder, TagFolder, StoryBoundary, StandaloneAsset, Ignored]


# Events yielded by the walk.


@dataclass(frozen=True)
class ArtistStarted:
    artist: str
    path: str


@dataclass(frozen=True)
class ImageFound:
    path: str
    artist: str
    name: str
    tags: Tuple[str, ...]


@dataclass(frozen=True)
class StoryFound:
    path: str
    artist: str
    name: str
    tags: Tuple[str, ...]
    pages: Tuple[str, ...]


WalkEvent = Union[ArtistStarted, ImageFound, StoryFound]


def split_tag_tokens(name: str) -> List[str]:
    return [token.strip() for token in name.split(TAG_SEPARATOR)]


def classify_entry(
    name: str,
    is_dir: bool,
    artist: Optional[str],
    config: LibraryConfig,
) -> Classification:
    """Decide the role of one entry from its name and position alone.

    ``artist`` is None while the walk is still at the library root.
    A directory below an artist is a tag folder only when every
    ``+``-separated token of its name is an allowed tag; a single
    unknown (or empty) token makes it a story.
    """
    if artist is None:
        if is_dir:
            return ArtistFolder(artist=name)
        return Ignored(reason="file at library root")
    if is_dir:
        tokens = split_tag_tokens(name)
        if tokens and all(token in config.allowed_tags for token in tokens):
            return TagFolder(tags=tuple(tokens))
        return StoryBoundary()
    if config.is_allowed_file(name):
        return StandaloneAsset()
    _, ext = os.path.splitext(name)
    return Ignored(reason=f"extension {ext or '(none)'} not allowed")


def _list_entries(dir_path: str) -> Optional[List[Tuple[str, str, bool]]]:
    """Return sorted (name, path, is_dir) triples or None if the directory cannot be read."""
    try:
        with os.scandir(dir_path) as it:
            scanned = sorted(it, key=lambda e: e.name)
    except OSError as exc:
        LOGGER.warning("Skipping directory %s: %s", dir_path, exc)
        return None
    entries: List[Tuple[str, str, bool]] = []
    for entry in scanned:
        try:
            is_dir = entry.is_dir()
            if not is_dir and not entry.is_file():
                # broken symlink, socket, fifo
                LOGGER.warning("Skipping %s: not a regular file or directory", entry.path)
                continue
        except OSError as exc:
            LOGGER.warning("Cannot stat %s: %s", entry.path, exc)
            continue
        entries.append((entry.name, entry.path, is_dir))
    return entries


def gather_pages(dir_path: str, config: LibraryConfig) -> List[str]:
    """Collect every allowed file beneath ``dir_path``, naturally sorted."""
    pages: List[str] = []
    entries = _list_entries(dir_path)
    if entries is None:
        return pages
    for name, full_path, is_dir in entries:
        if is_dir:
            pages.extend(gather_pages(full_path, config))
        elif config.is_allowed_file(name):
            pages.append(full_path)
    return natural_sorted(pages)


def _unique(tags: Tuple[str, ...]) -> Tuple[str, ...]:
    return tuple(dict.fromkeys(tags))


def _walk_artist_dir(
    dir_path: str,
    artist: str,
    tags: Tuple[str, ...],
    config: LibraryConfig,
) -> Iterator[WalkEvent]:
    entries = _list_entries(dir_path)
    if entries is None:
        return
    for name, full_path, is_dir in entries:
        kind = classify_entry(name, is_dir, artist, config)
        if isinstance(kind, TagFolder):
            yield from _walk_artist_dir(full_path, artist, tags + kind.tags, config)
        elif isinstance(kind, StoryBoundary):
            pages = gather_pages(full_path, config)
            if not pages:
                LOGGER.debug("Empty story directory skipped: %s", full_path)
                continue
            yield StoryFound(
                path=full_path,
                artist=artist,
                name=name,
                tags=_unique(tags + (STORY_TAG,)),
                pages=tuple(pages),
            )
        elif isinstance(kind, StandaloneAsset):
            yield ImageFound(path=full_path, artist=artist, name=name, tags=_unique(tags))


def count_artists(root_dir: str) -> int:
    entries = _list_entries(root_dir) if os.path.isdir(root_dir) else None
    if not entries:
        return 0
    return sum(1 for _, _, is_dir in entries if is_dir)


def walk_library(root_dir: str, config: LibraryConfig) -> Iterator[WalkEvent]:
    """Walk ``root_dir`` depth-first and yield what should be indexed.

    Nothing is written anywhere; the caller consumes the stream. An
    ``ArtistStarted`` event precedes the assets of each artist.
    """
    root_dir = os.path.abspath(root_dir)
    if not os.path.isdir(root_dir):
        LOGGER.warning("Library root %s does not exist", root_dir)
        return
    entries = _list_entries(root_dir)
    if entries is None:
        return
    for name, full_path, is_dir in entries:
        kind = classify_entry(name, is_dir, None, config)
        if not isinstance(kind, ArtistFolder):
            continue
        yield ArtistStarted(artist=kind.artist, path=full_path)
        yield from _walk_artist_dir(full_path, kind.artist, (), config)
