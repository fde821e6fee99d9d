import logging
import os
import queue
import threading
from dataclasses import dataclass, replace
from typing import Callable, List, Optional

from .classifier import ArtistStarted, ImageFound, StoryFound, count_artists, walk_library
from .config import LibraryConfig
from .db import ASSET_IMAGE, ASSET_STORY, Database
from .errors import ScanInProgressError

LOGGER = logging.getLogger("artshelf.scanner")

STATUS_IDLE = "idle"
STATUS_SCANNING = "scanning"
STATUS_COMPLETE = "complete"
STATUS_ERROR = "error"


@dataclass(frozen=True)
class ScanProgress:
    current: int = 0
    total: int = 0
    current_item: str = ""
    status: str = STATUS_IDLE


@dataclass
class ScanResult:
    indexed: int
    images: int
    stories: int
    artists: int


class ProgressChannel:
    """Fan-out of progress events for a single scan.

    Each subscriber gets its own queue. Late subscribers first receive the
    latest event. After :meth:`close` a ``None`` sentinel ends every queue.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._subscribers: List["queue.Queue[Optional[ScanProgress]]"] = []
        self._callbacks: List[Callable[[ScanProgress], None]] = []
        self._latest = ScanProgress()
        self._closed = False

    @property
    def latest(self) -> ScanProgress:
        return self._latest

    @property
    def closed(self) -> bool:
        return self._closed

    def subscribe(self) -> "queue.Queue[Optional[ScanProgress]]":
        q: "queue.Queue[Optional[ScanProgress]]" = queue.Queue()
        with self._lock:
            q.put(self._latest)
            if self._closed:
                q.put(None)
            else:
                self._subscribers.append(q)
        return q

    def add_callback(self, callback: Callable[[ScanProgress], None]) -> None:
        with self._lock:
            self._callbacks.append(callback)

    def publish(self, progress: ScanProgress) -> None:
        with self._lock:
            if self._closed:
                return
            self._latest = progress
            subscribers = list(self._subscribers)
            callbacks = list(self._callbacks)
        for q in subscribers:
            q.put(progress)
        for callback in callbacks:
            try:
                callback(progress)
            except Exception:
                LOGGER.exception("Progress observer failed")

    def close(self) -> None:
        with self._lock:
            if self._closed:
                return
            self._closed = True
            subscribers = list(self._subscribers)
            self._subscribers.clear()
        for q in subscribers:
            q.put(None)

    def events(self, timeout: Optional[float] = None):
        """Iterate progress events until the channel closes."""
        q = self.subscribe()
        while True:
            item = q.get(timeout=timeout)
            if item is None:
                return
            yield item


def scan_library(
    root_dir: str,
    db: Database,
    config: LibraryConfig,
    channel: Optional[ProgressChannel] = None,
) -> ScanResult:
    """Index every artist under ``root_dir`` into ``db``.

    Traversal problems are logged and skipped by the walk. A repository
    failure aborts the scan; rows already written stay committed.
    """
    root_dir = os.path.abspath(root_dir)
    channel = channel or ProgressChannel()
    progress = ScanProgress(current=0, total=count_artists(root_dir), status=STATUS_SCANNING)
    channel.publish(progress)
    LOGGER.info("Scanning %s (%d artists)", root_dir, progress.total)

    images = 0
    stories = 0
    try:
        for event in walk_library(root_dir, config):
            if isinstance(event, ArtistStarted):
                current = progress.current + 1
                progress = replace(
                    progress,
                    current=current,
                    total=max(progress.total, current),
                    current_item=event.artist,
                )
                channel.publish(progress)
            elif isinstance(event, StoryFound):
                asset_id = db.upsert_asset(
                    path=event.path,
                    type=ASSET_STORY,
                    artist=event.artist,
                    name=event.name,
                    pages=event.pages,
                )
                db.replace_tags(asset_id, event.tags)
                stories += 1
                LOGGER.info("[Story] Indexed: %s (%d pages)", event.name, len(event.pages))
            elif isinstance(event, ImageFound):
                asset_id = db.upsert_asset(
                    path=event.path,
                    type=ASSET_IMAGE,
                    artist=event.artist,
                    name=event.name,
                )
                db.replace_tags(asset_id, event.tags)
                images += 1
                LOGGER.debug("[Image] Indexed: %s", event.name)
    except Exception:
        LOGGER.exception("Scan of %s failed", root_dir)
        channel.publish(replace(progress, status=STATUS_ERROR))
        channel.close()
        raise

    channel.publish(replace(progress, status=STATUS_COMPLETE))
    channel.close()
    result = ScanResult(indexed=images + stories, images=images, stories=stories, artists=progress.current)
    LOGGER.info(
        "Scan complete: %d assets (%d images, %d stories) from %d artists",
        result.indexed,
        result.images,
        result.stories,
        result.artists,
    )
    return result


class ScanCoordinator:
    """Runs at most one scan at a time, on a background thread."""

    def __init__(self, db: Database, config: LibraryConfig) -> None:
        self.db = db
        self.config = config
        self._lock = threading.Lock()
        self._thread: Optional[threading.Thread] = None
        self._channel: Optional[ProgressChannel] = None
        self.last_result: Optional[ScanResult] = None
        self.last_error: Optional[BaseException] = None

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    @property
    def channel(self) -> Optional[ProgressChannel]:
        return self._channel

    def start(self, root_dir: Optional[str] = None) -> ProgressChannel:
        with self._lock:
            if self.running:
                raise ScanInProgressError("a scan is already running")
            channel = ProgressChannel()
            self._channel = channel
            self.last_result = None
            self.last_error = None
            self._thread = threading.Thread(
                target=self._run,
                args=(root_dir or self.config.root_directory, channel),
                name="artshelf-scan",
                daemon=True,
            )
            self._thread.start()
            return channel

    def _run(self, root_dir: str, channel: ProgressChannel) -> None:
        try:
            self.last_result = scan_library(root_dir, self.db, self.config, channel)
        except Exception as exc:
            self.last_error = exc

    def wait(self, timeout: Optional[float] = None) -> Optional[ScanResult]:
        thread = self._thread
        if thread is not None:
            thread.join(timeout)
        if self.last_error is not None:
            raise self.last_error
        return self.last_result

    def reset(self) -> None:
        with self._lock:
            if self.running:
                raise ScanInProgressError("cannot reset while a scan is running")
            LOGGER.info("Resetting catalog")
            self.db.wipe_all()
