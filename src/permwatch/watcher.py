"""Filesystem change notifications bridged into a queue via watchdog."""
from __future__ import annotations

import logging
import os
import queue
from pathlib import Path
from typing import Iterable, List, Optional

from watchdog.events import (
    EVENT_TYPE_CREATED,
    EVENT_TYPE_DELETED,
    EVENT_TYPE_MODIFIED,
    EVENT_TYPE_MOVED,
    FileSystemEvent,
    FileSystemEventHandler,
)
from watchdog.observers import Observer
from watchdog.observers.api import BaseObserver
from watchdog.observers.polling import PollingObserver

from .events import ChangeEvent, ChangeKind
from .ignore import normalize

logger = logging.getLogger(__name__)

_KIND_BY_EVENT_TYPE = {
    EVENT_TYPE_CREATED: ChangeKind.CREATED,
    EVENT_TYPE_MODIFIED: ChangeKind.MODIFIED,
    EVENT_TYPE_DELETED: ChangeKind.REMOVED,
}


class WatcherError(Exception):
    """Raised when a watch root cannot be registered."""


def translate_event(event: FileSystemEvent) -> List[ChangeEvent]:
    """Collapse a watchdog event into one or two :class:`ChangeEvent` objects.

    A move becomes a removal of the old path and a rename onto the new one,
    so each side is handled on its own.
    """

    src_path = normalize(os.fsdecode(event.src_path))
    is_directory = bool(event.is_directory)

    if event.event_type == EVENT_TYPE_MOVED:
        dest_path = normalize(os.fsdecode(event.dest_path))
        return [
            ChangeEvent(kind=ChangeKind.REMOVED, path=src_path, is_directory=is_directory),
            ChangeEvent(
                kind=ChangeKind.RENAMED,
                path=dest_path,
                is_directory=is_directory,
                previous_path=src_path,
            ),
        ]

    kind = _KIND_BY_EVENT_TYPE.get(event.event_type, ChangeKind.OTHER)
    return [ChangeEvent(kind=kind, path=src_path, is_directory=is_directory)]


class _QueueingHandler(FileSystemEventHandler):
    """Runs on watchdog's threads; only translates and enqueues."""

    def __init__(self, root: Path, events: "queue.Queue[ChangeEvent]"):
        super().__init__()
        self._root = root
        self._events = events

    def on_any_event(self, event: FileSystemEvent) -> None:
        for change in translate_event(event):
            if change.kind is ChangeKind.REMOVED and change.path == self._root:
                logger.warning("Watch root %s was removed; no further events will arrive for it", self._root)
            self._events.put(change)


class ChangeWatcher:
    """Recursive watches on a set of roots, multiplexed into one queue."""

    def __init__(
        self,
        events: "queue.Queue[ChangeEvent]",
        *,
        use_polling: bool = False,
        poll_interval: float = 1.0,
    ):
        self._events = events
        self._use_polling = use_polling
        self._poll_interval = poll_interval
        self._observer: Optional[BaseObserver] = None
        self._watched: List[Path] = []

    @property
    def events(self) -> "queue.Queue[ChangeEvent]":
        return self._events

    @property
    def running(self) -> bool:
        return self._observer is not None and self._observer.is_alive()

    @property
    def watched_roots(self) -> List[Path]:
        return list(self._watched)

    def subscribe(self, roots: Iterable[Path]) -> List[Path]:
        """Watch every root that can be watched; return the ones registered."""

        registered: List[Path] = []
        for root in roots:
            try:
                registered.append(self.watch(root))
            except WatcherError as exc:
                logger.warning("%s", exc)
        return registered

    def watch(self, root: Path) -> Path:
        """Register a recursive watch on ``root``.

        Raises :class:`WatcherError` if the root is missing or the OS refuses
        the watch.
        """

        root = normalize(root)
        if root in self._watched:
            return root
        if not root.is_dir():
            raise WatcherError(f"Cannot watch {root}: not an existing directory")

        observer = self._ensure_observer()
        try:
            observer.schedule(_QueueingHandler(root, self._events), str(root), recursive=True)
        except OSError as exc:
            if not self._watched:
                self._discard_observer()
            raise WatcherError(f"Cannot watch {root}: {exc}") from exc

        self._watched.append(root)
        logger.info("Watching directory: %s", root)
        return root

    def stop(self) -> None:
        """Stop the observer thread and drop all watches."""

        if self._observer is None:
            return
        self._discard_observer()
        self._watched.clear()
        logger.info("Stopped filesystem watcher")

    def _discard_observer(self) -> None:
        if self._observer is None:
            return
        self._observer.stop()
        self._observer.join(timeout=10)
        self._observer = None

    def _ensure_observer(self) -> BaseObserver:
        if self._observer is None:
            if self._use_polling:
                observer: BaseObserver = PollingObserver(timeout=self._poll_interval)
                logger.debug("Using polling observer (interval: %ss)", self._poll_interval)
            else:
                observer = Observer()
                logger.debug("Using OS event observer")
            observer.start()
            self._observer = observer
        return self._observer
