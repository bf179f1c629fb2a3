"""Reconciliation loop: initial sweep, then event-driven enforcement."""
from __future__ import annotations

import logging
import queue
import threading
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Iterable, List, Optional

from .config import WatchConfig
from .enforcer import EnforceError, PathNotFound, PermissionDenied, enforce
from .events import ChangeEvent, ChangeKind
from .ignore import IgnoreMatcher
from .walker import walk
from .watcher import ChangeWatcher

logger = logging.getLogger(__name__)

# Upper bound on a single blocking wait so stop() is noticed promptly.
_WAKE_INTERVAL = 1.0

_SUBTREE_KINDS = (ChangeKind.CREATED, ChangeKind.RENAMED)


@dataclass
class MonitorStats:
    """Counters emitted by the monitor for observability."""

    sweeps: int = 0
    events_received: int = 0
    events_ignored: int = 0
    paths_checked: int = 0
    paths_changed: int = 0
    errors: int = 0


class PermissionMonitor:
    """Keeps every path under the watch roots at the desired permission."""

    def __init__(self, config: WatchConfig, watcher: Optional[ChangeWatcher] = None):
        self._config = config
        self._ignore = IgnoreMatcher(config.ignore_dirs)
        self._watcher = watcher or ChangeWatcher(
            queue.Queue(),
            use_polling=config.use_polling,
            poll_interval=config.poll_interval,
        )
        self._events = self._watcher.events
        self._stop_event = threading.Event()
        self._stats = MonitorStats()

    @property
    def stats(self) -> MonitorStats:
        return self._stats

    @property
    def ignore(self) -> IgnoreMatcher:
        return self._ignore

    def run(self) -> None:
        """Sweep once, then enforce on change events until stopped."""

        logger.info(
            "Starting permission monitor for %s (mode %03o)",
            ", ".join(str(root) for root in self._config.watch_dirs),
            self._config.desired_permission,
        )
        try:
            # Watches go first so changes made during the sweep are queued.
            self.start_watching()
            self.sweep()
            next_rescan = self._next_rescan_at()
            while not self._stop_event.is_set():
                batch = self._next_batch(self._wait_timeout(next_rescan))
                if batch:
                    self.process_events(batch)
                if next_rescan is not None and time.monotonic() >= next_rescan:
                    logger.info("Running scheduled rescan")
                    self.sweep()
                    next_rescan = self._next_rescan_at()
        except KeyboardInterrupt:
            logger.info("Monitor interrupted by user")
        finally:
            self._watcher.stop()
            logger.info(
                "Monitor stopped after %s sweeps, %s events, %s permission changes, %s errors",
                self._stats.sweeps,
                self._stats.events_received,
                self._stats.paths_changed,
                self._stats.errors,
            )

    def stop(self) -> None:
        """Signal the monitor to stop at the next opportunity."""

        self._stop_event.set()

    def start_watching(self) -> List[Path]:
        watched = self._watcher.subscribe(self._config.watch_dirs)
        if not watched:
            logger.warning("No watch root could be registered; only sweeps will enforce permissions")
        return watched

    def sweep(self) -> int:
        """Walk every watch root and enforce each path found.

        Returns the number of paths whose mode was changed.
        """

        logger.info("Permission sweep started")
        started_at = time.monotonic()
        changed_before = self._stats.paths_changed
        checked_before = self._stats.paths_checked
        for root in self._config.watch_dirs:
            for path in walk(root, self._ignore):
                self._enforce_path(path)
        self._stats.sweeps += 1
        changed = self._stats.paths_changed - changed_before
        logger.info(
            "Permission sweep finished in %.2fs: %s paths checked, %s changed",
            time.monotonic() - started_at,
            self._stats.paths_checked - checked_before,
            changed,
        )
        return changed

    def process_events(self, events: Iterable[ChangeEvent]) -> None:
        """Handle a batch of events, coalesced so each path is handled once.

        The last event for a path wins, except that a later modification does
        not hide an earlier creation or rename, which still needs its subtree
        walked.
        """

        latest: Dict[Path, ChangeEvent] = {}
        for event in events:
            self._stats.events_received += 1
            previous = latest.get(event.path)
            if (
                previous is not None
                and previous.kind in _SUBTREE_KINDS
                and event.kind not in _SUBTREE_KINDS
                and event.kind is not ChangeKind.REMOVED
            ):
                continue
            latest[event.path] = event
        for event in latest.values():
            self.handle_event(event)

    def handle_event(self, event: ChangeEvent) -> None:
        root = self._ignore.matching_root(event.path)
        if root is not None:
            self._stats.events_ignored += 1
            logger.debug("Ignoring %s event for %s (under %s)", event.kind.value, event.path, root)
            return

        if event.kind is ChangeKind.REMOVED:
            logger.debug("Path removed: %s", event.path)
            return

        if event.kind in _SUBTREE_KINDS and _is_real_directory(event.path):
            # Contents that arrive together with a directory raise no events of their own.
            for path in walk(event.path, self._ignore):
                self._enforce_path(path)
            return

        self._enforce_path(event.path)

    def _enforce_path(self, path: Path) -> None:
        self._stats.paths_checked += 1
        try:
            outcome = enforce(path, self._config.desired_permission)
        except PathNotFound:
            logger.debug("Skipping %s: path no longer exists", path)
            return
        except PermissionDenied as exc:
            self._stats.errors += 1
            logger.warning("Permission denied changing mode of %s: %s", path, exc)
            return
        except EnforceError as exc:
            self._stats.errors += 1
            logger.warning("Failed to enforce permissions on %s: %s", path, exc)
            return

        if outcome.changed:
            self._stats.paths_changed += 1
            logger.info(
                "Changed permissions of %s from %03o to %03o",
                path,
                outcome.previous_mode,
                outcome.mode,
            )

    def _next_batch(self, timeout: float) -> List[ChangeEvent]:
        try:
            first = self._events.get(timeout=timeout)
        except queue.Empty:
            return []

        batch = [first]
        deadline = time.monotonic() + self._config.debounce
        while True:
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                break
            try:
                batch.append(self._events.get(timeout=remaining))
            except queue.Empty:
                break
        return batch

    def _next_rescan_at(self) -> Optional[float]:
        if self._config.rescan_interval <= 0:
            return None
        return time.monotonic() + self._config.rescan_interval

    def _wait_timeout(self, next_rescan: Optional[float]) -> float:
        if next_rescan is None:
            return _WAKE_INTERVAL
        return min(max(next_rescan - time.monotonic(), 0.0), _WAKE_INTERVAL)


def _is_real_directory(path: Path) -> bool:
    return path.is_dir() and not path.is_symlink()
