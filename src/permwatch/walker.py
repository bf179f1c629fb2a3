"""Pruned traversal of a watch root."""
from __future__ import annotations

import logging
import os
import stat
from pathlib import Path
from typing import Iterator, List

from .ignore import IgnoreMatcher, normalize

logger = logging.getLogger(__name__)


def walk(root: Path, ignore: IgnoreMatcher) -> Iterator[Path]:
    """Yield ``root`` and every path beneath it that is not ignored.

    Ignored directories are pruned without being listed. Symlinks are yielded
    but never descended into. Directories that cannot be listed are logged and
    skipped; the rest of the tree is still visited.
    """

    root = normalize(root)
    if ignore.is_ignored(root):
        logger.debug("Watch root %s is itself ignored", root)
        return
    try:
        root_stat = os.lstat(root)
    except OSError as exc:
        logger.warning("Cannot access %s: %s", root, exc)
        return

    yield root
    if not stat.S_ISDIR(root_stat.st_mode):
        return

    pending: List[Path] = [root]
    while pending:
        directory = pending.pop()
        try:
            with os.scandir(directory) as iterator:
                entries = sorted(iterator, key=lambda entry: entry.name)
        except OSError as exc:
            logger.warning("Skipping unreadable directory %s: %s", directory, exc)
            continue

        subdirectories: List[Path] = []
        for entry in entries:
            path = directory / entry.name
            if ignore.is_ignored(path):
                logger.debug("Pruning ignored path %s", path)
                continue
            yield path
            try:
                if entry.is_dir(follow_symlinks=False):
                    subdirectories.append(path)
            except OSError as exc:
                logger.warning("Cannot inspect %s: %s", path, exc)
        # Reversed so directories come off the stack in name order.
        pending.extend(reversed(subdirectories))
