"""Matching of paths against the configured ignore roots."""
from __future__ import annotations

import os
from pathlib import Path
from typing import Iterable, Optional, Tuple, Union

PathLike = Union[str, "os.PathLike[str]"]


def normalize(path: PathLike) -> Path:
    """Return ``path`` in absolute, normalized form without touching the filesystem."""

    return Path(os.path.abspath(os.fspath(path)))


def is_ignored(path: PathLike, ignore_dirs: Iterable[PathLike]) -> bool:
    """True if ``path`` equals or lies beneath any of ``ignore_dirs``."""

    return IgnoreMatcher(ignore_dirs).is_ignored(path)


class IgnoreMatcher:
    """Read-only view over the ignore roots of a configuration."""

    def __init__(self, ignore_dirs: Iterable[PathLike]):
        self._roots: Tuple[Path, ...] = tuple(normalize(root) for root in ignore_dirs)

    @property
    def roots(self) -> Tuple[Path, ...]:
        return self._roots

    def __bool__(self) -> bool:
        return bool(self._roots)

    def matching_root(self, path: PathLike) -> Optional[Path]:
        """Return the ignore root covering ``path``, or ``None``."""

        if not self._roots:
            return None
        candidate = normalize(path)
        for root in self._roots:
            if candidate == root or root in candidate.parents:
                return root
        return None

    def is_ignored(self, path: PathLike) -> bool:
        return self.matching_root(path) is not None
