"""Applying the desired permission mode to a single path."""
from __future__ import annotations

import errno
import os
import stat
from dataclasses import dataclass
from pathlib import Path

PERMISSION_BITS = 0o777


class EnforceError(Exception):
    """Raised when the permission of a path could not be checked or changed."""

    def __init__(self, path: Path, message: str):
        super().__init__(f"{path}: {message}")
        self.path = path


class PathNotFound(EnforceError):
    """The path disappeared before it could be enforced."""


class PermissionDenied(EnforceError):
    """The process is not allowed to change the mode of the path."""


@dataclass(frozen=True)
class EnforceOutcome:
    """Result of one enforcement: the mode found and the mode left behind."""

    path: Path
    previous_mode: int
    mode: int

    @property
    def changed(self) -> bool:
        return self.previous_mode != self.mode


def enforce(path: Path, desired: int) -> EnforceOutcome:
    """Make the permission bits of ``path`` equal ``desired``.

    Performs one ``stat`` and, only when the bits differ, one ``chmod``
    setting the mode to exactly ``desired``. Symlinks are left alone: their
    own mode cannot be changed and their targets may lie anywhere.
    """

    try:
        current = os.stat(path, follow_symlinks=False)
    except OSError as exc:
        raise _translate(path, exc) from exc

    previous = stat.S_IMODE(current.st_mode) & PERMISSION_BITS
    if stat.S_ISLNK(current.st_mode) or previous == desired:
        return EnforceOutcome(path=path, previous_mode=previous, mode=previous)

    try:
        os.chmod(path, desired)
    except OSError as exc:
        raise _translate(path, exc) from exc
    return EnforceOutcome(path=path, previous_mode=previous, mode=desired)


def _translate(path: Path, exc: OSError) -> EnforceError:
    reason = exc.strerror or str(exc)
    if isinstance(exc, FileNotFoundError) or exc.errno == errno.ENOTDIR:
        return PathNotFound(path, reason)
    if isinstance(exc, PermissionError):
        return PermissionDenied(path, reason)
    return EnforceError(path, reason)
