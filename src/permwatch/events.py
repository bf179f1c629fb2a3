"""Change event models shared between the watcher and the monitor."""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Optional


class ChangeKind(str, Enum):
    """Logical kinds of filesystem changes delivered to the monitor."""

    CREATED = "created"
    MODIFIED = "modified"
    REMOVED = "removed"
    RENAMED = "renamed"
    OTHER = "other"


@dataclass(frozen=True)
class ChangeEvent:
    """A single change observed under one of the watch roots."""

    kind: ChangeKind
    path: Path
    is_directory: bool = False
    previous_path: Optional[Path] = None
