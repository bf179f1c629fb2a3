from __future__ import annotations

import os
from pathlib import Path
from typing import Callable

import pytest

from permwatch.config import WatchConfig


@pytest.fixture
def make_file() -> Callable[..., Path]:
    def _make(path: Path, mode: int = 0o644, content: str = "data") -> Path:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content)
        os.chmod(path, mode)
        return path

    return _make


@pytest.fixture
def watch_tree(tmp_path: Path, make_file) -> Path:
    """``d/a`` and ``d/skip/b`` at mode 644, the layout used across scenarios."""

    root = tmp_path / "d"
    make_file(root / "a")
    make_file(root / "skip" / "b")
    return root


@pytest.fixture
def make_config() -> Callable[..., WatchConfig]:
    def _make(watch_dirs, ignore_dirs=(), desired_permission=0o755, **options) -> WatchConfig:
        return WatchConfig(
            watch_dirs=tuple(Path(p) for p in watch_dirs),
            ignore_dirs=tuple(Path(p) for p in ignore_dirs),
            desired_permission=desired_permission,
            **options,
        )

    return _make
