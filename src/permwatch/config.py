"""Configuration loading utilities for the permission watcher."""
from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Tuple

import yaml # type: ignore


logger = logging.getLogger(__name__)

MAX_PERMISSION = 0o777

DEFAULT_CONFIG: Dict[str, Any] = {
    "watch_dirs": ["./testdir"],
    "ignore_dirs": ["./testdir/ignoreme"],
    "desired_permission": "777",
}

_YAML_SUFFIXES = (".yaml", ".yml")
_KNOWN_KEYS = {
    "watch_dirs",
    "ignore_dirs",
    "desired_permission",
    "debounce",
    "rescan_interval",
    "use_polling",
    "poll_interval",
}


class ConfigError(Exception):
    """Raised when the configuration file is missing or invalid."""


@dataclass(frozen=True)
class WatchConfig:
    """Immutable settings handed to the monitor at startup."""

    watch_dirs: Tuple[Path, ...]
    ignore_dirs: Tuple[Path, ...]
    desired_permission: int
    debounce: float = 0.1
    rescan_interval: float = 3600.0
    use_polling: bool = False
    poll_interval: float = 1.0


def load_or_default(path: Path) -> WatchConfig:
    """Load ``path``, writing the default configuration there first if it is absent."""

    if not path.exists():
        write_default_config(path)
    return load_config(path)


def write_default_config(path: Path) -> None:
    try:
        path.write_text(json.dumps(DEFAULT_CONFIG, indent=2) + "\n")
    except OSError as exc:
        raise ConfigError(f"Failed to write default configuration to {path}: {exc}") from exc
    logger.info("Wrote default configuration to %s", path)


def load_config(path: Path) -> WatchConfig:
    """Load and validate a JSON (or YAML) configuration file."""

    if not path.exists():
        raise ConfigError(f"Configuration file not found: {path}")

    try:
        text = path.read_text()
    except OSError as exc:
        raise ConfigError(f"Failed to read configuration file {path}: {exc}") from exc

    data = _parse_document(text, config_path=path)
    return parse_config(data, base_dir=path.parent, yaml_document=_is_yaml(path))


def parse_config(data: Any, *, base_dir: Path, yaml_document: bool = False) -> WatchConfig:
    """Build a :class:`WatchConfig` from an already decoded mapping.

    Relative directories are resolved against ``base_dir``. Only YAML
    documents may give ``desired_permission`` as a bare number.
    """

    if not isinstance(data, dict):
        raise ConfigError("Configuration root must be a mapping")

    for key in sorted(set(data) - _KNOWN_KEYS):
        logger.warning("Ignoring unknown configuration key '%s'", key)

    watch_raw = _ensure_str_list(data.get("watch_dirs"), "watch_dirs")
    if not watch_raw:
        raise ConfigError("watch_dirs must list at least one directory")
    ignore_raw = _ensure_str_list(data.get("ignore_dirs", []), "ignore_dirs")

    if "desired_permission" not in data:
        raise ConfigError("desired_permission is required")
    desired = parse_permission(data["desired_permission"], allow_integer=yaml_document)

    debounce = _parse_seconds(data.get("debounce", 0.1), "debounce", allow_zero=True)
    rescan_interval = _parse_seconds(data.get("rescan_interval", 3600.0), "rescan_interval", allow_zero=True)
    poll_interval = _parse_seconds(data.get("poll_interval", 1.0), "poll_interval", allow_zero=False)

    use_polling = data.get("use_polling", False)
    if not isinstance(use_polling, bool):
        raise ConfigError("use_polling must be a boolean")

    return WatchConfig(
        watch_dirs=_resolve_dirs(watch_raw, base_dir),
        ignore_dirs=_resolve_dirs(ignore_raw, base_dir),
        desired_permission=desired,
        debounce=debounce,
        rescan_interval=rescan_interval,
        use_polling=use_polling,
        poll_interval=poll_interval,
    )


def parse_permission(value: Any, *, allow_integer: bool = False) -> int:
    """Parse an octal permission such as ``"755"`` or ``"0o755"`` into an int."""

    if isinstance(value, bool):
        raise ConfigError("desired_permission must be an octal string such as \"755\"")
    if isinstance(value, int) and allow_integer:
        # An unquoted YAML 755 arrives as decimal 755; its digits are the octal mode.
        value = str(value)
    if not isinstance(value, str):
        raise ConfigError("desired_permission must be an octal string such as \"755\"")

    text = value.strip().lower()
    if text.startswith("0o"):
        text = text[2:]
    if not text or any(ch not in "01234567" for ch in text):
        raise ConfigError(f"desired_permission {value!r} is not a valid octal mode")

    mode = int(text, 8)
    if mode > MAX_PERMISSION:
        raise ConfigError(f"desired_permission {value!r} is outside the range 000-777")
    return mode


def _parse_document(text: str, *, config_path: Path) -> Any:
    if _is_yaml(config_path):
        try:
            return yaml.safe_load(text)
        except yaml.YAMLError as exc:
            raise ConfigError(f"Failed to parse YAML configuration: {exc}") from exc
    try:
        return json.loads(text)
    except json.JSONDecodeError as exc:
        raise ConfigError(f"Failed to parse JSON configuration: {exc}") from exc


def _is_yaml(path: Path) -> bool:
    return path.suffix.lower() in _YAML_SUFFIXES


def _resolve_dirs(raw: List[str], base_dir: Path) -> Tuple[Path, ...]:
    resolved: Dict[Path, None] = {}
    for item in raw:
        path = Path(item).expanduser()
        if not path.is_absolute():
            path = base_dir / path
        resolved[path.resolve()] = None
    return tuple(resolved)


def _parse_seconds(value: Any, field_name: str, *, allow_zero: bool) -> float:
    if isinstance(value, bool):
        raise ConfigError(f"{field_name} must be numeric")
    try:
        seconds = float(value)
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"{field_name} must be numeric") from exc
    if seconds < 0 or (seconds == 0 and not allow_zero):
        qualifier = "non-negative" if allow_zero else "positive"
        raise ConfigError(f"{field_name} must be {qualifier}")
    return seconds


def _ensure_str_list(value: Any, field_name: str) -> List[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [value]
    if not isinstance(value, list):
        raise ConfigError(f"{field_name} must be a list of strings")
    items: List[str] = []
    for elem in value:
        if not isinstance(elem, str):
            raise ConfigError(f"{field_name} must contain only strings")
        items.append(elem)
    return items
