"""Command-line entry point for the permission watcher."""
from __future__ import annotations

import argparse
import logging
from pathlib import Path

from .config import ConfigError, load_or_default
from .monitor import PermissionMonitor


def main() -> None:
    parser = argparse.ArgumentParser(description="Keep file and directory permissions at a fixed mode")
    parser.add_argument(
        "--config",
        default=".config",
        help="Path to the JSON configuration file, created with defaults if missing (default: %(default)s)",
    )
    parser.add_argument(
        "--log-level",
        default="INFO",
        help="Logging level (DEBUG, INFO, WARNING, ERROR)",
    )
    parser.add_argument(
        "--once",
        action="store_true",
        help="Run a single permission sweep and exit instead of watching",
    )
    args = parser.parse_args()

    logging.basicConfig(
        level=getattr(logging, args.log_level.upper(), logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s - %(message)s",
    )

    config_path = Path(args.config)
    try:
        watch_config = load_or_default(config_path)
    except ConfigError as exc:
        logging.error("%s", exc)
        raise SystemExit(2) from exc

    monitor = PermissionMonitor(watch_config)
    if args.once:
        monitor.sweep()
        return
    monitor.run()


if __name__ == "__main__":
    main()
