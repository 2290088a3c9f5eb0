"""
Command line entry point.

Usage:
    watchdog /path/to/configuration-directory
    python -m syncwatch --log-level DEBUG /path/to/configuration-directory
    watchdog --signal-helper
"""

import argparse
import logging
import os
import sys
from typing import List, Optional

from .config import WatchdogConfig
from .exceptions import WatchdogError
from .process import WatchdogProcess
from .worker import SIGNAL_PROPAGATION_SCRIPT


logger = logging.getLogger("syncwatch")


def setup_logging(level: str) -> None:
    """Configure logging to stderr."""
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="watchdog",
        description="Watch directory trees and mirror changes with external sync scripts",
    )
    parser.add_argument(
        "config_dir",
        nargs="?",
        help="Directory holding configuration.yaml and the bulk_sync, copy and delete scripts",
    )
    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level (default: INFO)",
    )
    parser.add_argument(
        "--signal-helper",
        action="store_true",
        help="Print the path of the shell helper that forwards SIGTERM to a script's children, then exit",
    )
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """
    Run the watchdog until SIGTERM or Ctrl+C.

    Returns:
        0 after a graceful shutdown, 1 on startup failure
    """
    parser = build_parser()
    args = parser.parse_args(argv)
    if args.signal_helper:
        print(SIGNAL_PROPAGATION_SCRIPT)
        return 0
    if args.config_dir is None:
        parser.error("the following arguments are required: config_dir")

    setup_logging(args.log_level)

    try:
        config = WatchdogConfig.load(args.config_dir)
    except WatchdogError as e:
        logger.error(f"Invalid configuration: {e}")
        return 1

    try:
        os.chdir(config.current_dir)
    except OSError as e:
        logger.error(f"Cannot change into {config.current_dir}: {e}")
        return 1

    process = WatchdogProcess(config)
    process.install_signal_handlers()
    try:
        process.start()
    except WatchdogError as e:
        logger.error(f"Startup failed: {e}")
        return 1

    logger.info("Exiting gracefully.")
    return 0


if __name__ == "__main__":
    sys.exit(main())
