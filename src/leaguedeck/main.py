#!/usr/bin/env python3
"""
leaguedeck - main entry point
"""

import argparse
import asyncio
import logging
import os
import signal
import sys
from logging.handlers import RotatingFileHandler
from typing import Optional

from .config.loader import ConfigLoader
from .controller import LeagueDeckController
from .utils.errors import ConfigurationError

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
LOG_LEVELS = ["DEBUG", "INFO", "WARNING", "ERROR"]
LOG_FILE_MAX_BYTES = 10 * 1024 * 1024
LOG_FILE_BACKUPS = 5


def setup_logging(level: str, log_file: Optional[str] = None) -> None:
    """
    Configure root logging.

    Args:
        level: Level name, one of LOG_LEVELS
        log_file: Also write to this file, rotated at 10 MB
    """
    logging.basicConfig(level=getattr(logging, level.upper(), logging.INFO), format=LOG_FORMAT)

    if log_file:
        path = os.path.expanduser(log_file)
        directory = os.path.dirname(path)
        if directory:
            os.makedirs(directory, exist_ok=True)
        handler = RotatingFileHandler(
            path, maxBytes=LOG_FILE_MAX_BYTES, backupCount=LOG_FILE_BACKUPS, encoding="utf-8"
        )
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        logging.getLogger().addHandler(handler)


def resolve_log_level(cli_level: Optional[str], config_level: Optional[str]) -> str:
    """--log-level, then LEAGUEDECK_LOG_LEVEL, then the config file, then INFO"""
    for candidate in (cli_level, os.environ.get("LEAGUEDECK_LOG_LEVEL"), config_level):
        if candidate and candidate.upper() in LOG_LEVELS:
            return candidate.upper()
    return "INFO"


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="leaguedeck - League of Legends client widgets for Stream Deck"
    )
    parser.add_argument("config", nargs="?", help="Path to YAML configuration file (optional)")
    parser.add_argument("--log-level", choices=LOG_LEVELS, help="Logging level")
    parser.add_argument("--log-file", help="Also log to this file")
    return parser


async def run_controller(controller: LeagueDeckController) -> None:
    loop = asyncio.get_running_loop()
    logger = logging.getLogger(__name__)

    def signal_handler(signum: int) -> None:
        """Handle shutdown signals gracefully"""
        logger.info(f"Received signal {signum}, shutting down gracefully...")
        controller.stop()

    for signum in (signal.SIGTERM, signal.SIGINT):
        try:
            loop.add_signal_handler(signum, signal_handler, signum)
        except NotImplementedError:
            # Windows event loops have no signal handler support
            signal.signal(signum, lambda s, _frame: loop.call_soon_threadsafe(controller.stop))

    await controller.run()


def main() -> None:
    """Main entry point"""
    args = build_parser().parse_args()

    config_path = os.path.expanduser(args.config) if args.config else None
    config_level = None
    config_log_file = None
    config_error = None
    if config_path:
        try:
            config = ConfigLoader().load(config_path)
        except ConfigurationError as e:
            config_error = e
        else:
            config_level = config["logging"]["level"]
            config_log_file = config["logging"]["file"]

    setup_logging(resolve_log_level(args.log_level, config_level), args.log_file or config_log_file)
    logger = logging.getLogger(__name__)

    if config_error is not None:
        logger.error(f"Configuration error: {config_error.message}")
        sys.exit(1)

    try:
        controller = LeagueDeckController(config_path)
    except ConfigurationError as e:
        logger.error(f"Configuration error: {e.message}")
        sys.exit(1)

    try:
        asyncio.run(run_controller(controller))
    except KeyboardInterrupt:
        logger.info("Shutting down...")
    except Exception as e:
        logger.error(f"Fatal error: {e}", exc_info=True)
        sys.exit(1)


if __name__ == "__main__":
    main()
