"""Logging setup for the CLI and long-running lock sweep."""

import logging
import sys
from datetime import date
from pathlib import Path
from typing import Optional

FILE_FORMAT = '%(asctime)s %(levelname)-7s %(name)s [%(threadName)s] %(message)s'
CONSOLE_FORMAT = '%(levelname)s: %(message)s'


def setup_logging(
    log_dir: Optional[Path] = None,
    level: int = logging.INFO,
    log_to_file: bool = True,
    log_to_console: bool = True,
) -> logging.Logger:
    """
    Attach handlers to the 'threeman' logger.

    Console output goes to stderr so command output on stdout stays clean. The
    log file is one per day (logs/threeman_YYYYMMDD.log) and is appended to, which
    keeps a repeating lock sweep from creating a file per run. Calling this again
    replaces the previous handlers.

    Args:
        log_dir: Directory for log files (default: ./logs)
        level: Level for the logger and every handler
        log_to_file: Write the daily log file
        log_to_console: Write to stderr

    Returns:
        The configured 'threeman' logger
    """
    logger = logging.getLogger('threeman')
    logger.setLevel(level)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    if log_to_file:
        log_dir = Path(log_dir or 'logs')
        log_dir.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(
            log_dir / f'threeman_{date.today():%Y%m%d}.log', encoding='utf-8'
        )
        file_handler.setFormatter(logging.Formatter(FILE_FORMAT, datefmt='%Y-%m-%d %H:%M:%S'))
        file_handler.setLevel(level)
        logger.addHandler(file_handler)

    if log_to_console:
        console_handler = logging.StreamHandler(sys.stderr)
        console_handler.setFormatter(logging.Formatter(CONSOLE_FORMAT))
        console_handler.setLevel(level)
        logger.addHandler(console_handler)

    return logger
