"""
Logging setup for Lead Funnel Insights.
Every module logs to stdout and, unless LOG_TO_FILE=false, to one shared daily
file under logs/ (or LOG_DIR).

Usage:
    from insights.lib.logger import setup_logger
    logger = setup_logger(__name__)
    logger.info("Fetched %d sessions", len(rows))
"""
import logging
import os
import sys
from datetime import datetime
from pathlib import Path

PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent
LOG_DIR = Path(os.getenv("LOG_DIR", PROJECT_ROOT / "logs"))

LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# One handle per target file, shared by all loggers
_file_handlers = {}


def _env_flag(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


def _daily_file_handler(log_dir: Path, formatter: logging.Formatter) -> logging.Handler:
    log_file = log_dir / f"{datetime.now().strftime('%Y%m%d')}_lead_funnel.log"
    handler = _file_handlers.get(log_file)
    if handler is None:
        log_dir.mkdir(parents=True, exist_ok=True)
        handler = logging.FileHandler(log_file, encoding="utf-8")
        handler.setLevel(logging.DEBUG)
        handler.setFormatter(formatter)
        _file_handlers[log_file] = handler
    return handler


def setup_logger(
    name: str,
    level: str = None,
    log_to_file: bool = None,
    log_dir: Path = None,
) -> logging.Logger:
    """
    Configure and return a named logger. Calling it again for the same name
    returns the logger unchanged.

    Args:
        name: Logger name (module name or a short component name).
        level: Level name; defaults to LOG_LEVEL, else INFO.
        log_to_file: Also write to the daily file; defaults to LOG_TO_FILE, else True.
        log_dir: Directory for the daily file (default: LOG_DIR).

    Returns:
        Configured logger instance.
    """
    logger = logging.getLogger(name)
    if logger.handlers:
        return logger

    level = (level or os.getenv("LOG_LEVEL", "INFO")).upper()
    if log_to_file is None:
        log_to_file = _env_flag("LOG_TO_FILE", True)

    logger.setLevel(getattr(logging, level, logging.INFO))
    formatter = logging.Formatter(fmt=LOG_FORMAT, datefmt=DATE_FORMAT)

    console = logging.StreamHandler(sys.stdout)
    console.setLevel(logging.DEBUG)
    console.setFormatter(formatter)
    logger.addHandler(console)

    if log_to_file:
        logger.addHandler(_daily_file_handler(Path(log_dir) if log_dir else LOG_DIR, formatter))

    return logger
