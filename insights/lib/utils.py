"""
File helpers for Lead Funnel Insights.

Usage:
    from insights.lib.utils import atomic_write_json
"""
import json
import os
import tempfile
from pathlib import Path
from typing import Dict

from insights.lib.logger import setup_logger

logger = setup_logger(__name__)


def atomic_write_json(data: Dict, file_path: str | Path, indent: int = 2) -> bool:
    """
    Write data as JSON so readers see either the old file or the new one.

    The payload goes to a temp file in the target directory, is flushed to
    disk, then renamed over the target. Datetimes and other non-JSON values
    are written with str().

    Returns:
        True if the file was replaced, False otherwise (the error is logged).
    """
    file_path = Path(file_path)
    tmp_name = None

    try:
        file_path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(
            prefix=f".{file_path.name}.", suffix=".tmp", dir=file_path.parent,
        )
        with os.fdopen(fd, "w", encoding="utf-8") as fh:
            json.dump(data, fh, ensure_ascii=False, indent=indent, default=str)
            fh.flush()
            os.fsync(fh.fileno())
        os.replace(tmp_name, file_path)
    except (OSError, TypeError, ValueError) as e:
        logger.error("Failed to write %s: %s", file_path, e)
        if tmp_name and os.path.exists(tmp_name):
            os.unlink(tmp_name)
        return False

    logger.debug("Wrote %s (%d top-level keys)", file_path, len(data))
    return True
