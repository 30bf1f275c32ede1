# minecraft_world_manager/utils/general.py
import logging
from datetime import datetime
from typing import Optional

logger = logging.getLogger(__name__)


def get_timestamp(now: Optional[datetime] = None) -> str:
    """Returns the current timestamp in YYYYMMDD_HHMMSS format."""
    timestamp = (now or datetime.now()).strftime("%Y%m%d_%H%M%S")
    logger.debug(f"Generated timestamp: {timestamp}")
    return timestamp


def get_iso_date(now: Optional[datetime] = None) -> str:
    """Returns the current date as YYYY-MM-DD."""
    return (now or datetime.now()).date().isoformat()


def format_size(size_bytes: float) -> str:
    """Formats a byte count for display, e.g. ``120.0 MB``."""
    if size_bytes < 0:
        size_bytes = 0
    for unit in ("B", "KB", "MB", "GB", "TB"):
        if size_bytes < 1024 or unit == "TB":
            if unit == "B":
                return f"{int(size_bytes)} B"
            return f"{size_bytes:.1f} {unit}"
        size_bytes /= 1024
    return f"{size_bytes:.1f} TB"
