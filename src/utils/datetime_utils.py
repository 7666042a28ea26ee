"""Datetime utilities for timezone-aware UTC timestamps.

Usage:
    from src.utils.datetime_utils import utc_now, timestamped_filename

    # For SQLAlchemy Column defaults
    created_at = Column(DateTime, default=utc_now)

    # For export archive names
    timestamped_filename("foods-en_GB", "zip")  # foods-en_GB-20240131-154500.zip
"""

from datetime import datetime, timezone
from typing import Optional


def utc_now() -> datetime:
    """Return current UTC time as timezone-aware datetime."""
    return datetime.now(timezone.utc)


def timestamped_filename(prefix: str, extension: str, moment: Optional[datetime] = None) -> str:
    """
    Build a file name carrying a sortable UTC timestamp.

    Args:
        prefix: Leading part of the name
        extension: Extension without the dot
        moment: Timestamp to use (defaults to now)

    Returns:
        Name like "prefix-YYYYMMDD-HHMMSS.extension"
    """
    moment = moment or utc_now()
    return f"{prefix}-{moment.strftime('%Y%m%d-%H%M%S')}.{extension}"
