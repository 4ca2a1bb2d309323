"""
Date and time utility functions.
"""

from datetime import datetime, timezone


def get_current_timestamp() -> datetime:
    """Get current UTC timestamp.

    MongoDB stores datetimes with millisecond precision, so microseconds are
    truncated up front to keep read-back values equal to what was written.
    """
    now = datetime.now(timezone.utc)
    return now.replace(microsecond=(now.microsecond // 1000) * 1000)
