"""
Time Utilities Module
=====================

Timestamps used for log enrichment and heartbeat payloads.
Exchange timestamps are in milliseconds.
"""

import time
from datetime import datetime, timezone


def now_ms() -> int:
    """
    Get current timestamp in milliseconds.
    
    Returns:
        Current Unix timestamp in milliseconds.
    """
    return int(time.time() * 1000)


def heartbeat_stamp(moment: datetime | None = None) -> str:
    """
    Human-readable UTC timestamp carried by heartbeat frames.
    
    Example:
        >>> heartbeat_stamp(datetime(2024, 1, 27, 12, 0, tzinfo=timezone.utc))
        '2024-01-27 12:00:00.000 +0000 UTC'
    """
    moment = moment or datetime.now(timezone.utc)
    return moment.astimezone(timezone.utc).strftime("%Y-%m-%d %H:%M:%S.%f")[:-3] + " +0000 UTC"
