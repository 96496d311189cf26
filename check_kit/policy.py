"""
Decides whether a check should hit the registry.
"""

from __future__ import annotations

import time

from .cache import UpdateRecord


def now_ms() -> int:
    """Current time as integer epoch milliseconds."""
    return int(time.time() * 1000)


def should_check(record: UpdateRecord, force: bool, check_interval: int, now: int) -> bool:
    """
    Decide whether the registry needs to be queried.

    Args:
        record: Cached update record
        force: Always query
        check_interval: Milliseconds a successful check stays fresh
        now: Current epoch milliseconds

    Returns:
        True if forced, never checked, or the interval has elapsed
    """
    if force or record.last_check is None:
        return True
    return now > record.last_check + check_interval
