"""
Datetime utilities.

Provides timezone-aware datetime functions and the clock abstraction
used by the poller and delivery worker.
"""

from datetime import UTC, datetime
from typing import Protocol


def utc_now() -> datetime:
    """
    Get current UTC datetime with timezone info.

    Returns:
        Current datetime in UTC with timezone awareness
    """
    return datetime.now(UTC)


class Clock(Protocol):
    """Source of the current time."""

    def now(self) -> datetime:
        ...


class SystemClock:
    """Wall-clock time in UTC."""

    def now(self) -> datetime:
        return utc_now()
