"""
Time source used by the repository, cache and batch scheduler.

Timestamps are naive UTC to match the DateTime columns.
"""

from datetime import date, datetime, timezone


class Clock:
    """Abstract time source"""

    def now(self) -> datetime:
        raise NotImplementedError

    def today(self) -> date:
        return self.now().date()


class SystemClock(Clock):
    """Wall clock in UTC"""

    def now(self) -> datetime:
        return datetime.now(timezone.utc).replace(tzinfo=None)


system_clock = SystemClock()
