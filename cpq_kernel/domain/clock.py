"""
Injectable time source.

Engines never read the clock: the employer cost calculator takes
``computed_at`` as an argument.  ``QuoteCostingService`` reads a Clock
once per operation and stamps that instant on every result it computes.
"""

from abc import ABC, abstractmethod
from datetime import datetime, timedelta, timezone

DEFAULT_TEST_TIME = datetime(2026, 2, 1, 12, 0, 0, tzinfo=timezone.utc)


class Clock(ABC):
    @abstractmethod
    def now(self) -> datetime:
        """Timezone-aware current time."""


class SystemClock(Clock):
    """Wall-clock UTC."""

    def now(self) -> datetime:
        return datetime.now(timezone.utc)


class DeterministicClock(Clock):
    """Frozen time that only moves when ``advance`` is called."""

    def __init__(self, start: datetime | None = None):
        self._now = start or DEFAULT_TEST_TIME

    def now(self) -> datetime:
        return self._now

    def advance(self, seconds: int = 1) -> None:
        self._now += timedelta(seconds=seconds)
