"""Clock adapters."""

from datetime import datetime, timedelta, timezone

from kairos.domain.scheduling.models import ensure_utc
from kairos.domain.scheduling.ports import Clock


class SystemClock(Clock):
    """Wall clock in UTC."""

    def now(self) -> datetime:
        return datetime.now(timezone.utc)


class FixedClock(Clock):
    """A clock that only moves when told to. Used by tests and simulations."""

    def __init__(self, start: datetime):
        self._now = ensure_utc(start)

    def now(self) -> datetime:
        return self._now

    def advance(self, delta: timedelta) -> datetime:
        self._now = self._now + delta
        return self._now

    def set(self, moment: datetime) -> None:
        self._now = ensure_utc(moment)
