"""
Clock and daily-cycle helpers.

Quest instances belong to a calendar day in the configured quest timezone
and expire at that day's next local midnight. Everything stored is UTC.
"""

from __future__ import annotations

from datetime import date, datetime, timedelta, timezone
from typing import Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from animochi.core.exceptions import ConfigurationError


class Clock:
    """Wall clock bound to the timezone that defines a quest day."""

    def __init__(self, tz_name: str = "UTC") -> None:
        try:
            self._tz = ZoneInfo(tz_name)
        except (ZoneInfoNotFoundError, ValueError) as exc:
            raise ConfigurationError("QUEST_TIMEZONE", f"Unknown timezone '{tz_name}'") from exc
        self._tz_name = tz_name

    @property
    def tz_name(self) -> str:
        return self._tz_name

    def now(self) -> datetime:
        return datetime.now(timezone.utc)

    def resolve(self, now: Optional[datetime] = None) -> datetime:
        """Return `now` as aware UTC, defaulting to the current time."""
        if now is None:
            return self.now()
        if now.tzinfo is None:
            raise ValueError("now must be timezone-aware")
        return now.astimezone(timezone.utc)

    def cycle_date(self, now: Optional[datetime] = None) -> date:
        """Local calendar day that `now` falls in."""
        return self.resolve(now).astimezone(self._tz).date()

    def start_of_cycle(self, now: Optional[datetime] = None) -> datetime:
        day = self.cycle_date(now)
        local_midnight = datetime(day.year, day.month, day.day, tzinfo=self._tz)
        return local_midnight.astimezone(timezone.utc)

    def end_of_cycle(self, now: Optional[datetime] = None) -> datetime:
        """Next local midnight after `now`, in UTC."""
        next_day = self.cycle_date(now) + timedelta(days=1)
        local_midnight = datetime(next_day.year, next_day.month, next_day.day, tzinfo=self._tz)
        return local_midnight.astimezone(timezone.utc)


class FixedClock(Clock):
    """Clock frozen at a given instant; `advance()` moves it forward."""

    def __init__(self, instant: datetime, tz_name: str = "UTC") -> None:
        super().__init__(tz_name)
        if instant.tzinfo is None:
            raise ValueError("instant must be timezone-aware")
        self._instant = instant.astimezone(timezone.utc)

    def now(self) -> datetime:
        return self._instant

    def set(self, instant: datetime) -> None:
        if instant.tzinfo is None:
            raise ValueError("instant must be timezone-aware")
        self._instant = instant.astimezone(timezone.utc)

    def advance(self, **delta: float) -> datetime:
        self._instant = self._instant + timedelta(**delta)
        return self._instant
