"""Clock abstraction used for image tag timestamps."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Protocol


class Clock(Protocol):
    """Source of the current time."""

    def now(self) -> datetime: ...


class SystemClock:
    """Wall clock in UTC."""

    def now(self) -> datetime:
        return datetime.now(timezone.utc)


class MockClock:
    """Manually driven clock. Starts at the unix epoch."""

    def __init__(self, start: datetime | None = None):
        self._now = start or datetime.fromtimestamp(0, tz=timezone.utc)

    def now(self) -> datetime:
        return self._now

    def add(self, delta: timedelta) -> None:
        """Move the clock forward."""
        self._now = self._now + delta

    def set(self, value: datetime) -> None:
        self._now = value


def unix_seconds(clock: Clock) -> int:
    """Current clock time as whole unix seconds."""
    return int(clock.now().timestamp())
