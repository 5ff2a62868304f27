"""Injectable time source."""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Protocol


class Clock(Protocol):
    """Anything that can tell the current time."""

    def now(self) -> datetime: ...


class SystemClock:
    """Wall clock in UTC, stored naive so SQLite and PostgreSQL agree."""

    def now(self) -> datetime:
        return datetime.now(UTC).replace(tzinfo=None)
