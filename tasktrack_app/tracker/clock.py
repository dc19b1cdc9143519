"""Wall-clock access for the timer and the round scheduler."""
from __future__ import annotations

import time
from datetime import date, timedelta
from typing import List, Protocol


class Clock(Protocol):
    def now_ms(self) -> int:
        ...

    def today(self) -> date:
        ...


class SystemClock:
    """Clock backed by the local system time."""

    def now_ms(self) -> int:
        return int(time.time() * 1000)

    def today(self) -> date:
        return date.today()


def date_key(day: date) -> str:
    return day.isoformat()


def today_key(clock: Clock) -> str:
    return date_key(clock.today())


def trailing_days(today: date, count: int = 7) -> List[date]:
    """The ``count`` days ending with ``today``, oldest first."""
    return [today - timedelta(days=offset) for offset in range(count - 1, -1, -1)]
