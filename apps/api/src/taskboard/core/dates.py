from __future__ import annotations

import calendar
from datetime import datetime, timedelta, timezone
from typing import NamedTuple, Tuple


class Window(NamedTuple):
    start: datetime
    end: datetime  # inclusive


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def start_of_month(dt: datetime) -> datetime:
    return dt.replace(day=1, hour=0, minute=0, second=0, microsecond=0)


def end_of_month(dt: datetime) -> datetime:
    last_day = calendar.monthrange(dt.year, dt.month)[1]
    return dt.replace(day=last_day, hour=23, minute=59, second=59, microsecond=999999)


def month_windows(now: datetime) -> Tuple[Window, Window]:
    """
    (this calendar month, previous calendar month), both inclusive on both ends.
    """
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    now = now.astimezone(timezone.utc)

    this_start = start_of_month(now)
    last_start = start_of_month(this_start - timedelta(days=1))

    return Window(this_start, end_of_month(now)), Window(last_start, end_of_month(last_start))
