"""Wall-clock helpers for business-day and month-lock decisions."""

from __future__ import annotations

import calendar
from collections.abc import Callable
from datetime import date, datetime, time, timedelta, timezone

from caseflow.core.config import get_settings

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    """Timezone-aware current UTC time."""

    return datetime.now(timezone.utc)


def naive_utc(value: datetime) -> datetime:
    """Storage form used by the ORM columns (UTC, tzinfo stripped)."""

    if value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def business_timezone() -> timezone:
    offset = get_settings().business_utc_offset_hours
    return timezone(timedelta(hours=offset), name=f"UTC{offset:+d}")


def business_now(now: datetime) -> datetime:
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    return now.astimezone(business_timezone())


def business_today(now: datetime) -> date:
    return business_now(now).date()


def month_bounds(month: int, year: int) -> tuple[date, date]:
    last_day = calendar.monthrange(year, month)[1]
    return date(year, month, 1), date(year, month, last_day)


def month_lock_boundary(entry_date: date) -> datetime:
    """Last second of the entry's month in the business timezone."""

    _, last_day = month_bounds(entry_date.month, entry_date.year)
    return datetime.combine(last_day, time(23, 59, 59), tzinfo=business_timezone())


def is_month_locked(entry_date: date, now: datetime) -> bool:
    return business_now(now) > month_lock_boundary(entry_date)


def last_day_of_previous_month(today: date) -> date:
    return today.replace(day=1) - timedelta(days=1)
