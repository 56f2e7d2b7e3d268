"""Due-date display helpers used by task list renderers.

Values may be ISO strings or datetimes. Calendar comparisons happen in the
local timezone, which is what the user sees on screen. Anything that does not
parse renders as blank and never counts as overdue, today or tomorrow.
"""

from datetime import date, datetime, timezone
from typing import Optional, Union

import pendulum

from taskboard.models.task_model import format_timestamp, parse_iso

DateLike = Union[str, datetime, None]


def _to_local(value: DateLike) -> Optional[datetime]:
    if not value:
        return None
    if isinstance(value, datetime):
        dt = value if value.tzinfo else value.replace(tzinfo=timezone.utc)
    elif isinstance(value, str):
        try:
            dt = parse_iso(value)
        except ValueError:
            return None
    else:
        return None
    try:
        return dt.astimezone()
    except OverflowError:
        return None


def _now(now: Optional[datetime]) -> datetime:
    if now is None:
        return datetime.now().astimezone()
    return _to_local(now)


def _local_day(value: DateLike) -> Optional[date]:
    dt = _to_local(value)
    return dt.date() if dt else None


def format_date(value: DateLike, fmt: Optional[str] = None) -> str:
    """``Jan 5, 2025`` by default, otherwise ``strftime(fmt)``."""
    dt = _to_local(value)
    if dt is None:
        return ""
    if fmt:
        return dt.strftime(fmt)
    return f"{dt:%b} {dt.day}, {dt.year}"


def get_relative_time(value: DateLike, now: Optional[datetime] = None) -> str:
    """Humanized distance from ``now``: ``in 3 days``, ``2 hours ago``."""
    dt = _to_local(value)
    if dt is None:
        return ""
    moment = pendulum.instance(dt)
    # Same phrasing as diff_for_humans() but against an injectable "now".
    return pendulum.format_diff(moment.diff(pendulum.instance(_now(now)), False))


def is_overdue(due: DateLike, now: Optional[datetime] = None) -> bool:
    day = _local_day(due)
    if day is None:
        return False
    return day < _now(now).date()


def is_today(value: DateLike, now: Optional[datetime] = None) -> bool:
    day = _local_day(value)
    return day is not None and day == _now(now).date()


def is_tomorrow(value: DateLike, now: Optional[datetime] = None) -> bool:
    day = _local_day(value)
    if day is None:
        return False
    return day == pendulum.instance(_now(now)).add(days=1).date()


def get_due_date_label(due: DateLike, now: Optional[datetime] = None) -> str:
    dt = _to_local(due)
    if dt is None:
        return ""
    if is_overdue(dt, now):
        return "Overdue"
    if is_today(dt, now):
        return "Today"
    if is_tomorrow(dt, now):
        return "Tomorrow"
    # Whole days remaining.
    days_until_due = int((dt - _now(now)).total_seconds() // 86400)
    if days_until_due <= 7:
        return f"{dt:%A}"
    return format_date(dt)


def parse_date(value: Optional[str]) -> Optional[str]:
    """Canonical UTC ISO string for ``value``, or None when it does not parse."""
    dt = _to_local(value)
    if dt is None:
        return None
    return format_timestamp(dt)
