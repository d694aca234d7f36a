"""Time windows and per-option totals for the statistics view."""

from __future__ import annotations

import math
from collections import defaultdict
from collections.abc import Iterable
from datetime import datetime, timedelta

from pydantic import BaseModel

from ptracker.models import ActivityLog, ActivityOption

PERIODS = ("day", "week", "month")


class OptionTotal(BaseModel):
    option_id: str
    name: str
    color: str
    minutes: int
    hours: float


def _local(date: datetime | None) -> datetime:
    if date is None:
        return datetime.now().astimezone()  # Local timezone-aware
    if date.tzinfo is None:
        return date.astimezone()
    return date


def get_day_range(date: datetime | None = None) -> tuple[datetime, datetime]:
    """Start of day to start of next day.

    Args:
        date: Instant inside the day (default: now). Aware datetimes keep
            their timezone; naive ones are taken as local time.

    Returns:
        (start, end), start inclusive, end exclusive.
    """
    date = _local(date)
    start = date.replace(hour=0, minute=0, second=0, microsecond=0)
    return start, start + timedelta(days=1)


def get_week_range(date: datetime | None = None) -> tuple[datetime, datetime]:
    """Monday 00:00 to next Monday 00:00 around ``date``."""
    date = _local(date)
    monday = date - timedelta(days=date.weekday())
    monday = monday.replace(hour=0, minute=0, second=0, microsecond=0)
    return monday, monday + timedelta(days=7)


def get_month_range(date: datetime | None = None) -> tuple[datetime, datetime]:
    """First of the month 00:00 to first of the next month 00:00."""
    date = _local(date)
    start = date.replace(day=1, hour=0, minute=0, second=0, microsecond=0)
    if start.month == 12:
        end = start.replace(year=start.year + 1, month=1)
    else:
        end = start.replace(month=start.month + 1)
    return start, end


def get_range(period: str, date: datetime | None = None) -> tuple[datetime, datetime]:
    if period == "day":
        return get_day_range(date)
    if period == "week":
        return get_week_range(date)
    if period == "month":
        return get_month_range(date)
    raise ValueError(f"Unknown period: {period}")


def round_hours(minutes: int) -> float:
    """Minutes to hours, rounded half-up to one decimal (75 min -> 1.3)."""
    return math.floor(minutes / 60 * 10 + 0.5) / 10


def aggregate(
    options: Iterable[ActivityOption],
    logs: Iterable[ActivityLog],
    start: datetime,
    end: datetime,
) -> list[OptionTotal]:
    """Sum logged minutes per option for logs started in [start, end).

    Options come out in the order given; options with no time are dropped,
    and so are logs whose option no longer exists.
    """
    minutes: dict[str, int] = defaultdict(int)
    for log in logs:
        if start <= log.started_at < end:
            minutes[log.option_id] += log.duration_minutes or 0

    totals = []
    for option in options:
        total = minutes.get(option.id, 0)
        if total <= 0:
            continue
        totals.append(
            OptionTotal(
                option_id=option.id,
                name=option.name,
                color=option.color,
                minutes=total,
                hours=round_hours(total),
            )
        )
    return totals


def total_hours(totals: Iterable[OptionTotal]) -> float:
    return round(sum(t.hours for t in totals), 1)


def format_duration(minutes: int) -> str:
    """Format minutes as 'Xh Ym' or 'Ym'."""
    if minutes <= 0:
        return "0m"
    hours, rest = divmod(minutes, 60)
    if hours > 0:
        return f"{hours}h {rest:2d}m"
    return f"{rest}m"


def format_date_range(start: datetime, end: datetime, period: str) -> str:
    """Header text like 'Jan 20-26, 2025', 'Jan 28, 2025' or 'January 2025'."""
    # end is exclusive
    last = end - timedelta(seconds=1)

    if period == "day":
        return start.strftime("%b %d, %Y")
    if period == "month":
        return start.strftime("%B %Y")

    if start.month == last.month:
        return f"{start.strftime('%b')} {start.day}-{last.day}, {start.year}"
    elif start.year == last.year:
        return f"{start.strftime('%b %d')} - {last.strftime('%b %d')}, {start.year}"
    else:
        return f"{start.strftime('%b %d, %Y')} - {last.strftime('%b %d, %Y')}"


def make_progress_bar(value: float, max_value: float, width: int = 16) -> str:
    """ASCII bar like '████████░░░░░░░░'."""
    if max_value == 0 or value == 0:
        return "░" * width
    filled = max(1, min(width, round((value / max_value) * width)))
    return "█" * filled + "░" * (width - filled)
