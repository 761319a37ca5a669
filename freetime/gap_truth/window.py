"""
Window Manager - the rolling range of materialized days.

Window: [today - past, today + future]. Preload horizon: the next few days after
the window, filled opportunistically so scrolling never shows an empty day.

"today" is always passed in; nothing here reads the clock or caches a date.
"""

from collections.abc import Iterable
from datetime import date, datetime, timedelta

from freetime import config

from .generator import generate_day_gaps
from .models import Gap
from .preferences import WorkPreferences


def window_bounds(today: date) -> tuple[date, date]:
    """Inclusive (first, last) dates of the rolling window."""
    return (
        today - timedelta(days=config.WINDOW_PAST_DAYS),
        today + timedelta(days=config.WINDOW_FUTURE_DAYS),
    )


def preload_dates(today: date) -> list[date]:
    _, last = window_bounds(today)
    return [last + timedelta(days=i) for i in range(1, config.PRELOAD_DAYS + 1)]


def window_dates(today: date, include_preload: bool = False) -> list[date]:
    first, last = window_bounds(today)
    dates = [first + timedelta(days=i) for i in range((last - first).days + 1)]
    if include_preload:
        dates.extend(preload_dates(today))
    return dates


def ensure_window_populated(
    existing_dates: Iterable[date],
    prefs: WorkPreferences,
    today: date,
    user_id: str,
    include_preload: bool = False,
    now: datetime | None = None,
) -> list[Gap]:
    """
    Gaps to insert for every window date that has none yet.

    Non-working days produce nothing and stay absent.
    """
    existing = set(existing_dates)
    to_insert: list[Gap] = []
    for day in window_dates(today, include_preload=include_preload):
        if day in existing:
            continue
        to_insert.extend(generate_day_gaps(day, prefs, user_id, now=now))
    return to_insert


def prune_outside_window(all_gap_dates: Iterable[date], today: date) -> list[date]:
    """Dates strictly before the window start, oldest first."""
    first, _ = window_bounds(today)
    return sorted({d for d in all_gap_dates if d < first})
