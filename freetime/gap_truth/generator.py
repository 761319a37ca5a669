"""
Gap Generator - canonical hourly partition of a work day.

Pure: no store access. Whether a date already has gaps is the caller's check.
"""

from datetime import date, datetime

from freetime import config

from .models import MODIFIED_BY_SYSTEM, Gap, new_gap_id
from .preferences import WorkPreferences


def partition_range(
    day: date,
    start: int,
    end: int,
    user_id: str,
    min_duration: int = 1,
    now: datetime | None = None,
    id_factory=new_gap_id,
    slice_minutes: int = config.SLICE_MINUTES,
) -> list[Gap]:
    """
    Slice [start, end) into [h, min(h + slice, end)) pieces.

    Pieces shorter than min_duration are dropped (only the last one can be).
    """
    gaps = []
    for hour in range(start, end, slice_minutes):
        slice_end = min(hour + slice_minutes, end)
        if slice_end - hour < min_duration:
            continue
        gaps.append(
            Gap.create(
                user_id,
                day,
                hour,
                slice_end,
                now=now,
                id_factory=id_factory,
                modified_by=MODIFIED_BY_SYSTEM,
            )
        )
    return gaps


def generate_day_gaps(
    day: date,
    prefs: WorkPreferences,
    user_id: str,
    now: datetime | None = None,
    id_factory=new_gap_id,
) -> list[Gap]:
    """
    Hourly gaps covering the work hours of one date.

    Returns [] for non-working days.

    Raises:
        InvalidPreferencesError: work end is not after work start
    """
    if not prefs.is_working_day(day):
        return []

    start, end = prefs.work_bounds()
    return partition_range(day, start, end, user_id, now=now, id_factory=id_factory)
