"""
Time arithmetic for gaps: "HH:MM" strings <-> minutes since midnight.

Naive local wall-clock only. No timezone handling.
"""

from .errors import ParseError, RangeError

MINUTES_PER_DAY = 24 * 60


def to_minutes(value: str) -> int:
    """
    Parse "HH:MM" (or "HH:MM:SS") into minutes since midnight.

    Raises:
        ParseError: non-numeric parts, wrong shape, hour > 23 or minute > 59
    """
    if not isinstance(value, str):
        raise ParseError(f"Time must be a string, got {type(value).__name__}")

    parts = value.strip().split(":")
    if len(parts) not in (2, 3) or not all(p.isdigit() for p in parts):
        raise ParseError(f"Invalid time format (use HH:MM): {value!r}")

    hours, minutes = int(parts[0]), int(parts[1])
    if hours > 23 or minutes > 59:
        raise ParseError(f"Time out of range: {value!r}")
    if len(parts) == 3 and int(parts[2]) > 59:
        raise ParseError(f"Time out of range: {value!r}")

    return hours * 60 + minutes


def to_time_string(minutes: int) -> str:
    """Format minutes since midnight as zero-padded "HH:MM"."""
    if isinstance(minutes, bool) or not isinstance(minutes, int):
        raise RangeError(f"Minutes must be an int, got {minutes!r}")
    if not 0 <= minutes < MINUTES_PER_DAY:
        raise RangeError(f"Minutes out of range [0, {MINUTES_PER_DAY}): {minutes}")
    return f"{minutes // 60:02d}:{minutes % 60:02d}"


def duration_minutes(start: str, end: str) -> int:
    """Minutes from start to end. Negative when end precedes start."""
    return to_minutes(end) - to_minutes(start)


def format_span(start: int, end: int) -> str:
    """Human label for a [start, end) minute span, e.g. "09:00-10:00"."""
    end_label = "24:00" if end == MINUTES_PER_DAY else to_time_string(end)
    return f"{to_time_string(start)}-{end_label}"
