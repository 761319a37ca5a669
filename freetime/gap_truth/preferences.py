"""
Work preferences as consumed by the gap core.

Preferences come from user-editable settings, so the working-day field shows up
as lists of names, abbreviations, weekday indices, comma strings or truthy-keyed
dicts. normalize_working_days() absorbs all of that and always returns a
canonical frozenset of weekday names; the rest of the core never sees raw input.
"""

import logging
from dataclasses import dataclass, field
from datetime import date
from pathlib import Path

import yaml

from freetime import config, paths

from .errors import InvalidPreferencesError
from .time_math import to_minutes

logger = logging.getLogger(__name__)

# Settings store weekday indices Sunday-first (0 = Sunday)
WEEKDAYS = ("Sunday", "Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday")
WEEKEND_DAYS = frozenset({"Saturday", "Sunday"})
DEFAULT_WORKING_DAYS = frozenset({"Monday", "Tuesday", "Wednesday", "Thursday", "Friday"})

_DAY_ALIASES = {
    "sun": "Sunday",
    "mon": "Monday",
    "tue": "Tuesday",
    "tues": "Tuesday",
    "wed": "Wednesday",
    "thu": "Thursday",
    "thur": "Thursday",
    "thurs": "Thursday",
    "fri": "Friday",
    "sat": "Saturday",
}
_DAY_ALIASES.update({name.lower(): name for name in WEEKDAYS})

_DEFAULTS = {
    "work_start": "09:00",
    "work_end": "17:00",
    "working_days": sorted(DEFAULT_WORKING_DAYS),
    "include_weekends": False,
    "min_gap_minutes": config.DEFAULT_MIN_GAP_MINUTES,
}

# Accepted spellings per field, first match wins
_FIELD_KEYS = {
    "work_start": ("work_start", "workStart", "calendar_work_start"),
    "work_end": ("work_end", "workEnd", "calendar_work_end"),
    "working_days": ("working_days", "workingDays", "calendar_working_days"),
    "include_weekends": ("include_weekends", "includeWeekends", "calendar_include_weekends"),
    "min_gap_minutes": ("min_gap_minutes", "minGapMinutes", "calendar_min_gap"),
}


def weekday_name(day: date) -> str:
    # date.weekday() is Monday=0; shift to the Sunday-first table
    return WEEKDAYS[(day.weekday() + 1) % 7]


def _day_from_token(token) -> str | None:
    if isinstance(token, bool):
        return None
    if isinstance(token, int):
        return WEEKDAYS[token] if 0 <= token < 7 else None
    if isinstance(token, str):
        cleaned = token.strip().rstrip(".").lower()
        if cleaned.isdigit():
            return _day_from_token(int(cleaned))
        return _DAY_ALIASES.get(cleaned)
    return None


def normalize_working_days(raw) -> frozenset[str]:
    """
    Map any working-days shape to a canonical set of weekday names.

    Accepts:
        ["Monday", "tue", 3]          names, abbreviations, 0=Sunday indices
        "Mon,Wed,Fri"                 comma-separated string
        {"monday": True, "fri": 1}    keys whose value is truthy

    An explicitly empty list means "no working days". Anything else that yields
    no recognisable day falls back to Monday-Friday. Never raises.
    """
    if isinstance(raw, dict):
        tokens = [key for key, enabled in raw.items() if enabled]
    elif isinstance(raw, str):
        tokens = [part for part in raw.split(",") if part.strip()]
    elif isinstance(raw, (list, tuple, set, frozenset)):
        if not raw:
            return frozenset()
        tokens = list(raw)
    else:
        tokens = []

    days = {day for day in (_day_from_token(t) for t in tokens) if day}
    if not days:
        if raw is not None:
            logger.debug("Unrecognised working days %r, using default week", raw)
        return DEFAULT_WORKING_DAYS
    return frozenset(days)


def _pick(raw: dict, name: str):
    for key in _FIELD_KEYS[name]:
        if key in raw and raw[key] is not None:
            return raw[key]
    return None


def _as_bool(value) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in ("1", "true", "yes", "on")
    return bool(value)


@dataclass(frozen=True)
class WorkPreferences:
    work_start: str
    work_end: str
    working_days: frozenset[str] = field(default=DEFAULT_WORKING_DAYS)
    include_weekends: bool = False
    min_gap_minutes: int = config.DEFAULT_MIN_GAP_MINUTES

    @classmethod
    def from_raw(cls, raw: dict | None) -> "WorkPreferences":
        """
        Build preferences from a loose settings dict.

        Raises:
            InvalidPreferencesError: work start/end missing
        """
        if not isinstance(raw, dict):
            raise InvalidPreferencesError("Preferences must be an object")

        work_start = _pick(raw, "work_start")
        work_end = _pick(raw, "work_end")
        missing = [name for name, value in (("work_start", work_start), ("work_end", work_end)) if not value]
        if missing:
            raise InvalidPreferencesError(
                f"Preferences missing work-hour fields: {', '.join(missing)}",
                {"missing": missing},
            )

        min_gap = _pick(raw, "min_gap_minutes")
        try:
            min_gap = int(min_gap) if min_gap is not None else config.DEFAULT_MIN_GAP_MINUTES
        except (TypeError, ValueError):
            logger.debug("Bad min gap %r, using default", min_gap)
            min_gap = config.DEFAULT_MIN_GAP_MINUTES

        return cls(
            work_start=str(work_start),
            work_end=str(work_end),
            working_days=normalize_working_days(_pick(raw, "working_days")),
            include_weekends=_as_bool(_pick(raw, "include_weekends")),
            min_gap_minutes=max(min_gap, 1),
        )

    @property
    def start_minutes(self) -> int:
        return to_minutes(self.work_start)

    @property
    def end_minutes(self) -> int:
        return to_minutes(self.work_end)

    def work_bounds(self) -> tuple[int, int]:
        """
        (start, end) in minutes.

        Raises:
            InvalidPreferencesError: end is not after start
        """
        start, end = self.start_minutes, self.end_minutes
        if start >= end:
            raise InvalidPreferencesError(
                f"Work end {self.work_end} must be after work start {self.work_start}",
                {"work_start": self.work_start, "work_end": self.work_end},
            )
        return start, end

    def is_working_day(self, day: date) -> bool:
        name = weekday_name(day)
        if name not in self.working_days:
            return False
        return self.include_weekends or name not in WEEKEND_DAYS

    def to_dict(self) -> dict:
        return {
            "work_start": self.work_start,
            "work_end": self.work_end,
            "working_days": sorted(self.working_days, key=WEEKDAYS.index),
            "include_weekends": self.include_weekends,
            "min_gap_minutes": self.min_gap_minutes,
        }


def load_default_preferences(config_path: Path | None = None) -> WorkPreferences:
    """
    Default preferences from config/work_preferences.yaml.

    Falls back to hardcoded defaults if the file is missing or unreadable.
    """
    if config_path is None:
        config_path = paths.project_root() / "config" / "work_preferences.yaml"

    data = dict(_DEFAULTS)
    if config_path.exists():
        try:
            with open(config_path) as f:
                loaded = yaml.safe_load(f) or {}
            if isinstance(loaded, dict):
                data.update(loaded.get("work_preferences", loaded))
            else:
                logger.warning("Ignoring %s: expected a mapping", config_path)
        except (OSError, yaml.YAMLError) as e:
            logger.warning("Could not read %s, using built-in defaults: %s", config_path, e)
    else:
        logger.debug("No preferences file at %s, using built-in defaults", config_path)

    return WorkPreferences.from_raw(data)
