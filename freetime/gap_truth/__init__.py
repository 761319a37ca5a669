"""
Gap Truth Module

The free-time inventory of a user: each work day is partitioned into
contiguous, non-overlapping gaps that tasks are scheduled into.

Objects:
- Gap (half-open [start_time, end_time) in minutes, with split lineage)
- Task (created when a task consumes part of a gap)
- WorkPreferences (work hours, working days, minimum gap size)

Invariants:
- Gaps of one user never overlap on the same date
- duration_minutes == end_time - start_time > 0
- Gaps lie inside the work hours in force when they were created
- A gap truncated below the minimum gap size is deleted, not kept
"""

from .errors import (
    BatchApplyError,
    ConflictError,
    GapError,
    InvalidPreferencesError,
    InvariantViolationError,
    NotFoundError,
    OutOfBoundsError,
    OverlapError,
    ParseError,
    RangeError,
)
from .gap_manager import GapManager, ScheduleResult
from .generator import generate_day_gaps, partition_range
from .invariants import assert_gap_set_valid, validate_gap_set
from .models import Gap, Task
from .preferences import WorkPreferences, load_default_preferences, normalize_working_days
from .reconciler import ReconcilePlan, reconcile
from .splitter import SplitResult, split_gap_for_task
from .time_math import duration_minutes, to_minutes, to_time_string
from .window import ensure_window_populated, preload_dates, prune_outside_window, window_bounds, window_dates

__all__ = [
    "GapManager",
    "ScheduleResult",
    "Gap",
    "Task",
    "WorkPreferences",
    "load_default_preferences",
    "normalize_working_days",
    "generate_day_gaps",
    "partition_range",
    "split_gap_for_task",
    "SplitResult",
    "reconcile",
    "ReconcilePlan",
    "validate_gap_set",
    "assert_gap_set_valid",
    "window_bounds",
    "window_dates",
    "preload_dates",
    "ensure_window_populated",
    "prune_outside_window",
    "to_minutes",
    "to_time_string",
    "duration_minutes",
    # Errors
    "GapError",
    "ParseError",
    "RangeError",
    "InvalidPreferencesError",
    "OutOfBoundsError",
    "NotFoundError",
    "ConflictError",
    "OverlapError",
    "InvariantViolationError",
    "BatchApplyError",
]
