"""
Gap-set invariant checker.

Invariants:
- No two gaps of the same user overlap on the same date
- duration_minutes == end_time - start_time > 0

Read-only. Violations are reported, never repaired; a violation in a write
batch means a bug upstream.
"""

import logging
from collections import defaultdict
from dataclasses import dataclass

from .errors import InvariantViolationError
from .models import Gap
from .time_math import format_span

logger = logging.getLogger(__name__)


@dataclass
class OverlapViolation:
    gap_a_id: str
    gap_b_id: str
    date: str
    overlap_start: int
    overlap_end: int

    def describe(self) -> str:
        return (
            f"overlap {self.gap_a_id} / {self.gap_b_id} on {self.date} "
            f"at {format_span(self.overlap_start, self.overlap_end)}"
        )


@dataclass
class DegenerateViolation:
    gap_id: str
    date: str
    start_time: int
    end_time: int
    duration_minutes: int

    def describe(self) -> str:
        return (
            f"degenerate {self.gap_id} on {self.date}: "
            f"[{self.start_time}, {self.end_time}) stored duration {self.duration_minutes}"
        )


def validate_gap_set(gaps: list[Gap]) -> list:
    """
    Check a gap set for overlap and degenerate-duration violations.

    Gaps are grouped by (user_id, date), sorted by start_time and compared
    pairwise with their successor.
    """
    violations: list = []
    by_day: dict[tuple[str, str], list[Gap]] = defaultdict(list)

    for gap in gaps:
        real = gap.end_time - gap.start_time
        if real <= 0 or gap.duration_minutes != real:
            violations.append(
                DegenerateViolation(
                    gap_id=gap.id,
                    date=gap.date.isoformat(),
                    start_time=gap.start_time,
                    end_time=gap.end_time,
                    duration_minutes=gap.duration_minutes,
                )
            )
        by_day[(gap.user_id, gap.date.isoformat())].append(gap)

    for (_, day), day_gaps in by_day.items():
        day_gaps.sort(key=lambda g: (g.start_time, g.end_time))
        for a, b in zip(day_gaps, day_gaps[1:]):
            if a.end_time > b.start_time:
                violations.append(
                    OverlapViolation(
                        gap_a_id=a.id,
                        gap_b_id=b.id,
                        date=day,
                        overlap_start=b.start_time,
                        overlap_end=min(a.end_time, b.end_time),
                    )
                )

    return violations


def assert_gap_set_valid(gaps: list[Gap]) -> None:
    """
    Raises:
        InvariantViolationError: if validate_gap_set finds anything
    """
    violations = validate_gap_set(gaps)
    if violations:
        for v in violations:
            logger.error("Gap invariant violated: %s", v.describe())
        raise InvariantViolationError(violations)
