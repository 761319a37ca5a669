"""
Preference-Change Reconciler.

Given a user's existing gaps plus the old and new work preferences, decide per
date which gaps to delete, which to truncate and which to create so the gap
set matches the new work hours.

Per-date transitions:
- working -> not working     delete every gap on the date
- not working -> working     generate the day (keeping any stored gaps that fit)
- not working -> not working leave alone
- working -> working         truncate/delete gaps outside the new hours,
                             generate slices for any extension of the hours

The output lists are disjoint by gap id. Apply as delete -> update -> create.
"""

import logging
from collections import defaultdict
from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import date, datetime

from .generator import generate_day_gaps, partition_range
from .models import Gap
from .preferences import WorkPreferences

logger = logging.getLogger(__name__)


@dataclass
class ReconcilePlan:
    to_create: list[Gap] = field(default_factory=list)
    to_delete: list[str] = field(default_factory=list)
    to_update: list[Gap] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not (self.to_create or self.to_delete or self.to_update)

    def counts(self) -> dict:
        return {
            "created": len(self.to_create),
            "deleted": len(self.to_delete),
            "updated": len(self.to_update),
        }

    def apply_to(self, gaps: list[Gap]) -> list[Gap]:
        """The gap set that results from applying this plan to gaps."""
        replaced = {g.id: g for g in self.to_update}
        dropped = set(self.to_delete)
        result = [replaced.get(g.id, g) for g in gaps if g.id not in dropped]
        result.extend(self.to_create)
        return result


def _fit_to_hours(
    gaps: list[Gap],
    start: int,
    end: int,
    min_gap: int,
    plan: ReconcilePlan,
    now: datetime | None,
) -> list[Gap]:
    """Trim gaps to [start, end). Returns the gaps that remain on the date."""
    survivors = []
    for gap in gaps:
        if gap.end_time <= start or gap.start_time >= end:
            plan.to_delete.append(gap.id)
            continue

        if gap.start_time >= start and gap.end_time <= end:
            survivors.append(gap)
            continue

        new_start = max(gap.start_time, start)
        new_end = min(gap.end_time, end)
        if new_end - new_start < min_gap:
            plan.to_delete.append(gap.id)
            continue

        trimmed = gap.with_bounds(new_start, new_end, now=now)
        plan.to_update.append(trimmed)
        survivors.append(trimmed)
    return survivors


def _free_of(candidates: list[Gap], survivors: list[Gap]) -> list[Gap]:
    """Candidates that do not collide with any surviving gap."""
    return [
        c
        for c in candidates
        if not any(s.overlaps(c.start_time, c.end_time) for s in survivors)
    ]


def reconcile(
    existing_gaps: list[Gap],
    old_prefs: WorkPreferences,
    new_prefs: WorkPreferences,
    user_id: str | None = None,
    candidate_dates: Iterable[date] = (),
    now: datetime | None = None,
) -> ReconcilePlan:
    """
    Compute the delete/update/create plan for a preference change.

    Args:
        existing_gaps: all stored gaps of one user, any dates
        old_prefs: preferences the gaps were generated under
        new_prefs: preferences to converge to
        user_id: owner, needed for candidate dates that hold no gaps
        candidate_dates: extra dates (usually the rolling window) checked for
            becoming working days even though they hold no gaps yet
        now: timestamp for created/updated gaps

    Raises:
        InvalidPreferencesError: new work end is not after new work start
    """
    new_start, new_end = new_prefs.work_bounds()
    old_start, old_end = old_prefs.start_minutes, old_prefs.end_minutes
    min_gap = new_prefs.min_gap_minutes

    by_date: dict[date, list[Gap]] = defaultdict(list)
    for gap in existing_gaps:
        by_date[gap.date].append(gap)

    plan = ReconcilePlan()

    for day in sorted(set(by_date) | set(candidate_dates)):
        gaps = sorted(by_date.get(day, []), key=lambda g: g.start_time)
        owner = user_id or (gaps[0].user_id if gaps else None)
        was_working = old_prefs.is_working_day(day)
        is_working = new_prefs.is_working_day(day)

        if was_working and not is_working:
            plan.to_delete.extend(g.id for g in gaps)
            continue

        if not was_working and is_working:
            if owner is None:
                logger.warning("Skipping %s: no user to generate gaps for", day)
                continue
            survivors = _fit_to_hours(gaps, new_start, new_end, min_gap, plan, now)
            fresh = generate_day_gaps(day, new_prefs, owner, now=now)
            plan.to_create.extend(_free_of(fresh, survivors))
            continue

        if not is_working or not gaps:
            continue

        survivors = _fit_to_hours(gaps, new_start, new_end, min_gap, plan, now)

        extensions = []
        if new_start < old_start:
            extensions.append((new_start, min(old_start, new_end)))
        if new_end > old_end:
            extensions.append((max(old_end, new_start), new_end))

        for ext_start, ext_end in extensions:
            if ext_start >= ext_end:
                continue
            slices = partition_range(day, ext_start, ext_end, owner, min_duration=min_gap, now=now)
            plan.to_create.extend(_free_of(slices, survivors))

    if not plan.is_empty:
        logger.info(
            "Reconcile plan: %d create, %d delete, %d update",
            len(plan.to_create),
            len(plan.to_delete),
            len(plan.to_update),
        )
    return plan
