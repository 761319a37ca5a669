"""
Gap Manager - the store-backed service over the pure gap core.

Every operation reads the user's gaps, computes a change with the pure
modules (generator, splitter, reconciler, window), checks the resulting gap
set against the invariants and writes it as one batch in
delete -> update -> insert order.
"""

import logging
import time
from dataclasses import dataclass, field
from datetime import date, datetime

from freetime.observability import metrics
from freetime.state_store import ForeignRowError, RowsExistError, StaleRowError, StoreBatchError, get_store

from .errors import (
    BatchApplyError,
    ConflictError,
    InvariantViolationError,
    NotFoundError,
    OverlapError,
    RangeError,
)
from .generator import generate_day_gaps
from .invariants import assert_gap_set_valid, validate_gap_set
from .models import MODIFIED_BY_USER, Gap, Task
from .preferences import WorkPreferences
from .reconciler import reconcile
from .splitter import split_gap_for_task
from .time_math import MINUTES_PER_DAY, format_span
from .window import ensure_window_populated, preload_dates, prune_outside_window, window_bounds, window_dates

logger = logging.getLogger(__name__)

GAPS = "gaps"
TASKS = "tasks"


@dataclass
class ScheduleResult:
    task: Task
    consumed_gap_id: str
    remainder_gaps: list[Gap] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "task": self.task.to_record(),
            "consumedGapId": self.consumed_gap_id,
            "remainderGaps": [g.to_record() for g in self.remainder_gaps],
        }


class GapManager:
    """
    Free-time inventory operations for one store.

    Responsibilities:
    - Materialize days and the rolling window
    - Schedule tasks by splitting gaps
    - Reconcile gaps with changed work preferences
    - Clean up and validate stored gaps
    """

    def __init__(self, store=None, db_path=None):
        self.store = store or get_store(db_path)

    # ==================== Reads ====================

    def list_gaps(self, user_id: str, day: date | None = None) -> list[Gap]:
        """All gaps of a user, or of one date, ordered by date then start."""
        filters = {"date": day.isoformat()} if day else {}
        rows = self.store.list_rows(GAPS, user_id, order_by="date, start_time", **filters)
        return [Gap.from_row(row) for row in rows]

    def list_gaps_in_window(self, user_id: str, today: date, include_preload: bool = False) -> list[Gap]:
        """Gaps inside [today - past, today + future]. Pure read."""
        first, last = window_bounds(today)
        if include_preload:
            last = max(preload_dates(today) or [last])
        rows = self.store.list_rows(
            GAPS,
            user_id,
            where="date >= ? AND date <= ?",
            params=[first.isoformat(), last.isoformat()],
            order_by="date, start_time",
        )
        return [Gap.from_row(row) for row in rows]

    def get_gap(self, user_id: str, gap_id: str) -> Gap:
        """
        Raises:
            NotFoundError: no such gap for this user
        """
        row = self.store.get(GAPS, gap_id, user_id=user_id)
        if row is None:
            raise NotFoundError(f"Gap {gap_id} not found", {"gap_id": gap_id})
        return Gap.from_row(row)

    def list_tasks(self, user_id: str, day: date | None = None) -> list[Task]:
        filters = {"due_date": day.isoformat()} if day else {}
        rows = self.store.list_rows(TASKS, user_id, order_by="due_date, due_time", **filters)
        return [Task.from_row(row) for row in rows]

    def _gap_dates(self, user_id: str) -> set[date]:
        return {date.fromisoformat(d) for d in self.store.distinct_values(GAPS, "date", user_id)}

    # ==================== Materialization ====================

    def initialize_day(
        self, user_id: str, day: date, prefs: WorkPreferences, now: datetime | None = None
    ) -> list[Gap]:
        """
        Generate the day's gaps unless the date already has some.

        Returns the gaps of the date after the call (existing or new).

        Raises:
            InvalidPreferencesError: work end is not after work start
        """
        existing = self.list_gaps(user_id, day)
        if existing:
            logger.debug("%s already initialized for %s (%d gaps)", day, user_id, len(existing))
            return existing

        gaps = generate_day_gaps(day, prefs, user_id, now=now)
        if not gaps:
            logger.debug("%s is not a working day for %s", day, user_id)
            return []

        try:
            self._commit(user_id, gaps, inserts=gaps, absent_dates={day})
        except ConflictError:
            # Another request initialized the date first
            logger.info("%s was initialized concurrently for %s", day, user_id)
            return self.list_gaps(user_id, day)
        logger.info("Initialized %s for %s: %d gaps", day, user_id, len(gaps))
        return gaps

    def ensure_window(
        self,
        user_id: str,
        prefs: WorkPreferences,
        today: date,
        include_preload: bool = False,
        now: datetime | None = None,
    ) -> list[Gap]:
        """
        Fill every window date that has no gaps. Returns the gaps inserted.

        Raises:
            ConflictError: another request filled one of the dates first; retry is safe
        """
        gaps = ensure_window_populated(
            self._gap_dates(user_id), prefs, today, user_id, include_preload=include_preload, now=now
        )
        if gaps:
            self._commit(user_id, gaps, inserts=gaps, absent_dates={g.date for g in gaps})
            logger.info(
                "Window for %s around %s: %d gaps over %d dates",
                user_id,
                today,
                len(gaps),
                len({g.date for g in gaps}),
            )
        return gaps

    def preload(
        self, user_id: str, prefs: WorkPreferences, today: date, now: datetime | None = None
    ) -> list[Gap]:
        """Generate the days just past the window end that have no gaps yet."""
        existing = self._gap_dates(user_id)
        gaps: list[Gap] = []
        for day in preload_dates(today):
            if day not in existing:
                gaps.extend(generate_day_gaps(day, prefs, user_id, now=now))
        if gaps:
            self._commit(user_id, gaps, inserts=gaps, absent_dates={g.date for g in gaps})
            logger.info("Preloaded %d gaps for %s", len(gaps), user_id)
        return gaps

    # ==================== Mutations ====================

    def schedule_task(
        self,
        user_id: str,
        gap_id: str,
        task_start: int,
        task_end: int,
        task_payload: dict | None = None,
        now: datetime | None = None,
    ) -> ScheduleResult:
        """
        Consume [task_start, task_end) of a gap and create the task.

        The consumed gap is deleted only if it is unchanged since it was read.
        A payload "id" of an existing task of this user reschedules that task.

        Raises:
            NotFoundError: unknown gap for this user
            OutOfBoundsError: the interval does not fit in the gap
            ConflictError: the gap changed or vanished concurrently, or the
                task id belongs to another user
        """
        gap = self.get_gap(user_id, gap_id)
        split = split_gap_for_task(gap, task_start, task_end, now=now)
        task = Task.from_payload(user_id, gap, task_start, task_end, task_payload, now=now)

        projected = [g for g in self.list_gaps(user_id, gap.date) if g.id != gap.id]
        projected.extend(split.remainders)

        self._commit(
            user_id,
            projected,
            deletes=[gap.id],
            inserts=split.remainders,
            tasks=[task],
            expected={gap.id: gap.updated_at} if gap.updated_at else None,
        )
        metrics.tasks_scheduled.inc()
        logger.info(
            "Scheduled %s into %s at %s (%d remainder gaps)",
            task.id,
            gap.id,
            format_span(task_start, task_end),
            len(split.remainders),
        )
        return ScheduleResult(task=task, consumed_gap_id=gap.id, remainder_gaps=split.remainders)

    def create_gap(
        self, user_id: str, day: date, start_time: int, end_time: int, now: datetime | None = None
    ) -> Gap:
        """
        Add a gap by hand.

        Raises:
            RangeError: bounds outside [0, 1440] or empty
            OverlapError: the interval overlaps an existing gap of the date
        """
        if not (0 <= start_time < end_time <= MINUTES_PER_DAY):
            raise RangeError(
                f"Invalid gap bounds {start_time}-{end_time}",
                {"start_time": start_time, "end_time": end_time},
            )

        existing = self.list_gaps(user_id, day)
        clashes = [g.id for g in existing if g.overlaps(start_time, end_time)]
        if clashes:
            raise OverlapError(
                f"Gap {format_span(start_time, end_time)} overlaps existing gaps on {day}",
                {"date": day.isoformat(), "overlapping_gap_ids": clashes},
            )

        gap = Gap.create(user_id, day, start_time, end_time, now=now, modified_by=MODIFIED_BY_USER)
        self._commit(user_id, existing + [gap], inserts=[gap])
        logger.info("Created gap %s for %s on %s", gap.id, user_id, gap.label)
        return gap

    @metrics.timed(metrics.reconcile_duration)
    def reconcile_preference_change(
        self,
        user_id: str,
        old_prefs: WorkPreferences,
        new_prefs: WorkPreferences,
        today: date | None = None,
        now: datetime | None = None,
    ) -> dict:
        """
        Bring the user's gaps in line with new work preferences.

        With *today* given, window dates that become working days are
        generated even when they hold no gaps yet.

        Returns:
            {"created": n, "deleted": n, "updated": n}

        Raises:
            InvalidPreferencesError: new work end is not after new work start
            BatchApplyError: the store failed; nothing was committed, retry is safe
        """
        existing = self.list_gaps(user_id)
        candidates = window_dates(today, include_preload=True) if today else ()
        plan = reconcile(existing, old_prefs, new_prefs, user_id=user_id, candidate_dates=candidates, now=now)
        metrics.reconciliations.inc()

        if plan.is_empty:
            logger.info("Preference change for %s needs no gap changes", user_id)
            return plan.counts()

        self._commit(
            user_id,
            plan.apply_to(existing),
            deletes=plan.to_delete,
            updates=plan.to_update,
            inserts=plan.to_create,
        )
        logger.info("Reconciled %s: %s", user_id, plan.counts())
        return plan.counts()

    def cleanup_gaps(self, user_id: str, gap_ids: list[str]) -> int:
        """Delete the given gaps of a user. Unknown ids are ignored."""
        if not gap_ids:
            return 0
        deleted = self.store.delete_many(GAPS, list(gap_ids), user_id)
        metrics.gaps_deleted.inc(deleted)
        logger.info("Cleaned up %d of %d gaps for %s", deleted, len(gap_ids), user_id)
        return deleted

    def prune_window(self, user_id: str, today: date) -> dict:
        """Delete gaps dated before the window start."""
        stale_dates = prune_outside_window(self._gap_dates(user_id), today)
        if not stale_dates:
            return {"dates": [], "deleted": 0}

        first, _ = window_bounds(today)
        rows = self.store.list_rows(GAPS, user_id, where="date < ?", params=[first.isoformat()])
        deleted = self.cleanup_gaps(user_id, [row["id"] for row in rows])
        return {"dates": [d.isoformat() for d in stale_dates], "deleted": deleted}

    # ==================== Validation ====================

    def validate_day(self, user_id: str, day: date | None = None) -> list:
        """Invariant violations in the stored gaps of a date (or all dates)."""
        violations = validate_gap_set(self.list_gaps(user_id, day))
        for v in violations:
            logger.warning("Stored gaps of %s: %s", user_id, v.describe())
        return violations

    # ==================== Write path ====================

    def _commit(
        self,
        user_id: str,
        projected: list[Gap],
        deletes: list[str] = (),
        updates: list[Gap] = (),
        inserts: list[Gap] = (),
        tasks: list[Task] = (),
        expected: dict[str, str] | None = None,
        absent_dates: set[date] | None = None,
    ) -> dict:
        """
        Check the resulting gap set, then write the batch.

        Tasks are upserted so an existing task can be rescheduled. With
        absent_dates, the write is refused if any of those dates gained gaps
        since they were read.
        """
        try:
            assert_gap_set_valid(projected)
        except InvariantViolationError:
            metrics.invariant_failures.inc()
            raise

        absent = {GAPS: [{"date": d.isoformat()} for d in sorted(absent_dates)]} if absent_dates else None

        started = time.perf_counter()
        try:
            applied = self.store.apply_batch(
                user_id,
                deletes={GAPS: list(deletes)} if deletes else None,
                updates={GAPS: [_update_row(g) for g in updates]} if updates else None,
                inserts={GAPS: [g.to_row() for g in inserts]} if inserts else None,
                upserts={TASKS: [t.to_row() for t in tasks]} if tasks else None,
                expected=expected,
                absent=absent,
            )
        except StaleRowError as e:
            raise ConflictError(
                f"Gap {e.row_id} changed since it was read; reload and retry",
                {"gap_id": e.row_id},
            ) from e
        except ForeignRowError as e:
            raise ConflictError(f"Task {e.row_id} belongs to another user", {"task_id": e.row_id}) from e
        except RowsExistError as e:
            raise ConflictError(
                "Gaps were created for these dates concurrently; reload and retry",
                {"date": e.filters.get("date")},
            ) from e
        except StoreBatchError as e:
            metrics.batch_failures.inc()
            raise BatchApplyError(e.phase, e.applied, e.cause) from e
        finally:
            metrics.batch_duration.observe(time.perf_counter() - started)

        metrics.gaps_deleted.inc(applied["deleted"])
        metrics.gaps_updated.inc(applied["updated"])
        metrics.gaps_created.inc(len(inserts))
        return applied


def _update_row(gap: Gap) -> dict:
    """Mutable columns of a truncated gap. Identity and lineage never change."""
    return {
        "id": gap.id,
        "start_time": gap.start_time,
        "end_time": gap.end_time,
        "duration_minutes": gap.duration_minutes,
        "updated_at": gap.updated_at,
        "modified_by": gap.modified_by,
    }
