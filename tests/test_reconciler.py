"""
Tests for reconciling stored gaps with changed work preferences.
"""

from datetime import date, datetime

import pytest

from freetime.gap_truth.errors import InvalidPreferencesError
from freetime.gap_truth.generator import generate_day_gaps
from freetime.gap_truth.invariants import validate_gap_set
from freetime.gap_truth.preferences import WorkPreferences
from freetime.gap_truth.reconciler import reconcile
from freetime.gap_truth.splitter import split_gap_for_task

MONDAY = date(2026, 3, 2)
TUESDAY = date(2026, 3, 3)
SATURDAY = date(2026, 3, 7)
NOW = datetime(2026, 3, 1, 12, 0, 0)
LATER = datetime(2026, 3, 1, 13, 0, 0)


def _prefs(start="09:00", end="17:00", **extra) -> WorkPreferences:
    return WorkPreferences.from_raw({"work_start": start, "work_end": end, **extra})


def _spans(gaps):
    return sorted((g.start_time, g.end_time) for g in gaps)


@pytest.fixture
def monday_gaps():
    return generate_day_gaps(MONDAY, _prefs(), "u1", now=NOW)


class TestWorkHourChanges:
    def test_earlier_end_truncates_last_gap(self, monday_gaps):
        plan = reconcile(monday_gaps, _prefs(), _prefs(end="16:30"), now=LATER)

        assert plan.to_delete == []
        assert plan.to_create == []
        [updated] = plan.to_update
        assert (updated.start_time, updated.end_time) == (960, 990)
        assert updated.duration_minutes == 30
        assert updated.modified_by == "system"
        assert updated.updated_at == LATER.isoformat()
        assert updated.id == monday_gaps[-1].id

    def test_truncation_below_minimum_deletes(self, monday_gaps):
        new = _prefs(end="16:20", min_gap_minutes=45)
        plan = reconcile(monday_gaps, _prefs(), new)

        assert plan.to_delete == [monday_gaps[-1].id]
        assert plan.to_update == []
        assert plan.to_create == []

    def test_exactly_minimum_is_kept(self, monday_gaps):
        plan = reconcile(monday_gaps, _prefs(), _prefs(end="16:15", min_gap_minutes=15))
        assert [(g.start_time, g.end_time) for g in plan.to_update] == [(960, 975)]

    def test_later_start_deletes_and_truncates(self, monday_gaps):
        plan = reconcile(monday_gaps, _prefs(), _prefs(start="10:30"))
        assert plan.to_delete == [monday_gaps[0].id]
        assert [(g.start_time, g.end_time) for g in plan.to_update] == [(630, 660)]

    def test_earlier_start_creates_slices(self, monday_gaps):
        plan = reconcile(monday_gaps, _prefs(), _prefs(start="07:30"))
        assert _spans(plan.to_create) == [(450, 510), (510, 540)]
        assert all(g.modified_by == "system" for g in plan.to_create)
        assert plan.to_delete == plan.to_update == []

    def test_later_end_creates_slices(self, monday_gaps):
        plan = reconcile(monday_gaps, _prefs(), _prefs(end="19:00"))
        assert _spans(plan.to_create) == [(1020, 1080), (1080, 1140)]

    def test_extension_below_minimum_is_skipped(self, monday_gaps):
        plan = reconcile(monday_gaps, _prefs(), _prefs(end="17:10"))
        assert plan.is_empty

    def test_hours_moved_past_old_end(self, monday_gaps):
        plan = reconcile(monday_gaps, _prefs(), _prefs(start="18:00", end="20:00"))
        assert sorted(plan.to_delete) == sorted(g.id for g in monday_gaps)
        assert _spans(plan.to_create) == [(1080, 1140), (1140, 1200)]

    def test_invalid_new_hours(self, monday_gaps):
        with pytest.raises(InvalidPreferencesError):
            reconcile(monday_gaps, _prefs(), _prefs(start="17:00", end="09:00"))


class TestWorkingDayChanges:
    def test_day_removed_deletes_everything(self, monday_gaps):
        new = _prefs(working_days=["tue", "wed", "thu", "fri"])
        plan = reconcile(monday_gaps, _prefs(), new)
        assert sorted(plan.to_delete) == sorted(g.id for g in monday_gaps)
        assert plan.to_create == plan.to_update == []

    def test_saturday_added_via_candidate_dates(self):
        new = _prefs(working_days=["mon", "tue", "wed", "thu", "fri", "sat"], include_weekends=True)
        plan = reconcile([], _prefs(), new, user_id="u1", candidate_dates=[SATURDAY])
        assert _spans(plan.to_create) == [(540 + 60 * i, 600 + 60 * i) for i in range(8)]
        assert {g.date for g in plan.to_create} == {SATURDAY}
        assert {g.user_id for g in plan.to_create} == {"u1"}

    def test_saturday_added_keeps_fitting_manual_gap(self):
        manual = generate_day_gaps(SATURDAY, _prefs(working_days=["sat"], include_weekends=True), "u1")[:1]
        new = _prefs(working_days=["sat"], include_weekends=True)
        plan = reconcile(manual, _prefs(), new)
        assert manual[0].id not in plan.to_delete
        assert (540, 600) not in _spans(plan.to_create)
        assert len(plan.to_create) == 7

    def test_candidate_without_user_is_skipped(self):
        new = _prefs(working_days=["sat"], include_weekends=True)
        assert reconcile([], _prefs(), new, candidate_dates=[SATURDAY]).is_empty

    def test_non_working_both_sides_untouched(self):
        plan = reconcile([], _prefs(), _prefs(end="18:00"), user_id="u1", candidate_dates=[SATURDAY])
        assert plan.is_empty

    def test_remaining_working_day_without_gaps_is_left_alone(self):
        plan = reconcile([], _prefs(), _prefs(end="18:00"), user_id="u1", candidate_dates=[MONDAY])
        assert plan.is_empty


class TestPlanProperties:
    def test_same_prefs_is_noop(self, monday_gaps):
        assert reconcile(monday_gaps, _prefs(), _prefs()).is_empty

    def test_noop_with_small_split_remainders(self, monday_gaps):
        split = split_gap_for_task(monday_gaps[2], 665, 715)
        gaps = [g for g in monday_gaps if g.id != monday_gaps[2].id] + split.remainders
        assert reconcile(gaps, _prefs(), _prefs()).is_empty

    @pytest.mark.parametrize(
        "new",
        [
            _prefs(start="07:00", end="12:45"),
            _prefs(start="10:10", end="20:00", min_gap_minutes=30),
            _prefs(working_days="tue,wed"),
            _prefs(start="12:00", end="13:00"),
        ],
    )
    def test_idempotent(self, monday_gaps, new):
        tuesday = generate_day_gaps(TUESDAY, _prefs(), "u1", now=NOW)
        gaps = monday_gaps + tuesday
        plan = reconcile(gaps, _prefs(), new)
        after = plan.apply_to(gaps)

        assert validate_gap_set(after) == []
        assert reconcile(after, new, new).is_empty

    def test_lists_are_disjoint(self, monday_gaps):
        plan = reconcile(monday_gaps, _prefs(), _prefs(start="09:30", end="18:00"))
        deleted = set(plan.to_delete)
        updated = {g.id for g in plan.to_update}
        created = {g.id for g in plan.to_create}
        assert not (deleted & updated or deleted & created or updated & created)

    def test_created_never_overlaps_survivors(self, monday_gaps):
        plan = reconcile(monday_gaps, _prefs(), _prefs(start="08:00", end="18:30"))
        assert validate_gap_set(plan.apply_to(monday_gaps)) == []

    def test_counts(self, monday_gaps):
        plan = reconcile(monday_gaps, _prefs(), _prefs(start="10:00", end="16:30"))
        assert plan.counts() == {"created": 0, "deleted": 1, "updated": 1}

    def test_identity_fields_never_change(self, monday_gaps):
        plan = reconcile(monday_gaps, _prefs(), _prefs(start="09:20"))
        [updated] = plan.to_update
        original = monday_gaps[0]
        assert (updated.id, updated.user_id, updated.date, updated.created_at) == (
            original.id,
            original.user_id,
            original.date,
            original.created_at,
        )
