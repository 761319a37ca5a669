"""
Tests for the SQLite state store and schema convergence.
"""

import sqlite3
from datetime import date, datetime

import pytest

from freetime import schema, schema_engine
from freetime.gap_truth.generator import generate_day_gaps
from freetime.gap_truth.preferences import WorkPreferences
from freetime.state_store import ForeignRowError, RowsExistError, StaleRowError, StateStore, StoreBatchError
from tests.fixtures.fixture_db import SEED_DATE, SEED_USER, create_fixture_db

MONDAY = date(2026, 3, 2)
NOW = datetime(2026, 3, 1, 12, 0, 0)


@pytest.fixture
def rows():
    prefs = WorkPreferences(work_start="09:00", work_end="12:00")
    return [g.to_row() for g in generate_day_gaps(MONDAY, prefs, "u1", now=NOW)]


class TestReads:
    def test_list_rows_scoped_by_user(self, store, rows):
        store.insert_many("gaps", rows)
        assert len(store.list_rows("gaps", "u1")) == 3
        assert store.list_rows("gaps", "someone_else") == []

    def test_list_rows_filters_and_orders(self, store, rows):
        store.insert_many("gaps", list(reversed(rows)))
        listed = store.list_rows("gaps", "u1", order_by="start_time", date="2026-03-02")
        assert [r["start_time"] for r in listed] == [540, 600, 660]

    def test_list_rows_raw_where(self, store, rows):
        store.insert_many("gaps", rows)
        listed = store.list_rows("gaps", "u1", where="start_time >= ?", params=[600])
        assert len(listed) == 2

    def test_get_checks_owner(self, store, rows):
        store.insert_many("gaps", rows)
        gap_id = rows[0]["id"]
        assert store.get("gaps", gap_id)["id"] == gap_id
        assert store.get("gaps", gap_id, user_id="u1") is not None
        assert store.get("gaps", gap_id, user_id="u2") is None

    def test_distinct_values(self, store, rows):
        store.insert_many("gaps", rows)
        assert store.distinct_values("gaps", "date", "u1") == ["2026-03-02"]

    def test_rejects_bad_identifiers(self, store):
        with pytest.raises(ValueError):
            store.list_rows("gaps; DROP TABLE gaps", "u1")
        with pytest.raises(ValueError):
            store.list_rows("gaps", "u1", **{"date OR 1=1": "x"})


class TestWrites:
    def test_insert_duplicate_id_fails(self, store, rows):
        store.insert_many("gaps", rows)
        with pytest.raises(sqlite3.IntegrityError):
            store.insert_many("gaps", rows[:1])

    def test_delete_many_only_own_rows(self, store, rows):
        store.insert_many("gaps", rows)
        assert store.delete_many("gaps", [rows[0]["id"]], "u2") == 0
        assert store.delete_many("gaps", [rows[0]["id"], "missing"], "u1") == 1
        assert store.count("gaps") == 2

    def test_update(self, store, rows):
        store.insert_many("gaps", rows)
        assert store.update("gaps", rows[0]["id"], {"end_time": 590, "duration_minutes": 50}, user_id="u1")
        assert store.get("gaps", rows[0]["id"])["end_time"] == 590


class TestApplyBatch:
    def test_delete_update_insert(self, store, rows):
        store.insert_many("gaps", rows[:2])
        updated = {**rows[1], "end_time": 630, "duration_minutes": 30}
        applied = store.apply_batch(
            "u1",
            deletes={"gaps": [rows[0]["id"]]},
            updates={"gaps": [{k: updated[k] for k in ("id", "end_time", "duration_minutes")}]},
            inserts={"gaps": [rows[2]]},
        )
        assert applied == {"deleted": 1, "updated": 1, "inserted": 1, "upserted": 0}
        remaining = store.list_rows("gaps", "u1", order_by="start_time")
        assert [(r["start_time"], r["end_time"]) for r in remaining] == [(600, 630), (660, 720)]

    def test_failure_rolls_back_everything(self, store, rows):
        store.insert_many("gaps", rows)
        with pytest.raises(StoreBatchError) as exc:
            store.apply_batch(
                "u1",
                deletes={"gaps": [rows[0]["id"]]},
                inserts={"gaps": [rows[1]]},  # duplicate id
            )
        assert exc.value.phase == "insert"
        assert exc.value.applied["deleted"] == 1
        assert store.count("gaps") == 3

    def test_guarded_delete(self, store, rows):
        store.insert_many("gaps", rows)
        gap_id = rows[0]["id"]
        with pytest.raises(StaleRowError):
            store.apply_batch("u1", deletes={"gaps": [gap_id]}, expected={gap_id: "1999-01-01T00:00:00"})
        assert store.get("gaps", gap_id) is not None

        applied = store.apply_batch("u1", deletes={"gaps": [gap_id]}, expected={gap_id: rows[0]["updated_at"]})
        assert applied["deleted"] == 1

    def test_guarded_delete_of_vanished_row(self, store, rows):
        store.insert_many("gaps", rows)
        with pytest.raises(StaleRowError):
            store.apply_batch("u1", deletes={"gaps": ["gone"]}, expected={"gone": "x"})


    def test_upsert_updates_own_row_and_keeps_created_at(self, store):
        task = {
            "id": "task_1",
            "user_id": "u1",
            "title": "Draft",
            "due_date": "2026-03-02",
            "due_time": "09:00",
            "created_at": "2026-03-01T08:00:00",
            "updated_at": "2026-03-01T08:00:00",
        }
        store.apply_batch("u1", upserts={"tasks": [task]})
        applied = store.apply_batch(
            "u1", upserts={"tasks": [{**task, "due_time": "10:00", "created_at": "later", "updated_at": "later"}]}
        )

        assert applied["upserted"] == 1
        row = store.get("tasks", "task_1")
        assert (row["due_time"], row["created_at"], row["updated_at"]) == ("10:00", "2026-03-01T08:00:00", "later")
        assert store.count("tasks") == 1

    def test_upsert_refuses_foreign_row(self, store, rows):
        task = {"id": "task_1", "user_id": "u1", "title": "Mine", "due_date": "2026-03-02", "due_time": "09:00"}
        store.apply_batch("u1", upserts={"tasks": [task]})

        with pytest.raises(ForeignRowError):
            store.apply_batch(
                "u2",
                inserts={"gaps": [{**rows[0], "user_id": "u2"}]},
                upserts={"tasks": [{**task, "user_id": "u2", "title": "Stolen"}]},
            )
        assert store.get("tasks", "task_1")["title"] == "Mine"
        assert store.list_rows("gaps", "u2") == []

    def test_absent_guard(self, store, rows):
        store.insert_many("gaps", rows[:1])
        with pytest.raises(RowsExistError) as exc:
            store.apply_batch("u1", inserts={"gaps": rows[1:]}, absent={"gaps": [{"date": "2026-03-02"}]})
        assert exc.value.filters == {"date": "2026-03-02"}
        assert store.count("gaps") == 1

        applied = store.apply_batch("u2", inserts={"gaps": [{**rows[1], "user_id": "u2"}]}, absent={"gaps": [{"date": "2026-03-02"}]})
        assert applied["inserted"] == 1


class TestSchemaEngine:
    def test_create_fresh(self):
        conn = create_fixture_db()
        tables = {r[0] for r in conn.execute("SELECT name FROM sqlite_master WHERE type='table'")}
        assert {"gaps", "tasks"} <= tables
        assert conn.execute("PRAGMA user_version").fetchone()[0] == schema.SCHEMA_VERSION
        conn.close()

    def test_seeded_fixture(self):
        conn = create_fixture_db(seed=True)
        count = conn.execute("SELECT COUNT(*) FROM gaps WHERE user_id = ?", [SEED_USER]).fetchone()[0]
        assert count == 8
        day = conn.execute("SELECT DISTINCT date FROM gaps").fetchone()[0]
        assert day == SEED_DATE.isoformat()
        conn.close()

    def test_converge_adds_missing_columns_and_backfills(self):
        conn = sqlite3.connect(":memory:")
        conn.execute("CREATE TABLE gaps (id TEXT PRIMARY KEY, user_id TEXT, date TEXT, start_time INTEGER, end_time INTEGER)")
        conn.execute("INSERT INTO gaps VALUES ('g1', 'u1', '2026-03-02', 540, 600)")

        results = schema_engine.converge(conn)

        assert "gaps.duration_minutes" in results["columns_added"]
        assert "tasks" in results["tables_created"]
        assert results["errors"] == []
        assert conn.execute("SELECT duration_minutes FROM gaps").fetchone()[0] == 60
        conn.close()

    def test_converge_is_idempotent(self):
        conn = create_fixture_db()
        results = schema_engine.converge(conn)
        assert results["tables_created"] == []
        assert results["columns_added"] == []
        assert results["indexes_created"] == []
        conn.close()

    def test_converge_records_failed_step_and_continues(self):
        conn = create_fixture_db()
        conn.execute("DROP INDEX idx_gaps_user_date")
        conn.execute("CREATE TABLE idx_gaps_user_date (x TEXT)")

        results = schema_engine.converge(conn)

        assert len(results["errors"]) == 1
        assert results["errors"][0].startswith("idx_gaps_user_date:")
        assert results["schema_version"] == schema.SCHEMA_VERSION
        conn.close()

    def test_make_alter_safe(self):
        assert schema_engine.make_alter_safe("TEXT NOT NULL DEFAULT (datetime('now'))") == "TEXT NOT NULL DEFAULT ''"
        assert schema_engine.make_alter_safe("INTEGER NOT NULL CHECK (end_time <= 1440)") == "INTEGER NOT NULL DEFAULT ''"
        assert schema_engine.make_alter_safe("TEXT PRIMARY KEY") == "TEXT"


def test_store_converges_new_file(tmp_path):
    store = StateStore(str(tmp_path / "new.db"))
    assert store.count("gaps") == 0
