"""
State Store - SQLite persistence for gaps and tasks.

Every read and write is scoped by user_id. Write batches run on a single
connection in delete -> update -> insert order and commit once, so a failure
anywhere leaves the database as it was.
"""

import json
import logging
import sqlite3
from contextlib import contextmanager
from typing import Any

from freetime import db as db_module
from freetime import safe_sql

logger = logging.getLogger(__name__)

BATCH_PHASES = ("delete", "update", "insert")


class StaleRowError(Exception):
    """A guarded write found the row missing or changed since it was read."""

    def __init__(self, table: str, row_id: str):
        super().__init__(f"{table} row {row_id} changed or vanished")
        self.table = table
        self.row_id = row_id


class ForeignRowError(Exception):
    """An upsert hit a row id owned by another user."""

    def __init__(self, table: str, row_id: str):
        super().__init__(f"{table} row {row_id} belongs to another user")
        self.table = table
        self.row_id = row_id


class RowsExistError(Exception):
    """A batch required a user's rows matching some filters to be absent, and they were not."""

    def __init__(self, table: str, filters: dict):
        super().__init__(f"{table} already has rows matching {filters}")
        self.table = table
        self.filters = filters


class StoreBatchError(Exception):
    """A write batch failed. Nothing from the batch was committed."""

    def __init__(self, phase: str, applied: dict, cause: Exception):
        super().__init__(f"batch failed during {phase}: {cause}")
        self.phase = phase
        self.applied = applied
        self.cause = cause


def _encode(value: Any) -> Any:
    return json.dumps(value) if isinstance(value, dict | list) else value


class StateStore:
    """
    SQLite-backed store. One connection per call, committed on success.

    Pass db_path to point at a specific file (tests); otherwise the canonical
    path from freetime.paths is used.
    """

    def __init__(self, db_path: str | None = None):
        self.db_path = db_path or db_module.get_db_path_str()
        db_module.ensure_migrations(self.db_path)
        logger.debug("StateStore ready, DB path: %s", self.db_path)

    @contextmanager
    def _get_conn(self):
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        try:
            yield conn
            conn.commit()
        finally:
            conn.close()

    # ==================== Reads ====================

    def list_rows(
        self,
        table: str,
        user_id: str,
        where: str | None = None,
        params: list | None = None,
        order_by: str | None = None,
        **filters,
    ) -> list[dict]:
        """
        Rows of one user. Keyword filters are equality matches on columns;
        *where* is an extra raw condition using ? placeholders.
        """
        db_module.validate_identifier(table)
        conditions = ["user_id = ?"]
        values: list = [user_id]
        for column, value in filters.items():
            conditions.append(f"{db_module.validate_identifier(column)} = ?")
            values.append(value)
        if where:
            conditions.append(f"({where})")
            values.extend(params or [])

        sql = safe_sql.select(table, where=safe_sql.where_and(conditions), order_by=order_by)
        with self._get_conn() as conn:
            return [dict(row) for row in conn.execute(sql, values).fetchall()]

    def get(self, table: str, id: str, user_id: str | None = None) -> dict | None:
        """Get a single row by ID, optionally only if owned by user_id."""
        db_module.validate_identifier(table)
        where, values = "id = ?", [id]
        if user_id is not None:
            where += " AND user_id = ?"
            values.append(user_id)
        with self._get_conn() as conn:
            row = conn.execute(safe_sql.select(table, where=where), values).fetchone()
            return dict(row) if row else None

    def distinct_values(self, table: str, column: str, user_id: str) -> list:
        db_module.validate_identifier(column)
        sql = safe_sql.select(
            table, columns=f"DISTINCT {column}", where="user_id = ?", order_by=column
        )
        with self._get_conn() as conn:
            return [row[0] for row in conn.execute(sql, [user_id]).fetchall()]

    def count(self, table: str, where: str | None = None, params: list | None = None) -> int:
        db_module.validate_identifier(table)
        sql = safe_sql.select_count(table, where=where)
        with self._get_conn() as conn:
            row = conn.execute(sql, params or []).fetchone()
            return row["c"] if row else 0

    # ==================== Writes ====================

    def insert_many(self, table: str, items: list[dict]) -> int:
        """Insert multiple rows in one transaction. Returns count."""
        if not items:
            return 0
        with self._get_conn() as conn:
            self._insert_rows(conn, table, items)
        return len(items)

    def update(self, table: str, id: str, data: dict, user_id: str | None = None) -> bool:
        if not data:
            return False
        with self._get_conn() as conn:
            return self._update_row(conn, table, id, data, user_id, None)

    def delete_many(self, table: str, ids: list[str], user_id: str) -> int:
        """Delete rows of one user by id. Unknown ids are ignored."""
        if not ids:
            return 0
        with self._get_conn() as conn:
            return self._delete_rows(conn, table, ids, user_id, {})

    def apply_batch(
        self,
        user_id: str,
        deletes: dict[str, list[str]] | None = None,
        updates: dict[str, list[dict]] | None = None,
        inserts: dict[str, list[dict]] | None = None,
        expected: dict[str, str] | None = None,
        upserts: dict[str, list[dict]] | None = None,
        absent: dict[str, list[dict]] | None = None,
    ) -> dict:
        """
        Apply a write batch atomically in delete -> update -> insert order.

        The transaction takes the write lock before anything is read, so the
        *absent* check and the writes cannot interleave with another batch.

        Args:
            user_id: owner every delete/update is scoped to
            deletes: {table: [ids]}
            updates: {table: [rows with id]}
            inserts: {table: [rows]}
            expected: {row_id: updated_at} guards; a guarded delete or update
                that matches no row aborts the batch
            upserts: {table: [rows]} inserted, or updated in place when the id
                already exists for this user (created_at is kept)
            absent: {table: [filters]}; each filter dict must match none of
                the user's rows, checked before any write

        Returns:
            {"deleted": n, "updated": n, "inserted": n, "upserted": n}

        Raises:
            StaleRowError: a guard did not match
            RowsExistError: an *absent* filter matched
            ForeignRowError: an upserted id belongs to another user
            StoreBatchError: sqlite failed; carries the phase and counts reached
        """
        deletes = deletes or {}
        updates = updates or {}
        inserts = inserts or {}
        upserts = upserts or {}
        expected = expected or {}
        applied = {"deleted": 0, "updated": 0, "inserted": 0, "upserted": 0}
        phase = BATCH_PHASES[0]

        try:
            with self._get_conn() as conn:
                conn.execute("BEGIN IMMEDIATE")
                for table, filter_list in (absent or {}).items():
                    for filters in filter_list:
                        if self._matches(conn, table, user_id, filters):
                            raise RowsExistError(table, filters)

                for table, ids in deletes.items():
                    applied["deleted"] += self._delete_rows(conn, table, ids, user_id, expected)

                phase = "update"
                for table, rows in updates.items():
                    for row in rows:
                        row = dict(row)
                        row_id = row.pop("id")
                        self._update_row(conn, table, row_id, row, user_id, expected.get(row_id))
                        applied["updated"] += 1

                phase = "insert"
                for table, rows in inserts.items():
                    self._insert_rows(conn, table, rows)
                    applied["inserted"] += len(rows)

                for table, rows in upserts.items():
                    self._upsert_rows(conn, table, rows)
                    applied["upserted"] += len(rows)
        except sqlite3.Error as e:
            logger.error("Batch for %s failed during %s after %s: %s", user_id, phase, applied, e)
            raise StoreBatchError(phase, applied, e) from e

        return applied

    # ==================== Statement helpers ====================

    def _insert_rows(self, conn: sqlite3.Connection, table: str, items: list[dict]):
        columns = list(items[0].keys())
        sql = safe_sql.insert(table, columns)
        for item in items:
            conn.execute(sql, [_encode(item[col]) for col in columns])

    def _upsert_rows(self, conn: sqlite3.Connection, table: str, items: list[dict]):
        columns = list(items[0].keys())
        sql = safe_sql.upsert_owned(table, columns)
        for item in items:
            if conn.execute(sql, [_encode(item[col]) for col in columns]).rowcount == 0:
                raise ForeignRowError(table, item["id"])

    def _matches(self, conn: sqlite3.Connection, table: str, user_id: str, filters: dict) -> bool:
        conditions = ["user_id = ?"] + [f"{db_module.validate_identifier(col)} = ?" for col in filters]
        sql = safe_sql.select(table, columns="1", where=safe_sql.where_and(conditions), suffix="LIMIT 1")
        return conn.execute(sql, [user_id, *filters.values()]).fetchone() is not None

    def _update_row(
        self,
        conn: sqlite3.Connection,
        table: str,
        id: str,
        data: dict,
        user_id: str | None,
        expected_updated_at: str | None,
    ) -> bool:
        where, scope = "id = ?", [id]
        if user_id is not None:
            where += " AND user_id = ?"
            scope.append(user_id)
        if expected_updated_at is not None:
            where += " AND updated_at = ?"
            scope.append(expected_updated_at)

        sql = safe_sql.update(table, list(data.keys()), where=where)
        result = conn.execute(sql, [_encode(v) for v in data.values()] + scope)
        if result.rowcount == 0 and expected_updated_at is not None:
            raise StaleRowError(table, id)
        return result.rowcount > 0

    def _delete_rows(
        self,
        conn: sqlite3.Connection,
        table: str,
        ids: list[str],
        user_id: str,
        expected: dict[str, str],
    ) -> int:
        deleted = 0
        plain = [i for i in ids if i not in expected]
        if plain:
            where = safe_sql.where_and([safe_sql.in_clause("id", len(plain)), "user_id = ?"])
            deleted += conn.execute(safe_sql.delete(table, where=where), [*plain, user_id]).rowcount

        for row_id in ids:
            if row_id not in expected:
                continue
            sql = safe_sql.delete(table, where="id = ? AND user_id = ? AND updated_at = ?")
            if conn.execute(sql, [row_id, user_id, expected[row_id]]).rowcount != 1:
                raise StaleRowError(table, row_id)
            deleted += 1
        return deleted


# Process-wide accessor
_store: StateStore | None = None


def get_store(db_path: str | None = None) -> StateStore:
    """Get the shared state store, creating it on first use."""
    global _store  # noqa: PLW0603
    if _store is None or (db_path and _store.db_path != db_path):
        _store = StateStore(db_path)
    return _store


def reset_store():
    """Forget the shared store (tests switch databases between modules)."""
    global _store  # noqa: PLW0603
    _store = None
