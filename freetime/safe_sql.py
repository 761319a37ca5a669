"""
Centralized SQL construction with validated identifiers.

All dynamic SQL assembly lives here. Table and column names are validated
against _SAFE_IDENTIFIER_RE before interpolation. Values are always passed
as parameterized ? and never interpolated.

SQLite does not support parameterized identifiers (? works only for values,
not table/column names), so every f-string in this file interpolates a
validated identifier only.
"""

# ruff: noqa: S608

from __future__ import annotations

import re

_SAFE_IDENTIFIER_RE = re.compile(r"^[a-zA-Z_][a-zA-Z0-9_]*$")


def _validate(name: str) -> str:
    """Validate that *name* is a safe SQL identifier.

    Returns the name unchanged if valid; raises ValueError otherwise.
    """
    if not _SAFE_IDENTIFIER_RE.match(name):
        raise ValueError(f"Invalid SQL identifier: {name!r}")
    return name


# ────────────────────────────────────────────────────────────
# PRAGMA helpers
# ────────────────────────────────────────────────────────────


def pragma_table_info(table: str) -> str:
    """PRAGMA table_info for a validated table name."""
    return f"PRAGMA table_info([{_validate(table)}])"


def pragma_user_version_set(version: int) -> str:
    """PRAGMA user_version = N with int validation."""
    if not isinstance(version, int) or version < 0:
        raise ValueError(f"Invalid schema version: {version!r}")
    return f"PRAGMA user_version = {version}"


# ────────────────────────────────────────────────────────────
# DML: SELECT, INSERT, UPDATE, DELETE, COUNT
# ────────────────────────────────────────────────────────────


def select(
    table: str,
    columns: str = "*",
    where: str | None = None,
    order_by: str | None = None,
    suffix: str = "",
) -> str:
    """Build SELECT with validated table name.

    *where* is a raw WHERE clause without the keyword (e.g. ``"id = ?"``)
    and must use ``?`` for all values.
    """
    sql = f"SELECT {columns} FROM {_validate(table)}"
    if where:
        sql += f" WHERE {where}"
    if order_by:
        sql += f" ORDER BY {order_by}"
    if suffix:
        sql += f" {suffix}"
    return sql


def select_count(table: str, where: str | None = None) -> str:
    """Build SELECT COUNT(*) with validated table name."""
    sql = f"SELECT COUNT(*) as c FROM {_validate(table)}"
    if where:
        sql += f" WHERE {where}"
    return sql


def insert(table: str, columns: list[str]) -> str:
    """Build a plain INSERT. A duplicate id fails instead of replacing."""
    _validate(table)
    for col in columns:
        _validate(col)
    cols = ",".join(columns)
    placeholders = in_placeholders(len(columns))
    return f"INSERT INTO {table} ({cols}) VALUES ({placeholders})"


def upsert_owned(table: str, columns: list[str], keep: tuple[str, ...] = ("id", "user_id", "created_at")) -> str:
    """Build INSERT ... ON CONFLICT(id) DO UPDATE that only touches rows of the same user_id.

    Columns in *keep* are never overwritten. A conflicting row of another user is
    left alone and the statement reports rowcount 0.
    """
    base = insert(table, columns)
    sets = ",".join(f"{col} = excluded.{col}" for col in columns if col not in keep)
    return f"{base} ON CONFLICT(id) DO UPDATE SET {sets} WHERE {table}.user_id = excluded.user_id"


def update(table: str, set_columns: list[str], where: str = "id = ?") -> str:
    """Build UPDATE SET with validated table+column names."""
    _validate(table)
    for col in set_columns:
        _validate(col)
    sets = ",".join(f"{col} = ?" for col in set_columns)
    return f"UPDATE {table} SET {sets} WHERE {where}"


def delete(table: str, where: str = "id = ?") -> str:
    """Build DELETE with validated table name."""
    return f"DELETE FROM {_validate(table)} WHERE {where}"


# ────────────────────────────────────────────────────────────
# DDL
# ────────────────────────────────────────────────────────────


def alter_add_column(table: str, column: str, column_type: str) -> str:
    """Build ALTER TABLE ADD COLUMN with validated identifiers."""
    _validate(table)
    _validate(column)
    # column_type comes from the schema declaration
    return f"ALTER TABLE [{table}] ADD COLUMN [{column}] {column_type}"


def create_table(table: str, column_defs: list[str]) -> str:
    """Build CREATE TABLE IF NOT EXISTS from (already formatted) column defs."""
    body = ",\n    ".join(column_defs)
    return f"CREATE TABLE IF NOT EXISTS {_validate(table)} (\n    {body}\n)"


def create_index(name: str, table: str, columns: str, unique: bool = False) -> str:
    """Build CREATE [UNIQUE] INDEX IF NOT EXISTS."""
    kind = "UNIQUE INDEX" if unique else "INDEX"
    return f"CREATE {kind} IF NOT EXISTS {_validate(name)} ON {_validate(table)}({columns})"


# ────────────────────────────────────────────────────────────
# Helpers: IN-list placeholders, WHERE builders
# ────────────────────────────────────────────────────────────


def in_placeholders(count: int) -> str:
    """Return ``?,?,?`` for use in ``IN (...)`` clauses."""
    if count <= 0:
        raise ValueError(f"IN clause needs at least 1 placeholder, got {count}")
    return ",".join("?" for _ in range(count))


def in_clause(column: str, count: int) -> str:
    """Build ``column IN (?,?,...)`` for a validated column."""
    return f"{_validate(column)} IN ({in_placeholders(count)})"


def where_and(conditions: list[str]) -> str:
    """Join conditions with AND. Returns empty string if no conditions."""
    if not conditions:
        return ""
    return " AND ".join(conditions)


def update_set_expr(table: str, column: str, expr: str, where: str) -> str:
    """Build UPDATE table SET column = <expr> WHERE ... for data migrations.

    *expr* is a SQL expression declared in schema.DATA_MIGRATIONS.
    """
    return f"UPDATE {_validate(table)} SET {_validate(column)} = {expr} WHERE {where}"


def drop_table(name: str) -> str:
    """Build DROP TABLE IF EXISTS with validated name."""
    return f"DROP TABLE IF EXISTS [{_validate(name)}]"
