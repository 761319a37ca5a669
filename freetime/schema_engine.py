"""
Schema Convergence Engine.

Brings a SQLite database in line with freetime/schema:

  converge(conn)     existing DBs: add missing tables, columns and indexes,
                     then run the idempotent data migrations.
  create_fresh(conn) new/test DBs: drop every table and create clean.

converge never drops tables or columns.
"""

import logging
import re
import sqlite3

from freetime import safe_sql, schema

logger = logging.getLogger(__name__)

# CREATE TABLE clauses that ALTER TABLE ADD COLUMN rejects
_NOT_ADDABLE = [
    re.compile(r"\bPRIMARY\s+KEY\b", re.IGNORECASE),
    re.compile(r"\bCHECK\s*\([^)]*\)", re.IGNORECASE),
    re.compile(r"\bDEFAULT\s*\(.*\)", re.IGNORECASE),
]


def make_alter_safe(col_def: str) -> str:
    """
    Column DDL usable in ALTER TABLE ADD COLUMN.

    Drops PRIMARY KEY, CHECK and expression defaults. A NOT NULL column left
    without a default gets DEFAULT '' so existing rows stay valid.
    """
    safe = col_def
    for pattern in _NOT_ADDABLE:
        safe = pattern.sub("", safe)
    safe = re.sub(r"\s{2,}", " ", safe).strip()

    if re.search(r"\bNOT\s+NULL\b", safe, re.IGNORECASE) and not re.search(r"\bDEFAULT\b", safe, re.IGNORECASE):
        safe += " DEFAULT ''"
    return safe


def _tables(conn: sqlite3.Connection) -> set[str]:
    rows = conn.execute("SELECT name FROM sqlite_master WHERE type = 'table'").fetchall()
    return {row[0] for row in rows if not row[0].startswith("sqlite_")}


def _indexes(conn: sqlite3.Connection) -> set[str]:
    rows = conn.execute("SELECT name FROM sqlite_master WHERE type = 'index'").fetchall()
    return {row[0] for row in rows}


def _columns(conn: sqlite3.Connection, table: str) -> set[str]:
    return {row[1] for row in conn.execute(safe_sql.pragma_table_info(table)).fetchall()}


def _table_ddl(name: str) -> str:
    return safe_sql.create_table(name, [f"{col} {ddl}" for col, ddl in schema.TABLES[name]["columns"]])


def _index_ddl(name: str, table: str, columns: str, where: str | None) -> str:
    sql = safe_sql.create_index(name, table, columns)
    return f"{sql} WHERE {where}" if where else sql


def _run(conn: sqlite3.Connection, sql: str, results: dict, bucket: str, label: str) -> sqlite3.Cursor | None:
    """Execute one DDL/DML step, recording success under bucket or the error."""
    try:
        cursor = conn.execute(sql)
    except sqlite3.OperationalError as e:
        results["errors"].append(f"{label}: {e}")
        logger.warning("schema_engine: %s failed: %s", label, e)
        return None
    results[bucket].append(label)
    return cursor


def converge(conn: sqlite3.Connection) -> dict:
    """
    Converge an existing database to schema.TABLES / INDEXES / DATA_MIGRATIONS
    and set PRAGMA user_version. Returns what was done, for logging.
    """
    results = {
        "tables_created": [],
        "columns_added": [],
        "indexes_created": [],
        "data_migrations_run": [],
        "errors": [],
    }

    existing = _tables(conn)
    for table, table_def in schema.TABLES.items():
        if table not in existing:
            _run(conn, _table_ddl(table), results, "tables_created", table)
            continue
        present = _columns(conn, table)
        for col, ddl in table_def["columns"]:
            if col not in present:
                sql = safe_sql.alter_add_column(table, col, make_alter_safe(ddl))
                _run(conn, sql, results, "columns_added", f"{table}.{col}")

    existing = _tables(conn)
    known_indexes = _indexes(conn)
    for name, table, columns, where in schema.INDEXES:
        if name not in known_indexes and table in existing:
            _run(conn, _index_ddl(name, table, columns, where), results, "indexes_created", name)

    for table, column, expr, where in schema.DATA_MIGRATIONS:
        if table not in existing or column not in _columns(conn, table):
            continue
        label = f"{table}.{column} <- {expr}"
        cursor = _run(conn, safe_sql.update_set_expr(table, column, expr, where), results, "data_migrations_run", label)
        if cursor is not None and cursor.rowcount <= 0:
            results["data_migrations_run"].remove(label)
        elif cursor is not None:
            logger.info("schema_engine: %s updated %d rows", label, cursor.rowcount)

    conn.execute(safe_sql.pragma_user_version_set(schema.SCHEMA_VERSION))
    results["schema_version"] = schema.SCHEMA_VERSION
    return results


def create_fresh(conn: sqlite3.Connection) -> dict:
    """
    Drop every table and create the schema from scratch. For new databases and
    test fixtures only; runs no data migrations.
    """
    results = {"tables_created": [], "indexes_created": [], "errors": []}

    for table in sorted(_tables(conn)):
        conn.execute(safe_sql.drop_table(table))
    for table in schema.TABLES:
        _run(conn, _table_ddl(table), results, "tables_created", table)
    for name, table, columns, where in schema.INDEXES:
        _run(conn, _index_ddl(name, table, columns, where), results, "indexes_created", name)

    conn.execute(safe_sql.pragma_user_version_set(schema.SCHEMA_VERSION))
    results["schema_version"] = schema.SCHEMA_VERSION
    return results
