"""
Centralized Database Access for Freetime OS.

Single source of truth for:
- DB path resolution
- Connection factory
- Schema convergence (delegated to schema_engine)

Schema is declared in freetime/schema. Convergence logic lives in
freetime/schema_engine. This module wires them together.
"""

import logging
import re
import sqlite3
from collections.abc import Generator
from contextlib import contextmanager
from pathlib import Path

from freetime import paths, schema, schema_engine

logger = logging.getLogger(__name__)

# ============================================================
# SQL IDENTIFIER VALIDATION
# ============================================================

_SAFE_IDENTIFIER_RE = re.compile(r"^[a-zA-Z_][a-zA-Z0-9_]*$")


def validate_identifier(name: str) -> str:
    """Validate that *name* is a safe SQL identifier (table or column name).

    Returns the name unchanged if valid; raises ``ValueError`` otherwise.
    """
    if not _SAFE_IDENTIFIER_RE.match(name):
        raise ValueError(f"Invalid SQL identifier: {name!r}")
    return name


# ============================================================
# DB PATH RESOLUTION
# ============================================================


def get_db_path() -> Path:
    """
    Get the canonical DB path.

    Resolution order:
    1. FREETIME_OS_DB env var (explicit override)
    2. ~/.freetime_os/data/freetime.db (default via paths.db_path())
    """
    return paths.db_path()


def get_db_path_str() -> str:
    return str(get_db_path())


# ============================================================
# CONNECTION FACTORY
# ============================================================


@contextmanager
def get_connection(db_path: str | None = None) -> Generator[sqlite3.Connection, None, None]:
    """
    Get a database connection with proper setup. Commits on clean exit.

    Usage:
        with get_connection() as conn:
            conn.execute(...)
    """
    path = Path(db_path) if db_path else get_db_path()
    path.parent.mkdir(parents=True, exist_ok=True)

    conn = sqlite3.connect(str(path))
    conn.row_factory = sqlite3.Row
    try:
        yield conn
        conn.commit()
    finally:
        conn.close()


def get_schema_version(conn: sqlite3.Connection) -> int:
    """Get current schema version from PRAGMA user_version."""
    return conn.execute("PRAGMA user_version").fetchone()[0]


# ============================================================
# SCHEMA CONVERGENCE
# ============================================================

_converged: set[str] = set()


def run_migrations(db_path: str | None = None) -> dict:
    """
    Converge the database schema to match freetime/schema declarations.

    Returns the schema_engine results dict with the previous version added.
    """
    path = db_path or get_db_path_str()
    logger.info("Converging schema for %s (target version %s)", path, schema.SCHEMA_VERSION)

    with get_connection(path) as conn:
        previous_version = get_schema_version(conn)
        results = schema_engine.converge(conn)
        results["previous_version"] = previous_version

    if results.get("tables_created"):
        logger.info("Tables created: %s", results["tables_created"])
    if results.get("columns_added"):
        logger.info("Columns added: %s", results["columns_added"])
    if results.get("data_migrations_run"):
        logger.info("Data migrations: %s", results["data_migrations_run"])
    if results.get("errors"):
        logger.warning("Convergence errors: %s", results["errors"])

    _converged.add(path)
    return results


def ensure_migrations(db_path: str | None = None):
    """Converge once per process per database file. Safe to call repeatedly."""
    path = db_path or get_db_path_str()
    if path not in _converged:
        run_migrations(path)
