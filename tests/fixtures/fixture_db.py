"""
Fixture Database Factory for deterministic tests.

Creates a temp SQLite DB whose schema comes from schema_engine.create_fresh(),
the same declaration the live DB converges to, optionally seeded with one
generated work day.

Tests MUST use this fixture, never the live ~/.freetime_os database.
"""

import sqlite3
from datetime import date, datetime
from pathlib import Path

from freetime import schema_engine, safe_sql
from freetime.gap_truth.generator import generate_day_gaps
from freetime.gap_truth.models import Gap
from freetime.gap_truth.preferences import WorkPreferences

REPO_ROOT = Path(__file__).parent.parent.parent
LIVE_DB_PATH = Path.home() / ".freetime_os" / "data" / "freetime.db"
_LIVE_DB_STR = str(LIVE_DB_PATH)

SEED_USER = "user_fixture"
SEED_DATE = date(2026, 3, 2)  # Monday
SEED_NOW = datetime(2026, 3, 1, 8, 0, 0)
SEED_PREFS = WorkPreferences(work_start="09:00", work_end="17:00")


def guard_no_live_db(db_path: str | Path) -> None:
    """Fail loudly if tests try to access the live database."""
    path_str = str(db_path)
    if path_str == _LIVE_DB_STR or ".freetime_os/data/freetime.db" in path_str:
        raise RuntimeError(
            f"DETERMINISM VIOLATION: Test attempted to access live DB at {db_path}.\n"
            "Tests must use the fixture DB only. See tests/fixtures/fixture_db.py."
        )


def insert_gaps(conn: sqlite3.Connection, gaps: list[Gap]) -> None:
    if not gaps:
        return
    rows = [g.to_row() for g in gaps]
    columns = list(rows[0].keys())
    sql = safe_sql.insert("gaps", columns)
    conn.executemany(sql, [[row[c] for c in columns] for row in rows])
    conn.commit()


def create_fixture_db(db_path: str | Path = ":memory:", seed: bool = False) -> sqlite3.Connection:
    """
    Create a fixture database.

    Args:
        db_path: file path, or ":memory:"
        seed: insert the generated 09:00-17:00 day for SEED_USER on SEED_DATE

    Returns:
        Open connection (caller closes)
    """
    guard_no_live_db(db_path)
    conn = sqlite3.connect(str(db_path))
    conn.row_factory = sqlite3.Row

    schema_engine.create_fresh(conn)
    conn.commit()

    if seed:
        insert_gaps(conn, generate_day_gaps(SEED_DATE, SEED_PREFS, SEED_USER, now=SEED_NOW))

    return conn


def get_fixture_db_path(tmp_path: Path, seed: bool = False) -> Path:
    """Create a fixture DB file under tmp_path and return its path."""
    db_path = tmp_path / "fixture.db"
    conn = create_fixture_db(db_path, seed=seed)
    conn.close()
    return db_path
