"""
Test configuration. Puts the repo root on sys.path and keeps tests off the
live database.

FREETIME_OS_HOME is pointed at a throwaway directory before anything imports
freetime.paths, and sqlite3.connect refuses the live DB path outright.
"""

import os
import sqlite3
import sys
import tempfile
from pathlib import Path

import pytest

REPO_ROOT = Path(__file__).parent.parent
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

# Must happen before freetime.paths is used anywhere
os.environ["FREETIME_OS_HOME"] = tempfile.mkdtemp(prefix="freetime_test_home_")
os.environ.pop("FREETIME_OS_DB", None)

HOME_DB_ABSOLUTE = Path.home() / ".freetime_os" / "data" / "freetime.db"

_original_sqlite_connect = sqlite3.connect


def _guarded_sqlite_connect(database, *args, **kwargs):
    """Intercept sqlite3.connect to block live DB access."""
    db_str = str(database)
    if db_str != ":memory:" and Path(db_str).expanduser().absolute() == HOME_DB_ABSOLUTE:
        raise RuntimeError(
            f"DETERMINISM VIOLATION: Test attempted to access live DB at {database}.\n"
            "Tests must use fixture_db from tests/fixtures/fixture_db.py."
        )
    return _original_sqlite_connect(database, *args, **kwargs)


@pytest.fixture(autouse=True)
def guard_live_db_access(monkeypatch):
    """Automatically guard all tests against live DB access."""
    monkeypatch.setattr(sqlite3, "connect", _guarded_sqlite_connect)


# =============================================================================
# SHARED FIXTURES
# =============================================================================

@pytest.fixture
def fixture_db_path(tmp_path):
    """Empty fixture DB file, fresh per test."""
    from tests.fixtures.fixture_db import get_fixture_db_path

    return get_fixture_db_path(tmp_path)


@pytest.fixture
def store(fixture_db_path):
    from freetime.state_store import StateStore

    return StateStore(str(fixture_db_path))


@pytest.fixture
def manager(store):
    from freetime.gap_truth.gap_manager import GapManager

    return GapManager(store=store)


@pytest.fixture
def prefs():
    """09:00-17:00, Monday-Friday, 15 minute minimum."""
    from freetime.gap_truth.preferences import WorkPreferences

    return WorkPreferences.from_raw({"work_start": "09:00", "work_end": "17:00"})
