"""
Test fixtures for deterministic testing.

This module provides:
- create_fixture_db: temp SQLite databases built from the declared schema
- SEED_*: the pinned user/date/preferences of the optional seed day
"""

from .fixture_db import (
    SEED_DATE,
    SEED_NOW,
    SEED_PREFS,
    SEED_USER,
    create_fixture_db,
    get_fixture_db_path,
    guard_no_live_db,
    insert_gaps,
)

__all__ = [
    "SEED_DATE",
    "SEED_NOW",
    "SEED_PREFS",
    "SEED_USER",
    "create_fixture_db",
    "get_fixture_db_path",
    "guard_no_live_db",
    "insert_gaps",
]
