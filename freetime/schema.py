"""
Declarative Schema Definition. The single source of truth.

Every table, column, index and data migration for Freetime OS lives here.
The schema_engine reads this and converges any database to match.

Adding a column = add one line here. The engine handles the rest.

Column definitions use CREATE TABLE syntax. The schema_engine knows how
to derive ALTER TABLE ADD COLUMN DDL (strips PK, adjusts NOT NULL, etc.).
"""

from collections import OrderedDict

# =============================================================================
# Schema version. Bump when you change this file
# =============================================================================
SCHEMA_VERSION = 2

# =============================================================================
# Table Definitions
#
# Format: TABLES[name] = {"columns": [(col_name, col_ddl), ...]}
# =============================================================================

TABLES: dict[str, dict] = OrderedDict()

# ---------------------------------------------------------------------------
# gaps: free-time intervals, minutes since midnight, half-open [start, end)
# ---------------------------------------------------------------------------
TABLES["gaps"] = {
    "columns": [
        ("id", "TEXT PRIMARY KEY"),
        ("user_id", "TEXT NOT NULL"),
        ("date", "TEXT NOT NULL"),
        ("start_time", "INTEGER NOT NULL CHECK (start_time >= 0)"),
        ("end_time", "INTEGER NOT NULL CHECK (end_time <= 1440)"),
        ("duration_minutes", "INTEGER"),
        # Split lineage
        ("parent_gap_id", "TEXT"),
        ("original_gap_id", "TEXT"),
        ("modified_by", "TEXT NOT NULL DEFAULT 'system'"),
        # Timestamps
        ("created_at", "TEXT NOT NULL DEFAULT (datetime('now'))"),
        ("updated_at", "TEXT NOT NULL DEFAULT (datetime('now'))"),
    ],
}

# ---------------------------------------------------------------------------
# tasks: created when a task is scheduled into a gap
# ---------------------------------------------------------------------------
TABLES["tasks"] = {
    "columns": [
        ("id", "TEXT PRIMARY KEY"),
        ("user_id", "TEXT NOT NULL"),
        ("title", "TEXT NOT NULL"),
        ("payload", "TEXT"),
        # The consumed gap is deleted, so no foreign key
        ("scheduled_gap_id", "TEXT"),
        ("due_date", "TEXT NOT NULL"),
        ("due_time", "TEXT NOT NULL"),
        ("end_time", "INTEGER"),
        ("status", "TEXT NOT NULL DEFAULT 'scheduled'"),
        ("created_at", "TEXT NOT NULL DEFAULT (datetime('now'))"),
        ("updated_at", "TEXT NOT NULL DEFAULT (datetime('now'))"),
    ],
}

# =============================================================================
# Indexes
#
# Format: (index_name, table, columns, where_clause_or_None)
# =============================================================================

INDEXES: list[tuple[str, str, str, str | None]] = [
    ("idx_gaps_user_date", "gaps", "user_id, date, start_time", None),
    ("idx_gaps_original", "gaps", "original_gap_id", "original_gap_id IS NOT NULL"),
    ("idx_tasks_user_due", "tasks", "user_id, due_date", None),
    ("idx_tasks_gap", "tasks", "scheduled_gap_id", None),
]

# =============================================================================
# Data Migrations. Run after schema convergence
#
# Format: (table, target_column, source_expression, where_condition)
# Executed as: UPDATE table SET target_column = source_expression WHERE condition
# Idempotent: only touches rows where the target is still NULL.
# =============================================================================

DATA_MIGRATIONS: list[tuple[str, str, str, str]] = [
    # v1 databases did not store the duration
    ("gaps", "duration_minutes", "end_time - start_time", "duration_minutes IS NULL"),
]
