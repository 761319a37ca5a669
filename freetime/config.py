"""
Centralized configuration for Freetime OS.

All values that vary by deployment belong here.
Override via environment variables where marked.
"""

import os

# ============================================================
# Gap generation
# ============================================================

SLICE_MINUTES: int = int(os.environ.get("FREETIME_SLICE_MINUTES", "60"))
"""Length of one generated gap. Work hours are cut into slices of this size."""

DEFAULT_MIN_GAP_MINUTES: int = int(os.environ.get("FREETIME_MIN_GAP_MINUTES", "15"))
"""Gaps truncated by a preference change below this length are dropped."""

# ============================================================
# Rolling window
# ============================================================

WINDOW_PAST_DAYS: int = int(os.environ.get("FREETIME_WINDOW_PAST_DAYS", "7"))
"""Days before today kept materialized. Older gaps are pruned."""

WINDOW_FUTURE_DAYS: int = int(os.environ.get("FREETIME_WINDOW_FUTURE_DAYS", "7"))
"""Days after today kept materialized."""

PRELOAD_DAYS: int = int(os.environ.get("FREETIME_PRELOAD_DAYS", "3"))
"""Extra days past the window end generated on preload."""

# ============================================================
# Service
# ============================================================

DEFAULT_USER_ID: str = os.environ.get("FREETIME_DEFAULT_USER", "local")
"""User id assumed by the CLI when none is given."""

LOG_LEVEL: str = os.environ.get("FREETIME_LOG_LEVEL", "INFO")
"""Root log level for the API server and CLI."""

LOG_FORMAT: str = os.environ.get("FREETIME_LOG_FORMAT", "human")
"""'json' for structured logs, anything else for human-readable lines."""

CORS_ORIGINS: list[str] = [
    origin.strip()
    for origin in os.environ.get("FREETIME_CORS_ORIGINS", "http://localhost:3000,http://localhost:5173").split(",")
    if origin.strip()
]
"""Origins allowed to call the HTTP API from a browser."""
