from __future__ import annotations

import os
from pathlib import Path

APP_ENV_HOME = "FREETIME_OS_HOME"
APP_ENV_DB = "FREETIME_OS_DB"


def project_root() -> Path:
    """
    Repository/project root directory.
    Contains freetime/, api/, cli/, config/.
    """
    return Path(__file__).parent.parent.resolve()


def app_home() -> Path:
    """
    User-writable home for Freetime OS.
    Override with FREETIME_OS_HOME.
    """
    if os.environ.get(APP_ENV_HOME):
        return Path(os.environ[APP_ENV_HOME]).expanduser().resolve()
    return (Path.home() / ".freetime_os").resolve()


def data_dir() -> Path:
    d = app_home() / "data"
    d.mkdir(parents=True, exist_ok=True)
    return d


def db_path() -> Path:
    """
    Canonical DB path.

    Resolution order:
    1. FREETIME_OS_DB env var (explicit override)
    2. ~/.freetime_os/data/freetime.db (default)
    """
    if os.environ.get(APP_ENV_DB):
        return Path(os.environ[APP_ENV_DB]).expanduser().resolve()
    return data_dir() / "freetime.db"
