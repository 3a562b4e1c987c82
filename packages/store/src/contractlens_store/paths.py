"""Application directory layout.

Everything lives under ``$CONTRACTLENS_HOME`` (default ``~/.contractlens``):

    history.json       review history (JsonFileStore)
    history.db         review history (SQLiteStore)
    templates.json     requirement templates
    credentials.json   API key
"""

from __future__ import annotations

import os
from pathlib import Path

HOME_ENV_VAR = "CONTRACTLENS_HOME"


def app_dir() -> Path:
    override = os.environ.get(HOME_ENV_VAR)
    return Path(override).expanduser() if override else Path.home() / ".contractlens"


def history_json_path() -> Path:
    return app_dir() / "history.json"


def history_db_path() -> Path:
    return app_dir() / "history.db"


def templates_path() -> Path:
    return app_dir() / "templates.json"


def credentials_path() -> Path:
    return app_dir() / "credentials.json"


def ensure_private_dir(path: Path) -> None:
    """Create ``path`` (and parents) with owner-only permissions if missing."""
    path.mkdir(parents=True, exist_ok=True, mode=0o700)
