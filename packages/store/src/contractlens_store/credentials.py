"""API key storage in ``credentials.json`` (mode 0600)."""

from __future__ import annotations

import json
import logging
from pathlib import Path

from contractlens_store.json_file import read_json, write_json_atomic
from contractlens_store.paths import credentials_path

logger = logging.getLogger(__name__)


class CredentialsFile:
    def __init__(self, path: str | Path | None = None):
        self.path = Path(path).expanduser() if path else credentials_path()

    def load_api_key(self) -> str | None:
        """Return the saved key, or None when missing or unreadable."""
        try:
            data = read_json(self.path, {})
        except (OSError, json.JSONDecodeError) as e:
            logger.warning("Could not read credentials from %s: %s", self.path, e)
            return None
        key = data.get("api_key") if isinstance(data, dict) else None
        return key.strip() if isinstance(key, str) and key.strip() else None

    def save_api_key(self, api_key: str) -> None:
        write_json_atomic(self.path, {"api_key": api_key.strip()})

    def clear(self) -> None:
        if self.path.exists():
            self.path.unlink()
