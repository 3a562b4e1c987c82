"""Requirement templates, stored as a JSON array of ``{id, name, content, description}``."""

from __future__ import annotations

import json
import logging
from pathlib import Path

from contractlens_store.json_file import read_json, write_json_atomic
from contractlens_store.paths import templates_path

logger = logging.getLogger(__name__)


class TemplateStore:
    def __init__(self, path: str | Path | None = None):
        self.path = Path(path).expanduser() if path else templates_path()

    def load(self) -> list[dict]:
        """Return saved templates. An unreadable file counts as no templates."""
        try:
            data = read_json(self.path, [])
        except (OSError, json.JSONDecodeError) as e:
            logger.warning("Could not read templates from %s: %s", self.path, e)
            return []
        if not isinstance(data, list):
            logger.warning("Ignoring %s: expected a JSON array", self.path)
            return []
        return [t for t in data if isinstance(t, dict)]

    def save(self, templates: list[dict]) -> None:
        write_json_atomic(self.path, templates)
