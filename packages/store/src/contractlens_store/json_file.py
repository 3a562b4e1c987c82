"""JsonFileStore: the default history backend.

The whole history is one pretty-printed JSON array. Writes go to a temp file
in the same directory followed by ``os.replace``, so a crash mid-write never
leaves a truncated history behind. The file is owner-readable only since
records contain full contract texts.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
from pathlib import Path

from contractlens_store.base import BaseStore
from contractlens_store.paths import ensure_private_dir, history_json_path

logger = logging.getLogger(__name__)


def read_json(path: Path, default):
    if not path.exists():
        return default
    with open(path, encoding="utf-8") as f:
        return json.load(f)


def write_json_atomic(path: Path, data) -> None:
    """Write ``data`` to ``path`` atomically with mode 0600."""
    ensure_private_dir(path.parent)
    fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            json.dump(data, f, ensure_ascii=False, indent=2)
        os.chmod(tmp_name, 0o600)
        os.replace(tmp_name, path)
    except BaseException:
        if os.path.exists(tmp_name):
            os.unlink(tmp_name)
        raise


class JsonFileStore(BaseStore):
    """Stores review history in a local JSON file.

    Defaults to ``history.json`` in the application directory. Configure via
    .contractlens.yml: ``store_path: /path/to/history.json``.
    """

    def __init__(self, path: str | Path | None = None):
        self.path = Path(path).expanduser() if path else history_json_path()

    def load(self) -> list[dict]:
        data = read_json(self.path, [])
        if not isinstance(data, list):
            raise ValueError(f"{self.path} does not contain a JSON array")
        return data

    def save(self, records: list[dict]) -> None:
        write_json_atomic(self.path, records)
        logger.debug("Saved %d history records to %s", len(records), self.path)
