"""No-op store for one-off runs that should leave no trace on disk.

Using a NoOpStore rather than None lets the core always call save() without
conditional checks.
"""

from __future__ import annotations

from contractlens_store.base import BaseStore


class NoOpStore(BaseStore):
    """Silently discards all records. Selected with ``store: none``."""

    def load(self) -> list[dict]:
        return []

    def save(self, records: list[dict]) -> None:
        pass  # intentional no-op
