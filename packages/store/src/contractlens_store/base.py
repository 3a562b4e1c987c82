"""Abstract store interface.

A backend persists the whole history list as plain dicts. The core's
HistoryAggregate depends only on ``load()`` / ``save()``, so backends are
swappable without touching core or CLI code, and this package never imports
contractlens_core.
"""

from __future__ import annotations

from abc import ABC, abstractmethod


class BaseStore(ABC):
    """Pluggable persistence layer for review history.

    ``save()`` always receives the complete, already-ordered record list and
    replaces whatever was stored before. Backends may raise on I/O errors;
    the caller logs and carries on.
    """

    @abstractmethod
    def load(self) -> list[dict]:
        """Return every stored record, or an empty list if nothing was saved yet."""

    @abstractmethod
    def save(self, records: list[dict]) -> None:
        """Replace the stored history with ``records``."""

    def close(self) -> None:
        """Release any resources held by the store (connections, file handles).

        Optional: subclasses that need cleanup should override this.
        Default is a no-op so callers can always call close() safely.
        """
