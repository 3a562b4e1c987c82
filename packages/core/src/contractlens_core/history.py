"""History aggregate: the canonical, recency-ordered list of review records.

All mutation happens on the event loop. Every mutating call snapshots the
records and hands the snapshot to the store off-loop; saves are serialized
so the newest snapshot is always the last one written. Store failures are
logged and swallowed: in-memory state stays authoritative.
"""

from __future__ import annotations

import asyncio
import copy
import logging
from typing import Callable, Protocol

from contractlens_core import prompts
from contractlens_core.models import ConversationCollection, HistoryRecord, Language, ReviewResult

logger = logging.getLogger(__name__)


class HistoryBackend(Protocol):
    """What the aggregate needs from a store: whole-list load and save of plain dicts."""

    def load(self) -> list[dict]: ...

    def save(self, records: list[dict]) -> None: ...


def _sorted(records: list[HistoryRecord]) -> list[HistoryRecord]:
    # sorted() is stable, so ties keep their current relative order.
    return sorted(records, key=lambda r: r.updated_at, reverse=True)


class HistoryAggregate:
    def __init__(self, store: HistoryBackend, language: Language = Language.CHINESE):
        self.store = store
        self.language = language
        self._records: list[HistoryRecord] = []
        self._save_lock = asyncio.Lock()

    # ------------------------------------------------------------------ #
    # Queries                                                              #
    # ------------------------------------------------------------------ #

    def list(self) -> list[HistoryRecord]:
        """Copies of all records, most recently updated first."""
        return [copy.deepcopy(r) for r in _sorted(self._records)]

    def get(self, record_id: str) -> HistoryRecord | None:
        record = self._find(record_id)
        return copy.deepcopy(record) if record is not None else None

    # ------------------------------------------------------------------ #
    # Mutations                                                            #
    # ------------------------------------------------------------------ #

    async def load(self) -> None:
        try:
            raw = await asyncio.to_thread(self.store.load)
        except Exception as e:
            logger.warning("Failed to load history: %s", e)
            return

        records = []
        for item in raw:
            if not isinstance(item, dict):
                logger.warning("Skipping history entry that is not an object: %r", item)
                continue
            try:
                records.append(HistoryRecord.from_dict(item))
            except (KeyError, ValueError, TypeError, AttributeError) as e:
                logger.warning("Skipping unreadable history record: %s", e)
        self._records = _sorted(records)

    async def create_draft(self, title: str | None = None) -> HistoryRecord:
        record = HistoryRecord(title=(title or "").strip() or prompts.default_draft_title(self.language))
        self._records.insert(0, record)
        self._records = _sorted(self._records)
        await self._persist()
        return copy.deepcopy(record)

    async def update_title(self, record_id: str, title: str) -> None:
        record = self._find(record_id)
        title = title.strip()
        if record is None or not title:
            return
        record.title = title
        record.touch()
        self._records = _sorted(self._records)
        await self._persist()

    async def apply_review_result(
        self,
        record_id: str,
        result: ReviewResult,
        contract_text: str,
        title: str | None = None,
    ) -> None:
        """Attach a finished review to a record, completing it. Unknown ids are ignored."""
        record = self._find(record_id)
        if record is None:
            return

        result = copy.deepcopy(result)
        if result.conversations.is_empty():
            result.conversations = ConversationCollection()
            result.conversations.create_session(prompts.default_session_title(1, self.language))

        display_title = title.strip() if title and title.strip() else None
        record.apply_review_result(result, contract_text, display_title)
        self._records = _sorted(self._records)
        await self._persist()

    async def update_review_result(self, result_id: str, mutator: Callable[[ReviewResult], None]) -> bool:
        """Apply ``mutator`` to the attached result with this id. Returns False when none matches."""
        record = self._find_by_result(result_id)
        if record is None or record.review_result is None:
            return False
        mutator(record.review_result)
        record.touch()
        self._records = _sorted(self._records)
        await self._persist()
        return True

    async def delete(self, record_id: str) -> None:
        self._records = [r for r in self._records if r.id != record_id]
        await self._persist()

    # ------------------------------------------------------------------ #
    # Helpers                                                              #
    # ------------------------------------------------------------------ #

    def _find(self, record_id: str) -> HistoryRecord | None:
        return next((r for r in self._records if r.id == record_id), None)

    def _find_by_result(self, result_id: str) -> HistoryRecord | None:
        return next((r for r in self._records if r.review_result and r.review_result.id == result_id), None)

    async def _persist(self) -> None:
        # Snapshot now, on the loop; the write happens in a worker thread.
        snapshot = [r.to_dict() for r in self._records]
        async with self._save_lock:
            try:
                await asyncio.to_thread(self.store.save, snapshot)
            except Exception as e:
                logger.warning("Failed to save history (%d records): %s", len(snapshot), e)
