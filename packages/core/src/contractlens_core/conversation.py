"""Follow-up chat on top of a finished review.

The engine owns the conversation collection of the review result it is
configured for. Sends are asyncio tasks, at most one per session:

    send_message()
        → append user message (+ derive title on first message)
        → append empty assistant placeholder
        → stream: Thinking / ResponseChunk mutate the placeholder live
        → settle: success | cancel | error
        → persist the whole collection through the HistoryAggregate

Each send captures the collection and review-result id it started with, so
re-configuring the engine for another record mid-stream never writes into
the wrong record.
"""

from __future__ import annotations

import asyncio
import copy
import logging
from contextlib import aclosing
from dataclasses import dataclass
from typing import TYPE_CHECKING, Callable

from contractlens_core import prompts
from contractlens_core.errors import ReviewError
from contractlens_core.models import (
    ConversationCollection,
    ConversationMessage,
    ConversationSession,
    ReviewResult,
    Role,
    preview_title,
)
from contractlens_core.streaming import Failed, ResponseChunk, StreamEvent, Thinking

if TYPE_CHECKING:
    from contractlens_core.config import Credentials, Settings
    from contractlens_core.history import HistoryAggregate
    from contractlens_core.transport import ChatTransport

logger = logging.getLogger(__name__)

Subscriber = Callable[[str, StreamEvent], None]


@dataclass
class SessionState:
    """Transient per-session UI state. Never persisted."""

    is_waiting: bool = False
    is_thinking: bool = False
    thinking_text: str = ""
    error: str | None = None

    def settle(self) -> None:
        self.is_waiting = False
        self.is_thinking = False
        self.thinking_text = ""


class ConversationEngine:
    def __init__(
        self,
        history: HistoryAggregate,
        transport: ChatTransport,
        settings: Settings,
        credentials: Credentials,
    ):
        self.history = history
        self.transport = transport
        # Read on every request; callers may replace them at any time.
        self.settings = settings
        self.credentials = credentials

        self.conversations = ConversationCollection()
        self.selected_session_id: str | None = None
        self.review_result: ReviewResult | None = None
        self.contract_text = ""

        self._states: dict[str, SessionState] = {}
        self._tasks: dict[str, asyncio.Task] = {}
        self._background: set[asyncio.Task] = set()
        self._subscribers: list[Subscriber] = []

    # ------------------------------------------------------------------ #
    # Configuration and queries                                            #
    # ------------------------------------------------------------------ #

    def configure(self, review_result: ReviewResult, contract_text: str) -> None:
        """Switch to ``review_result``. In-flight sends keep writing to the record they started on."""
        collection = copy.deepcopy(review_result.conversations)
        if collection.is_empty():
            collection.create_session(prompts.default_session_title(1, self.settings.language))

        if self.selected_session_id is None or collection.get(self.selected_session_id) is None:
            self.selected_session_id = collection.sessions[0].id

        self.conversations = collection
        self.review_result = review_result
        self.contract_text = contract_text

    @property
    def selected_session(self) -> ConversationSession | None:
        if self.selected_session_id is None:
            return None
        return self.conversations.get(self.selected_session_id)

    def select(self, session_id: str) -> bool:
        if self.conversations.get(session_id) is None:
            return False
        self.selected_session_id = session_id
        return True

    def state(self, session_id: str) -> SessionState:
        return self._states.setdefault(session_id, SessionState())

    def is_sending(self, session_id: str) -> bool:
        task = self._tasks.get(session_id)
        return task is not None and not task.done()

    def subscribe(self, callback: Subscriber) -> Callable[[], None]:
        """Receive ``(session_id, event)`` for every streamed event. Returns an unsubscribe function."""
        self._subscribers.append(callback)

        def unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    # ------------------------------------------------------------------ #
    # Session management                                                   #
    # ------------------------------------------------------------------ #

    async def create_session(self, title: str | None = None) -> ConversationSession:
        title = (title or "").strip()
        if not title:
            title = prompts.default_session_title(len(self.conversations.sessions) + 1, self.settings.language)
        session = self.conversations.create_session(title)
        self.selected_session_id = session.id
        await self._persist_current()
        return session

    async def delete_session(self, session_id: str) -> None:
        self.cancel_send(session_id)
        self.conversations.delete_session(session_id)
        self._states.pop(session_id, None)
        if self.selected_session_id == session_id or self.selected_session is None:
            sessions = self.conversations.sessions
            self.selected_session_id = sessions[0].id if sessions else None
        await self._persist_current()

    async def rename_session(self, session_id: str, title: str) -> None:
        title = title.strip()
        session = self.conversations.get(session_id)
        if session is None or not title:
            return
        session.rename(title)
        await self._persist_current()

    async def clear_session(self, session_id: str) -> None:
        session = self.conversations.get(session_id)
        if session is None:
            return
        self.cancel_send(session_id)
        session.messages = []
        session.touch()
        await self._persist_current()

    # ------------------------------------------------------------------ #
    # Sending                                                              #
    # ------------------------------------------------------------------ #

    def send_message(self, session_id: str, text: str) -> asyncio.Task | None:
        """Start a streamed answer to ``text``. Returns None (and changes nothing) for blank input."""
        question = text.strip()
        if not question or self.review_result is None:
            return None
        collection = self.conversations
        session = collection.get(session_id)
        if session is None:
            return None

        self.cancel_send(session_id)

        history = session.recent_messages(prompts.CONVERSATION_HISTORY_LIMIT)
        is_first = not session.messages

        session.add_message(ConversationMessage(role=Role.USER, content=question))
        if is_first:
            session.rename(preview_title(question))
        placeholder = ConversationMessage(role=Role.ASSISTANT)
        session.add_message(placeholder)

        language = self.settings.language
        context = prompts.conversation_context(self.contract_text, self.review_result, language)
        messages = prompts.conversation_messages(question, context, history, language)

        state = self.state(session_id)
        state.settle()
        state.is_waiting = True
        state.error = None

        result_id = self.review_result.id
        task = asyncio.ensure_future(self._receive(collection, result_id, session, placeholder, messages))
        self._tasks[session_id] = task
        task.add_done_callback(lambda t: self._on_send_done(t, collection, result_id, session, placeholder))
        return task

    def cancel_send(self, session_id: str) -> bool:
        task = self._tasks.pop(session_id, None)
        if task is None or task.done():
            return False
        task.cancel()
        self.state(session_id).settle()
        # Keep a reference until its done callback has run.
        self._background.add(task)
        task.add_done_callback(self._background.discard)
        return True

    async def wait_for_pending(self) -> None:
        """Wait for in-flight sends and background saves to finish."""
        while self._tasks or self._background:
            pending = [*self._tasks.values(), *self._background]
            await asyncio.gather(*pending, return_exceptions=True)

    # ------------------------------------------------------------------ #
    # Helpers                                                              #
    # ------------------------------------------------------------------ #

    async def _receive(
        self,
        collection: ConversationCollection,
        result_id: str,
        session: ConversationSession,
        placeholder: ConversationMessage,
        messages: list[dict],
    ) -> None:
        state = self.state(session.id)
        stream = self.transport.stream(
            messages,
            model=self.settings.reasoner_model,
            temperature=self.settings.temperature,
            settings=self.settings,
            credentials=self.credentials,
        )
        try:
            async with aclosing(stream) as events:
                async for event in events:
                    if isinstance(event, Thinking):
                        placeholder.thinking_content += event.text
                        state.thinking_text += event.text
                        state.is_thinking = True
                    elif isinstance(event, ResponseChunk):
                        placeholder.content += event.text
                    self._notify(session.id, event)
                    if isinstance(event, Failed):
                        raise event.error
        except Exception as e:
            message = e.describe(self.settings.language) if isinstance(e, ReviewError) else str(e)
            logger.warning("Conversation request failed: %s", message)
            self._discard_if_empty(session, placeholder)
            state.settle()
            state.error = message
            await self._persist(collection, result_id)
            return

        state.settle()
        session.touch()
        await self._persist(collection, result_id)

    def _discard_if_empty(self, session: ConversationSession, placeholder: ConversationMessage) -> None:
        if not placeholder.content:
            session.remove_message(placeholder.id)

    def _notify(self, session_id: str, event: StreamEvent) -> None:
        for callback in list(self._subscribers):
            callback(session_id, event)

    def _on_send_done(
        self,
        task: asyncio.Task,
        collection: ConversationCollection,
        result_id: str,
        session: ConversationSession,
        placeholder: ConversationMessage,
    ) -> None:
        # Runs even when the task was cancelled before its first step.
        is_current = self._tasks.get(session.id) is task
        if is_current:
            del self._tasks[session.id]
        if not task.cancelled():
            return
        self._discard_if_empty(session, placeholder)
        if is_current:
            self.state(session.id).settle()
        self._spawn(self._persist(collection, result_id))

    def _spawn(self, coro) -> None:
        task = asyncio.ensure_future(coro)
        self._background.add(task)
        task.add_done_callback(self._background.discard)

    async def _persist_current(self) -> None:
        if self.review_result is not None:
            await self._persist(self.conversations, self.review_result.id)

    async def _persist(self, collection: ConversationCollection, result_id: str) -> None:
        snapshot = copy.deepcopy(collection)

        def replace(result: ReviewResult) -> None:
            result.conversations = snapshot

        if not await self.history.update_review_result(result_id, replace):
            logger.debug("Review result %s no longer exists; conversation not saved", result_id)
