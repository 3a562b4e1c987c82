"""Server-sent-event parsing for streamed chat completions.

``StreamParser`` is fed one raw line at a time and returns the events that
line produced. It holds no I/O, so the transport owns the connection and the
parser can be tested line by line.

    parser.feed('data: {"choices":[{"delta":{"content":"Hi"}}]}')  → [ResponseChunk("Hi")]
    parser.feed("data: [DONE]")                                     → [Done()]
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Union

from contractlens_core.errors import ReviewError

logger = logging.getLogger(__name__)

DATA_PREFIX = "data: "
DONE_SENTINEL = "[DONE]"

# Reasoning text is buffered and released in groups longer than this.
THINKING_FLUSH_THRESHOLD = 20

# Providers disagree on the delta field that carries the answer text.
_RESPONSE_FIELDS = ("content", "message", "text")


@dataclass(frozen=True)
class Thinking:
    text: str


@dataclass(frozen=True)
class ResponseChunk:
    text: str


@dataclass(frozen=True)
class Done:
    pass


@dataclass(frozen=True)
class Failed:
    error: ReviewError


StreamEvent = Union[Thinking, ResponseChunk, Done, Failed]


class StreamParser:
    """Turns ``data:`` lines into typed events.

    Thinking is always flushed strictly before the next response chunk, and
    once more before ``Done``.
    """

    def __init__(self, flush_threshold: int = THINKING_FLUSH_THRESHOLD):
        self.flush_threshold = flush_threshold
        self._thinking = ""
        self.finished = False

    def feed(self, line: str) -> list[StreamEvent]:
        if self.finished:
            return []
        line = line.strip()
        if not line.startswith(DATA_PREFIX):
            return []
        payload = line[len(DATA_PREFIX) :].strip()
        if payload == DONE_SENTINEL:
            return self.finish()

        try:
            data = json.loads(payload)
        except json.JSONDecodeError:
            logger.debug("Skipping malformed stream payload: %s", payload[:200])
            return []

        delta = _first_delta(data)
        if delta is None:
            return []

        events: list[StreamEvent] = []
        reasoning = delta.get("reasoning_content")
        if isinstance(reasoning, str) and reasoning:
            self._thinking += reasoning
            if len(self._thinking) > self.flush_threshold:
                events.extend(self._flush_thinking())

        fragment = next((delta[k] for k in _RESPONSE_FIELDS if isinstance(delta.get(k), str) and delta[k]), None)
        if fragment is not None:
            events.extend(self._flush_thinking())
            events.append(ResponseChunk(fragment))
        return events

    def finish(self) -> list[StreamEvent]:
        """Flush any pending thinking and emit ``Done``. Idempotent."""
        if self.finished:
            return []
        self.finished = True
        return [*self._flush_thinking(), Done()]

    def _flush_thinking(self) -> list[StreamEvent]:
        if not self._thinking:
            return []
        text, self._thinking = self._thinking, ""
        return [Thinking(text)]


def _first_delta(data) -> dict | None:
    if not isinstance(data, dict):
        return None
    choices = data.get("choices")
    if not isinstance(choices, list) or not choices or not isinstance(choices[0], dict):
        return None
    delta = choices[0].get("delta")
    return delta if isinstance(delta, dict) else None
