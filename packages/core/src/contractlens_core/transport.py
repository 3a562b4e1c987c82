"""HTTP transport for OpenAI-compatible chat-completion endpoints.

Two paths share one request shape:

    send()   → POST, wait for the whole JSON body, return the message text
    stream() → POST with ``stream: true``, yield StreamEvents line by line

Validation (API key, base URL) happens before any I/O.
"""

from __future__ import annotations

import json
import logging
from typing import TYPE_CHECKING, AsyncIterator

import httpx

from contractlens_core.errors import DecodeFailed, InvalidAPIEndpoint, MissingAPIKey, ReviewError, ServiceError
from contractlens_core.streaming import Failed, StreamEvent, StreamParser

if TYPE_CHECKING:
    from contractlens_core.config import Credentials, Settings
    from contractlens_core.models import Language

logger = logging.getLogger(__name__)

COMPLETIONS_PATH = "/chat/completions"


def make_completions_url(base_url: str) -> str:
    """Return ``{base_url}/chat/completions``, dropping one trailing slash from the base path."""
    try:
        url = httpx.URL(base_url.strip())
    except httpx.InvalidURL as e:
        raise InvalidAPIEndpoint() from e
    if url.scheme not in ("http", "https") or not url.host:
        raise InvalidAPIEndpoint()

    path = url.path
    if path.endswith("/"):
        path = path[:-1]
    return str(url.copy_with(path=path + COMPLETIONS_PATH))


def _error_from_status(status_code: int, body: bytes, language: Language) -> ServiceError:
    """Prefer the backend's ``{"error": {"message": ...}}`` over a generic status message."""
    try:
        message = json.loads(body)["error"]["message"]
    except (ValueError, KeyError, TypeError):
        message = None
    if isinstance(message, str) and message.strip():
        return ServiceError(message)
    return ServiceError.http_status(status_code, language)


def _network_error(error: httpx.HTTPError) -> ServiceError:
    return ServiceError(str(error) or error.__class__.__name__)


class ChatTransport:
    """Sends chat-completion requests.

    An injected ``httpx.AsyncClient`` is used as-is and left open; otherwise
    the transport creates one on first use and closes it in ``aclose()``.
    """

    def __init__(self, client: httpx.AsyncClient | None = None):
        self._client = client
        self._owns_client = client is None

    @property
    def client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient()
        return self._client

    async def aclose(self) -> None:
        if self._owns_client and self._client is not None:
            await self._client.aclose()
            self._client = None

    # ------------------------------------------------------------------ #
    # Public interface                                                     #
    # ------------------------------------------------------------------ #

    async def send(
        self,
        messages: list[dict],
        *,
        model: str,
        temperature: float,
        settings: Settings,
        credentials: Credentials,
    ) -> str:
        """Make one non-streaming request and return the trimmed reply text."""
        url, headers = self._prepare(settings, credentials)
        body = {"model": model, "messages": messages, "temperature": temperature}

        try:
            response = await self.client.post(url, json=body, headers=headers, timeout=settings.request_timeout)
        except httpx.HTTPError as e:
            raise _network_error(e) from e

        if not response.is_success:
            raise _error_from_status(response.status_code, response.content, settings.language)

        try:
            content = response.json()["choices"][0]["message"]["content"]
        except (ValueError, KeyError, IndexError, TypeError) as e:
            raise DecodeFailed() from e
        if not isinstance(content, str) or not content.strip():
            raise DecodeFailed()
        return content.strip()

    async def stream(
        self,
        messages: list[dict],
        *,
        model: str,
        temperature: float,
        settings: Settings,
        credentials: Credentials,
    ) -> AsyncIterator[StreamEvent]:
        """Yield Thinking / ResponseChunk events, then exactly one Done or Failed.

        Cancelling the consuming task stops the read and closes the response.
        """
        try:
            url, headers = self._prepare(settings, credentials)
        except ReviewError as e:
            yield Failed(e)
            return

        body = {"model": model, "messages": messages, "temperature": temperature, "stream": True}
        parser = StreamParser()

        try:
            async with self.client.stream(
                "POST", url, json=body, headers=headers, timeout=settings.request_timeout
            ) as response:
                if not response.is_success:
                    error_body = await response.aread()
                    yield Failed(_error_from_status(response.status_code, error_body, settings.language))
                    return

                async for line in response.aiter_lines():
                    for event in parser.feed(line):
                        yield event
                    if parser.finished:
                        return
        except httpx.HTTPError as e:
            logger.debug("Stream request failed: %s", e)
            yield Failed(_network_error(e))
            return

        # Connection closed without a [DONE] sentinel.
        for event in parser.finish():
            yield event

    # ------------------------------------------------------------------ #
    # Helpers                                                              #
    # ------------------------------------------------------------------ #

    def _prepare(self, settings: Settings, credentials: Credentials) -> tuple[str, dict]:
        if credentials.is_empty:
            raise MissingAPIKey()
        url = make_completions_url(settings.base_url)
        headers = {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {credentials.api_key.strip()}",
        }
        return url, headers
