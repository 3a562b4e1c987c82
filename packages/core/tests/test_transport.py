"""Tests for the chat-completion transport, driven through httpx.MockTransport."""

import json

import httpx
import pytest

from fakes import completion, delta, mock_client, sse
from contractlens_core.config import Credentials
from contractlens_core.errors import DecodeFailed, InvalidAPIEndpoint, MissingAPIKey, ServiceError
from contractlens_core.streaming import Done, Failed, ResponseChunk, Thinking
from contractlens_core.transport import ChatTransport, make_completions_url

MESSAGES = [{"role": "user", "content": "hi"}]


async def _collect(transport, settings, credentials, **kwargs):
    events = []
    async for event in transport.stream(
        MESSAGES, model="deepseek-reasoner", temperature=0.7, settings=settings, credentials=credentials, **kwargs
    ):
        events.append(event)
    return events


# ---------------------------------------------------------------------------
# make_completions_url
# ---------------------------------------------------------------------------


class TestMakeCompletionsUrl:
    def test_appends_path(self):
        assert make_completions_url("https://api.deepseek.com") == "https://api.deepseek.com/chat/completions"

    def test_trailing_slash_dropped(self):
        assert make_completions_url("https://example.com/v1/") == "https://example.com/v1/chat/completions"

    def test_path_prefix_kept(self):
        assert make_completions_url("http://localhost:8080/v1") == "http://localhost:8080/v1/chat/completions"

    @pytest.mark.parametrize("base_url", ["", "not a url", "ftp://example.com", "/v1"])
    def test_invalid_urls_rejected(self, base_url):
        with pytest.raises(InvalidAPIEndpoint):
            make_completions_url(base_url)


# ---------------------------------------------------------------------------
# send
# ---------------------------------------------------------------------------


class TestSend:
    @pytest.mark.asyncio
    async def test_request_shape_and_trimmed_reply(self, settings, credentials):
        seen = {}

        def handler(request):
            seen["url"] = str(request.url)
            seen["auth"] = request.headers["Authorization"]
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json=completion("  OK  \n"))

        transport = ChatTransport(mock_client(handler))
        reply = await transport.send(
            MESSAGES, model="deepseek-chat", temperature=0.0, settings=settings, credentials=credentials
        )

        assert reply == "OK"
        assert seen["url"] == "https://api.deepseek.com/chat/completions"
        assert seen["auth"] == "Bearer sk-test"
        assert seen["body"] == {"model": "deepseek-chat", "messages": MESSAGES, "temperature": 0.0}

    @pytest.mark.asyncio
    async def test_error_envelope_message_used(self, settings, credentials):
        def handler(request):
            return httpx.Response(401, json={"error": {"message": "Invalid API key"}})

        transport = ChatTransport(mock_client(handler))
        with pytest.raises(ServiceError) as exc_info:
            await transport.send(MESSAGES, model="m", temperature=0.7, settings=settings, credentials=credentials)
        assert exc_info.value.describe() == "Invalid API key"

    @pytest.mark.asyncio
    async def test_generic_status_message_without_envelope(self, settings, english_settings, credentials):
        def handler(request):
            return httpx.Response(503, text="upstream down")

        transport = ChatTransport(mock_client(handler))
        with pytest.raises(ServiceError) as exc_info:
            await transport.send(MESSAGES, model="m", temperature=0.7, settings=settings, credentials=credentials)
        assert "HTTP 503" in exc_info.value.describe()

        with pytest.raises(ServiceError) as exc_info:
            await transport.send(
                MESSAGES, model="m", temperature=0.7, settings=english_settings, credentials=credentials
            )
        assert exc_info.value.describe() == "Service returned an error: HTTP 503."

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "payload",
        [{"choices": []}, {"choices": [{"message": {}}]}, completion("   "), {"unexpected": True}],
    )
    async def test_unusable_body_raises_decode_failed(self, settings, credentials, payload):
        transport = ChatTransport(mock_client(lambda request: httpx.Response(200, json=payload)))
        with pytest.raises(DecodeFailed):
            await transport.send(MESSAGES, model="m", temperature=0.7, settings=settings, credentials=credentials)

    @pytest.mark.asyncio
    async def test_non_json_body_raises_decode_failed(self, settings, credentials):
        transport = ChatTransport(mock_client(lambda request: httpx.Response(200, text="<html>")))
        with pytest.raises(DecodeFailed):
            await transport.send(MESSAGES, model="m", temperature=0.7, settings=settings, credentials=credentials)

    @pytest.mark.asyncio
    async def test_network_error_becomes_service_error(self, settings, credentials):
        def handler(request):
            raise httpx.ConnectError("connection refused")

        transport = ChatTransport(mock_client(handler))
        with pytest.raises(ServiceError) as exc_info:
            await transport.send(MESSAGES, model="m", temperature=0.7, settings=settings, credentials=credentials)
        assert "connection refused" in exc_info.value.describe()

    @pytest.mark.asyncio
    async def test_missing_key_raised_before_any_request(self, settings):
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(200, json=completion("x"))

        transport = ChatTransport(mock_client(handler))
        with pytest.raises(MissingAPIKey):
            await transport.send(MESSAGES, model="m", temperature=0.7, settings=settings, credentials=Credentials(""))
        assert calls == []

    @pytest.mark.asyncio
    async def test_invalid_endpoint_raised_before_any_request(self, credentials):
        from contractlens_core.config import Settings

        calls = []
        transport = ChatTransport(mock_client(lambda request: calls.append(request)))
        with pytest.raises(InvalidAPIEndpoint):
            await transport.send(
                MESSAGES,
                model="m",
                temperature=0.7,
                settings=Settings(provider="custom", base_url="nope"),
                credentials=credentials,
            )
        assert calls == []


# ---------------------------------------------------------------------------
# stream
# ---------------------------------------------------------------------------


class TestStream:
    @pytest.mark.asyncio
    async def test_events_in_order(self, settings, credentials):
        seen = {}
        body = sse(
            delta(reasoning_content="先看"),
            delta(reasoning_content="第三条"),
            delta(content="结论："),
            delta(content="可接受"),
            "[DONE]",
        )

        def handler(request):
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, content=body, headers={"Content-Type": "text/event-stream"})

        events = await _collect(ChatTransport(mock_client(handler)), settings, credentials)

        assert seen["body"]["stream"] is True
        assert seen["body"]["model"] == "deepseek-reasoner"
        assert events == [
            Thinking("先看第三条"),
            ResponseChunk("结论："),
            ResponseChunk("可接受"),
            Done(),
        ]

    @pytest.mark.asyncio
    async def test_done_emitted_when_connection_closes_without_sentinel(self, settings, credentials):
        body = sse(delta(reasoning_content="想"), delta(content="答"))
        transport = ChatTransport(mock_client(lambda request: httpx.Response(200, content=body)))
        events = await _collect(transport, settings, credentials)
        assert events == [Thinking("想"), ResponseChunk("答"), Done()]

    @pytest.mark.asyncio
    async def test_http_error_yields_failed(self, settings, credentials):
        def handler(request):
            return httpx.Response(429, json={"error": {"message": "Rate limit reached"}})

        events = await _collect(ChatTransport(mock_client(handler)), settings, credentials)
        assert len(events) == 1
        assert isinstance(events[0], Failed)
        assert events[0].error.describe() == "Rate limit reached"

    @pytest.mark.asyncio
    async def test_network_error_yields_failed(self, settings, credentials):
        def handler(request):
            raise httpx.ReadTimeout("timed out")

        events = await _collect(ChatTransport(mock_client(handler)), settings, credentials)
        assert len(events) == 1
        assert isinstance(events[0], Failed)
        assert isinstance(events[0].error, ServiceError)

    @pytest.mark.asyncio
    async def test_missing_key_yields_failed_without_request(self, settings):
        calls = []
        transport = ChatTransport(mock_client(lambda request: calls.append(request)))
        events = await _collect(transport, settings, Credentials(""))
        assert len(events) == 1
        assert isinstance(events[0].error, MissingAPIKey)
        assert calls == []


# ---------------------------------------------------------------------------
# client ownership
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_injected_client_left_open():
    client = mock_client(lambda request: httpx.Response(200))
    transport = ChatTransport(client)
    await transport.aclose()
    assert not client.is_closed
    await client.aclose()


@pytest.mark.asyncio
async def test_owned_client_closed():
    transport = ChatTransport()
    client = transport.client
    await transport.aclose()
    assert client.is_closed
