import asyncio
import json
from unittest.mock import MagicMock

import httpx
import pytest
from pydantic import BaseModel

from corvid.client import OpenAI
from corvid.config import Configuration
from corvid.streaming import StreamingSession


# ---------------------------------------------------------------------------
# Event type used by decoder tests
# ---------------------------------------------------------------------------

class FakeEvent(BaseModel):
    id: str


# ---------------------------------------------------------------------------
# Callback recorder
# ---------------------------------------------------------------------------

class Recorder:
    """Collects every callback a session fires, in order."""

    def __init__(self):
        self.events: list = []
        self.errors: list[Exception] = []
        self.completions: list[BaseException | None] = []
        self.log: list[str] = []

    def on_event(self, value):
        self.events.append(value)
        self.log.append("event")

    def on_error(self, error):
        self.errors.append(error)
        self.log.append("error")

    def on_complete(self, error):
        self.completions.append(error)
        self.log.append("complete")

    def attach(self, session: StreamingSession) -> StreamingSession:
        session.on_event = self.on_event
        session.on_error = self.on_error
        session.on_complete = self.on_complete
        return session

    @property
    def ids(self) -> list[str]:
        return [e.id for e in self.events]


# ---------------------------------------------------------------------------
# SSE builders
# ---------------------------------------------------------------------------

def sse(*payloads) -> str:
    """Frame payloads as SSE ``data:`` events. Dicts are JSON-encoded."""
    return "".join(
        f"data: {json.dumps(p) if isinstance(p, dict) else p}\n\n"
        for p in payloads
    )


def chat_chunk(
    content: str | None = None,
    role: str | None = None,
    tool_calls: list[dict] | None = None,
    finish_reason: str | None = None,
    chunk_id: str = "chatcmpl-1",
) -> dict:
    """A ``chat.completion.chunk`` body with a single choice."""
    delta = {}
    if role is not None:
        delta["role"] = role
    if content is not None:
        delta["content"] = content
    if tool_calls is not None:
        delta["tool_calls"] = tool_calls
    return {
        "id": chunk_id,
        "object": "chat.completion.chunk",
        "created": 1700000000,
        "model": "gpt-test",
        "choices": [
            {"index": 0, "delta": delta, "finish_reason": finish_reason}
        ],
    }


def api_error(message: str = "Rate limit reached", type: str = "requests") -> dict:
    return {"error": {"message": message, "type": type, "param": None, "code": None}}


def make_session(result_type=FakeEvent) -> StreamingSession:
    """A session that is never performed; chunks are fed by hand."""
    request = httpx.Request("POST", "https://api.test:443/v1/chat/completions")
    return StreamingSession(
        request, result_type, MagicMock(spec=httpx.AsyncClient)
    )


# ---------------------------------------------------------------------------
# Mock transport
# ---------------------------------------------------------------------------

def streaming_response(chunks: list, status_code: int = 200) -> httpx.Response:
    """Response whose body is delivered chunk by chunk.

    Items may be ``str``, ``bytes`` or an exception instance, which is
    raised at that point of the body.
    """
    async def body():
        for chunk in chunks:
            if isinstance(chunk, BaseException):
                raise chunk
            yield chunk.encode() if isinstance(chunk, str) else chunk

    return httpx.Response(
        status_code,
        headers={"content-type": "text/event-stream"},
        content=body(),
    )


def hanging_response(first_chunk: str) -> httpx.Response:
    """Response that sends one chunk and then never finishes."""
    async def body():
        yield first_chunk.encode()
        await asyncio.Event().wait()

    return httpx.Response(200, content=body())


@pytest.fixture
def configuration():
    return Configuration(
        token="sk-test",
        organization_identifier="org-test",
        host="api.test",
    )


@pytest.fixture
def make_client(configuration):
    """Factory fixture building a client around a request handler.

    Every request the client sends is appended to ``client.requests``.
    """
    def _make(handler):
        requests: list[httpx.Request] = []

        def record(request: httpx.Request):
            requests.append(request)
            return handler(request)

        transport = httpx.AsyncClient(transport=httpx.MockTransport(record))
        client = OpenAI(configuration, transport=transport)
        client.requests = requests
        return client
    return _make
