import json

import httpx
import pytest
from pydantic import ValidationError

from corvid.audio import AudioSpeechQuery, AudioTranscriptionQuery
from corvid.chat import ChatQuery, ChatResult
from corvid.client import OpenAI, decode_response
from corvid.config import Configuration
from corvid.embeddings import EmbeddingsQuery
from corvid.errors import APIResponseError, EmptyDataError
from corvid.images import ImagesQuery, ImageVariationsQuery
from corvid.message import ChatMessage, MessageRole
from corvid.models import ModelQuery
from corvid.moderations import ModerationsQuery
from tests.conftest import FakeEvent, api_error


CHAT_RESULT = {
    "id": "chatcmpl-1",
    "object": "chat.completion",
    "created": 1700000000,
    "model": "gpt-test",
    "choices": [
        {
            "index": 0,
            "message": {"role": "assistant", "content": "Hello!"},
            "finish_reason": "stop",
        }
    ],
    "usage": {"prompt_tokens": 5, "completion_tokens": 2, "total_tokens": 7},
}


def json_handler(body, status_code=200):
    def handler(request):
        return httpx.Response(status_code, json=body)
    return handler


# ---------------------------------------------------------------------------
# decode_response: error precedence
# ---------------------------------------------------------------------------

class TestDecodeResponse:
    def test_decodes_result(self):
        assert decode_response(b'{"id": "1"}', FakeEvent) == FakeEvent(id="1")

    def test_empty_body(self):
        with pytest.raises(EmptyDataError):
            decode_response(b"", FakeEvent)

    def test_structured_error_body(self):
        body = json.dumps(api_error("Invalid model")).encode()
        with pytest.raises(APIResponseError, match="Invalid model") as info:
            decode_response(body, FakeEvent)
        assert info.value.error.type == "requests"

    def test_undecodable_body_raises_original_error(self):
        with pytest.raises(ValidationError) as info:
            decode_response(b'{"name": "x"}', FakeEvent)
        assert info.value.title == "FakeEvent"

    def test_non_json_body(self):
        with pytest.raises(ValidationError):
            decode_response(b"<html>Bad Gateway</html>", FakeEvent)


# ---------------------------------------------------------------------------
# Client construction
# ---------------------------------------------------------------------------

def test_client_reads_env(monkeypatch):
    monkeypatch.setenv("OPENAI_API_KEY", "sk-from-env")
    client = OpenAI(transport=httpx.AsyncClient())
    assert client.configuration.token == "sk-from-env"


@pytest.mark.asyncio
async def test_context_manager_closes_transport(configuration):
    transport = httpx.AsyncClient()
    async with OpenAI(configuration, transport=transport):
        pass
    assert transport.is_closed


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------

class TestEndpoints:
    @pytest.mark.asyncio
    async def test_chats(self, make_client):
        client = make_client(json_handler(CHAT_RESULT))
        result = await client.chats(
            ChatQuery(model="gpt-test", messages=[ChatMessage.user("hi")])
        )

        assert isinstance(result, ChatResult)
        assert result.choices[0].message.role == MessageRole.ASSISTANT
        assert result.usage.total_tokens == 7

        request = client.requests[0]
        assert request.method == "POST"
        assert request.url.host == "api.test"
        assert request.url.path == "/v1/chat/completions"
        assert request.headers["Authorization"] == "Bearer sk-test"
        assert request.headers["OpenAI-Organization"] == "org-test"
        assert "stream" not in json.loads(request.content)

    @pytest.mark.asyncio
    async def test_api_error_status_raises_structured_error(self, make_client):
        client = make_client(json_handler(api_error("Quota exceeded"), 429))
        with pytest.raises(APIResponseError, match="Quota exceeded"):
            await client.chats(
                ChatQuery(model="gpt-test", messages=[ChatMessage.user("hi")])
            )

    @pytest.mark.asyncio
    async def test_transport_error_propagates(self, make_client):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        client = make_client(handler)
        with pytest.raises(httpx.ConnectError):
            await client.models()

    @pytest.mark.asyncio
    async def test_empty_body_raises(self, make_client):
        client = make_client(lambda request: httpx.Response(200))
        with pytest.raises(EmptyDataError):
            await client.models()

    @pytest.mark.asyncio
    async def test_embeddings(self, make_client):
        client = make_client(json_handler({
            "object": "list",
            "data": [{"object": "embedding", "embedding": [0.1, 0.2], "index": 0}],
            "model": "text-embedding-3-small",
            "usage": {"prompt_tokens": 2, "total_tokens": 2},
        }))
        result = await client.embeddings(
            EmbeddingsQuery(model="text-embedding-3-small", input="hi")
        )

        assert result.data[0].embedding == [0.1, 0.2]
        assert client.requests[0].url.path == "/v1/embeddings"

    @pytest.mark.asyncio
    async def test_models_and_model(self, make_client):
        listing = {
            "object": "list",
            "data": [{"id": "gpt-test", "object": "model", "owned_by": "corvid"}],
        }
        client = make_client(json_handler(listing))
        result = await client.models()

        assert [m.id for m in result.data] == ["gpt-test"]
        assert client.requests[0].method == "GET"
        assert client.requests[0].url.path == "/v1/models"

        single = make_client(json_handler(listing["data"][0]))
        model = await single.model(ModelQuery(model="gpt-test"))
        assert model.owned_by == "corvid"
        assert single.requests[0].url.path == "/v1/models/gpt-test"

    @pytest.mark.asyncio
    async def test_moderations(self, make_client):
        client = make_client(json_handler({
            "id": "modr-1",
            "model": "omni-moderation-latest",
            "results": [{
                "flagged": False,
                "categories": {"violence": False},
                "category_scores": {"violence": 0.01},
            }],
        }))
        result = await client.moderations(ModerationsQuery(input="hello"))
        assert result.results[0].flagged is False
        assert client.requests[0].url.path == "/v1/moderations"

    @pytest.mark.asyncio
    async def test_images(self, make_client):
        client = make_client(json_handler({
            "created": 1700000000,
            "data": [{"url": "https://img.test/1.png"}],
        }))
        result = await client.images(ImagesQuery(prompt="a crow"))
        assert result.data[0].url == "https://img.test/1.png"
        assert client.requests[0].url.path == "/v1/images/generations"

    @pytest.mark.asyncio
    async def test_image_variations_upload(self, make_client):
        client = make_client(json_handler({"created": 1, "data": []}))
        await client.image_variations(ImageVariationsQuery(image=b"png", n=2))

        request = client.requests[0]
        assert request.url.path == "/v1/images/variations"
        assert request.headers["Content-Type"].startswith("multipart/form-data")
        assert b'filename="image.png"' in request.content

    @pytest.mark.asyncio
    async def test_audio_transcriptions(self, make_client):
        client = make_client(json_handler({"text": "hello there"}))
        result = await client.audio_transcriptions(
            AudioTranscriptionQuery(file=b"ID3", file_type="mp3", model="whisper-1")
        )
        assert result.text == "hello there"
        assert client.requests[0].url.path == "/v1/audio/transcriptions"


class TestSpeech:
    @pytest.mark.asyncio
    async def test_returns_raw_audio(self, make_client):
        client = make_client(lambda request: httpx.Response(200, content=b"ID3audio"))
        result = await client.audio_create_speech(
            AudioSpeechQuery(model="tts-1", input="hi", voice="alloy")
        )
        assert result.audio == b"ID3audio"
        assert client.requests[0].url.path == "/v1/audio/speech"

    @pytest.mark.asyncio
    async def test_empty_audio_raises(self, make_client):
        client = make_client(lambda request: httpx.Response(200))
        with pytest.raises(EmptyDataError):
            await client.audio_create_speech(
                AudioSpeechQuery(model="tts-1", input="hi", voice="alloy")
            )

    @pytest.mark.asyncio
    async def test_error_status_with_error_body(self, make_client):
        client = make_client(json_handler(api_error("Unknown voice"), 400))
        with pytest.raises(APIResponseError, match="Unknown voice"):
            await client.audio_create_speech(
                AudioSpeechQuery(model="tts-1", input="hi", voice="crow")
            )

    @pytest.mark.asyncio
    async def test_error_status_without_error_body(self, make_client):
        client = make_client(lambda request: httpx.Response(502, content=b"bad gateway"))
        with pytest.raises(httpx.HTTPStatusError):
            await client.audio_create_speech(
                AudioSpeechQuery(model="tts-1", input="hi", voice="alloy")
            )


def test_custom_configuration_url():
    client = OpenAI(
        Configuration(token="t", host="localhost", port=8000, scheme="http",
                      base_path="proxy"),
        transport=httpx.AsyncClient(),
    )
    assert client.build_url("/models") == "http://localhost:8000/proxy/v1/models"
