import logging
from collections.abc import Callable
from typing import TypeVar

import httpx
from pydantic import BaseModel, ValidationError

from corvid.audio import (
    AudioSpeechQuery,
    AudioSpeechResult,
    AudioTranscriptionQuery,
    AudioTranscriptionResult,
    AudioTranslationQuery,
    AudioTranslationResult,
)
from corvid.chat import ChatQuery, ChatResult, ChatStreamResult
from corvid.config import Configuration
from corvid.embeddings import EmbeddingsQuery, EmbeddingsResult
from corvid.errors import APIErrorResponse, APIResponseError, EmptyDataError
from corvid.images import (
    ImageEditsQuery,
    ImagesQuery,
    ImagesResult,
    ImageVariationsQuery,
)
from corvid.instrumentation import record_error, record_usage, request_span
from corvid.models import ModelQuery, ModelResult, ModelsResult
from corvid.moderations import ModerationsQuery, ModerationsResult
from corvid.registry import SessionRegistry
from corvid.request import (
    APIPath,
    JSONRequest,
    MultipartFormDataRequest,
    build_url,
)
from corvid.streaming import StreamingSession

logger = logging.getLogger(__name__)

ResultT = TypeVar("ResultT", bound=BaseModel)

Request = JSONRequest | MultipartFormDataRequest


def decode_response(data: bytes, result_type: type[ResultT]) -> ResultT:
    """Decode a complete response body.

    A body that is not a ``result_type`` but is a structured API error
    raises :class:`APIResponseError`; anything else re-raises the
    original validation error.
    """
    if not data:
        raise EmptyDataError("response has no body")
    try:
        return result_type.model_validate_json(data)
    except ValidationError as exc:
        decode_error = exc
    try:
        api_error = APIErrorResponse.model_validate_json(data)
    except ValidationError:
        raise decode_error from None
    raise APIResponseError(api_error)


def _raise_for_error_body(response: httpx.Response) -> None:
    # Binary endpoints only carry JSON when they fail.
    try:
        api_error = APIErrorResponse.model_validate_json(response.content)
    except ValidationError:
        response.raise_for_status()
    else:
        raise APIResponseError(api_error)


class OpenAI:
    """Async client for an OpenAI-compatible HTTP API.

    Plain endpoints are coroutines returning typed results. Streamed chat
    completions deliver events through callbacks; every open stream is
    held in ``streaming_sessions`` until it completes.

    Args:
        configuration: Connection settings. Read from the environment
            when omitted.
        transport: HTTP client used for every request. A default
            ``httpx.AsyncClient`` is created when omitted.
    """

    def __init__(
        self,
        configuration: Configuration | None = None,
        transport: httpx.AsyncClient | None = None,
    ):
        if configuration is None:
            configuration = Configuration.from_env()
        self.configuration = configuration
        self.transport = transport or httpx.AsyncClient()
        self.streaming_sessions: SessionRegistry[StreamingSession] = SessionRegistry()

    async def aclose(self) -> None:
        for session in self.streaming_sessions.snapshot():
            session.cancel()
        await self.transport.aclose()

    async def __aenter__(self) -> "OpenAI":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    # ------------------------------------------------------------------
    # Endpoints
    # ------------------------------------------------------------------

    async def chats(self, query: ChatQuery) -> ChatResult:
        request = JSONRequest(self.build_url(APIPath.CHATS), query)
        return await self._perform_request(
            request, ChatResult, operation="chat", model=query.model,
        )

    def chats_stream(
        self,
        query: ChatQuery,
        on_result: Callable[[ChatStreamResult], None],
        on_error: Callable[[Exception], None] | None = None,
        on_complete: Callable[[BaseException | None], None] | None = None,
    ) -> StreamingSession[ChatStreamResult]:
        """Stream a chat completion. Must be called with a running event loop.

        Returns immediately; ``on_result`` receives each delta as it
        arrives and ``on_complete`` fires once when the stream ends.
        """
        request = JSONRequest(
            self.build_url(APIPath.CHATS), query.make_streamable()
        )
        return self._perform_streaming_request(
            request, ChatStreamResult, on_result, on_error, on_complete,
            operation="chat", model=query.model,
        )

    async def embeddings(self, query: EmbeddingsQuery) -> EmbeddingsResult:
        request = JSONRequest(self.build_url(APIPath.EMBEDDINGS), query)
        return await self._perform_request(
            request, EmbeddingsResult, operation="embeddings", model=query.model,
        )

    async def images(self, query: ImagesQuery) -> ImagesResult:
        request = JSONRequest(self.build_url(APIPath.IMAGES), query)
        return await self._perform_request(
            request, ImagesResult, operation="generate_content", model=query.model,
        )

    async def image_edits(self, query: ImageEditsQuery) -> ImagesResult:
        request = MultipartFormDataRequest(self.build_url(APIPath.IMAGE_EDITS), query)
        return await self._perform_request(
            request, ImagesResult, operation="image_edits", model=query.model,
        )

    async def image_variations(self, query: ImageVariationsQuery) -> ImagesResult:
        request = MultipartFormDataRequest(
            self.build_url(APIPath.IMAGE_VARIATIONS), query
        )
        return await self._perform_request(
            request, ImagesResult, operation="image_variations", model=query.model,
        )

    async def model(self, query: ModelQuery) -> ModelResult:
        url = self.build_url(APIPath.with_path(APIPath.MODELS, query.model))
        request = JSONRequest(url, method="GET")
        return await self._perform_request(request, ModelResult, operation="model")

    async def models(self) -> ModelsResult:
        request = JSONRequest(self.build_url(APIPath.MODELS), method="GET")
        return await self._perform_request(request, ModelsResult, operation="models")

    async def moderations(self, query: ModerationsQuery) -> ModerationsResult:
        request = JSONRequest(self.build_url(APIPath.MODERATIONS), query)
        return await self._perform_request(
            request, ModerationsResult, operation="moderations", model=query.model,
        )

    async def audio_transcriptions(
        self, query: AudioTranscriptionQuery
    ) -> AudioTranscriptionResult:
        request = MultipartFormDataRequest(
            self.build_url(APIPath.AUDIO_TRANSCRIPTIONS), query
        )
        return await self._perform_request(
            request, AudioTranscriptionResult,
            operation="audio_transcriptions", model=query.model,
        )

    async def audio_translations(
        self, query: AudioTranslationQuery
    ) -> AudioTranslationResult:
        request = MultipartFormDataRequest(
            self.build_url(APIPath.AUDIO_TRANSLATIONS), query
        )
        return await self._perform_request(
            request, AudioTranslationResult,
            operation="audio_translations", model=query.model,
        )

    async def audio_create_speech(self, query: AudioSpeechQuery) -> AudioSpeechResult:
        request = JSONRequest(self.build_url(APIPath.AUDIO_SPEECH), query)
        return await self._perform_speech_request(request, model=query.model)

    # ------------------------------------------------------------------
    # Request execution
    # ------------------------------------------------------------------

    def build_url(self, path: str) -> str:
        return build_url(self.configuration, path)

    def _build(self, request: Request) -> httpx.Request:
        return request.build(
            token=self.configuration.token,
            organization_identifier=self.configuration.organization_identifier,
            timeout_interval=self.configuration.timeout_interval,
        )

    async def _perform_request(
        self,
        request: Request,
        result_type: type[ResultT],
        *,
        operation: str,
        model: str | None = None,
    ) -> ResultT:
        built = self._build(request)
        async with request_span(operation, model) as span:
            try:
                response = await self.transport.send(built)
                result = decode_response(response.content, result_type)
            except APIResponseError as e:
                logger.warning(f"{operation} failed: {e}")
                record_error(span, e)
                raise
            except Exception as e:
                record_error(span, e)
                raise
            record_usage(
                span, getattr(result, "usage", None),
                response_model=getattr(result, "model", None),
            )
            return result

    async def _perform_speech_request(
        self, request: JSONRequest, model: str | None = None
    ) -> AudioSpeechResult:
        built = self._build(request)
        async with request_span("speech", model) as span:
            try:
                response = await self.transport.send(built)
                if not response.content:
                    raise EmptyDataError("response has no body")
                if response.is_error:
                    _raise_for_error_body(response)
            except Exception as e:
                record_error(span, e)
                raise
            return AudioSpeechResult(audio=response.content)

    def _perform_streaming_request(
        self,
        request: Request,
        result_type: type[ResultT],
        on_result: Callable[[ResultT], None],
        on_error: Callable[[Exception], None] | None,
        on_complete: Callable[[BaseException | None], None] | None,
        *,
        operation: str,
        model: str | None = None,
    ) -> StreamingSession[ResultT]:
        session = StreamingSession(
            self._build(request), result_type, self.transport,
            operation=operation, model=model,
        )
        session.on_event = on_result
        session.on_error = on_error

        registry = self.streaming_sessions
        session_id = session.id

        def complete(error: BaseException | None) -> None:
            registry.remove(session_id)
            if on_complete is not None:
                on_complete(error)

        session.on_complete = complete
        session.perform()
        registry.add(session_id, session)
        logger.debug(f"Started stream {session_id} for {operation}")
        return session
