"""Incremental decoder for server-streamed API responses.

A :class:`StreamingSession` owns one streaming HTTP exchange. Chunks are
fed to :meth:`StreamingSession.receive` in the order the transport
delivers them; each ``data: `` payload becomes an ``on_event`` call, an
``on_error`` call, or, when it is the truncated tail of a chunk, a
fragment held until the next chunk arrives. ``on_complete`` fires exactly
once when the exchange ends.
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from collections.abc import Callable
from typing import Generic, TypeVar

import httpx
from pydantic import TypeAdapter, ValidationError

from corvid.errors import (
    APIErrorResponse,
    APIResponseError,
    IncompleteContentError,
    UnknownContentError,
)
from corvid.instrumentation import (
    record_error,
    record_stream_stats,
    request_span,
)
from corvid.sse import DATA_PREFIX, DONE_MARKER, is_pending_prefix, split_frames

logger = logging.getLogger(__name__)

ResultT = TypeVar("ResultT")


class StreamingSession(Generic[ResultT]):
    """One streamed request and its reassembly state.

    Callbacks run on the event loop that called :meth:`perform`. Decode
    problems are delivered through ``on_error`` and never end the
    session; only the end of the connection does, through
    ``on_complete``.

    Args:
        request: The fully built request, auth headers included.
        result_type: Type each payload is validated against.
        transport: Client used to send the request.
        operation: Operation name reported on the tracing span.
        model: Model name reported on the tracing span.
    """

    def __init__(
        self,
        request: httpx.Request,
        result_type: type[ResultT],
        transport: httpx.AsyncClient,
        *,
        operation: str = "stream",
        model: str | None = None,
    ):
        self.id = uuid.uuid4().hex
        self.request = request
        self.result_type = result_type
        self.on_event: Callable[[ResultT], None] | None = None
        self.on_error: Callable[[Exception], None] | None = None
        self.on_complete: Callable[[BaseException | None], None] | None = None
        self.event_count = 0
        self.error_count = 0

        self._transport = transport
        self._adapter = TypeAdapter(result_type)
        self._operation = operation
        self._model = model
        self._buffer = ""
        self._task: asyncio.Task | None = None
        self._completed = False

    @property
    def completed(self) -> bool:
        return self._completed

    @property
    def pending_fragment(self) -> str:
        """Text held back from the last chunk, empty when nothing is pending."""
        return self._buffer

    def perform(self) -> None:
        """Start the exchange on the running event loop and return at once."""
        if self._task is not None:
            raise RuntimeError(f"session {self.id} already started")
        self._task = asyncio.get_running_loop().create_task(
            self._run(), name=f"corvid-stream-{self.id}"
        )
        self._task.add_done_callback(self._task_done)

    def cancel(self) -> None:
        """Abort the exchange. ``on_complete`` still fires once."""
        if self._task is None:
            self._finish(asyncio.CancelledError())
        elif not self._task.done():
            self._task.cancel()

    async def wait(self) -> None:
        """Wait until the session has terminated, whatever the outcome."""
        if self._task is not None:
            await asyncio.wait({self._task})

    def receive(self, chunk: bytes) -> None:
        """Decode one transport chunk and dispatch its events."""
        if self._completed:
            return
        try:
            text = chunk.decode("utf-8")
        except UnicodeDecodeError:
            self._emit_error(
                UnknownContentError(f"chunk of {len(chunk)} bytes is not UTF-8 text")
            )
            return
        if not text:
            return

        frames = split_frames(self._buffer + text)
        self._buffer = frames.tail
        payloads = frames.payloads
        if not payloads:
            return
        if payloads[0] == DONE_MARKER:
            # Nothing after the terminator belongs to this stream.
            self._buffer = ""
            return

        # Only one fragment can be held; a prefix tail already is one.
        last = len(payloads) - 1 if not frames.tail else -1
        for index, payload in enumerate(payloads):
            if payload == DONE_MARKER:
                continue
            try:
                value = self._adapter.validate_json(payload)
            except ValidationError as exc:
                self._undecodable(
                    payload, exc,
                    is_last=index == last,
                    terminated=frames.last_terminated,
                )
                continue
            self.event_count += 1
            if self.on_event is not None:
                self.on_event(value)

    def _undecodable(
        self, payload: str, exc: ValidationError, is_last: bool, terminated: bool
    ) -> None:
        api_error = self._decode_api_error(payload)
        if api_error is not None:
            self._emit_error(api_error)
        elif is_last:
            logger.debug(f"Holding partial frame in session {self.id}")
            # Keep the newline so the frame re-enters the parser verbatim.
            self._buffer = DATA_PREFIX + payload + ("\n" if terminated else "")
        else:
            logger.debug(f"Undecodable payload in session {self.id}: {exc}")
            self._emit_error(exc)

    def _decode_api_error(self, body: str | bytes) -> APIResponseError | None:
        try:
            api_error = APIErrorResponse.model_validate_json(body)
        except ValidationError:
            return None
        logger.warning(f"API error in session {self.id}: {api_error.error.message}")
        return APIResponseError(api_error)

    def _emit_error(self, error: Exception) -> None:
        self.error_count += 1
        if self.on_error is not None:
            self.on_error(error)

    async def _run(self) -> None:
        async with request_span(
            self._operation, self._model, streaming=True
        ) as span:
            error: BaseException | None = None
            try:
                await self._exchange()
            except asyncio.CancelledError as exc:
                error = exc
                raise
            except httpx.HTTPError as exc:
                logger.warning(f"Stream {self.id} ended with transport error: {exc}")
                error = exc
            except Exception as exc:
                logger.exception(f"Stream {self.id} aborted by a callback")
                error = exc
            finally:
                record_stream_stats(span, self.event_count, self.error_count)
                if error is not None:
                    record_error(span, error)
                self._finish(error)

    async def _exchange(self) -> None:
        response = await self._transport.send(self.request, stream=True)
        try:
            if response.is_error:
                await self._reject(response)
                response.raise_for_status()
            async for chunk in response.aiter_bytes():
                self.receive(chunk)
        finally:
            await response.aclose()

        fragment, self._buffer = self._buffer, ""
        if fragment and not is_pending_prefix(fragment):
            self._emit_error(IncompleteContentError(fragment))

    async def _reject(self, response: httpx.Response) -> None:
        api_error = self._decode_api_error(await response.aread())
        if api_error is None:
            logger.debug(f"Stream {self.id} got HTTP {response.status_code} without an error body")
            return
        self._emit_error(api_error)

    def _task_done(self, task: asyncio.Task) -> None:
        # Covers a task cancelled before its first step.
        if task.cancelled():
            self._finish(asyncio.CancelledError())
        else:
            self._finish(task.exception())

    def _finish(self, error: BaseException | None) -> None:
        if self._completed:
            return
        self._completed = True
        self._buffer = ""
        if self.on_complete is not None:
            self.on_complete(error)
