"""Optional OpenTelemetry instrumentation for corvid.

Call ``corvid.instrument()`` once at startup to enable tracing.
Requires ``opentelemetry-api`` to be installed; the client
works identically without it.
"""

import importlib.util
import logging
from contextlib import asynccontextmanager

logger = logging.getLogger(__name__)

_tracer = None

PROVIDER_NAME = "openai"


def instrument(*, tracer_name: str = "corvid") -> None:
    """Enable OpenTelemetry tracing for all client requests.

    Call once at startup, after configuring your TracerProvider.
    Requires ``opentelemetry-api``: ``pip install corvid[otel]``

    Example::

        from opentelemetry import trace
        from opentelemetry.sdk.trace import TracerProvider
        from opentelemetry.sdk.trace.export import (
            BatchSpanProcessor,
            ConsoleSpanExporter,
        )

        provider = TracerProvider()
        provider.add_span_processor(
            BatchSpanProcessor(ConsoleSpanExporter())
        )
        trace.set_tracer_provider(provider)

        import corvid
        corvid.instrument()

    Args:
        tracer_name: Name passed to ``trace.get_tracer()``.

    Raises:
        ImportError: If ``opentelemetry-api`` is not installed.
    """
    global _tracer
    if importlib.util.find_spec("opentelemetry.trace") is None:
        raise ImportError(
            "opentelemetry-api is required for instrumentation. "
            "Install it with: pip install corvid[otel]"
        )
    from opentelemetry import trace
    _tracer = trace.get_tracer(tracer_name)
    if isinstance(_tracer, trace.NoOpTracer):
        logger.info(
            "No TracerProvider configured, spans will be "
            "discarded. Set up a TracerProvider to export "
            "traces."
        )
    else:
        logger.info("corvid instrumentation enabled")


def uninstrument() -> None:
    """Disable OpenTelemetry tracing.

    Subsequent requests will not emit spans.
    """
    global _tracer
    _tracer = None


@asynccontextmanager
async def request_span(
    operation: str,
    model: str | None = None,
    *,
    streaming: bool = False,
):
    """Wrap one API exchange in a CLIENT span.

    The span covers the whole connection for streamed requests, so it
    ends only after the last chunk has been decoded.
    """
    if _tracer is None:
        yield None
        return
    from opentelemetry.trace import SpanKind

    attributes = {
        "gen_ai.operation.name": operation,
        "gen_ai.provider.name": PROVIDER_NAME,
    }
    if model:
        attributes["gen_ai.request.model"] = model
    if streaming:
        attributes["gen_ai.request.stream"] = True
    name = f"{operation} {model}" if model else operation
    with _tracer.start_as_current_span(
        name,
        kind=SpanKind.CLIENT,
        attributes=attributes,
    ) as span:
        yield span


def record_usage(
    span, usage, response_model: str | None = None
):
    """Set token-usage and response-model attributes on a span."""
    if span is None or usage is None:
        return
    if (
        hasattr(usage, "prompt_tokens")
        and usage.prompt_tokens is not None
    ):
        span.set_attribute(
            "gen_ai.usage.input_tokens",
            usage.prompt_tokens,
        )
    if (
        hasattr(usage, "completion_tokens")
        and usage.completion_tokens is not None
    ):
        span.set_attribute(
            "gen_ai.usage.output_tokens",
            usage.completion_tokens,
        )
    if response_model:
        span.set_attribute(
            "gen_ai.response.model", response_model
        )


def record_stream_stats(span, events: int, errors: int) -> None:
    """Record how many events and non-terminal errors a stream produced."""
    if span is None:
        return
    span.set_attribute("corvid.stream.events", events)
    span.set_attribute("corvid.stream.errors", errors)


def record_error(span, exception: BaseException) -> None:
    """Record an exception and set ERROR status on a span.

    Sets ``error.type`` per GenAI semantic conventions.
    No-ops when *span* is ``None`` (tracing disabled).
    """
    if span is None:
        return
    from opentelemetry.trace import StatusCode

    span.set_status(StatusCode.ERROR, str(exception))
    span.record_exception(exception)
    span.set_attribute(
        "error.type", type(exception).__qualname__
    )
