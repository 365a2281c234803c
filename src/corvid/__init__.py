from corvid.client import OpenAI, decode_response
from corvid.config import Configuration, configure_logging
from corvid.errors import (
    APIError,
    APIErrorResponse,
    APIResponseError,
    CorvidError,
    EmptyDataError,
    IncompleteContentError,
    StreamingError,
    UnknownContentError,
)
from corvid.instrumentation import instrument, uninstrument
from corvid.streaming import StreamingSession

__all__ = [
    "APIError",
    "APIErrorResponse",
    "APIResponseError",
    "Configuration",
    "CorvidError",
    "EmptyDataError",
    "IncompleteContentError",
    "OpenAI",
    "StreamingError",
    "StreamingSession",
    "UnknownContentError",
    "configure_logging",
    "decode_response",
    "instrument",
    "uninstrument",
]
