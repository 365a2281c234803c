from pydantic import BaseModel


class APIError(BaseModel):
    """Error body returned by the service in place of a normal result."""

    message: str
    type: str | None = None
    param: str | None = None
    code: str | int | None = None


class APIErrorResponse(BaseModel):
    error: APIError


class CorvidError(Exception):
    """Base class for errors raised by the client itself."""


class EmptyDataError(CorvidError):
    """The response carried no body."""


class StreamingError(CorvidError):
    """A streamed chunk could not be turned into events."""


class UnknownContentError(StreamingError):
    """A chunk was not valid UTF-8 text."""


class IncompleteContentError(StreamingError):
    """The stream closed while a partial frame was still buffered.

    Args:
        fragment: The buffered frame text, including its ``data: `` prefix.
    """

    def __init__(self, fragment: str):
        super().__init__(f"stream closed with an incomplete frame: {fragment!r}")
        self.fragment = fragment


class APIResponseError(CorvidError):
    """The service answered with a structured error payload."""

    def __init__(self, response: APIErrorResponse):
        super().__init__(response.error.message)
        self.response = response

    @property
    def error(self) -> APIError:
        return self.response.error
