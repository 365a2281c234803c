"""Request descriptors and URL assembly.

A descriptor knows the URL, method and body of one API call. ``build``
turns it into an :class:`httpx.Request` carrying the credentials and
timeout, which is all the executor and the streaming decoder need.
"""

import json
from typing import ClassVar

import httpx
from pydantic import BaseModel

from corvid.config import Configuration


class APIPath:
    EMBEDDINGS = "/embeddings"
    CHATS = "/chat/completions"
    MODELS = "/models"
    MODERATIONS = "/moderations"

    AUDIO_SPEECH = "/audio/speech"
    AUDIO_TRANSCRIPTIONS = "/audio/transcriptions"
    AUDIO_TRANSLATIONS = "/audio/translations"

    IMAGES = "/images/generations"
    IMAGE_EDITS = "/images/edits"
    IMAGE_VARIATIONS = "/images/variations"

    @staticmethod
    def with_path(base: str, path: str) -> str:
        return f"{base}/{path}"


def build_url(configuration: Configuration, path: str) -> str:
    """Join host settings, base path, API version and endpoint path.

    Empty segments are skipped and slashes at segment edges collapsed,
    so ``base_path="/proxy/"`` and ``base_path="proxy"`` are equivalent.
    """
    segments = [
        segment.strip("/")
        for segment in (configuration.base_path, configuration.api_version, path)
        if segment.strip("/")
    ]
    return (
        f"{configuration.scheme}://{configuration.host}:{configuration.port}"
        f"/{'/'.join(segments)}"
    )


def _headers(token: str, organization_identifier: str | None) -> dict[str, str]:
    headers = {"Authorization": f"Bearer {token}"}
    if organization_identifier:
        headers["OpenAI-Organization"] = organization_identifier
    return headers


def _timeout(timeout_interval: float) -> dict:
    return {"timeout": httpx.Timeout(timeout_interval).as_dict()}


class MultipartQuery(BaseModel):
    """Query uploaded as ``multipart/form-data``.

    Subclasses list their binary fields in ``upload_fields`` and map them
    to file parts in :meth:`files`; every other field is sent as a form
    value.
    """

    upload_fields: ClassVar[frozenset[str]] = frozenset()

    def files(self) -> dict[str, tuple[str, bytes, str]]:
        raise NotImplementedError

    def form_data(self) -> dict[str, str]:
        fields = self.model_dump(
            mode="json", exclude_none=True, exclude=set(self.upload_fields)
        )
        return {
            name: value if isinstance(value, str) else json.dumps(value)
            for name, value in fields.items()
        }


class JSONRequest:
    """A request whose body, if any, is a JSON-encoded query."""

    def __init__(self, url: str, body: BaseModel | None = None, method: str = "POST"):
        self.url = url
        self.body = body
        self.method = method

    def build(
        self,
        token: str,
        organization_identifier: str | None,
        timeout_interval: float,
    ) -> httpx.Request:
        headers = _headers(token, organization_identifier)
        headers["Content-Type"] = "application/json"
        content = None
        if self.body is not None:
            content = self.body.model_dump_json(exclude_none=True).encode()
        return httpx.Request(
            self.method,
            self.url,
            headers=headers,
            content=content,
            extensions=_timeout(timeout_interval),
        )


class MultipartFormDataRequest:
    """A request uploading files along with form fields."""

    def __init__(self, url: str, body: MultipartQuery, method: str = "POST"):
        self.url = url
        self.body = body
        self.method = method

    def build(
        self,
        token: str,
        organization_identifier: str | None,
        timeout_interval: float,
    ) -> httpx.Request:
        return httpx.Request(
            self.method,
            self.url,
            headers=_headers(token, organization_identifier),
            data=self.body.form_data(),
            files=self.body.files(),
            extensions=_timeout(timeout_interval),
        )
