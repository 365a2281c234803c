from typing import ClassVar

from pydantic import BaseModel

from corvid.request import MultipartQuery


class AudioSpeechQuery(BaseModel):
    model: str
    input: str
    voice: str
    response_format: str | None = None
    speed: float | None = None


class AudioSpeechResult(BaseModel):
    """Raw audio bytes in the format asked for by the query."""

    audio: bytes


class AudioFileQuery(MultipartQuery):
    """Upload of an audio ``file``; ``file_type`` is its extension, e.g. ``mp3``."""

    upload_fields: ClassVar[frozenset[str]] = frozenset({"file", "file_type"})

    file: bytes
    file_type: str
    model: str
    prompt: str | None = None
    temperature: float | None = None
    response_format: str | None = None

    def files(self) -> dict[str, tuple[str, bytes, str]]:
        return {
            "file": (
                f"audio.{self.file_type}",
                self.file,
                "application/octet-stream",
            )
        }


class AudioTranscriptionQuery(AudioFileQuery):
    language: str | None = None


class AudioTranslationQuery(AudioFileQuery):
    """Translate ``file`` into English text."""


class AudioTranscriptionResult(BaseModel):
    text: str


class AudioTranslationResult(BaseModel):
    text: str
