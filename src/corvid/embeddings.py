from pydantic import BaseModel

from corvid.chat import Usage


class EmbeddingsQuery(BaseModel):
    model: str
    input: str | list[str] | list[int] | list[list[int]]
    encoding_format: str | None = None
    dimensions: int | None = None
    user: str | None = None


class Embedding(BaseModel):
    object: str
    embedding: list[float]
    index: int


class EmbeddingsResult(BaseModel):
    object: str
    data: list[Embedding]
    model: str
    usage: Usage | None = None
