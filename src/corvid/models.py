from pydantic import BaseModel


class ModelQuery(BaseModel):
    model: str


class ModelResult(BaseModel):
    id: str
    object: str
    created: int | None = None
    owned_by: str


class ModelsResult(BaseModel):
    object: str
    data: list[ModelResult]
