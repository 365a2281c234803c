from pydantic import BaseModel


class ModerationsQuery(BaseModel):
    input: str | list[str]
    model: str | None = None


class Moderation(BaseModel):
    flagged: bool
    categories: dict[str, bool]
    category_scores: dict[str, float]


class ModerationsResult(BaseModel):
    id: str
    model: str
    results: list[Moderation]
