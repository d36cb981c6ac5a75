"""Models for condition-derived dietary guidance."""

from pydantic import BaseModel, Field


class ConditionDiet(BaseModel):
    """Dietary guidance derived for a medical condition."""

    condition: str
    foods_to_avoid: list[str] = Field(default_factory=list)
    foods_to_include: list[str] = Field(default_factory=list)
    source: str | None = None


class ConditionSummary(BaseModel):
    """Encyclopedia summary of a condition."""

    title: str
    extract: str
    categories: list[str] = Field(default_factory=list)
