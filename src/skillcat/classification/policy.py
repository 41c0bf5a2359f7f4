"""Classification admission policy: which method a record gets."""

from __future__ import annotations

from enum import StrEnum
from typing import TYPE_CHECKING

from pydantic import BaseModel, Field

if TYPE_CHECKING:
    from collections.abc import Collection, Iterable

    from skillcat.settings import Settings

MAX_CATEGORIES = 3


class ClassificationMethod(StrEnum):
    DIRECT = "direct"
    KEYWORD = "keyword"
    AI = "ai"


class SuggestedCategory(BaseModel):
    slug: str
    name: str
    description: str | None = None


class ClassificationResult(BaseModel):
    """1-3 category slugs, primary first."""

    categories: list[str] = Field(min_length=1, max_length=MAX_CATEGORIES)
    confidence: float = Field(ge=0.0, le=1.0)
    reasoning: str | None = None
    suggested_category: SuggestedCategory | None = None


def determine_method(owner: str, stars: int, settings: Settings) -> ClassificationMethod:
    """AI for popular repositories or known organisations, keyword matching for everything else."""

    if stars >= settings.ai_star_threshold:
        return ClassificationMethod.AI
    if owner.lower() in {org.lower() for org in settings.known_orgs}:
        return ClassificationMethod.AI
    return ClassificationMethod.KEYWORD


def try_direct_match(declared: Iterable[str] | None, vocabulary: Collection[str]) -> ClassificationResult | None:
    """Use author-declared categories that are already vocabulary slugs, if any."""

    if not declared:
        return None
    valid = [slug for slug in dict.fromkeys(item.strip().lower() for item in declared) if slug in vocabulary]
    if not valid:
        return None
    return ClassificationResult(
        categories=valid[:MAX_CATEGORIES],
        confidence=1.0,
        reasoning="Declared in SKILL.md front-matter",
    )
