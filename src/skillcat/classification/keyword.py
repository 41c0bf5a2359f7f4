"""Keyword-scoring classifier."""

from __future__ import annotations

import re
from functools import lru_cache
from typing import TYPE_CHECKING

from skillcat.classification.policy import MAX_CATEGORIES, ClassificationResult

if TYPE_CHECKING:
    from collections.abc import Iterable

    from skillcat.classification.categories import Category

TAG_KEYWORD_BONUS = 3
TAG_SLUG_BONUS = 5
MATCHED_CONFIDENCE = 0.6
CATCH_ALL_CONFIDENCE = 0.3


@lru_cache(maxsize=1024)
def _word_pattern(keyword: str) -> re.Pattern[str]:
    return re.compile(rf"\b{re.escape(keyword.lower())}\b")


def score_categories(text: str, tags: Iterable[str], vocabulary: Iterable[Category]) -> dict[str, int]:
    """Whole-word keyword hits per category, plus bonuses for author tags naming a keyword or the slug."""

    lowered = text.lower()
    tag_set = {tag.strip().lower() for tag in tags if tag.strip()}
    scores: dict[str, int] = {}
    for category in vocabulary:
        score = 0
        for keyword in category.keywords:
            score += len(_word_pattern(keyword).findall(lowered))
            if keyword.lower() in tag_set:
                score += TAG_KEYWORD_BONUS
        if category.slug in tag_set:
            score += TAG_SLUG_BONUS
        if score > 0:
            scores[category.slug] = score
    return scores


def classify_by_keywords(
    text: str,
    tags: Iterable[str] | None,
    vocabulary: Iterable[Category],
    *,
    fallback_category: str = "productivity",
) -> ClassificationResult:
    scores = score_categories(text, tags or (), vocabulary)
    # Stable on ties: vocabulary order decides.
    ranked = sorted(scores.items(), key=lambda item: item[1], reverse=True)[:MAX_CATEGORIES]
    if not ranked:
        return ClassificationResult(
            categories=[fallback_category],
            confidence=CATCH_ALL_CONFIDENCE,
            reasoning=f"No keywords matched, defaulting to {fallback_category}",
        )
    return ClassificationResult(
        categories=[slug for slug, _ in ranked],
        confidence=MATCHED_CONFIDENCE,
        reasoning="Classified by keyword matching",
    )
