"""Category vocabulary and the direct / keyword / AI classifiers."""

from skillcat.classification.categories import CATEGORIES, CATEGORY_SLUGS, Category
from skillcat.classification.keyword import classify_by_keywords
from skillcat.classification.policy import ClassificationMethod, ClassificationResult, determine_method, try_direct_match

__all__ = [
    "CATEGORIES",
    "CATEGORY_SLUGS",
    "Category",
    "ClassificationMethod",
    "ClassificationResult",
    "classify_by_keywords",
    "determine_method",
    "try_direct_match",
]
