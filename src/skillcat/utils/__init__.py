"""Utility helpers."""

from .parsing import canonical_skill_id, generate_slug, split_source
from .time import utc_now

__all__ = ["canonical_skill_id", "generate_slug", "split_source", "utc_now"]
