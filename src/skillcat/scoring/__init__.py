"""Trending score and tier policy."""

from skillcat.scoring.tiers import assign_tier, next_update_at
from skillcat.scoring.trending import append_snapshot, calculate_trending_score, compress_snapshots

__all__ = [
    "append_snapshot",
    "assign_tier",
    "calculate_trending_score",
    "compress_snapshots",
    "next_update_at",
]
