"""Tier assignment and re-update scheduling."""

from __future__ import annotations

from datetime import timedelta
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from datetime import datetime

    from skillcat.models.skill import Tier

# (tier, minimum stars, access window in days), checked in order; ``cold`` otherwise.
TIER_RULES: tuple[tuple[Tier, int, int], ...] = (
    ("hot", 1000, 7),
    ("warm", 100, 30),
    ("cool", 10, 90),
)

UPDATE_INTERVALS: dict[str, timedelta | None] = {
    "hot": timedelta(hours=6),
    "warm": timedelta(hours=24),
    "cool": timedelta(days=7),
    "cold": None,
    "archived": None,
}

ARCHIVE_MAX_STARS = 5
ARCHIVE_ACCESS_DAYS = 365
ARCHIVE_PUSH_DAYS = 730


def assign_tier(stars: int, last_accessed_at: datetime | None, now: datetime) -> Tier:
    """Pure tier function. Never returns ``archived``; only the archiver sets that."""

    for tier, min_stars, window_days in TIER_RULES:
        if stars >= min_stars:
            return tier
        if last_accessed_at is not None and now - last_accessed_at <= timedelta(days=window_days):
            return tier
    return "cold"


def next_update_at(tier: str, now: datetime) -> datetime | None:
    """``now`` plus the tier interval; ``None`` means only refresh on access."""

    interval = UPDATE_INTERVALS[tier]
    return now + interval if interval is not None else None

