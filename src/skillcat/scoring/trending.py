"""Trending score and star-history compression.

``score = base * velocity * recency * activity * downloads``, rounded half-up
to two decimals. Every input is explicit (including ``now``) so the score is
reproducible from stored data alone.
"""

from __future__ import annotations

import math
from datetime import date, timedelta
from typing import TYPE_CHECKING

from skillcat.models.skill import StarSnapshot
from skillcat.utils.time import days_between

if TYPE_CHECKING:
    from collections.abc import Sequence
    from datetime import datetime

MAX_SNAPSHOTS = 20
RECENT_DAYS = 7
WEEKLY_DAYS = 56
SIGNIFICANT_CHANGE = 0.10

# (max days since last push, multiplier), checked in order.
ACTIVITY_STEPS: tuple[tuple[int, float], ...] = ((30, 1.0), (90, 0.9), (180, 0.7), (365, 0.5))
STALE_ACTIVITY_PENALTY = 0.3


def round_half_up(value: float, digits: int = 2) -> float:
    factor = 10**digits
    return math.floor(value * factor + 0.5) / factor


def base_score(stars: int) -> float:
    return math.log10(max(stars, 0) + 1) * 10


def stars_n_days_ago(snapshots: Sequence[StarSnapshot], days: int, current_stars: int, now: datetime) -> int:
    """Stars at the most recent snapshot on or before ``now - days``.

    Falls back to the earliest snapshot when all history is newer, and to
    ``current_stars`` when there is no history.
    """

    if not snapshots:
        return current_stars
    ordered = sorted(snapshots, key=lambda snap: snap.d)
    target = (now - timedelta(days=days)).date().isoformat()
    found: StarSnapshot | None = None
    for snap in ordered:
        if snap.d <= target:
            found = snap
        else:
            break
    return (found or ordered[0]).s


def acceleration(growth_7d: float, growth_30d: float) -> float:
    if growth_30d > 0.1:
        return growth_7d / growth_30d
    if growth_7d > 0:
        return 2.0
    return 1.0


def velocity_multiplier(growth_7d: float, growth_30d: float) -> float:
    raw = 1.0 + math.log2(growth_7d + 1) * min(acceleration(growth_7d, growth_30d), 3.0) * 0.4
    return min(5.0, max(1.0, raw))


def recency_boost(indexed_at: datetime, now: datetime) -> float:
    return max(1.0, 1.5 - days_between(indexed_at, now) / 14)


def activity_penalty(last_commit_at: datetime | None, now: datetime) -> float:
    """Staleness multiplier from the last push; unknown pushes are not penalised."""

    if last_commit_at is None:
        return 1.0
    days = math.floor(days_between(last_commit_at, now))
    for limit, multiplier in ACTIVITY_STEPS:
        if days <= limit:
            return multiplier
    return STALE_ACTIVITY_PENALTY


def download_boost(downloads_7d: int) -> float:
    return min(2.0, 1.0 + math.log2(max(downloads_7d, 0) + 1) * 0.15)


def calculate_trending_score(
    *,
    stars: int,
    snapshots: Sequence[StarSnapshot],
    indexed_at: datetime,
    last_commit_at: datetime | None,
    downloads_7d: int,
    now: datetime,
) -> float:
    growth_7d = max(0.0, (stars - stars_n_days_ago(snapshots, 7, stars, now)) / 7)
    growth_30d = max(0.0, (stars - stars_n_days_ago(snapshots, 30, stars, now)) / 30)
    score = (
        base_score(stars)
        * velocity_multiplier(growth_7d, growth_30d)
        * recency_boost(indexed_at, now)
        * activity_penalty(last_commit_at, now)
        * download_boost(downloads_7d)
    )
    return round_half_up(score)


def compress_snapshots(snapshots: Sequence[StarSnapshot], now: datetime) -> list[StarSnapshot]:
    """Thin star history down to at most ``MAX_SNAPSHOTS`` points.

    Lists at or under the cap come back unchanged. Otherwise kept are: the
    first and last point, every point from the last 7 days, the first point
    of each ISO week for the 8 weeks before that, the first point of each
    month before that, and any point more than 10% away from its predecessor.
    The newest kept points win when that is still over the cap, except that
    the first point always survives.
    """

    if len(snapshots) <= MAX_SNAPSHOTS:
        return list(snapshots)

    ordered = sorted(snapshots, key=lambda snap: snap.d)
    today = now.date()
    last = len(ordered) - 1
    weeks: set[tuple[int, int]] = set()
    months: set[tuple[int, int]] = set()
    kept: list[StarSnapshot] = []

    for index, snap in enumerate(ordered):
        day = date.fromisoformat(snap.d)
        age = (today - day).days
        keep = index in (0, last) or age <= RECENT_DAYS
        if age > RECENT_DAYS and age <= WEEKLY_DAYS:
            week = day.isocalendar()[:2]
            if week not in weeks:
                weeks.add(week)
                keep = True
        elif age > WEEKLY_DAYS:
            month = (day.year, day.month)
            if month not in months:
                months.add(month)
                keep = True
        if not keep and index > 0:
            previous = ordered[index - 1].s
            if previous > 0 and abs(snap.s - previous) / previous > SIGNIFICANT_CHANGE:
                keep = True
        if keep:
            kept.append(snap)

    if len(kept) > MAX_SNAPSHOTS:
        kept = [kept[0], *kept[-(MAX_SNAPSHOTS - 1) :]]
    return kept


def append_snapshot(snapshots: Sequence[StarSnapshot], stars: int, now: datetime) -> list[StarSnapshot]:
    """Record today's star count (replacing an earlier point from today) and compress."""

    today = now.date().isoformat()
    history = [snap for snap in snapshots if snap.d != today]
    history.append(StarSnapshot(d=today, s=max(stars, 0)))
    history.sort(key=lambda snap: snap.d)
    return compress_snapshots(history, now)
