"""Tests for tier assignment and archive eligibility."""

from __future__ import annotations

from datetime import timedelta

import pytest

from skillcat.scoring.tiers import assign_tier, next_update_at
from tests.factories import NOW, add_skill


@pytest.mark.parametrize(
    ("stars", "expected"),
    [(5000, "hot"), (1000, "hot"), (999, "warm"), (100, "warm"), (99, "cool"), (10, "cool"), (9, "cold"), (0, "cold")],
)
def test_tier_by_stars(stars: int, expected: str) -> None:
    assert assign_tier(stars, None, NOW) == expected


@pytest.mark.parametrize(
    ("days", "expected"),
    [(0, "hot"), (7, "hot"), (8, "warm"), (30, "warm"), (31, "cool"), (90, "cool"), (91, "cold")],
)
def test_tier_by_recent_access(days: int, expected: str) -> None:
    assert assign_tier(0, NOW - timedelta(days=days), NOW) == expected


def test_stars_and_access_take_the_hotter_tier() -> None:
    assert assign_tier(50, NOW - timedelta(days=91), NOW) == "cool"
    assert assign_tier(5, NOW - timedelta(days=10), NOW) == "warm"
    assert assign_tier(150, NOW - timedelta(days=2), NOW) == "hot"


def test_next_update_intervals() -> None:
    assert next_update_at("hot", NOW) == NOW + timedelta(hours=6)
    assert next_update_at("warm", NOW) == NOW + timedelta(hours=24)
    assert next_update_at("cool", NOW) == NOW + timedelta(days=7)
    assert next_update_at("cold", NOW) is None
    assert next_update_at("archived", NOW) is None


def _candidate_ids(catalog) -> set[str]:
    return {record.id for record in catalog.select_archive_candidates(NOW, 100)}


def test_archive_candidate_scenario(catalog) -> None:
    record = add_skill(
        catalog,
        stars=2,
        tier="cold",
        last_accessed_at=NOW - timedelta(days=400),
        last_commit_at=NOW - timedelta(days=800),
    )
    assert _candidate_ids(catalog) == {record.id}


@pytest.mark.parametrize(
    "overrides",
    [
        {"stars": 5},
        {"visibility": "private"},
        {"tier": "archived"},
        {"last_accessed_at": NOW - timedelta(days=365)},
        {"last_commit_at": NOW - timedelta(days=730)},
    ],
)
def test_not_archive_candidate(catalog, overrides: dict) -> None:
    values = {
        "stars": 2,
        "last_accessed_at": NOW - timedelta(days=400),
        "last_commit_at": NOW - timedelta(days=800),
    }
    values.update(overrides)
    add_skill(catalog, **values)
    assert _candidate_ids(catalog) == set()


def test_unknown_activity_counts_as_inactive(catalog) -> None:
    record = add_skill(catalog, stars=0, last_accessed_at=None, last_commit_at=None)
    assert _candidate_ids(catalog) == {record.id}
