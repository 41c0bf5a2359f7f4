"""Tests for content fingerprints and the anti-duplication guard."""

from __future__ import annotations

from skillcat.ingestion.fingerprint import (
    ContentFingerprint,
    aggregate_hash,
    find_farmed_duplicate,
    find_private_twin,
    normalize_content,
)
from tests.factories import add_content_hash, add_skill


def test_normalize_content_ignores_layout() -> None:
    a = "# Title\r\n\r\n\r\n\r\n   body line   \r\n"
    b = "# Title\n\nbody line"
    assert normalize_content(a) == normalize_content(b)


def test_fingerprint_full_differs_normalized_matches() -> None:
    a = ContentFingerprint.of("# Title\n\n  body\n")
    b = ContentFingerprint.of("# Title\n\n\n\nbody")
    assert a.full != b.full
    assert a.normalized == b.normalized
    assert len(a.full) == 64


def test_aggregate_hash_is_order_independent() -> None:
    assert aggregate_hash({"a": "1", "b": "2"}) == aggregate_hash({"b": "2", "a": "1"})
    assert aggregate_hash({"a": "1"}) != aggregate_hash({"a": "2"})


def test_low_star_copy_of_popular_record_is_rejected(catalog, settings) -> None:
    fingerprint = ContentFingerprint.of("# Popular skill\n")
    original = add_skill(catalog, repo_owner="big", repo_name="skills", stars=5000)
    add_content_hash(catalog, original.id, "normalized", fingerprint.normalized)

    found = find_farmed_duplicate(catalog, fingerprint, skill_id="new", stars=99, settings=settings)
    assert found is not None
    assert found.id == original.id


def test_trusted_submission_is_accepted(catalog, settings) -> None:
    fingerprint = ContentFingerprint.of("# Popular skill\n")
    original = add_skill(catalog, repo_owner="big", repo_name="skills", stars=5000)
    add_content_hash(catalog, original.id, "normalized", fingerprint.normalized)

    assert find_farmed_duplicate(catalog, fingerprint, skill_id="new", stars=100, settings=settings) is None


def test_copy_of_modest_record_is_accepted(catalog, settings) -> None:
    fingerprint = ContentFingerprint.of("# Modest skill\n")
    original = add_skill(catalog, repo_owner="small", repo_name="skills", stars=999)
    add_content_hash(catalog, original.id, "normalized", fingerprint.normalized)

    assert find_farmed_duplicate(catalog, fingerprint, skill_id="new", stars=1, settings=settings) is None


def test_private_twin_matches_full_hash_only(catalog) -> None:
    fingerprint = ContentFingerprint.of("# Private skill\n")
    private = add_skill(catalog, repo_owner="user", repo_name="upload", visibility="private")
    add_content_hash(catalog, private.id, "full", fingerprint.full)

    assert find_private_twin(catalog, fingerprint).id == private.id
    assert find_private_twin(catalog, ContentFingerprint.of("# Private skill")) is None
