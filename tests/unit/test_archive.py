"""Tests for archival of inactive records."""

from __future__ import annotations

from datetime import timedelta

import pytest

from skillcat.models.skill import ArchiveBlob
from skillcat.pipeline.archiver import archive_key_for, archive_record, cached_file_keys, run_archive
from skillcat.storage.kv import get_json
from tests.factories import NOW, add_categories, add_skill

MD_KEY = "skills/acme/tools/SKILL.md"


def _file_structure() -> dict:
    return {
        "commit_sha": "c0ffee01",
        "indexed_at": (NOW - timedelta(days=800)).isoformat(),
        "files": [
            {"path": "SKILL.md", "sha": "a", "size": 7, "type": "text"},
            {"path": "docs/ref.md", "sha": "b", "size": 3, "type": "text"},
            {"path": "logo.png", "sha": "c", "size": 900, "type": "binary"},
        ],
    }


async def _add_inactive(ctx, **overrides):
    values = {
        "stars": 2,
        "tier": "cold",
        "last_accessed_at": NOW - timedelta(days=400),
        "last_commit_at": NOW - timedelta(days=800),
        "skill_md_path": MD_KEY,
        "file_structure": _file_structure(),
        "content_commit_sha": "c0ffee01",
        "star_snapshots": [{"d": "2026-01-01", "s": 2}],
    }
    values.update(overrides)
    record = add_skill(ctx.catalog, **values)
    await ctx.blobs.put_text(MD_KEY, "# Tools")
    await ctx.blobs.put_text("skills/acme/tools/docs/ref.md", "ref")
    add_categories(ctx.catalog, record.id, "git", "testing")
    return record


def test_archive_key_uses_creation_month(catalog) -> None:
    record = add_skill(catalog)
    assert archive_key_for(record) == f"archive/2026/02/{record.id}.json"


def test_cached_file_keys_cover_only_text_files(catalog) -> None:
    record = add_skill(catalog, skill_md_path=MD_KEY, file_structure=_file_structure())
    assert cached_file_keys(record) == [MD_KEY, "skills/acme/tools/docs/ref.md"]


@pytest.mark.asyncio
async def test_archive_record_writes_blob_and_clears_live_data(ctx) -> None:
    record = await _add_inactive(ctx)

    key = await archive_record(ctx, record)

    assert key == archive_key_for(record)
    blob = ArchiveBlob.model_validate(await ctx.blobs.get_json(key))
    assert blob.categories == ["git", "testing"]
    assert blob.skill_md_content == "# Tools"
    assert blob.archived_at == NOW
    assert blob.record["star_snapshots"] == [{"d": "2026-01-01", "s": 2}]
    assert not await ctx.blobs.exists(MD_KEY)
    assert not await ctx.blobs.exists("skills/acme/tools/docs/ref.md")

    archived = ctx.catalog.get(record.id)
    assert archived.tier == "archived"
    assert archived.archive_key == key
    assert archived.next_update_at is None
    assert archived.file_structure is None
    assert archived.content_commit_sha is None
    assert archived.star_snapshots == []
    assert ctx.catalog.categories_for(record.id) == []


@pytest.mark.asyncio
async def test_rerun_after_partial_archive_keeps_previous_content(ctx) -> None:
    record = await _add_inactive(ctx)
    key = await archive_record(ctx, record)

    again = await archive_record(ctx, ctx.catalog.get(record.id))

    assert again == key
    blob = ArchiveBlob.model_validate(await ctx.blobs.get_json(key))
    assert blob.categories == ["git", "testing"]
    assert blob.skill_md_content == "# Tools"


@pytest.mark.asyncio
async def test_run_archive_selects_only_candidates(ctx) -> None:
    candidate = await _add_inactive(ctx)
    popular = add_skill(
        ctx.catalog,
        repo_name="popular",
        stars=10,
        last_accessed_at=NOW - timedelta(days=400),
        last_commit_at=NOW - timedelta(days=800),
    )
    visited = add_skill(
        ctx.catalog,
        repo_name="visited",
        stars=1,
        last_accessed_at=NOW - timedelta(days=365),
        last_commit_at=None,
    )
    private = add_skill(ctx.catalog, repo_name="private", stars=0, visibility="private")

    stats = await run_archive(ctx)

    assert stats == {"candidates": 1, "archived": 1, "failed": 0}
    assert ctx.catalog.get(candidate.id).tier == "archived"
    for record in (popular, visited, private):
        assert ctx.catalog.get(record.id).tier == record.tier
    assert get_json(ctx.kv, "metrics:archive:2026-03") == stats

    assert await run_archive(ctx) == {"candidates": 0, "archived": 0, "failed": 0}
