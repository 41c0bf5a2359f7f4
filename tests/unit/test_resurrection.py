"""Tests for resurrection of archived records."""

from __future__ import annotations

from datetime import timedelta

import pytest

from skillcat.models.skill import RepoMetadata, StarSnapshot
from skillcat.pipeline.archiver import archive_record
from skillcat.pipeline.resurrection import (
    ResurrectionReason,
    check_and_resurrect,
    find_archive_key,
    qualifies,
    run_resurrection_sweep,
)
from skillcat.storage.kv import get_json
from tests.factories import NOW, FakeRepo, add_categories, add_skill

OLD_PUSH = "2023-01-01T00:00:00Z"


async def _archived(ctx, name: str = "tools", **overrides):
    md_key = f"skills/acme/{name}/SKILL.md"
    values = {
        "repo_name": name,
        "stars": 2,
        "skill_md_path": md_key,
        "last_commit_at": NOW - timedelta(days=800),
        "star_snapshots": [{"d": "2026-01-01", "s": 2}],
    }
    values.update(overrides)
    record = add_skill(ctx.catalog, **values)
    await ctx.blobs.put_text(md_key, f"# {name}")
    add_categories(ctx.catalog, record.id, "git", "testing")
    await archive_record(ctx, record)
    return ctx.catalog.get(record.id)


def test_qualifies_on_stars_or_recent_push() -> None:
    recent = RepoMetadata(owner="a", name="b", stars=1, pushed_at=NOW - timedelta(days=90))
    stale = RepoMetadata(owner="a", name="b", stars=1, pushed_at=NOW - timedelta(days=91))
    assert qualifies(recent, 20, NOW, 90) is True
    assert qualifies(stale, 20, NOW, 90) is False
    assert qualifies(stale.model_copy(update={"stars": 20}), 20, NOW, 90) is True
    assert qualifies(stale.model_copy(update={"pushed_at": None}), 20, NOW, 90) is False


@pytest.mark.asyncio
async def test_on_demand_resurrection_restores_content_and_categories(ctx, fake_github) -> None:
    record = await _archived(ctx)
    archive_key = record.archive_key
    fake_github.add(FakeRepo("acme", "tools", stars=25, pushed_at=OLD_PUSH))

    result = await check_and_resurrect(ctx, record.id, ctx.settings.on_demand_star_threshold)

    assert result.resurrected
    restored = ctx.catalog.get(record.id)
    assert restored.tier == "cold"
    assert restored.archive_key is None
    assert restored.next_update_at is None
    assert restored.stars == 25
    assert restored.star_snapshots == [StarSnapshot(d="2026-01-01", s=2), StarSnapshot(d="2026-03-15", s=25)]
    assert ctx.catalog.categories_for(record.id) == ["git", "testing"]
    assert await ctx.blobs.get_text("skills/acme/tools/SKILL.md") == "# tools"
    assert not await ctx.blobs.exists(archive_key)


@pytest.mark.asyncio
async def test_below_threshold_stays_archived(ctx, fake_github) -> None:
    record = await _archived(ctx)
    fake_github.add(FakeRepo("acme", "tools", stars=5, pushed_at=OLD_PUSH))

    result = await check_and_resurrect(ctx, record.id, 20)

    assert result.reason is ResurrectionReason.BELOW_THRESHOLD
    assert ctx.catalog.get(record.id).tier == "archived"
    assert await ctx.blobs.exists(record.archive_key)


@pytest.mark.asyncio
async def test_recent_push_qualifies_without_stars(ctx, fake_github) -> None:
    record = await _archived(ctx)
    fake_github.add(FakeRepo("acme", "tools", stars=1, pushed_at="2026-03-01T00:00:00Z"))

    result = await check_and_resurrect(ctx, record.id, 50)

    assert result.resurrected
    assert ctx.catalog.get(record.id).last_commit_at.date().isoformat() == "2026-03-01"


@pytest.mark.asyncio
async def test_check_reports_why_nothing_happened(ctx) -> None:
    live = add_skill(ctx.catalog, repo_name="live")
    record = await _archived(ctx)

    assert (await check_and_resurrect(ctx, "missing", 20)).reason is ResurrectionReason.SKILL_NOT_FOUND
    assert (await check_and_resurrect(ctx, live.id, 20)).reason is ResurrectionReason.NOT_ARCHIVED
    assert (await check_and_resurrect(ctx, record.id, 20)).reason is ResurrectionReason.GITHUB_FETCH_FAILED


@pytest.mark.asyncio
async def test_missing_archive_blob_still_resurrects(ctx, fake_github) -> None:
    record = add_skill(ctx.catalog, stars=1, tier="archived", archive_key="archive/2026/02/gone.json")
    fake_github.add(FakeRepo("acme", "tools", stars=30, pushed_at=OLD_PUSH))

    result = await check_and_resurrect(ctx, record.id, 20)

    assert result.resurrected
    restored = ctx.catalog.get(record.id)
    assert restored.tier == "cold"
    assert restored.star_snapshots == [StarSnapshot(d="2026-03-15", s=30)]
    assert ctx.catalog.categories_for(record.id) == []


@pytest.mark.asyncio
async def test_find_archive_key_scans_when_stored_key_is_stale(ctx) -> None:
    record = add_skill(ctx.catalog, tier="archived", archive_key=None)
    moved = f"archive/2019/07/{record.id}.json"
    await ctx.blobs.put_json(moved, {"record": {}, "archived_at": NOW.isoformat()})

    assert await find_archive_key(ctx, record) == moved
    assert await find_archive_key(ctx, record.model_copy(update={"id": "other"})) is None


@pytest.mark.asyncio
async def test_quarterly_sweep(ctx, fake_github) -> None:
    popular = await _archived(ctx, "popular")
    quiet = await _archived(ctx, "quiet")
    gone = await _archived(ctx, "gone")
    fake_github.add(FakeRepo("acme", "popular", stars=60, pushed_at=OLD_PUSH))
    fake_github.add(FakeRepo("acme", "quiet", stars=30, pushed_at=OLD_PUSH))

    stats = await run_resurrection_sweep(ctx)

    assert stats == {"checked": 3, "resurrected": 1, "failed": 1}
    assert ctx.catalog.get(popular.id).tier == "cold"
    assert ctx.catalog.get(quiet.id).tier == "archived"
    assert ctx.catalog.get(gone.id).tier == "archived"
    assert fake_github.calls["graphql"] == 1
    assert get_json(ctx.kv, "metrics:resurrection:2026-Q1") == stats


@pytest.mark.asyncio
async def test_check_reports_fetch_failure_on_server_error(ctx, fake_github, no_retry_wait) -> None:
    record = await _archived(ctx)
    fake_github.add(FakeRepo("acme", "tools", stars=60, pushed_at=OLD_PUSH))
    fake_github.rest_status = 503

    result = await check_and_resurrect(ctx, record.id, 20)

    assert result.reason is ResurrectionReason.GITHUB_FETCH_FAILED
    assert ctx.catalog.get(record.id).tier == "archived"


@pytest.mark.asyncio
async def test_quarterly_sweep_counts_failed_batches(ctx, fake_github, no_retry_wait) -> None:
    popular = await _archived(ctx, "popular")
    fake_github.add(FakeRepo("acme", "popular", stars=60, pushed_at=OLD_PUSH))
    fake_github.graphql_status = 503

    stats = await run_resurrection_sweep(ctx)

    assert stats == {"checked": 1, "resurrected": 0, "failed": 1}
    assert ctx.catalog.get(popular.id).tier == "archived"
    assert fake_github.calls["graphql"] == 4
