"""Return archived records to the live catalog when they show signs of life."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from datetime import timedelta
from enum import StrEnum
from typing import TYPE_CHECKING

import httpx
from loguru import logger

from skillcat.clients.http import RetryableStatusError
from skillcat.errors import GitHubError
from skillcat.models.skill import ArchiveBlob, StarSnapshot
from skillcat.pipeline.archiver import ARCHIVE_PREFIX, archive_key_for
from skillcat.scoring.trending import append_snapshot, calculate_trending_score
from skillcat.storage.catalog import chunked, row_values
from skillcat.storage.db import SkillCategoryRow
from skillcat.storage.kv import increment_counters
from skillcat.utils.time import quarter_key

if TYPE_CHECKING:
    from datetime import datetime

    from skillcat.models.skill import CatalogRecord, RepoMetadata
    from skillcat.pipeline.context import PipelineContext

SWEEP_CHUNK_SIZE = 50


class ResurrectionReason(StrEnum):
    SKILL_NOT_FOUND = "skill_not_found"
    NOT_ARCHIVED = "not_archived"
    GITHUB_FETCH_FAILED = "github_fetch_failed"
    BELOW_THRESHOLD = "below_threshold"
    RESURRECTED = "resurrected"
    RESURRECTION_FAILED = "resurrection_failed"


@dataclass(frozen=True)
class ResurrectionResult:
    skill_id: str
    reason: ResurrectionReason

    @property
    def resurrected(self) -> bool:
        return self.reason is ResurrectionReason.RESURRECTED


def qualifies(repo: RepoMetadata, star_threshold: int, now: datetime, recent_days: int) -> bool:
    """Enough stars, or a push within ``recent_days``."""

    if repo.stars >= star_threshold:
        return True
    return repo.pushed_at is not None and now - repo.pushed_at <= timedelta(days=recent_days)


async def find_archive_key(ctx: PipelineContext, record: CatalogRecord) -> str | None:
    """Stored key, then the expected key, then a scan of the archive prefix."""

    for candidate in dict.fromkeys(key for key in (record.archive_key, archive_key_for(record)) if key):
        if await ctx.blobs.exists(candidate):
            return candidate
    suffix = f"/{record.id}.json"
    return next((key for key in ctx.blobs.list_keys(ARCHIVE_PREFIX) if key.endswith(suffix)), None)


async def resurrect_record(ctx: PipelineContext, record: CatalogRecord, repo: RepoMetadata | None = None) -> None:
    """Restore content, star history and categories; tier becomes ``cold``; the archive blob is deleted last.

    A missing archive blob still returns the record to ``cold`` so it can be
    re-indexed from the source repository.
    """

    now = ctx.now()
    key = await find_archive_key(ctx, record)
    blob: ArchiveBlob | None = None
    if key is not None:
        raw = await ctx.blobs.get_json(key)
        blob = ArchiveBlob.model_validate(raw) if raw else None
    if blob is None:
        logger.warning("No archive blob for {}; resurrecting without cached content", record.slug)

    if blob is not None and blob.skill_md_content is not None and record.skill_md_path:
        await ctx.blobs.put_text(record.skill_md_path, blob.skill_md_content)

    stars = repo.stars if repo is not None else record.stars
    last_commit_at = repo.pushed_at if repo is not None else record.last_commit_at
    history = [StarSnapshot.model_validate(point) for point in (blob.record.get("star_snapshots") or [])] if blob else []
    snapshots = append_snapshot(history, stars, now)

    statements = [
        ctx.catalog.update_skill(
            record.id,
            tier="cold",
            next_update_at=None,
            archive_key=None,
            stars=stars,
            forks=repo.forks if repo is not None else record.forks,
            last_commit_at=last_commit_at,
            star_snapshots=[point.model_dump() for point in snapshots],
            trending_score=calculate_trending_score(
                stars=stars,
                snapshots=snapshots,
                indexed_at=record.indexed_at,
                last_commit_at=last_commit_at,
                downloads_7d=record.download_count_7d,
                now=now,
            ),
            updated_at=now,
        )
    ]
    for position, slug in enumerate(blob.categories if blob else []):
        link = SkillCategoryRow(skill_id=record.id, category_slug=slug, is_primary=position == 0, created_at=now)
        statements.append(ctx.catalog.insert_ignore(SkillCategoryRow).values(**row_values(link)))
    ctx.catalog.write_batch(statements)

    if key is not None:
        await ctx.blobs.delete(key)
    logger.info("Resurrected {} ({} stars)", record.slug, stars)


async def check_and_resurrect(
    ctx: PipelineContext,
    skill_id: str,
    star_threshold: int,
    *,
    repo: RepoMetadata | None = None,
) -> ResurrectionResult:
    """Shared check of the quarterly sweep and on-demand visits. ``repo`` skips the metadata fetch."""

    record = ctx.catalog.get(skill_id)
    if record is None:
        return ResurrectionResult(skill_id, ResurrectionReason.SKILL_NOT_FOUND)
    if record.tier != "archived":
        return ResurrectionResult(skill_id, ResurrectionReason.NOT_ARCHIVED)

    if repo is None:
        try:
            repo = await ctx.github.get_repo(record.repo_owner, record.repo_name)
        except (httpx.HTTPError, RetryableStatusError, GitHubError) as exc:
            logger.warning("Metadata fetch for {} failed: {}", record.slug, exc)
        if repo is None:
            return ResurrectionResult(skill_id, ResurrectionReason.GITHUB_FETCH_FAILED)

    if not qualifies(repo, star_threshold, ctx.now(), ctx.settings.recent_activity_days):
        return ResurrectionResult(skill_id, ResurrectionReason.BELOW_THRESHOLD)

    try:
        await resurrect_record(ctx, record, repo)
    except Exception:
        logger.exception("Resurrection of {} failed", record.slug)
        return ResurrectionResult(skill_id, ResurrectionReason.RESURRECTION_FAILED)
    return ResurrectionResult(skill_id, ResurrectionReason.RESURRECTED)


async def run_resurrection_sweep(ctx: PipelineContext) -> dict[str, int]:
    """Check every archived record in GraphQL-batched chunks with a fixed pause between chunks."""

    now = ctx.now()
    threshold = ctx.settings.quarterly_star_threshold
    stats = {"checked": 0, "resurrected": 0, "failed": 0}
    archived = ctx.catalog.select_archived()

    for index, chunk in enumerate(chunked(archived, SWEEP_CHUNK_SIZE)):
        if index:
            await asyncio.sleep(ctx.settings.resurrection_batch_delay_seconds)
        metadata = await ctx.github.fetch_repos_batch(
            {record.id: (record.repo_owner, record.repo_name) for record in chunk}
        )
        for record in chunk:
            stats["checked"] += 1
            repo = metadata.get(record.id)
            if repo is None:
                stats["failed"] += 1
                continue
            result = await check_and_resurrect(ctx, record.id, threshold, repo=repo)
            if result.resurrected:
                stats["resurrected"] += 1
            elif result.reason is ResurrectionReason.RESURRECTION_FAILED:
                stats["failed"] += 1

    increment_counters(ctx.kv, f"metrics:resurrection:{quarter_key(now)}", stats)
    logger.info("Resurrection sweep: {resurrected}/{checked} resurrected, {failed} failed", **stats)
    return stats
