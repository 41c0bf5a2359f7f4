"""Hourly tier pass: flagged records first, then due hot, warm and cool records."""

from __future__ import annotations

from datetime import timedelta
from typing import TYPE_CHECKING

from loguru import logger

from skillcat.models.messages import ClassificationMessage
from skillcat.scoring.tiers import assign_tier, next_update_at
from skillcat.scoring.trending import append_snapshot, calculate_trending_score
from skillcat.storage.kv import put_json
from skillcat.utils.time import hour_key

if TYPE_CHECKING:
    from collections.abc import Sequence
    from datetime import datetime

    from sqlalchemy.sql import Executable

    from skillcat.models.skill import CatalogRecord, RepoMetadata
    from skillcat.pipeline.context import PipelineContext

FLAG_PREFIX = "needs_update:"
METRICS_TTL_SECONDS = int(timedelta(days=7).total_seconds())


def flag_key(skill_id: str) -> str:
    return f"{FLAG_PREFIX}{skill_id}"


def refresh_statement(ctx: PipelineContext, record: CatalogRecord, repo: RepoMetadata | None, now: datetime) -> Executable:
    """Rescore and reschedule one record. Without fresh metadata the stored values are reused."""

    if repo is not None:
        stars, forks, last_commit_at = repo.stars, repo.forks, repo.pushed_at
        snapshots = append_snapshot(record.star_snapshots, stars, now)
    else:
        stars, forks, last_commit_at = record.stars, record.forks, record.last_commit_at
        snapshots = list(record.star_snapshots)

    tier = assign_tier(stars, record.last_accessed_at, now)
    return ctx.catalog.update_skill(
        record.id,
        stars=stars,
        forks=forks,
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
        tier=tier,
        next_update_at=next_update_at(tier, now),
        updated_at=now,
    )


def crossed_ai_threshold(record: CatalogRecord, repo: RepoMetadata | None, threshold: int) -> bool:
    """Stars just crossed the AI threshold while the record still carries a keyword classification."""

    return (
        repo is not None
        and record.classification_method == "keyword"
        and record.stars < threshold <= repo.stars
    )


async def refresh_records(ctx: PipelineContext, records: Sequence[CatalogRecord], now: datetime) -> dict[str, int]:
    """Batch-fetch metadata, enqueue reclassifications, then write one batch of updates.

    Stored star counts change only after every reclassification message is
    queued; until then the threshold crossing is still detectable.
    """

    stats = {"updated": 0, "fetch_failures": 0, "tier_changes": 0, "reclassified": 0}
    if not records:
        return stats

    metadata = await ctx.github.fetch_repos_batch({record.id: (record.repo_owner, record.repo_name) for record in records})
    statements = []
    for record in records:
        repo = metadata.get(record.id)
        if repo is None:
            stats["fetch_failures"] += 1
        statements.append(refresh_statement(ctx, record, repo, now))
        stars = repo.stars if repo is not None else record.stars
        if assign_tier(stars, record.last_accessed_at, now) != record.tier:
            stats["tier_changes"] += 1

    threshold = ctx.settings.ai_star_threshold
    for record in records:
        repo = metadata.get(record.id)
        if not crossed_ai_threshold(record, repo, threshold) or not record.skill_md_path:
            continue
        ctx.classification_queue.send(
            ClassificationMessage(
                skill_id=record.id,
                repo_owner=record.repo_owner,
                repo_name=record.repo_name,
                skill_md_path=record.skill_md_path,
                stars=repo.stars,  # type: ignore[union-attr]
                is_reclassification=True,
            )
        )
        stats["reclassified"] += 1
        logger.info("{} crossed {} stars; queued for AI reclassification", record.slug, threshold)

    ctx.catalog.write_batch(statements)
    stats["updated"] = len(statements)
    return stats


def _merge(total: dict[str, int], part: dict[str, int]) -> None:
    for name, value in part.items():
        total[name] = total.get(name, 0) + value


async def run_tier_pass(ctx: PipelineContext) -> dict[str, int]:
    now = ctx.now()
    settings = ctx.settings
    stats: dict[str, int] = {"flagged": 0, "hot": 0, "warm": 0, "cool": 0}
    processed: set[str] = set()

    flag_keys = ctx.kv.list(FLAG_PREFIX, limit=settings.flagged_update_cap)
    flagged_ids = [key.removeprefix(FLAG_PREFIX) for key in flag_keys]
    flagged = [record for record in ctx.catalog.get_many(flagged_ids) if record.tier != "archived"]
    _merge(stats, await refresh_records(ctx, flagged, now))
    for key in flag_keys:
        ctx.kv.delete(key)
    stats["flagged"] = len(flagged)
    processed.update(flagged_ids)

    for tier, cap in (
        ("hot", settings.tier_update_cap),
        ("warm", settings.tier_update_cap),
        ("cool", settings.cool_update_cap),
    ):
        due = [record for record in ctx.catalog.select_due(tier, now, cap) if record.id not in processed]
        _merge(stats, await refresh_records(ctx, due, now))
        stats[tier] = len(due)
        processed.update(record.id for record in due)

    put_json(ctx.kv, f"metrics:tier-update:{hour_key(now)}", stats, ttl_seconds=METRICS_TTL_SECONDS)
    logger.info(
        "Tier pass: {flagged} flagged, {hot} hot, {warm} warm, {cool} cool, {fetch_failures} fetch failures",
        **stats,
    )
    return stats
