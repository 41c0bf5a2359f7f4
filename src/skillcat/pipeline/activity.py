"""Visit and download tracking, and the daily download aggregation."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import timedelta
from typing import TYPE_CHECKING

from loguru import logger

from skillcat.pipeline.resurrection import check_and_resurrect
from skillcat.pipeline.tier_update import flag_key
from skillcat.storage.catalog import row_values
from skillcat.storage.db import DownloadEventRow

if TYPE_CHECKING:
    from datetime import datetime

    from skillcat.models.skill import CatalogRecord
    from skillcat.pipeline.context import PipelineContext
    from skillcat.pipeline.resurrection import ResurrectionResult

STALE_AFTER = timedelta(days=1)
AGGREGATION_GUARD_TTL_SECONDS = int(timedelta(days=2).total_seconds())


@dataclass(frozen=True)
class VisitOutcome:
    skill_id: str
    flagged: bool = False
    resurrection: ResurrectionResult | None = None


def is_stale(record: CatalogRecord, now: datetime) -> bool:
    """Past its scheduled update, or never scheduled and not refreshed for a day."""

    if record.next_update_at is not None:
        return record.next_update_at <= now
    return now - record.updated_at > STALE_AFTER


async def record_visit(ctx: PipelineContext, skill_id: str) -> VisitOutcome | None:
    """Count a detail-page view. Archived records get an on-demand resurrection check; stale ones a refresh flag."""

    record = ctx.catalog.get(skill_id)
    if record is None:
        return None
    now = ctx.now()
    ctx.catalog.write_batch([ctx.catalog.bump_access(skill_id, now)])

    if record.tier == "archived":
        result = await check_and_resurrect(ctx, skill_id, ctx.settings.on_demand_star_threshold)
        logger.info("Visit to archived {}: {}", record.slug, result.reason.value)
        return VisitOutcome(skill_id, resurrection=result)

    if is_stale(record, now):
        ctx.kv.put(flag_key(skill_id), "1", ttl_seconds=ctx.settings.flag_ttl_seconds)
        return VisitOutcome(skill_id, flagged=True)
    return VisitOutcome(skill_id)


def record_download(ctx: PipelineContext, skill_id: str) -> bool:
    if ctx.catalog.get(skill_id) is None:
        return False
    event = DownloadEventRow(skill_id=skill_id, created_at=ctx.now())
    ctx.catalog.write_batch([ctx.catalog.insert_ignore(DownloadEventRow).values(**row_values(event))])
    return True


def aggregation_guard_key(now: datetime) -> str:
    return f"downloads:aggregated:{now.date().isoformat()}"


def aggregate_downloads(ctx: PipelineContext) -> dict[str, int] | None:
    """Roll raw download events into 7-/30-day counters, at most once per calendar day.

    Also zeroes access counters whose window has lapsed, prunes events
    past the retention period and deletes expired key-value entries.
    Returns ``None`` when today's run already happened.
    """

    now = ctx.now()
    guard = aggregation_guard_key(now)
    if ctx.kv.get(guard) is not None:
        return None

    counts_7d = ctx.catalog.download_counts(now - timedelta(days=7))
    counts_30d = ctx.catalog.download_counts(now - timedelta(days=30))
    statements = [ctx.catalog.reset_download_counters(), *ctx.catalog.reset_stale_access_counters(now)]
    for skill_id in sorted(counts_30d):
        statements.append(
            ctx.catalog.update_skill(
                skill_id,
                download_count_7d=counts_7d.get(skill_id, 0),
                download_count_30d=counts_30d[skill_id],
            )
        )
    statements.append(ctx.catalog.prune_download_events(now - timedelta(days=ctx.settings.download_retention_days)))
    ctx.catalog.write_batch(statements)

    ctx.kv.put(guard, str(len(counts_30d)), ttl_seconds=AGGREGATION_GUARD_TTL_SECONDS)
    stats = {
        "skills_with_downloads_7d": len(counts_7d),
        "skills_with_downloads_30d": len(counts_30d),
        "kv_entries_purged": ctx.kv.purge_expired(),
    }
    logger.info("Aggregated downloads: {}", stats)
    return stats
