"""Monthly archival of long-inactive, unpopular records."""

from __future__ import annotations

from typing import TYPE_CHECKING

from loguru import logger

from skillcat.models.skill import ArchiveBlob
from skillcat.storage.kv import increment_counters
from skillcat.utils.parsing import blob_prefix

if TYPE_CHECKING:
    from skillcat.models.skill import CatalogRecord
    from skillcat.pipeline.context import PipelineContext

ARCHIVE_PREFIX = "archive/"


def archive_key_for(record: CatalogRecord) -> str:
    """``archive/{YYYY}/{MM}/{id}.json`` keyed by the record's creation month."""

    created = record.created_at
    return f"{ARCHIVE_PREFIX}{created:%Y}/{created:%m}/{record.id}.json"


def cached_file_keys(record: CatalogRecord) -> list[str]:
    """Blob keys of the record's own cached text files (never a whole prefix, sub-path skills share it)."""

    keys = set()
    if record.skill_md_path:
        keys.add(record.skill_md_path)
    if record.file_structure is not None:
        prefix = blob_prefix(record.repo_owner, record.repo_name, record.skill_path)
        keys.update(f"{prefix}/{file.path}" for file in record.file_structure.files if file.type == "text")
    return sorted(keys)


async def archive_record(ctx: PipelineContext, record: CatalogRecord) -> str:
    """Write the archive blob, drop cached files, then mark the record archived in one batch.

    A rerun after a crash in between converges: the previous blob's content
    and categories are kept when the live copies are already gone.
    """

    now = ctx.now()
    key = record.archive_key or archive_key_for(record)
    previous_raw = await ctx.blobs.get_json(key)
    previous = ArchiveBlob.model_validate(previous_raw) if previous_raw else None

    categories = ctx.catalog.categories_for(record.id)
    content = await ctx.blobs.get_text(record.skill_md_path) if record.skill_md_path else None
    blob = ArchiveBlob(
        record=record.model_dump(mode="json"),
        categories=categories or (previous.categories if previous else []),
        skill_md_content=content if content is not None else (previous.skill_md_content if previous else None),
        archived_at=now,
    )
    await ctx.blobs.put_json(key, blob.model_dump(mode="json"))

    for cached in cached_file_keys(record):
        await ctx.blobs.delete(cached)

    ctx.catalog.write_batch(
        [
            ctx.catalog.update_skill(
                record.id,
                tier="archived",
                next_update_at=None,
                file_structure=None,
                content_commit_sha=None,
                star_snapshots=[],
                archive_key=key,
                updated_at=now,
            ),
            ctx.catalog.delete_categories(record.id),
        ]
    )
    logger.info("Archived {} to {}", record.slug, key)
    return key


async def run_archive(ctx: PipelineContext) -> dict[str, int]:
    now = ctx.now()
    candidates = ctx.catalog.select_archive_candidates(now, ctx.settings.archive_candidate_limit)
    stats = {"candidates": len(candidates), "archived": 0, "failed": 0}
    for record in candidates:
        try:
            await archive_record(ctx, record)
        except Exception:
            logger.exception("Failed to archive {}", record.slug)
            stats["failed"] += 1
        else:
            stats["archived"] += 1

    increment_counters(ctx.kv, f"metrics:archive:{now:%Y-%m}", stats)
    logger.info("Archive run: {archived}/{candidates} archived, {failed} failed", **stats)
    return stats
