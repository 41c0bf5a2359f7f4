"""Prefect flows for the scheduled stages."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from loguru import logger
from prefect import flow

from skillcat.pipeline.activity import aggregate_downloads
from skillcat.pipeline.archiver import run_archive
from skillcat.pipeline.listings import publish_listings
from skillcat.pipeline.resurrection import run_resurrection_sweep
from skillcat.pipeline.tier_update import run_tier_pass

if TYPE_CHECKING:
    from skillcat.pipeline.context import PipelineContext


@flow(name="skillcat-hourly", timeout_seconds=3300, validate_parameters=False)
async def hourly_flow(ctx: PipelineContext) -> dict[str, Any]:
    """Tier pass (with reclassification), daily download roll-up, then listing snapshots.

    Listings are published even when the tier pass fails, so readers never
    see data older than the last successful pass plus one hour.
    """

    summary: dict[str, Any] = {}
    try:
        summary["tiers"] = await run_tier_pass(ctx)
        summary["downloads"] = aggregate_downloads(ctx)
    finally:
        summary["listings"] = await publish_listings(ctx)
    logger.info("Hourly run complete: {}", summary)
    return summary


@flow(name="skillcat-archive", timeout_seconds=6 * 3600, validate_parameters=False)
async def archive_flow(ctx: PipelineContext) -> dict[str, Any]:
    summary: dict[str, Any] = {"archive": await run_archive(ctx)}
    summary["listings"] = await publish_listings(ctx)
    return summary


@flow(name="skillcat-resurrection", timeout_seconds=6 * 3600, validate_parameters=False)
async def resurrection_flow(ctx: PipelineContext) -> dict[str, Any]:
    summary: dict[str, Any] = {"resurrection": await run_resurrection_sweep(ctx)}
    summary["listings"] = await publish_listings(ctx)
    return summary
