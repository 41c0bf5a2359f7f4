"""Published listing snapshots read by the web front end."""

from __future__ import annotations

from typing import TYPE_CHECKING

from loguru import logger

from skillcat.models.skill import Listing, ListingItem
from skillcat.utils.time import to_epoch_ms

if TYPE_CHECKING:
    from skillcat.models.skill import CatalogRecord
    from skillcat.pipeline.context import PipelineContext

LISTING_KINDS = ("trending", "top", "recent")


def listing_key(kind: str) -> str:
    return f"cache/{kind}.json"


def to_listing_item(record: CatalogRecord) -> ListingItem:
    return ListingItem(
        id=record.id,
        name=record.name,
        slug=record.slug,
        description=record.description,
        repo_owner=record.repo_owner,
        repo_name=record.repo_name,
        stars=record.stars,
        forks=record.forks,
        trending_score=record.trending_score,
        updated_at=to_epoch_ms(record.updated_at),
    )


async def publish_listings(ctx: PipelineContext) -> dict[str, int]:
    """Write ``cache/{trending,top,recent}.json``; returns item counts per listing."""

    generated_at = to_epoch_ms(ctx.now())
    counts: dict[str, int] = {}
    for kind in LISTING_KINDS:
        records = ctx.catalog.select_listing(kind, ctx.settings.listing_size)
        listing = Listing(data=[to_listing_item(record) for record in records], generated_at=generated_at)
        await ctx.blobs.put_json(listing_key(kind), listing.model_dump(mode="json", by_alias=True))
        counts[kind] = len(records)
    logger.info("Published listings: {}", counts)
    return counts
