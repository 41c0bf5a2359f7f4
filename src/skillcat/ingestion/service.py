"""Ingestion queue handler: admit, fetch, fingerprint, persist, enqueue classification.

Every write is keyed by the record's natural identity, so a message that
fails halfway can simply be redelivered. Blobs are written before the
relational batch that points at them.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum
from typing import TYPE_CHECKING

from loguru import logger

from skillcat.ingestion.files import MARKER_NAMES, collect_skill_files, locate_marker
from skillcat.ingestion.fingerprint import (
    ContentFingerprint,
    aggregate_hash,
    find_farmed_duplicate,
    find_private_twin,
)
from skillcat.ingestion.frontmatter import derive_display, parse_frontmatter
from skillcat.models.messages import ClassificationMessage
from skillcat.models.skill import FileStructure
from skillcat.pipeline.resurrection import resurrect_record
from skillcat.scoring.tiers import assign_tier, next_update_at
from skillcat.scoring.trending import append_snapshot, calculate_trending_score
from skillcat.storage.catalog import CatalogStore, row_values
from skillcat.storage.db import ContentHashRow, NotificationRow, SkillRow, SkillTagRow
from skillcat.utils.parsing import blob_prefix, canonical_skill_id, generate_slug

if TYPE_CHECKING:
    from datetime import datetime

    from sqlalchemy.sql import Executable

    from skillcat.ingestion.frontmatter import Frontmatter
    from skillcat.models.messages import IngestionMessage
    from skillcat.models.skill import CatalogRecord, MarkerFile, RepoMetadata
    from skillcat.pipeline.context import PipelineContext


class IngestionOutcome(StrEnum):
    INDEXED = "indexed"
    UPDATED = "updated"
    UNCHANGED = "unchanged"
    CONVERTED = "converted"
    ARCHIVED = "archived"
    NOT_FOUND = "not_found"
    FORK = "fork"
    NO_MARKER = "no_marker"
    DUPLICATE = "duplicate"


@dataclass(frozen=True)
class IngestionResult:
    outcome: IngestionOutcome
    skill_id: str | None = None
    slug: str | None = None


def _popularity_update(record_id: str, repo: RepoMetadata, now: datetime) -> Executable:
    return CatalogStore.update_skill(
        record_id,
        stars=repo.stars,
        forks=repo.forks,
        last_commit_at=repo.pushed_at,
        updated_at=now,
    )


def pick_slug(catalog: CatalogStore, skill_id: str, owner: str, name: str, skill_path: str, display_name: str) -> str:
    """First free slug of: display-name slug (sub-path skills), path slug, path slug plus an id suffix."""

    candidates = []
    if skill_path and display_name:
        candidates.append(generate_slug(owner, name, skill_path, display_name))
    candidates.append(generate_slug(owner, name, skill_path))
    for candidate in candidates:
        if candidate and not catalog.slug_taken(candidate, exclude_id=skill_id):
            return candidate
    return f"{candidates[-1]}-{skill_id[:8]}"


def _marker_relative_path(marker: MarkerFile, skill_path: str) -> str:
    prefix = f"{skill_path}/" if skill_path else ""
    relative = marker.path[len(prefix) :] if prefix and marker.path.startswith(prefix) else marker.path
    return relative if relative in MARKER_NAMES else relative.rsplit("/", 1)[-1]


async def ingest_repository(ctx: PipelineContext, message: IngestionMessage) -> IngestionResult:
    owner, name, skill_path = message.repo_owner, message.repo_name, message.normalized_path
    label = f"{owner}/{name}" + (f"/{skill_path}" if skill_path else "")

    repo = await ctx.github.get_repo(owner, name)
    if repo is None:
        logger.info("{}: repository not found", label)
        return IngestionResult(IngestionOutcome.NOT_FOUND)
    if repo.fork:
        logger.info("{}: forks are not indexed", label)
        return IngestionResult(IngestionOutcome.FORK)

    now = ctx.now()
    existing = ctx.catalog.find_by_identity(owner, name, skill_path)

    if existing is not None and existing.tier == "archived":
        if not message.submitted_by:
            ctx.catalog.write_batch([_popularity_update(existing.id, repo, now)])
            return IngestionResult(IngestionOutcome.ARCHIVED, existing.id, existing.slug)
        logger.info("{}: resubmitted by {}, resurrecting", label, message.submitted_by)
        await resurrect_record(ctx, existing, repo)
        existing = ctx.catalog.get(existing.id)

    commit_sha = await ctx.github.get_latest_commit_sha(owner, name, skill_path)
    if (
        existing is not None
        and not message.force_reindex
        and commit_sha is not None
        and commit_sha == existing.content_commit_sha
    ):
        ctx.catalog.write_batch([_popularity_update(existing.id, repo, now)])
        if existing.classification_method is None:
            await _requeue_classification(ctx, existing, repo)
        return IngestionResult(IngestionOutcome.UNCHANGED, existing.id, existing.slug)

    marker = await locate_marker(ctx.github, owner, name, skill_path, stars=repo.stars, settings=ctx.settings)
    if marker is None:
        logger.info("{}: no SKILL.md found", label)
        return IngestionResult(IngestionOutcome.NO_MARKER)

    frontmatter, body = parse_frontmatter(marker.content)
    fingerprint = ContentFingerprint.of(marker.content)
    outcome = IngestionOutcome.UPDATED if existing is not None else IngestionOutcome.INDEXED

    if existing is None:
        skill_id = canonical_skill_id(owner, name, skill_path)
        duplicate = find_farmed_duplicate(
            ctx.catalog, fingerprint, skill_id=skill_id, stars=repo.stars, settings=ctx.settings
        )
        if duplicate is not None:
            logger.warning("{}: rejected as a copy of {}", label, duplicate.slug)
            return IngestionResult(IngestionOutcome.DUPLICATE)
        twin = find_private_twin(ctx.catalog, fingerprint)
        if twin is not None:
            existing = _convert_private(ctx, twin, repo, skill_path, now)
            outcome = IngestionOutcome.CONVERTED

    return await _index(ctx, message, repo, marker, frontmatter, body, fingerprint, commit_sha, existing, outcome)


def _convert_private(
    ctx: PipelineContext,
    twin: CatalogRecord,
    repo: RepoMetadata,
    skill_path: str,
    now: datetime,
) -> CatalogRecord:
    """Publish a private upload whose content is now found in a public repository."""

    statements = [
        ctx.catalog.update_skill(
            twin.id,
            visibility="public",
            repo_owner=repo.owner,
            repo_name=repo.name,
            skill_path=skill_path,
            updated_at=now,
        )
    ]
    if twin.owner_user_id:
        notification = NotificationRow(
            user_id=twin.owner_user_id,
            type="skill_curated",
            skill_id=twin.id,
            title="Your skill has been curated!",
            message=(
                f'Your skill "{twin.slug}" has been converted to public as part of the curation process. '
                "It is now discoverable by everyone in the catalog."
            ),
            details={"skillId": twin.id, "skillSlug": twin.slug},
            created_at=now,
        )
        statements.append(ctx.catalog.insert_ignore(NotificationRow).values(**row_values(notification)))
    ctx.catalog.write_batch(statements)
    logger.info("Converted private skill {} to public {}/{}", twin.slug, repo.owner, repo.name)
    converted = ctx.catalog.get(twin.id)
    if converted is None:
        raise LookupError(f"Converted skill {twin.id} vanished")
    return converted


async def _index(
    ctx: PipelineContext,
    message: IngestionMessage,
    repo: RepoMetadata,
    marker: MarkerFile,
    frontmatter: Frontmatter | None,
    body: str,
    fingerprint: ContentFingerprint,
    commit_sha: str | None,
    existing: CatalogRecord | None,
    outcome: IngestionOutcome,
) -> IngestionResult:
    owner, name, skill_path = message.repo_owner, message.repo_name, message.normalized_path
    now = ctx.now()
    settings = ctx.settings

    files = await collect_skill_files(
        ctx.github,
        owner,
        name,
        commit_sha or repo.default_branch,
        skill_path,
        stars=repo.stars,
        settings=settings,
    )
    marker_name = _marker_relative_path(marker, skill_path)
    files.texts.setdefault(marker_name, marker.content)

    prefix = blob_prefix(owner, name, skill_path)
    for relative, text in files.texts.items():
        await ctx.blobs.put_text(f"{prefix}/{relative}", text)
    skill_md_key = f"{prefix}/{marker_name}"

    display_name, description = derive_display(frontmatter, body, repo.name, repo.description)
    file_structure = FileStructure(commit_sha=commit_sha, indexed_at=now, files=files.files).model_dump(mode="json")
    content = {
        "name": display_name,
        "description": description,
        "skill_md_path": skill_md_key,
        "skill_md_url": marker.html_url,
        "repo_url": repo.html_url,
        "language": repo.language,
        "license": repo.license,
        "topics": repo.topics,
        "author_github_id": repo.owner_id,
        "author_avatar_url": repo.owner_avatar_url,
        "stars": repo.stars,
        "forks": repo.forks,
        "last_commit_at": repo.pushed_at,
        "content_hash": aggregate_hash(files.texts),
        "content_commit_sha": commit_sha,
        "file_structure": file_structure,
        "updated_at": now,
    }

    if existing is None:
        skill_id = canonical_skill_id(owner, name, skill_path)
        slug = pick_slug(ctx.catalog, skill_id, owner, name, skill_path, display_name)
        tier = assign_tier(repo.stars, None, now)
        snapshots = append_snapshot([], repo.stars, now)
        row = SkillRow(
            id=skill_id,
            slug=slug,
            repo_owner=owner,
            repo_name=name,
            skill_path=skill_path,
            tier=tier,
            next_update_at=next_update_at(tier, now),
            star_snapshots=[snap.model_dump() for snap in snapshots],
            trending_score=calculate_trending_score(
                stars=repo.stars,
                snapshots=snapshots,
                indexed_at=now,
                last_commit_at=repo.pushed_at,
                downloads_7d=0,
                now=now,
            ),
            created_at=now,
            indexed_at=now,
            **content,
        )
        record_statement = ctx.catalog.insert_ignore(SkillRow).values(**row_values(row))
    else:
        skill_id, slug = existing.id, existing.slug
        snapshots = append_snapshot(existing.star_snapshots, repo.stars, now)
        record_statement = ctx.catalog.update_skill(
            skill_id,
            star_snapshots=[snap.model_dump() for snap in snapshots],
            trending_score=calculate_trending_score(
                stars=repo.stars,
                snapshots=snapshots,
                indexed_at=existing.indexed_at,
                last_commit_at=repo.pushed_at,
                downloads_7d=existing.download_count_7d,
                now=now,
            ),
            **content,
        )

    statements = [record_statement]
    for hash_type, value in (("full", fingerprint.full), ("normalized", fingerprint.normalized)):
        statements.append(
            ctx.catalog.upsert(
                ContentHashRow,
                row_values(ContentHashRow(skill_id=skill_id, hash_type=hash_type, hash_value=value, created_at=now)),
                index_elements=["skill_id", "hash_type"],
                update_fields=["hash_value"],
            )
        )
    tags = frontmatter.tags if frontmatter else []
    for tag in tags:
        statements.append(
            ctx.catalog.insert_ignore(SkillTagRow).values(
                **row_values(SkillTagRow(skill_id=skill_id, tag=tag, created_at=now))
            )
        )
    ctx.catalog.write_batch(statements)

    ctx.classification_queue.send(
        ClassificationMessage(
            skill_id=skill_id,
            repo_owner=owner,
            repo_name=name,
            skill_md_path=skill_md_key,
            frontmatter_categories=(frontmatter.categories or None) if frontmatter else None,
            tags=tags or None,
            stars=repo.stars,
        )
    )
    logger.info("{} {} ({} files, {} stars)", outcome.value.capitalize(), slug, len(files.files), repo.stars)
    return IngestionResult(outcome, skill_id, slug)


async def _requeue_classification(ctx: PipelineContext, record: CatalogRecord, repo: RepoMetadata) -> None:
    """Re-send a lost classification job using the cached marker file only."""

    if not record.skill_md_path:
        return
    cached = await ctx.blobs.get_text(record.skill_md_path)
    if cached is None:
        return
    frontmatter, _ = parse_frontmatter(cached)
    ctx.classification_queue.send(
        ClassificationMessage(
            skill_id=record.id,
            repo_owner=record.repo_owner,
            repo_name=record.repo_name,
            skill_md_path=record.skill_md_path,
            frontmatter_categories=(frontmatter.categories or None) if frontmatter else None,
            tags=(frontmatter.tags or None) if frontmatter else None,
            stars=repo.stars,
        )
    )
    logger.info("Re-queued classification for unclassified {}", record.slug)
