"""Classification queue handler."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import timedelta
from typing import TYPE_CHECKING

from loguru import logger

from skillcat.classification.ai import build_attempts, build_prompt, run_attempts
from skillcat.classification.categories import CATEGORIES, Category
from skillcat.classification.keyword import classify_by_keywords
from skillcat.classification.policy import ClassificationMethod, determine_method, try_direct_match
from skillcat.storage.catalog import row_values
from skillcat.storage.db import CategoryRow, SkillCategoryRow
from skillcat.storage.kv import increment_counters
from skillcat.utils.time import hour_key

if TYPE_CHECKING:
    from collections.abc import Mapping

    from skillcat.classification.policy import ClassificationResult
    from skillcat.models.messages import ClassificationMessage
    from skillcat.pipeline.context import PipelineContext

METRICS_TTL_SECONDS = int(timedelta(days=7).total_seconds())


@dataclass(frozen=True)
class ClassificationOutcome:
    skill_id: str
    method: ClassificationMethod
    result: ClassificationResult


def vocabulary_categories(rows: Mapping[str, CategoryRow]) -> list[Category]:
    """Predefined categories (with keywords) followed by AI-suggested ones present in the store."""

    predefined = [category for category in CATEGORIES if category.slug in rows]
    known = {category.slug for category in predefined}
    suggested = [
        Category(slug=row.slug, name=row.name, description=row.description or row.name)
        for slug, row in sorted(rows.items())
        if slug not in known
    ]
    return predefined + suggested


async def classify_skill(ctx: PipelineContext, message: ClassificationMessage) -> ClassificationOutcome | None:
    """Direct match, then the admitted method, then persist atomically.

    A missing record or missing cached marker file is a no-op.
    """

    record = ctx.catalog.get(message.skill_id)
    if record is None:
        logger.info("Skill {} no longer exists; skipping classification", message.skill_id)
        return None

    rows = ctx.catalog.vocabulary()
    fallback = ctx.settings.fallback_category

    if not message.is_reclassification:
        direct = try_direct_match(message.frontmatter_categories, rows)
        if direct is not None:
            return persist_classification(ctx, message.skill_id, direct, ClassificationMethod.DIRECT)

    content = await ctx.blobs.get_text(message.skill_md_path)
    if content is None:
        logger.warning("No cached marker file at {} for {}", message.skill_md_path, message.skill_id)
        return None

    vocabulary = vocabulary_categories(rows)
    stars = message.stars if message.stars is not None else record.stars
    method = (
        ClassificationMethod.AI
        if message.is_reclassification
        else determine_method(message.repo_owner, stars, ctx.settings)
    )

    result: ClassificationResult | None = None
    if method is ClassificationMethod.AI:
        prompt = build_prompt(content, vocabulary, message.tags, char_budget=ctx.settings.ai_content_char_budget)
        attempts = build_attempts(prompt, ctx.settings, ctx.ai)
        result = await run_attempts(attempts, rows, timeout=ctx.settings.ai_timeout, fallback_category=fallback)
        if result is None:
            logger.warning("AI chain exhausted for {}; using keyword classification", message.skill_id)
            method = ClassificationMethod.KEYWORD
    if result is None:
        result = classify_by_keywords(content, message.tags, vocabulary, fallback_category=fallback)

    return persist_classification(ctx, message.skill_id, result, method)


def persist_classification(
    ctx: PipelineContext,
    skill_id: str,
    result: ClassificationResult,
    method: ClassificationMethod,
) -> ClassificationOutcome:
    """Replace the record's category links in one batch and count the method used."""

    now = ctx.now()
    statements = [ctx.catalog.delete_categories(skill_id)]
    suggestion = result.suggested_category
    if suggestion is not None:
        statements.append(
            ctx.catalog.add_suggested_category(
                row_values(
                    CategoryRow(
                        slug=suggestion.slug,
                        name=suggestion.name,
                        description=suggestion.description,
                        type="ai-suggested",
                        suggested_by_skill_id=skill_id,
                        skill_count=1,
                        created_at=now,
                        updated_at=now,
                    )
                )
            )
        )
    for position, slug in enumerate(result.categories):
        link = SkillCategoryRow(
            skill_id=skill_id,
            category_slug=slug,
            is_primary=position == 0,
            confidence=result.confidence,
            created_at=now,
        )
        statements.append(ctx.catalog.insert_ignore(SkillCategoryRow).values(**row_values(link)))
    statements.append(ctx.catalog.update_skill(skill_id, classification_method=method.value, updated_at=now))
    ctx.catalog.write_batch(statements)

    increment_counters(
        ctx.kv,
        f"metrics:classification:{hour_key(now)}",
        {method.value: 1, "total": 1},
        ttl_seconds=METRICS_TTL_SECONDS,
    )
    logger.info("Classified {} via {}: {}", skill_id, method.value, ", ".join(result.categories))
    return ClassificationOutcome(skill_id=skill_id, method=method, result=result)
