"""Catalog reads and batched, idempotent writes over the relational store."""

from __future__ import annotations

from datetime import timedelta
from typing import TYPE_CHECKING, Any

from sqlalchemy import delete, func, or_, update
from sqlmodel import Session, select

from skillcat.models.skill import CatalogRecord
from skillcat.scoring.tiers import ARCHIVE_ACCESS_DAYS, ARCHIVE_MAX_STARS, ARCHIVE_PUSH_DAYS
from skillcat.storage.db import CategoryRow, ContentHashRow, DownloadEventRow, SkillCategoryRow, SkillRow

if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence
    from datetime import datetime

    from sqlalchemy.engine import Engine
    from sqlalchemy.sql import Executable


def _dialect_insert(engine: Engine, model: type) -> Any:
    if engine.dialect.name == "postgresql":
        from sqlalchemy.dialects.postgresql import insert
    else:
        from sqlalchemy.dialects.sqlite import insert
    return insert(model)


def insert_ignore(engine: Engine, model: type) -> Any:
    """``INSERT ... ON CONFLICT DO NOTHING`` for the engine's dialect."""

    return _dialect_insert(engine, model).on_conflict_do_nothing()


def upsert(
    engine: Engine,
    model: type,
    values: dict[str, Any],
    *,
    index_elements: Sequence[str],
    update_fields: Iterable[str],
) -> Any:
    """``INSERT ... ON CONFLICT (index_elements) DO UPDATE`` copying ``update_fields`` from the new row."""

    stmt = _dialect_insert(engine, model).values(**values)
    return stmt.on_conflict_do_update(
        index_elements=list(index_elements),
        set_={name: stmt.excluded[name] for name in update_fields},
    )


def row_values(row: Any) -> dict[str, Any]:
    """Column values of a SQLModel instance, defaults included. An unset surrogate ``id`` is left to the database."""

    values = row.model_dump()
    if values.get("id", 0) is None:
        del values["id"]
    return values


def chunked(items: Sequence[Any], size: int) -> list[Sequence[Any]]:
    return [items[start : start + size] for start in range(0, len(items), size)]


def _to_record(row: SkillRow | None) -> CatalogRecord | None:
    if row is None:
        return None
    return CatalogRecord.model_validate(row)


class CatalogStore:
    """Read queries return ``CatalogRecord`` read models; writes go through ``write_batch``."""

    def __init__(self, engine: Engine, batch_size: int = 100) -> None:
        self.engine = engine
        self.batch_size = batch_size

    def session(self) -> Session:
        return Session(self.engine)

    # -- writes -----------------------------------------------------------

    def write_batch(self, statements: Sequence[Executable]) -> int:
        """Execute statements in atomic chunks of at most ``batch_size``.

        Each chunk commits or rolls back as a unit; chunks are independent of
        each other. Returns the number of statements executed.
        """

        executed = 0
        for chunk in chunked(list(statements), self.batch_size):
            with self.engine.begin() as conn:
                for statement in chunk:
                    conn.execute(statement)
            executed += len(chunk)
        return executed

    def insert_ignore(self, model: type) -> Any:
        return insert_ignore(self.engine, model)

    def upsert(self, model: type, values: dict[str, Any], **kwargs: Any) -> Any:
        return upsert(self.engine, model, values, **kwargs)

    def add_suggested_category(self, values: dict[str, Any]) -> Executable:
        """Insert an AI-suggested category, or bump its usage count if it already exists."""

        stmt = _dialect_insert(self.engine, CategoryRow).values(**values)
        return stmt.on_conflict_do_update(
            index_elements=["slug"],
            set_={"skill_count": CategoryRow.skill_count + 1, "updated_at": stmt.excluded.updated_at},
        )

    @staticmethod
    def update_skill(skill_id: str, **values: Any) -> Executable:
        return update(SkillRow).where(SkillRow.id == skill_id).values(**values)  # type: ignore[arg-type]

    @staticmethod
    def delete_categories(skill_id: str) -> Executable:
        return delete(SkillCategoryRow).where(SkillCategoryRow.skill_id == skill_id)  # type: ignore[arg-type]

    # -- records ----------------------------------------------------------

    def get(self, skill_id: str) -> CatalogRecord | None:
        with self.session() as session:
            return _to_record(session.get(SkillRow, skill_id))

    def get_many(self, skill_ids: Sequence[str]) -> list[CatalogRecord]:
        if not skill_ids:
            return []
        with self.session() as session:
            rows = session.exec(select(SkillRow).where(SkillRow.id.in_(list(skill_ids)))).all()  # type: ignore[attr-defined]
            return [CatalogRecord.model_validate(row) for row in rows]

    def find_by_identity(self, owner: str, name: str, skill_path: str = "") -> CatalogRecord | None:
        """Case-insensitive lookup by (owner, name, path)."""

        with self.session() as session:
            row = session.exec(
                select(SkillRow)
                .where(func.lower(SkillRow.repo_owner) == owner.lower())
                .where(func.lower(SkillRow.repo_name) == name.lower())
                .where(func.lower(SkillRow.skill_path) == skill_path.strip("/").lower())
            ).first()
            return _to_record(row)

    def slug_taken(self, slug: str, exclude_id: str | None = None) -> bool:
        with self.session() as session:
            query = select(SkillRow.id).where(SkillRow.slug == slug)
            if exclude_id is not None:
                query = query.where(SkillRow.id != exclude_id)
            return session.exec(query).first() is not None

    def select_due(self, tier: str, now: datetime, limit: int) -> list[CatalogRecord]:
        """Records of ``tier`` whose ``next_update_at`` is null or in the past, oldest first."""

        with self.session() as session:
            rows = session.exec(
                select(SkillRow)
                .where(SkillRow.tier == tier)
                .where(or_(SkillRow.next_update_at.is_(None), SkillRow.next_update_at <= now))  # type: ignore[union-attr,operator]
                .order_by(SkillRow.next_update_at)  # type: ignore[arg-type]
                .limit(limit)
            ).all()
            return [CatalogRecord.model_validate(row) for row in rows]

    def select_archive_candidates(self, now: datetime, limit: int) -> list[CatalogRecord]:
        """Public, non-archived records with <5 stars, no access in 365 days and no push in 730 days.

        A missing ``last_accessed_at`` or ``last_commit_at`` counts as inactive.
        """

        access_cutoff = now - timedelta(days=ARCHIVE_ACCESS_DAYS)
        commit_cutoff = now - timedelta(days=ARCHIVE_PUSH_DAYS)
        with self.session() as session:
            rows = session.exec(
                select(SkillRow)
                .where(SkillRow.visibility == "public")
                .where(SkillRow.tier != "archived")
                .where(SkillRow.stars < ARCHIVE_MAX_STARS)
                .where(or_(SkillRow.last_accessed_at.is_(None), SkillRow.last_accessed_at < access_cutoff))  # type: ignore[union-attr,operator]
                .where(or_(SkillRow.last_commit_at.is_(None), SkillRow.last_commit_at < commit_cutoff))  # type: ignore[union-attr,operator]
                .order_by(SkillRow.id)
                .limit(limit)
            ).all()
            return [CatalogRecord.model_validate(row) for row in rows]

    def select_archived(self) -> list[CatalogRecord]:
        with self.session() as session:
            rows = session.exec(select(SkillRow).where(SkillRow.tier == "archived").order_by(SkillRow.id)).all()
            return [CatalogRecord.model_validate(row) for row in rows]

    def select_listing(self, order: str, limit: int) -> list[CatalogRecord]:
        """Public, non-archived records ordered by ``trending``, ``top`` (stars) or ``recent``."""

        columns = {
            "trending": SkillRow.trending_score,
            "top": SkillRow.stars,
            "recent": SkillRow.indexed_at,
        }
        column = columns[order]
        with self.session() as session:
            rows = session.exec(
                select(SkillRow)
                .where(SkillRow.visibility == "public")
                .where(SkillRow.tier != "archived")
                .order_by(column.desc(), SkillRow.id)  # type: ignore[attr-defined]
                .limit(limit)
            ).all()
            return [CatalogRecord.model_validate(row) for row in rows]

    # -- fingerprints -------------------------------------------------------

    def find_public_duplicate(self, normalized_hash: str, min_stars: int, exclude_id: str) -> CatalogRecord | None:
        """Highest-star public record with this normalized hash and at least ``min_stars``."""

        with self.session() as session:
            row = session.exec(
                select(SkillRow)
                .join(ContentHashRow, ContentHashRow.skill_id == SkillRow.id)  # type: ignore[arg-type]
                .where(ContentHashRow.hash_type == "normalized")
                .where(ContentHashRow.hash_value == normalized_hash)
                .where(SkillRow.visibility == "public")
                .where(SkillRow.stars >= min_stars)
                .where(SkillRow.id != exclude_id)
                .order_by(SkillRow.stars.desc())  # type: ignore[attr-defined]
            ).first()
            return _to_record(row)

    def find_private_match(self, full_hash: str) -> CatalogRecord | None:
        with self.session() as session:
            row = session.exec(
                select(SkillRow)
                .join(ContentHashRow, ContentHashRow.skill_id == SkillRow.id)  # type: ignore[arg-type]
                .where(ContentHashRow.hash_type == "full")
                .where(ContentHashRow.hash_value == full_hash)
                .where(SkillRow.visibility == "private")
                .order_by(SkillRow.created_at)
            ).first()
            return _to_record(row)

    # -- categories -------------------------------------------------------

    def vocabulary(self) -> dict[str, CategoryRow]:
        with self.session() as session:
            rows = session.exec(select(CategoryRow)).all()
            return {row.slug: row for row in rows}

    def categories_for(self, skill_id: str) -> list[str]:
        """Category slugs of a record, primary first."""

        with self.session() as session:
            rows = session.exec(
                select(SkillCategoryRow)
                .where(SkillCategoryRow.skill_id == skill_id)
                .order_by(SkillCategoryRow.is_primary.desc(), SkillCategoryRow.category_slug)  # type: ignore[attr-defined]
            ).all()
            return [row.category_slug for row in rows]

    # -- usage counters -----------------------------------------------------

    def download_counts(self, since: datetime) -> dict[str, int]:
        with self.session() as session:
            rows = session.exec(
                select(DownloadEventRow.skill_id, func.count())
                .where(DownloadEventRow.created_at >= since)
                .group_by(DownloadEventRow.skill_id)
            ).all()
            return {skill_id: int(count) for skill_id, count in rows}

    @staticmethod
    def reset_download_counters() -> Executable:
        return (
            update(SkillRow)
            .where(or_(SkillRow.download_count_7d > 0, SkillRow.download_count_30d > 0))  # type: ignore[operator]
            .values(download_count_7d=0, download_count_30d=0)
        )

    @staticmethod
    def reset_stale_access_counters(now: datetime) -> list[Executable]:
        """Zero 7-/30-day access counters whose window has passed since the last access."""

        statements: list[Executable] = []
        for column, days in (("access_count_7d", 7), ("access_count_30d", 30)):
            cutoff = now - timedelta(days=days)
            statements.append(
                update(SkillRow)
                .where(getattr(SkillRow, column) > 0)
                .where(or_(SkillRow.last_accessed_at.is_(None), SkillRow.last_accessed_at < cutoff))  # type: ignore[union-attr,operator]
                .values({column: 0})
            )
        return statements

    @staticmethod
    def bump_access(skill_id: str, now: datetime) -> Executable:
        return (
            update(SkillRow)
            .where(SkillRow.id == skill_id)  # type: ignore[arg-type]
            .values(
                last_accessed_at=now,
                access_count_7d=SkillRow.access_count_7d + 1,
                access_count_30d=SkillRow.access_count_30d + 1,
            )
        )

    @staticmethod
    def prune_download_events(before: datetime) -> Executable:
        return delete(DownloadEventRow).where(DownloadEventRow.created_at < before)  # type: ignore[arg-type,operator]
