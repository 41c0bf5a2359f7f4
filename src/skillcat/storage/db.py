"""SQLModel tables and engine setup for the catalog database."""

from __future__ import annotations

from datetime import datetime
from pathlib import Path
from typing import TYPE_CHECKING, Any

from loguru import logger
from sqlalchemy import JSON, DateTime, Index, TypeDecorator, UniqueConstraint
from sqlalchemy.engine import Engine, make_url
from sqlmodel import Field, SQLModel, create_engine

from skillcat.classification.categories import CATEGORIES
from skillcat.utils.time import ensure_utc, utc_now

if TYPE_CHECKING:
    from skillcat.settings import Settings


class UTCDateTime(TypeDecorator):
    """Stores naive UTC, returns aware UTC datetimes."""

    impl = DateTime
    cache_ok = True

    def process_bind_param(self, value: datetime | None, dialect: Any) -> datetime | None:
        if value is None:
            return None
        return ensure_utc(value).replace(tzinfo=None)

    def process_result_value(self, value: datetime | None, dialect: Any) -> datetime | None:
        return ensure_utc(value)


class SkillRow(SQLModel, table=True):
    """One catalog record."""

    __tablename__ = "skills"
    __table_args__ = (
        UniqueConstraint("repo_owner", "repo_name", "skill_path", name="uq_skills_identity"),
        Index("ix_skills_tier_next_update", "tier", "next_update_at"),
    )

    id: str = Field(primary_key=True)
    slug: str = Field(unique=True, index=True)
    name: str
    description: str | None = None
    repo_owner: str = Field(index=True)
    repo_name: str = Field(index=True)
    skill_path: str = ""
    skill_md_path: str | None = None
    repo_url: str | None = None
    skill_md_url: str | None = None
    language: str | None = None
    license: str | None = None
    topics: list[str] = Field(default_factory=list, sa_type=JSON)
    author_github_id: int | None = None
    author_avatar_url: str | None = None
    stars: int = Field(default=0, index=True)
    forks: int = 0
    star_snapshots: list[dict[str, Any]] = Field(default_factory=list, sa_type=JSON)
    trending_score: float = Field(default=0.0, index=True)
    last_commit_at: datetime | None = Field(default=None, sa_type=UTCDateTime)
    content_hash: str | None = None
    content_commit_sha: str | None = None
    file_structure: dict[str, Any] | None = Field(default=None, sa_type=JSON)
    tier: str = Field(default="cold", index=True)
    last_accessed_at: datetime | None = Field(default=None, sa_type=UTCDateTime)
    access_count_7d: int = 0
    access_count_30d: int = 0
    download_count_7d: int = 0
    download_count_30d: int = 0
    next_update_at: datetime | None = Field(default=None, sa_type=UTCDateTime)
    classification_method: str | None = None
    visibility: str = Field(default="public", index=True)
    owner_user_id: str | None = None
    archive_key: str | None = None
    created_at: datetime = Field(default_factory=utc_now, sa_type=UTCDateTime)
    updated_at: datetime = Field(default_factory=utc_now, sa_type=UTCDateTime)
    indexed_at: datetime = Field(default_factory=utc_now, sa_type=UTCDateTime, index=True)


class ContentHashRow(SQLModel, table=True):
    __tablename__ = "content_hashes"
    __table_args__ = (UniqueConstraint("skill_id", "hash_type", name="uq_content_hashes_skill_type"),)

    id: int | None = Field(default=None, primary_key=True)
    skill_id: str = Field(index=True)
    hash_type: str
    hash_value: str = Field(index=True)
    created_at: datetime = Field(default_factory=utc_now, sa_type=UTCDateTime)


class CategoryRow(SQLModel, table=True):
    """Vocabulary entry. ``type`` is ``predefined`` or ``ai-suggested``."""

    __tablename__ = "categories"

    slug: str = Field(primary_key=True)
    name: str
    description: str | None = None
    type: str = Field(default="predefined", index=True)
    suggested_by_skill_id: str | None = None
    skill_count: int = 0
    created_at: datetime = Field(default_factory=utc_now, sa_type=UTCDateTime)
    updated_at: datetime = Field(default_factory=utc_now, sa_type=UTCDateTime)


class SkillCategoryRow(SQLModel, table=True):
    __tablename__ = "skill_categories"

    skill_id: str = Field(primary_key=True)
    category_slug: str = Field(primary_key=True, index=True)
    is_primary: bool = False
    confidence: float = 0.0
    created_at: datetime = Field(default_factory=utc_now, sa_type=UTCDateTime)


class SkillTagRow(SQLModel, table=True):
    __tablename__ = "skill_tags"

    skill_id: str = Field(primary_key=True)
    tag: str = Field(primary_key=True, index=True)
    created_at: datetime = Field(default_factory=utc_now, sa_type=UTCDateTime)


class DownloadEventRow(SQLModel, table=True):
    __tablename__ = "download_events"

    id: int | None = Field(default=None, primary_key=True)
    skill_id: str = Field(index=True)
    created_at: datetime = Field(default_factory=utc_now, sa_type=UTCDateTime, index=True)


class NotificationRow(SQLModel, table=True):
    __tablename__ = "notifications"
    __table_args__ = (UniqueConstraint("user_id", "type", "skill_id", name="uq_notifications_once"),)

    id: int | None = Field(default=None, primary_key=True)
    user_id: str = Field(index=True)
    type: str
    skill_id: str
    title: str
    message: str
    details: dict[str, Any] | None = Field(default=None, sa_type=JSON)
    read: bool = False
    created_at: datetime = Field(default_factory=utc_now, sa_type=UTCDateTime)


class KvEntryRow(SQLModel, table=True):
    __tablename__ = "kv_entries"

    key: str = Field(primary_key=True)
    value: str
    expires_at: datetime | None = Field(default=None, sa_type=UTCDateTime, index=True)


class QueueMessageRow(SQLModel, table=True):
    """A queued message. ``status`` is ``pending`` or ``dead``."""

    __tablename__ = "queue_messages"
    __table_args__ = (Index("ix_queue_messages_ready", "queue", "status", "visible_at"),)

    id: int | None = Field(default=None, primary_key=True)
    queue: str
    body: dict[str, Any] = Field(default_factory=dict, sa_type=JSON)
    attempts: int = 0
    status: str = "pending"
    last_error: str | None = None
    visible_at: datetime = Field(default_factory=utc_now, sa_type=UTCDateTime)
    created_at: datetime = Field(default_factory=utc_now, sa_type=UTCDateTime)


def create_db_engine(settings: Settings) -> Engine:
    """Create the SQLAlchemy engine, creating the SQLite parent directory when needed."""

    url = settings.resolved_database_url
    parsed = make_url(url)
    connect_args: dict[str, Any] = {}
    if parsed.get_backend_name() == "sqlite":
        connect_args["check_same_thread"] = False
        if parsed.database and parsed.database != ":memory:":
            Path(parsed.database).parent.mkdir(parents=True, exist_ok=True)
    return create_engine(url, echo=False, connect_args=connect_args)


def init_db(engine: Engine) -> None:
    """Create tables and seed the predefined vocabulary (insert-or-ignore)."""

    SQLModel.metadata.create_all(engine)
    from skillcat.storage.catalog import insert_ignore

    with engine.begin() as conn:
        for category in CATEGORIES:
            conn.execute(
                insert_ignore(engine, CategoryRow).values(
                    slug=category.slug,
                    name=category.name,
                    description=category.description,
                    type="predefined",
                    skill_count=0,
                    created_at=utc_now(),
                    updated_at=utc_now(),
                )
            )
    logger.info("Database ready ({} predefined categories)", len(CATEGORIES))
