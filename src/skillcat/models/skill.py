"""Core data models for the catalog pipeline."""

from __future__ import annotations

from datetime import datetime  # noqa: TC003
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

Tier = Literal["hot", "warm", "cool", "cold", "archived"]
Visibility = Literal["public", "private", "unlisted"]
HashType = Literal["full", "normalized"]
FileKind = Literal["text", "binary"]

TIERS: tuple[Tier, ...] = ("hot", "warm", "cool", "cold", "archived")


class StarSnapshot(BaseModel):
    """One point of star history, stored compactly as ``{"d": "YYYY-MM-DD", "s": stars}``."""

    model_config = ConfigDict(frozen=True)

    d: str
    s: int = Field(ge=0)


class RepoMetadata(BaseModel):
    """Repository facts returned by the metadata provider."""

    owner: str
    name: str
    stars: int = 0
    forks: int = 0
    pushed_at: datetime | None = None
    description: str | None = None
    topics: list[str] = Field(default_factory=list)
    fork: bool = False
    default_branch: str = "main"
    language: str | None = None
    license: str | None = None
    html_url: str | None = None
    owner_id: int | None = None
    owner_avatar_url: str | None = None
    owner_type: str | None = None


class MarkerFile(BaseModel):
    """The located skill marker file (``SKILL.md``)."""

    path: str
    sha: str
    content: str
    html_url: str | None = None


class DirectoryFile(BaseModel):
    """One file of a skill directory, path relative to the skill root."""

    path: str
    sha: str
    size: int = 0
    type: FileKind = "text"


class FileStructure(BaseModel):
    """File listing stored on the record at index time."""

    commit_sha: str | None = None
    indexed_at: datetime
    files: list[DirectoryFile] = Field(default_factory=list)


class CatalogRecord(BaseModel):
    """Read model of one row of the ``skills`` table."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    slug: str
    name: str
    description: str | None = None
    repo_owner: str
    repo_name: str
    skill_path: str = ""
    skill_md_path: str | None = None
    stars: int = 0
    forks: int = 0
    star_snapshots: list[StarSnapshot] = Field(default_factory=list)
    trending_score: float = 0.0
    last_commit_at: datetime | None = None
    content_hash: str | None = None
    content_commit_sha: str | None = None
    file_structure: FileStructure | None = None
    tier: Tier = "cold"
    last_accessed_at: datetime | None = None
    access_count_7d: int = 0
    access_count_30d: int = 0
    download_count_7d: int = 0
    download_count_30d: int = 0
    next_update_at: datetime | None = None
    classification_method: str | None = None
    visibility: Visibility = "public"
    owner_user_id: str | None = None
    archive_key: str | None = None
    created_at: datetime
    updated_at: datetime
    indexed_at: datetime


class ArchiveBlob(BaseModel):
    """Cold-storage snapshot of an archived record."""

    record: dict[str, Any]
    categories: list[str] = Field(default_factory=list)
    skill_md_content: str | None = None
    archived_at: datetime


class ListingItem(BaseModel):
    """One entry of a published listing snapshot."""

    id: str
    name: str
    slug: str
    description: str | None = None
    repo_owner: str
    repo_name: str
    stars: int
    forks: int
    trending_score: float
    updated_at: int


class Listing(BaseModel):
    """Published listing document (``cache/{kind}.json``)."""

    model_config = ConfigDict(populate_by_name=True)

    data: list[ListingItem]
    generated_at: int = Field(alias="generatedAt")
