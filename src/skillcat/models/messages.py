"""Queue message contracts.

Field aliases keep the camelCase wire names used by the producers outside
this repository; Python code uses the snake_case attribute names.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class _Message(BaseModel):
    model_config = ConfigDict(populate_by_name=True, str_strip_whitespace=True, extra="ignore")


class IngestionMessage(_Message):
    """Request to (re)index one repository, optionally a sub-path of it."""

    repo_owner: str = Field(alias="repoOwner", min_length=1)
    repo_name: str = Field(alias="repoName", min_length=1)
    skill_path: str | None = Field(default=None, alias="skillPath")
    submitted_by: str | None = Field(default=None, alias="submittedBy")
    force_reindex: bool = Field(default=False, alias="forceReindex")

    @property
    def normalized_path(self) -> str:
        return (self.skill_path or "").strip("/")


class ClassificationMessage(_Message):
    """Request to classify one catalog record."""

    skill_id: str = Field(alias="skillId")
    repo_owner: str = Field(alias="repoOwner")
    repo_name: str = Field(alias="repoName")
    skill_md_path: str = Field(alias="skillMdPath")
    frontmatter_categories: list[str] | None = Field(default=None, alias="frontmatterCategories")
    tags: list[str] | None = None
    stars: int | None = None
    is_reclassification: bool = Field(default=False, alias="isReclassification")
