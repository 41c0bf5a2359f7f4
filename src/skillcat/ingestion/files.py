"""Marker-file lookup and bounded fetching of a skill's file tree."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from loguru import logger

from skillcat.models.skill import DirectoryFile
from skillcat.utils.parsing import is_in_dot_folder, is_text_file

if TYPE_CHECKING:
    from skillcat.clients.github import GitHubClient
    from skillcat.models.skill import MarkerFile
    from skillcat.settings import Settings

MARKER_NAMES = ("SKILL.md", "skill.md")


def dot_folders_allowed(stars: int, settings: Settings) -> bool:
    """High-star repositories may keep skills under dot-prefixed directories."""

    return stars > settings.dot_folder_star_allowance


async def locate_marker(
    github: GitHubClient,
    owner: str,
    name: str,
    skill_path: str,
    *,
    stars: int,
    settings: Settings,
) -> MarkerFile | None:
    """Find ``SKILL.md`` (or ``skill.md``) directly under ``skill_path``."""

    allow_dot = dot_folders_allowed(stars, settings)
    base = f"{skill_path}/" if skill_path else ""
    for marker_name in MARKER_NAMES:
        candidate = f"{base}{marker_name}"
        if not allow_dot and is_in_dot_folder(candidate):
            continue
        marker = await github.get_contents(owner, name, candidate)
        if marker is None:
            continue
        if not allow_dot and is_in_dot_folder(marker.path):
            continue
        return marker
    return None


@dataclass
class SkillFiles:
    """Files of one skill directory. ``texts`` maps relative path to content for text files."""

    files: list[DirectoryFile] = field(default_factory=list)
    texts: dict[str, str] = field(default_factory=dict)
    skipped: int = 0

    @property
    def total_bytes(self) -> int:
        return sum(len(text.encode("utf-8")) for text in self.texts.values())


def _relative(path: str, skill_path: str) -> str | None:
    if not skill_path:
        return path
    prefix = f"{skill_path}/"
    return path[len(prefix) :] if path.startswith(prefix) else None


async def collect_skill_files(
    github: GitHubClient,
    owner: str,
    name: str,
    ref: str,
    skill_path: str,
    *,
    stars: int,
    settings: Settings,
) -> SkillFiles:
    """Walk the recursive tree at ``ref`` and fetch text files under ``skill_path``.

    Bounded by ``max_files`` entries, ``max_file_bytes`` per file and
    ``max_total_bytes`` of fetched text. Binary files are recorded but never
    downloaded.
    """

    result = SkillFiles()
    allow_dot = dot_folders_allowed(stars, settings)
    entries = await github.get_tree(owner, name, ref)

    candidates: list[tuple[str, dict]] = []
    for entry in entries:
        if entry.get("type") != "blob":
            continue
        full_path = entry.get("path", "")
        relative = _relative(full_path, skill_path)
        if not relative:
            continue
        if not allow_dot and is_in_dot_folder(full_path):
            continue
        candidates.append((relative, entry))
    # Marker file first so it survives the file-count bound.
    candidates.sort(key=lambda item: (item[0] not in MARKER_NAMES, item[0]))

    total = 0
    for relative, entry in candidates:
        if len(result.files) >= settings.max_files:
            result.skipped += 1
            continue
        size = int(entry.get("size") or 0)
        if size > settings.max_file_bytes:
            result.skipped += 1
            continue
        sha = entry.get("sha", "")
        if not is_text_file(relative):
            result.files.append(DirectoryFile(path=relative, sha=sha, size=size, type="binary"))
            continue
        if total + size > settings.max_total_bytes:
            result.skipped += 1
            continue
        text = await github.get_blob_text(owner, name, sha)
        if text is None:
            continue
        total += size
        result.files.append(DirectoryFile(path=relative, sha=sha, size=size, type="text"))
        result.texts[relative] = text

    if result.skipped:
        logger.info("{}/{}: skipped {} files over the fetch bounds", owner, name, result.skipped)
    return result
