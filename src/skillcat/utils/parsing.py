"""Parsing and normalization helpers."""

from __future__ import annotations

import re
import uuid
from pathlib import PurePosixPath

_GITHUB_URL_RE = re.compile(
    r"^(?:https?://)?(?:www\.)?github\.com/(?P<owner>[^/\s]+)/(?P<name>[^/\s#?]+)"
    r"(?:/(?:tree|blob)/[^/\s]+(?:/(?P<path>[^\s#?]*))?)?/?$",
    re.IGNORECASE,
)
_DOT_FOLDER_RE = re.compile(r"(?:^|/)\.[\w-]+/")
_SLUG_INVALID_RE = re.compile(r"[^a-z0-9-]")
_DASHES_RE = re.compile(r"-+")

_IDENTITY_NAMESPACE = uuid.UUID("9f4c2a1e-6b1d-4e8a-9c53-2f1d7e0b8a61")

TEXT_EXTENSIONS = frozenset(
    {
        "md", "txt", "json", "yaml", "yml", "toml",
        "js", "ts", "jsx", "tsx", "mjs", "cjs",
        "py", "rb", "go", "rs", "java", "kt", "swift", "c", "cpp", "h", "hpp",
        "html", "css", "scss", "less", "sass",
        "sh", "bash", "zsh", "ps1", "bat", "cmd",
        "xml", "svg", "sql", "graphql", "gql",
        "env", "gitignore", "dockerignore", "editorconfig",
        "svelte", "vue", "astro",
    }
)  # fmt: skip
TEXT_FILENAMES = frozenset({"dockerfile", "makefile", "readme", "license", "changelog"})


def split_source(source: str) -> tuple[str, str, str] | None:
    """Split ``owner/name[/sub/path]`` or a GitHub URL into (owner, name, path).

    Returns None if the source cannot be split or has empty parts.
    """
    text = source.strip()
    match = _GITHUB_URL_RE.match(text)
    if match:
        owner, name, path = match.group("owner"), match.group("name"), match.group("path") or ""
    else:
        parts = [part for part in text.strip("/").split("/") if part]
        if len(parts) < 2:
            return None
        owner, name, path = parts[0], parts[1], "/".join(parts[2:])
    name = name.removesuffix(".git")
    if not owner or not name:
        return None
    return owner, name, path.strip("/")


def canonical_skill_id(owner: str, name: str, skill_path: str = "") -> str:
    """Deterministic record id for a (owner, name, path) identity."""

    identity = f"{owner.strip().lower()}/{name.strip().lower()}/{skill_path.strip('/').lower()}"
    return str(uuid.uuid5(_IDENTITY_NAMESPACE, identity))


def slugify(text: str) -> str:
    cleaned = _SLUG_INVALID_RE.sub("-", text.lower())
    return _DASHES_RE.sub("-", cleaned).strip("-")


def generate_slug(owner: str, name: str, skill_path: str = "", display_name: str | None = None) -> str:
    """Build a URL slug: ``owner-name``, plus display name or path for sub-path skills."""

    slug = f"{owner}-{name}"
    path = skill_path.strip("/")
    if path:
        slug = f"{slug}-{slugify(display_name)}" if display_name else f"{slug}-{path.replace('/', '-')}"
    return slugify(slug)


def is_in_dot_folder(path: str) -> bool:
    """True when any directory component of ``path`` starts with a dot (``.claude/``, ``.cursor/``)."""

    return bool(_DOT_FOLDER_RE.search(path))


def is_text_file(path: str) -> bool:
    """Guess whether a repository file is text from its extension or well-known name."""

    pure = PurePosixPath(path)
    suffix = pure.suffix.lstrip(".").lower()
    if suffix:
        return suffix in TEXT_EXTENSIONS
    if pure.name.startswith("."):
        return pure.name.lstrip(".").lower() in TEXT_EXTENSIONS
    return pure.name.lower() in TEXT_FILENAMES


def blob_prefix(owner: str, name: str, skill_path: str = "") -> str:
    """Blob-store prefix of a record's cached files: ``skills/{owner}/{name}[/{path}]``."""

    path = skill_path.strip("/")
    return f"skills/{owner}/{name}/{path}" if path else f"skills/{owner}/{name}"
