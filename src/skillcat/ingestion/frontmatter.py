"""SKILL.md front-matter parsing.

The block between the leading ``---`` fences is read with PyYAML. Authors
write plenty of almost-YAML (unquoted colons, tabs), so when ``safe_load``
fails a line-oriented reader takes over; it understands ``key: value``
pairs, ``|`` / ``>`` block scalars and one level of nesting under
``metadata:``.
"""

from __future__ import annotations

import re
import textwrap
from typing import Any

import yaml
from pydantic import BaseModel, Field

_FENCE_RE = re.compile(r"\A\ufeff?---[ \t]*\r?\n(.*?)\r?\n---[ \t]*(?:\r?\n|\Z)(.*)\Z", re.DOTALL)
_KEY_RE = re.compile(r"^(?P<indent>[ \t]*)(?P<key>[A-Za-z_][\w-]*)\s*:\s*(?P<value>.*)$")
_HEADING_RE = re.compile(r"^#\s+(.+)$", re.MULTILINE)

MAX_DESCRIPTION_CHARS = 500


class Frontmatter(BaseModel):
    """Fields of interest from a SKILL.md header, already normalised."""

    name: str | None = None
    description: str | None = None
    categories: list[str] = Field(default_factory=list)
    tags: list[str] = Field(default_factory=list)


def split_list(value: Any) -> list[str]:
    """Accept ``"a, b"`` strings or YAML lists; lower-case, strip, de-duplicate, keep order."""

    if value is None:
        return []
    items = value if isinstance(value, list) else str(value).split(",")
    seen: dict[str, None] = {}
    for item in items:
        text = str(item).strip().strip("\"'").strip().lower()
        if text:
            seen.setdefault(text, None)
    return list(seen)


def _scalar(value: Any) -> str | None:
    if value is None:
        return None
    text = " ".join(str(value).split()) if not isinstance(value, str) else value.strip()
    return text or None


def _unquote(value: str) -> str:
    value = value.strip()
    if len(value) >= 2 and value[0] == value[-1] and value[0] in {'"', "'"}:
        return value[1:-1]
    return value


def _fold(lines: list[str], style: str) -> str:
    if style.startswith("|"):
        return "\n".join(lines).strip()
    paragraphs: list[str] = []
    current: list[str] = []
    for line in lines:
        if line.strip():
            current.append(line.strip())
        elif current:
            paragraphs.append(" ".join(current))
            current = []
    if current:
        paragraphs.append(" ".join(current))
    return "\n".join(paragraphs).strip()


def _parse_lines(block: str) -> dict[str, Any]:
    """Tolerant fallback for front-matter that is not valid YAML."""

    result: dict[str, Any] = {}
    lines = block.splitlines()
    parent: str | None = None
    idx = 0
    while idx < len(lines):
        line = lines[idx]
        idx += 1
        match = _KEY_RE.match(line)
        if not match:
            continue
        indent = len(match.group("indent").expandtabs(2))
        key = match.group("key").lower()
        value = match.group("value").strip()

        if indent == 0:
            parent = None
        target: dict[str, Any] = result
        if indent > 0 and parent is not None and isinstance(result.get(parent), dict):
            target = result[parent]

        if value in {"|", ">", "|-", ">-", "|+", ">+"}:
            collected: list[str] = []
            while idx < len(lines):
                nxt = lines[idx]
                nxt_indent = len(nxt) - len(nxt.lstrip())
                if nxt.strip() and nxt_indent <= indent:
                    break
                collected.append(nxt)
                idx += 1
            target[key] = _fold(textwrap.dedent("\n".join(collected)).splitlines(), value)
        elif value == "" and indent == 0:
            parent = key
            result[key] = {}
        elif value.startswith("[") and value.endswith("]"):
            target[key] = [_unquote(part) for part in value[1:-1].split(",") if part.strip()]
        else:
            target[key] = _unquote(value)
    return result


def _load_block(block: str) -> dict[str, Any]:
    try:
        loaded = yaml.safe_load(block)
    except yaml.YAMLError:
        loaded = None
    if isinstance(loaded, dict):
        return {str(key).lower(): value for key, value in loaded.items()}
    return _parse_lines(block)


def parse_frontmatter(content: str) -> tuple[Frontmatter | None, str]:
    """Split a SKILL.md file into (front-matter, body). No fence means no front-matter."""

    match = _FENCE_RE.match(content)
    if not match:
        return None, content
    block, body = match.group(1), match.group(2)
    data = _load_block(block)
    metadata = data.get("metadata") if isinstance(data.get("metadata"), dict) else {}
    metadata = {str(key).lower(): value for key, value in metadata.items()}

    categories = split_list(data.get("category")) + split_list(data.get("categories"))
    if not categories:
        categories = split_list(metadata.get("category")) + split_list(metadata.get("categories"))

    tags = split_list(data.get("tags")) or split_list(metadata.get("tags")) or split_list(data.get("keywords"))
    if not tags:
        tags = split_list(metadata.get("keywords"))

    return (
        Frontmatter(
            name=_scalar(data.get("name")),
            description=_scalar(data.get("description")),
            categories=list(dict.fromkeys(categories)),
            tags=tags,
        ),
        body,
    )


def derive_display(
    frontmatter: Frontmatter | None,
    body: str,
    repo_name: str,
    repo_description: str | None,
) -> tuple[str, str | None]:
    """Display name and description: front-matter, then the first heading and paragraph, then repo data."""

    name = frontmatter.name if frontmatter and frontmatter.name else None
    description = frontmatter.description if frontmatter and frontmatter.description else None

    if name is None or description is None:
        heading = _HEADING_RE.search(body)
        if heading and name is None:
            name = heading.group(1).strip()
        if heading and description is None:
            rest = body[heading.end() :].lstrip("\n")
            paragraph = re.split(r"\n\s*\n|\n#", rest, maxsplit=1)[0].strip()
            if paragraph:
                description = paragraph[:MAX_DESCRIPTION_CHARS]

    return name or repo_name, description or repo_description
