"""Content fingerprints and the anti-duplication guard."""

from __future__ import annotations

import hashlib
import re
from dataclasses import dataclass
from typing import TYPE_CHECKING

from loguru import logger

if TYPE_CHECKING:
    from collections.abc import Mapping

    from skillcat.models.skill import CatalogRecord
    from skillcat.settings import Settings
    from skillcat.storage.catalog import CatalogStore

_BLANK_RUN_RE = re.compile(r"\n{3,}")
_TRAILING_WS_RE = re.compile(r"[ \t]+$", re.MULTILINE)
_LEADING_WS_RE = re.compile(r"^[ \t]+", re.MULTILINE)


def normalize_content(content: str) -> str:
    """Line endings to LF, blank-line runs collapsed, per-line indentation and trailing blanks removed."""

    text = content.replace("\r\n", "\n")
    text = _BLANK_RUN_RE.sub("\n\n", text)
    text = _TRAILING_WS_RE.sub("", text)
    text = _LEADING_WS_RE.sub("", text)
    return text.strip()


def sha256_hex(text: str) -> str:
    return hashlib.sha256(text.encode("utf-8")).hexdigest()


@dataclass(frozen=True)
class ContentFingerprint:
    full: str
    normalized: str

    @classmethod
    def of(cls, content: str) -> ContentFingerprint:
        return cls(full=sha256_hex(content), normalized=sha256_hex(normalize_content(content)))


def aggregate_hash(files: Mapping[str, str]) -> str:
    """Hash over every cached text file, path-sorted so the order files were fetched in is irrelevant."""

    digest = hashlib.sha256()
    for path in sorted(files):
        digest.update(path.encode("utf-8"))
        digest.update(b"\0")
        digest.update(files[path].encode("utf-8"))
        digest.update(b"\0")
    return digest.hexdigest()


def find_farmed_duplicate(
    catalog: CatalogStore,
    fingerprint: ContentFingerprint,
    *,
    skill_id: str,
    stars: int,
    settings: Settings,
) -> CatalogRecord | None:
    """Popular public record that a new low-star submission copies, if any.

    Submissions at or above ``trusted_star_threshold`` are never rejected.
    """

    if stars >= settings.trusted_star_threshold:
        return None
    original = catalog.find_public_duplicate(
        fingerprint.normalized,
        settings.duplicate_original_min_stars,
        exclude_id=skill_id,
    )
    if original is not None:
        logger.info(
            "Content matches {} ({} stars) for a {}-star submission",
            original.slug,
            original.stars,
            stars,
        )
    return original


def find_private_twin(catalog: CatalogStore, fingerprint: ContentFingerprint) -> CatalogRecord | None:
    """Private record with byte-identical marker content."""

    return catalog.find_private_match(fingerprint.full)
