"""Pydantic models."""

from .messages import ClassificationMessage, IngestionMessage
from .skill import (
    TIERS,
    ArchiveBlob,
    CatalogRecord,
    DirectoryFile,
    FileStructure,
    Listing,
    ListingItem,
    MarkerFile,
    RepoMetadata,
    StarSnapshot,
    Tier,
    Visibility,
)

__all__ = [
    "TIERS",
    "ArchiveBlob",
    "CatalogRecord",
    "ClassificationMessage",
    "DirectoryFile",
    "FileStructure",
    "IngestionMessage",
    "Listing",
    "ListingItem",
    "MarkerFile",
    "RepoMetadata",
    "StarSnapshot",
    "Tier",
    "Visibility",
]
