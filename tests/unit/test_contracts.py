"""Tests for contracts module."""

from __future__ import annotations

import pytest

from skillcat.contracts import CONTRACT_MODELS, load_contracts, load_schema


def test_contract_names() -> None:
    assert set(CONTRACT_MODELS) == {"ingestion-message", "classification-message", "listing"}


def test_ingestion_schema_uses_wire_names() -> None:
    schema = load_schema("ingestion-message")
    assert set(schema["properties"]) == {"repoOwner", "repoName", "skillPath", "submittedBy", "forceReindex"}
    assert set(schema["required"]) == {"repoOwner", "repoName"}


def test_classification_schema_uses_wire_names() -> None:
    schema = load_schema("classification-message")
    assert "skillMdPath" in schema["properties"]
    assert "isReclassification" in schema["properties"]
    assert "skillId" in schema["required"]


def test_listing_schema() -> None:
    schema = load_schema("listing")
    assert set(schema["properties"]) == {"data", "generatedAt"}
    assert "ListingItem" in schema["$defs"]


def test_unknown_contract() -> None:
    with pytest.raises(ValueError, match="Unknown contract"):
        load_schema("openapi")


def test_load_contracts_covers_every_model() -> None:
    assert list(load_contracts()) == list(CONTRACT_MODELS)
