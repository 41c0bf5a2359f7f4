"""JSON Schemas of the documents exchanged with producers and consumers outside this repository."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from skillcat.models.messages import ClassificationMessage, IngestionMessage
from skillcat.models.skill import Listing

if TYPE_CHECKING:
    from pydantic import BaseModel

CONTRACT_MODELS: dict[str, type[BaseModel]] = {
    "ingestion-message": IngestionMessage,
    "classification-message": ClassificationMessage,
    "listing": Listing,
}


def load_schema(name: str) -> dict[str, Any]:
    """JSON Schema (wire names) of one contract."""

    try:
        model = CONTRACT_MODELS[name]
    except KeyError:
        raise ValueError(f"Unknown contract: {name}") from None
    return model.model_json_schema(by_alias=True)


def load_contracts() -> dict[str, dict[str, Any]]:
    return {name: load_schema(name) for name in CONTRACT_MODELS}
