"""Blob storage (R2 in production, a local directory or memory otherwise) via obstore."""

from __future__ import annotations

import json
from typing import TYPE_CHECKING, Any

import obstore as obs
from loguru import logger

if TYPE_CHECKING:
    from obstore.store import ObjectStore

    from skillcat.settings import Settings


def can_upload(settings: Settings) -> bool:
    """Check if all required R2 credentials are configured."""

    return (
        settings.r2_endpoint_url is not None
        and settings.r2_access_key_id is not None
        and settings.r2_secret_access_key is not None
        and bool(settings.r2_bucket_name)
    )


def _create_store(settings: Settings) -> ObjectStore:
    """S3Store for R2 when credentials are complete, LocalStore under ``blob_dir`` otherwise."""

    if can_upload(settings):
        from obstore.store import S3Store

        return S3Store(
            endpoint=settings.r2_endpoint_url,
            region="auto",
            bucket=settings.r2_bucket_name,
            access_key_id=settings.r2_access_key_id.get_secret_value(),  # type: ignore[union-attr]
            secret_access_key=settings.r2_secret_access_key.get_secret_value(),  # type: ignore[union-attr]
        )

    from obstore.store import LocalStore

    blob_dir = settings.resolved_blob_dir
    blob_dir.mkdir(parents=True, exist_ok=True)
    logger.debug("R2 credentials incomplete; using local blob store at {}", blob_dir)
    return LocalStore(prefix=blob_dir.resolve())


class BlobStore:
    """Text and JSON objects keyed by slash-separated paths. Missing keys read as ``None``."""

    def __init__(self, store: ObjectStore) -> None:
        self.store = store

    @classmethod
    def from_settings(cls, settings: Settings) -> BlobStore:
        return cls(_create_store(settings))

    async def put_text(self, key: str, text: str) -> None:
        await obs.put_async(self.store, key, text.encode("utf-8"))

    async def get_bytes(self, key: str) -> bytes | None:
        try:
            result = await obs.get_async(self.store, key)
        except FileNotFoundError:
            return None
        return bytes(await result.bytes_async())

    async def get_text(self, key: str) -> str | None:
        raw = await self.get_bytes(key)
        if raw is None:
            return None
        return raw.decode("utf-8", errors="replace")

    async def put_json(self, key: str, payload: Any) -> None:
        await obs.put_async(self.store, key, json.dumps(payload, default=str).encode("utf-8"))

    async def get_json(self, key: str) -> Any | None:
        raw = await self.get_bytes(key)
        if raw is None:
            return None
        return json.loads(raw)

    async def exists(self, key: str) -> bool:
        try:
            await obs.head_async(self.store, key)
        except FileNotFoundError:
            return False
        return True

    async def delete(self, key: str) -> bool:
        """Delete one object. Returns False when it did not exist."""

        if not await self.exists(key):
            return False
        try:
            await obs.delete_async(self.store, key)
        except FileNotFoundError:
            return False
        return True

    def list_keys(self, prefix: str) -> list[str]:
        keys: list[str] = []
        for batch in obs.list(self.store, prefix=prefix):
            keys.extend(meta["path"] for meta in batch)
        return sorted(keys)
