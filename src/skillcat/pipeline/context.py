"""Collaborators shared by every stage of a run."""

from __future__ import annotations

from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from loguru import logger

from skillcat.classification.ai import AiProviders
from skillcat.clients.github import GitHubClient
from skillcat.clients.http import build_request_context, create_http_client
from skillcat.jobs.queue import CLASSIFICATION_QUEUE, INGESTION_QUEUE, SqlMessageQueue
from skillcat.storage.blobs import BlobStore
from skillcat.storage.catalog import CatalogStore
from skillcat.storage.db import create_db_engine, init_db
from skillcat.storage.kv import SqlKeyValueStore
from skillcat.utils.time import utc_now

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Callable
    from datetime import datetime

    import httpx

    from skillcat.settings import Settings
    from skillcat.storage.kv import KeyValueStore


@dataclass
class PipelineContext:
    """Explicit dependencies of the pipeline stages. Tests build one from fakes."""

    settings: Settings
    catalog: CatalogStore
    blobs: BlobStore
    kv: KeyValueStore
    github: GitHubClient
    ingestion_queue: SqlMessageQueue
    classification_queue: SqlMessageQueue
    ai: AiProviders = field(default_factory=AiProviders)
    clock: Callable[[], datetime] = utc_now

    def now(self) -> datetime:
        return self.clock()

    def queue(self, name: str) -> SqlMessageQueue:
        queues = {INGESTION_QUEUE: self.ingestion_queue, CLASSIFICATION_QUEUE: self.classification_queue}
        if name not in queues:
            raise KeyError(f"Unknown queue: {name}")
        return queues[name]


@asynccontextmanager
async def open_context(
    settings: Settings,
    *,
    transport: httpx.AsyncBaseTransport | None = None,
    blobs: BlobStore | None = None,
) -> AsyncIterator[PipelineContext]:
    """Open the database, blob store, HTTP client and AI providers for one run."""

    engine = create_db_engine(settings)
    init_db(engine)
    ai = AiProviders.from_settings(settings)
    try:
        async with await create_http_client(settings, transport) as client:
            github = GitHubClient(settings, client, build_request_context(settings))
            yield PipelineContext(
                settings=settings,
                catalog=CatalogStore(engine, batch_size=settings.write_batch_size),
                blobs=blobs or BlobStore.from_settings(settings),
                kv=SqlKeyValueStore(engine),
                github=github,
                ingestion_queue=SqlMessageQueue(engine, INGESTION_QUEUE, settings),
                classification_queue=SqlMessageQueue(engine, CLASSIFICATION_QUEUE, settings),
                ai=ai,
            )
    finally:
        await ai.close()
        engine.dispose()
        logger.debug("Pipeline context closed")
