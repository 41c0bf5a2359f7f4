"""Shared pytest fixtures."""

from __future__ import annotations

from typing import TYPE_CHECKING

import httpx
import pytest
import pytest_asyncio
from aiolimiter import AsyncLimiter
from obstore.store import MemoryStore
from tenacity import wait_none

from skillcat.clients.github import GitHubClient
from skillcat.clients.http import RateLimitMonitor, RequestContext, fetch_with_retry
from skillcat.jobs.queue import CLASSIFICATION_QUEUE, INGESTION_QUEUE, SqlMessageQueue
from skillcat.pipeline.context import PipelineContext
from skillcat.settings import Settings
from skillcat.storage.blobs import BlobStore
from skillcat.storage.catalog import CatalogStore
from skillcat.storage.db import create_db_engine, init_db
from tests.factories import FakeGitHub, FrozenClock, MemoryKeyValueStore

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Iterator
    from pathlib import Path

    from sqlalchemy.engine import Engine


@pytest.fixture
def request_context() -> RequestContext:
    return RequestContext(
        limiter=AsyncLimiter(1000, 1),
        monitor=RateLimitMonitor(window=10, threshold_percent=50.0),
    )


@pytest.fixture
def no_retry_wait(monkeypatch: pytest.MonkeyPatch) -> None:
    """Exhaust HTTP retries without sleeping between attempts."""
    monkeypatch.setattr(fetch_with_retry.retry, "wait", wait_none())


@pytest.fixture
def tmp_output_dir(tmp_path: Path) -> Path:
    return tmp_path / "data"


@pytest.fixture
def settings(tmp_output_dir: Path) -> Settings:
    return Settings(
        _env_file=None,
        output_dir=tmp_output_dir,
        github_token="test-token",
        rate_limit_per_second=1000.0,
        resurrection_batch_delay_seconds=0.0,
    )


@pytest.fixture
def engine(settings: Settings) -> Iterator[Engine]:
    engine = create_db_engine(settings)
    init_db(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def catalog(engine: Engine) -> CatalogStore:
    return CatalogStore(engine)


@pytest.fixture
def blobs() -> BlobStore:
    return BlobStore(MemoryStore())


@pytest.fixture
def clock() -> FrozenClock:
    return FrozenClock()


@pytest.fixture
def kv(clock: FrozenClock) -> MemoryKeyValueStore:
    return MemoryKeyValueStore(clock)


@pytest.fixture
def fake_github() -> FakeGitHub:
    return FakeGitHub()


@pytest_asyncio.fixture
async def ctx(
    settings: Settings,
    engine: Engine,
    catalog: CatalogStore,
    blobs: BlobStore,
    kv: MemoryKeyValueStore,
    fake_github: FakeGitHub,
    clock: FrozenClock,
    request_context: RequestContext,
) -> AsyncIterator[PipelineContext]:
    async with httpx.AsyncClient(transport=fake_github.transport()) as client:
        yield PipelineContext(
            settings=settings,
            catalog=catalog,
            blobs=blobs,
            kv=kv,
            github=GitHubClient(settings, client, request_context),
            ingestion_queue=SqlMessageQueue(engine, INGESTION_QUEUE, settings),
            classification_queue=SqlMessageQueue(engine, CLASSIFICATION_QUEUE, settings),
            clock=clock,
        )
