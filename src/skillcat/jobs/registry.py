"""One ``Job`` interface over queue-triggered and cron-triggered work.

Handlers take ``(ctx, payload)`` and never know what triggered them. Queue
jobs receive the message body; scheduled jobs receive an empty payload.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from loguru import logger

from skillcat.classification.service import classify_skill
from skillcat.ingestion.service import ingest_repository
from skillcat.jobs.queue import CLASSIFICATION_QUEUE, INGESTION_QUEUE
from skillcat.models.messages import ClassificationMessage, IngestionMessage
from skillcat.pipeline.orchestrator import archive_flow, hourly_flow, resurrection_flow

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    from skillcat.pipeline.context import PipelineContext

    Handler = Callable[[PipelineContext, dict[str, Any]], Awaitable[Any]]


@dataclass(frozen=True)
class QueueTrigger:
    queue: str


@dataclass(frozen=True)
class ScheduleTrigger:
    cron: str


@dataclass(frozen=True)
class Job:
    name: str
    trigger: QueueTrigger | ScheduleTrigger
    handler: Handler
    description: str = ""


async def _ingest(ctx: PipelineContext, payload: dict[str, Any]) -> Any:
    return await ingest_repository(ctx, IngestionMessage.model_validate(payload))


async def _classify(ctx: PipelineContext, payload: dict[str, Any]) -> Any:
    return await classify_skill(ctx, ClassificationMessage.model_validate(payload))


async def _hourly(ctx: PipelineContext, payload: dict[str, Any]) -> Any:
    return await hourly_flow(ctx)


async def _archive(ctx: PipelineContext, payload: dict[str, Any]) -> Any:
    return await archive_flow(ctx)


async def _resurrection(ctx: PipelineContext, payload: dict[str, Any]) -> Any:
    return await resurrection_flow(ctx)


JOBS: dict[str, Job] = {
    job.name: job
    for job in (
        Job("ingest", QueueTrigger(INGESTION_QUEUE), _ingest, "Index a repository or skill sub-path"),
        Job("classify", QueueTrigger(CLASSIFICATION_QUEUE), _classify, "Assign categories to a record"),
        Job("hourly", ScheduleTrigger("0 * * * *"), _hourly, "Tier pass, download roll-up, listings"),
        Job("archive", ScheduleTrigger("0 3 1 * *"), _archive, "Archive long-inactive records"),
        Job("resurrection", ScheduleTrigger("0 4 1 */3 *"), _resurrection, "Quarterly resurrection sweep"),
    )
}


def get_job(name: str) -> Job:
    try:
        return JOBS[name]
    except KeyError:
        raise KeyError(f"Unknown job {name!r}; expected one of {', '.join(JOBS)}") from None


def queue_jobs() -> list[Job]:
    return [job for job in JOBS.values() if isinstance(job.trigger, QueueTrigger)]


def scheduled_jobs() -> list[Job]:
    return [job for job in JOBS.values() if isinstance(job.trigger, ScheduleTrigger)]


async def consume(ctx: PipelineContext, job: Job, *, limit: int | None = None) -> dict[str, int]:
    """Lease one batch from the job's queue. Success acks; any exception goes back to the queue's backoff."""

    if not isinstance(job.trigger, QueueTrigger):
        raise ValueError(f"Job {job.name!r} is not queue-triggered")
    queue = ctx.queue(job.trigger.queue)
    messages = queue.receive(limit or ctx.settings.queue_batch_size)
    stats = {"received": len(messages), "acked": 0, "retried": 0}
    for message in messages:
        try:
            await job.handler(ctx, message.body)
        except Exception as exc:
            logger.exception("Job {} failed on message {} (attempt {})", job.name, message.id, message.attempts)
            queue.retry(message, f"{type(exc).__name__}: {exc}")
            stats["retried"] += 1
        else:
            queue.ack(message)
            stats["acked"] += 1
    return stats


async def run_scheduled(ctx: PipelineContext, job: Job) -> Any:
    if not isinstance(job.trigger, ScheduleTrigger):
        raise ValueError(f"Job {job.name!r} is not schedule-triggered")
    logger.info("Running scheduled job {} ({})", job.name, job.trigger.cron)
    return await job.handler(ctx, {})
