"""Prefect entry point and cron deployments for the scheduled jobs."""

from __future__ import annotations

from typing import Any

from prefect import flow, serve

from skillcat.jobs.registry import ScheduleTrigger, get_job, run_scheduled, scheduled_jobs
from skillcat.log import configure_logging
from skillcat.pipeline.context import open_context
from skillcat.settings import Settings


@flow(name="skillcat-scheduled-job", log_prints=True)
async def scheduled_job_flow(job_name: str) -> Any:
    """Open a fresh context and run one scheduled job by name."""

    settings = Settings()
    configure_logging(settings.log_level)
    async with open_context(settings) as ctx:
        return await run_scheduled(ctx, get_job(job_name))


def build_deployments() -> list[Any]:
    deployments = []
    for job in scheduled_jobs():
        assert isinstance(job.trigger, ScheduleTrigger)
        deployments.append(
            scheduled_job_flow.to_deployment(
                name=f"skillcat-{job.name}",
                cron=job.trigger.cron,
                parameters={"job_name": job.name},
                description=job.description,
            )
        )
    return deployments


def serve_schedules() -> None:
    """Block, running every scheduled job on its cron."""

    serve(*build_deployments())
