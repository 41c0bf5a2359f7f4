"""Skillcat operator CLI."""

from __future__ import annotations

import asyncio
import json
from pathlib import Path
from typing import Any

import typer
from rich.console import Console
from rich.table import Table

from skillcat.contracts import CONTRACT_MODELS, load_contracts, load_schema
from skillcat.jobs.registry import JOBS, QueueTrigger, consume, get_job, run_scheduled
from skillcat.log import configure_logging
from skillcat.models.messages import IngestionMessage
from skillcat.pipeline.activity import record_download, record_visit
from skillcat.pipeline.context import open_context
from skillcat.pipeline.resurrection import check_and_resurrect
from skillcat.settings import Settings
from skillcat.storage.db import create_db_engine, init_db
from skillcat.utils.parsing import split_source

app = typer.Typer(help="Skillcat catalog pipeline")
console = Console()


def _settings_from_args(output_dir: Path | None = None) -> Settings:
    settings = Settings()
    if output_dir is not None:
        settings.output_dir = output_dir
    configure_logging(settings.log_level)
    return settings


def _job_or_exit(name: str) -> Any:
    try:
        return get_job(name)
    except KeyError as exc:
        raise typer.BadParameter(str(exc.args[0])) from exc


@app.command("init-db")
def init_db_cmd(output_dir: Path | None = typer.Option(None, "--output-dir")) -> None:
    """Create tables and seed the category vocabulary."""

    settings = _settings_from_args(output_dir)
    engine = create_db_engine(settings)
    init_db(engine)
    engine.dispose()
    console.print(f"database ready: {settings.resolved_database_url}")


@app.command("submit")
def submit(
    source: str = typer.Argument(..., help="owner/name[/path] or a GitHub URL"),
    submitted_by: str | None = typer.Option(None, "--submitted-by", help="User id of the submitter"),
    force: bool = typer.Option(False, "--force", help="Re-index even if the commit is unchanged"),
    output_dir: Path | None = typer.Option(None, "--output-dir"),
) -> None:
    """Queue a repository for ingestion."""

    parts = split_source(source)
    if parts is None:
        raise typer.BadParameter(f"Cannot parse repository reference: {source}")
    owner, name, path = parts
    settings = _settings_from_args(output_dir)
    message = IngestionMessage(
        repo_owner=owner,
        repo_name=name,
        skill_path=path or None,
        submitted_by=submitted_by,
        force_reindex=force,
    )

    async def _run() -> None:
        async with open_context(settings) as ctx:
            ctx.ingestion_queue.send(message)

    asyncio.run(_run())
    console.print(f"queued {owner}/{name}{'/' + path if path else ''}")


@app.command("consume")
def consume_cmd(
    job_name: str = typer.Argument(..., help="Queue job: ingest or classify"),
    limit: int = typer.Option(0, "--limit", help="Messages per batch (0 = configured batch size)"),
    drain: bool = typer.Option(True, "--drain/--once", help="Keep leasing batches until the queue is idle"),
    output_dir: Path | None = typer.Option(None, "--output-dir"),
) -> None:
    """Process messages from a job's queue."""

    job = _job_or_exit(job_name)
    if not isinstance(job.trigger, QueueTrigger):
        raise typer.BadParameter(f"{job_name} is not a queue job")
    settings = _settings_from_args(output_dir)

    async def _run() -> dict[str, int]:
        totals = {"received": 0, "acked": 0, "retried": 0}
        async with open_context(settings) as ctx:
            while True:
                stats = await consume(ctx, job, limit=limit or None)
                for key, value in stats.items():
                    totals[key] += value
                if not drain or stats["received"] == 0:
                    return totals

    totals = asyncio.run(_run())
    console.print(f"{job_name}: received={totals['received']} acked={totals['acked']} retried={totals['retried']}")


@app.command("run")
def run(
    job_name: str = typer.Argument(..., help="Scheduled job: hourly, archive or resurrection"),
    output_dir: Path | None = typer.Option(None, "--output-dir"),
) -> None:
    """Run a scheduled job once, now."""

    job = _job_or_exit(job_name)
    if isinstance(job.trigger, QueueTrigger):
        raise typer.BadParameter(f"{job_name} is a queue job; use `skillcat consume {job_name}`")
    settings = _settings_from_args(output_dir)

    async def _run() -> Any:
        async with open_context(settings) as ctx:
            return await run_scheduled(ctx, job)

    result = asyncio.run(_run())
    console.print_json(json.dumps(result, default=str))


@app.command("serve")
def serve() -> None:
    """Serve the scheduled jobs as Prefect cron deployments (blocks)."""

    from skillcat.jobs.scheduler import serve_schedules

    _settings_from_args()
    serve_schedules()


@app.command("jobs")
def jobs() -> None:
    """List registered jobs and their triggers."""

    table = Table(title="skillcat jobs")
    table.add_column("Job", style="cyan")
    table.add_column("Trigger")
    table.add_column("Description")
    for job in JOBS.values():
        trigger = f"queue {job.trigger.queue}" if isinstance(job.trigger, QueueTrigger) else f"cron {job.trigger.cron}"
        table.add_row(job.name, trigger, job.description)
    console.print(table)


@app.command("visit")
def visit(
    skill_id: str = typer.Argument(...),
    output_dir: Path | None = typer.Option(None, "--output-dir"),
) -> None:
    """Record a detail-page visit (may flag a refresh or resurrect an archived record)."""

    settings = _settings_from_args(output_dir)

    async def _run() -> Any:
        async with open_context(settings) as ctx:
            return await record_visit(ctx, skill_id)

    outcome = asyncio.run(_run())
    if outcome is None:
        console.print(f"[red]unknown skill[/red] {skill_id}")
        raise typer.Exit(code=1)
    resurrection = outcome.resurrection.reason.value if outcome.resurrection else "-"
    console.print(f"visit recorded: flagged={outcome.flagged} resurrection={resurrection}")


@app.command("track-download")
def track_download(
    skill_id: str = typer.Argument(...),
    output_dir: Path | None = typer.Option(None, "--output-dir"),
) -> None:
    """Record one download/install event."""

    settings = _settings_from_args(output_dir)

    async def _run() -> bool:
        async with open_context(settings) as ctx:
            return record_download(ctx, skill_id)

    if not asyncio.run(_run()):
        console.print(f"[red]unknown skill[/red] {skill_id}")
        raise typer.Exit(code=1)
    console.print("download recorded")


@app.command("resurrect")
def resurrect(
    skill_id: str = typer.Argument(...),
    threshold: int | None = typer.Option(None, "--threshold", help="Star threshold (default: on-demand threshold)"),
    output_dir: Path | None = typer.Option(None, "--output-dir"),
) -> None:
    """Check one archived record and resurrect it if it qualifies."""

    settings = _settings_from_args(output_dir)
    stars = threshold if threshold is not None else settings.on_demand_star_threshold

    async def _run() -> Any:
        async with open_context(settings) as ctx:
            return await check_and_resurrect(ctx, skill_id, stars)

    result = asyncio.run(_run())
    console.print(f"{skill_id}: {result.reason.value}")


@app.command("contract")
def contract(
    name: str | None = typer.Option(None, "--name", help=f"One of: {', '.join(CONTRACT_MODELS)}"),
) -> None:
    """Print JSON Schemas of the queue messages and the published listing."""

    if name is None:
        for contract_name, schema in load_contracts().items():
            console.print(f"{contract_name} title={schema.get('title')} fields={len(schema.get('properties', {}))}")
        return
    try:
        schema = load_schema(name)
    except ValueError as exc:
        raise typer.BadParameter(str(exc)) from exc
    console.print_json(json.dumps(schema))


if __name__ == "__main__":
    app()
