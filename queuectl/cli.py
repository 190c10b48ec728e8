"""
Command-line interface.

Every command opens the configured database, runs one queue operation and
closes it again. `worker start` runs dispatchers until interrupted.
"""

import asyncio
import json
from collections.abc import Awaitable, Callable
from typing import Any, TypeVar

import click

from queuectl.config import Settings
from queuectl.constants import CONFIG_KEYS, JobState
from queuectl.db import Database, SqlJobStore
from queuectl.errors import QueueError
from queuectl.observability.logging import setup_logging
from queuectl.service import JobQueue
from queuectl.types.job import JobSummary

T = TypeVar("T")


def _run(ctx: click.Context, operation: Callable[[JobQueue], Awaitable[T]]) -> T:
    """Open the store, run one operation against a JobQueue, close the store."""
    settings: Settings = ctx.obj["settings"]

    async def _main() -> T:
        db = Database.from_settings(settings)
        try:
            await db.create_schema()
            store = SqlJobStore(db)
            return await operation(JobQueue(store, settings, config_store=store))
        finally:
            await db.close()

    try:
        return asyncio.run(_main())
    except QueueError as e:
        raise click.ClickException(str(e)) from e


def _parse_job_spec(spec: str) -> dict[str, Any]:
    # Accept a JSON object such as {"id": "job1", "command": "sleep 2"}
    try:
        data = json.loads(spec)
    except ValueError:
        return {"command": spec}
    if not isinstance(data, dict):
        return {"command": spec}
    unknown = set(data) - {"id", "command", "max_retries"}
    if unknown:
        raise click.BadParameter(f"Unknown job fields: {', '.join(sorted(unknown))}")
    return data


def _format_job(job: JobSummary) -> str:
    return (
        f"{job.id:>32} | {job.state.value:<10} | attempts={job.attempts}/{job.max_retries} "
        f"| next={job.next_run_at.isoformat(timespec='seconds')} | cmd={job.command} "
        f"| last_error={job.last_error}"
    )


def _echo_jobs(jobs: list[JobSummary], as_json: bool, empty: str) -> None:
    if as_json:
        click.echo(json.dumps([job.model_dump(mode="json") for job in jobs], indent=2))
        return
    if not jobs:
        click.echo(empty)
        return
    for job in jobs:
        click.echo(_format_job(job))


@click.group(help="queuectl - background job queue CLI")
@click.option("--database-url", envvar="DATABASE_URL", default=None, help="SQLAlchemy async database URL")
@click.pass_context
def cli(ctx: click.Context, database_url: str | None) -> None:
    overrides = {"database_url": database_url} if database_url else {}
    settings = Settings(**overrides)
    setup_logging(settings)
    ctx.obj = {"settings": settings}


# ---------- Enqueue ----------
@cli.command("enqueue", help="Add a new job. JOB is a shell command or a JSON object.")
@click.argument("job")
@click.option("--id", "job_id", default=None, help="Job id (generated if omitted)")
@click.option("--max-retries", type=click.IntRange(min=0), default=None, help="Override max retry count")
@click.pass_context
def enqueue_cmd(ctx: click.Context, job: str, job_id: str | None, max_retries: int | None) -> None:
    spec = _parse_job_spec(job)
    command = spec.get("command")
    job_id = job_id or spec.get("id")
    max_retries = max_retries if max_retries is not None else spec.get("max_retries")

    new_id = _run(
        ctx,
        lambda queue: queue.enqueue(command=command, max_retries=max_retries, job_id=job_id),
    )
    click.secho(f"Enqueued {new_id} -> `{command}`", fg="green")


# ---------- Workers ----------
@cli.group("worker", help="Manage workers")
def worker_group() -> None:
    pass


@worker_group.command("start")
@click.option("--count", type=click.IntRange(min=1), default=None, help="Number of dispatchers")
@click.pass_context
def worker_start(ctx: click.Context, count: int | None) -> None:
    from queuectl.worker.main import run_async

    settings: Settings = ctx.obj["settings"]
    count = count or settings.worker_count
    click.secho(f"Starting {count} worker(s). Press Ctrl+C to stop...", fg="cyan")
    try:
        asyncio.run(run_async(count=count, settings=settings))
    except QueueError as e:
        raise click.ClickException(str(e)) from e
    click.secho("Workers stopped.", fg="yellow")


@cli.command("reap", help="Return jobs stuck in processing to pending")
@click.pass_context
def reap_cmd(ctx: click.Context) -> None:
    count = _run(ctx, lambda queue: queue.recover_stale())
    click.echo(f"Recovered {count} stale job(s).")


# ---------- Jobs ----------
@cli.command("list", help="List jobs, newest first")
@click.option("--state", type=click.Choice([s.value for s in JobState]), default=None)
@click.option("--limit", type=click.IntRange(min=1), default=None)
@click.option("--json", "as_json", is_flag=True, help="Output JSON")
@click.pass_context
def list_cmd(ctx: click.Context, state: str | None, limit: int | None, as_json: bool) -> None:
    jobs = _run(ctx, lambda queue: queue.list_jobs(state=state, limit=limit))
    _echo_jobs(jobs, as_json, "No jobs.")


@cli.command("show", help="Show one job")
@click.argument("job_id")
@click.pass_context
def show_cmd(ctx: click.Context, job_id: str) -> None:
    job = _run(ctx, lambda queue: queue.get_job(job_id))
    click.echo(json.dumps(job.model_dump(mode="json"), indent=2))


@cli.command("status", help="Job counts by state")
@click.pass_context
def status_cmd(ctx: click.Context) -> None:
    counts = _run(ctx, lambda queue: queue.status_summary())
    click.echo(json.dumps(counts, indent=2))


# ---------- DLQ ----------
@cli.group("dlq", help="Dead Letter Queue")
def dlq_group() -> None:
    pass


@dlq_group.command("list")
@click.option("--json", "as_json", is_flag=True, help="Output JSON")
@click.pass_context
def dlq_list_cmd(ctx: click.Context, as_json: bool) -> None:
    jobs = _run(ctx, lambda queue: queue.dlq_list())
    _echo_jobs(jobs, as_json, "DLQ is empty.")


@dlq_group.command("retry")
@click.argument("job_id")
@click.pass_context
def dlq_retry_cmd(ctx: click.Context, job_id: str) -> None:
    _run(ctx, lambda queue: queue.dlq_retry(job_id))
    click.secho(f"Re-queued DLQ job {job_id}.", fg="green")


# ---------- Config ----------
@cli.group("config", help="Configuration")
def config_group() -> None:
    pass


@config_group.command("get")
@click.pass_context
def config_get(ctx: click.Context) -> None:
    config = _run(ctx, lambda queue: queue.get_config())
    click.echo(json.dumps(config, indent=2))


@config_group.command("set")
@click.argument("key", type=click.Choice(CONFIG_KEYS))
@click.argument("value")
@click.pass_context
def config_set_cmd(ctx: click.Context, key: str, value: str) -> None:
    _run(ctx, lambda queue: queue.set_config(key, value))
    click.secho(f"Config updated: {key}={value}", fg="green")


@config_group.command("unset")
@click.argument("key", type=click.Choice(CONFIG_KEYS))
@click.pass_context
def config_unset_cmd(ctx: click.Context, key: str) -> None:
    removed = _run(ctx, lambda queue: queue.unset_config(key))
    click.echo(f"Config override removed: {key}" if removed else f"No override set for {key}")


# ---------- API ----------
@cli.command("serve", help="Run the HTTP API")
@click.option("--host", default=None)
@click.option("--port", type=int, default=None)
@click.pass_context
def serve_cmd(ctx: click.Context, host: str | None, port: int | None) -> None:
    from queuectl.api.main import run

    settings: Settings = ctx.obj["settings"]
    updates = {k: v for k, v in {"api_host": host, "api_port": port}.items() if v is not None}
    run(settings.model_copy(update=updates))


def main() -> None:
    cli()
