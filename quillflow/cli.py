"""Command line interface for running quillflow workers and schedulers."""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, time
from typing import Awaitable, List, Optional, TypeVar

import typer

from .config import QuillflowConfig, load_config
from .constants import DEFAULT_BULK_INTERVAL_HOURS, RECURRING_DEFAULT_COUNT, RequestStatus
from .exceptions import QuillflowError, RequestNotFound
from .operations import BulkResult, ContentOperations
from .persistence import ContentRepository, get_repository
from .queues import BaseJobQueue, get_queue
from .recurrence import Frequency
from .scheduler import ContentScheduler
from .services import build_services
from .worker import ContentWorker

T = TypeVar("T")

app = typer.Typer(help="CLI for quillflow content pipelines")

# Command groups
worker_app = typer.Typer(help="Commands for running workers")
scheduler_app = typer.Typer(help="Commands for the content scheduler")
content_app = typer.Typer(help="Commands for managing content requests")
schedule_app = typer.Typer(help="Commands for recurring schedules")

app.add_typer(worker_app, name="worker")
app.add_typer(scheduler_app, name="scheduler")
app.add_typer(content_app, name="content")
app.add_typer(schedule_app, name="schedule")

DATE_FORMATS = ["%Y-%m-%d"]
DATETIME_FORMATS = ["%Y-%m-%d", "%Y-%m-%dT%H:%M:%S", "%Y-%m-%d %H:%M:%S"]

_config: Optional[QuillflowConfig] = None


@app.callback()
def main(
    config_path: Optional[str] = typer.Option(
        None, "--config", help="Path to config.yaml (defaults to QUILLFLOW_CONFIG)"
    ),
) -> None:
    """quillflow CLI entry point."""
    global _config
    _config = load_config(config_path)
    logging.basicConfig(
        level=_config.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def _get_config() -> QuillflowConfig:
    return _config or load_config()


def _repository() -> ContentRepository:
    return get_repository(_get_config().database_url)


def _run(coro: Awaitable[T]) -> T:
    try:
        return asyncio.run(coro)
    except QuillflowError as e:
        typer.secho(e.message, fg=typer.colors.RED)
        raise typer.Exit(code=1)


async def _with_queue(queue: BaseJobQueue, coro: Awaitable[T]) -> T:
    try:
        return await coro
    finally:
        await queue.disconnect()


def _scheduler(repository: ContentRepository, queue: BaseJobQueue) -> ContentScheduler:
    settings = _get_config().scheduler
    return ContentScheduler(
        repository,
        queue,
        batch_size=settings.batch_size,
        poll_interval=settings.poll_interval,
    )


def _echo_bulk(result: BulkResult) -> None:
    typer.echo(f"Succeeded: {', '.join(map(str, result.succeeded)) or '-'}")
    for request_id, error in result.failed.items():
        typer.secho(f"{request_id}: {error}", fg=typer.colors.YELLOW)


@worker_app.command("run")
def worker_run(lifespan: Optional[float] = None) -> None:
    """
    Run a worker that consumes content jobs.

    Example:
        quillflow worker run --lifespan 300
    """
    config = _get_config()
    queue = get_queue(config=config)
    worker = ContentWorker.from_services(queue, build_services(config, _repository()))
    typer.echo(f"Starting worker on queue: {queue.name}")
    _run(_with_queue(queue, worker.start(lifespan=lifespan)))


@scheduler_app.command("run")
def scheduler_run(lifespan: Optional[float] = None) -> None:
    """Poll for due content every ``poll_interval`` seconds."""
    queue = get_queue(config=_get_config())
    scheduler = _scheduler(_repository(), queue)
    _run(_with_queue(queue, scheduler.start(lifespan=lifespan)))


@scheduler_app.command("poll")
def scheduler_poll() -> None:
    """Run a single scheduler tick and print the queued job ids."""
    queue = get_queue(config=_get_config())
    scheduler = _scheduler(_repository(), queue)
    job_ids = _run(_with_queue(queue, scheduler.tick()))
    if not job_ids:
        typer.echo("No content due")
        return
    for job_id in job_ids:
        typer.echo(job_id)


@content_app.command("add")
def content_add(
    tenant_id: int,
    title: str,
    at: Optional[datetime] = typer.Option(None, formats=DATETIME_FORMATS),
) -> None:
    """Create one pending content request."""
    scheduler = _scheduler(_repository(), get_queue(config=_get_config()))
    request_id = _run(scheduler.add_content(tenant_id, title, at))
    typer.echo(f"Created request {request_id}")


@content_app.command("bulk-add")
def content_bulk_add(
    tenant_id: int,
    titles: List[str],
    interval_hours: float = DEFAULT_BULK_INTERVAL_HOURS,
) -> None:
    """Create pending requests spaced ``interval_hours`` apart."""
    scheduler = _scheduler(_repository(), get_queue(config=_get_config()))
    ids = _run(scheduler.bulk_add_content(tenant_id, titles, interval_hours))
    typer.echo(f"Created requests {', '.join(map(str, ids))}")


@content_app.command("list")
def content_list(
    tenant_id: Optional[int] = None,
    status: Optional[List[RequestStatus]] = typer.Option(None),
    limit: int = 50,
) -> None:
    """List content requests, latest scheduled first."""
    records = _run(
        _repository().list_requests(tenant_id=tenant_id, statuses=status, limit=limit)
    )
    if not records:
        typer.echo("No content requests found")
        return
    for record in records:
        typer.echo(
            f"{record.id}\t{record.status.value}\tstep {record.current_step}\t"
            f"{record.scheduled_for:%Y-%m-%d %H:%M}\t{record.title}"
        )


@content_app.command("show")
def content_show(request_id: int) -> None:
    """Show a request with its execution log."""
    repo = _repository()

    async def _load():
        record = await repo.get_request(request_id)
        if record is None:
            raise RequestNotFound(request_id)
        return record, await repo.list_execution_logs(request_id)

    record, logs = _run(_load())
    typer.echo(f"Request {record.id}: {record.status.value} (step {record.current_step})")
    typer.echo(f"Title: {record.title}")
    if record.published_location:
        typer.echo(f"Published: {record.published_location}")
    for entry in logs:
        outcome = "ok" if entry.success else f"failed: {entry.error}"
        typer.echo(f"- {entry.step_name} #{entry.attempt}: {entry.duration_ms}ms {outcome}")


def _operations() -> tuple[ContentOperations, BaseJobQueue]:
    queue = get_queue(config=_get_config())
    return ContentOperations(_repository(), queue), queue


@content_app.command("enqueue")
def content_enqueue(request_id: int) -> None:
    """Queue a pending request now."""
    ops, queue = _operations()
    job_id = _run(_with_queue(queue, ops.enqueue_now(request_id)))
    typer.echo(f"Enqueued job {job_id}")


@content_app.command("retry")
def content_retry(request_ids: List[int]) -> None:
    """Reset failed requests and queue them again."""
    ops, queue = _operations()
    _echo_bulk(_run(_with_queue(queue, ops.bulk_retry(request_ids))))


@content_app.command("cancel")
def content_cancel(request_ids: List[int]) -> None:
    """Cancel pending or queued requests."""
    ops, queue = _operations()
    _echo_bulk(_run(_with_queue(queue, ops.bulk_cancel(request_ids))))


@content_app.command("pause")
def content_pause(request_id: int) -> None:
    ops, _ = _operations()
    record = _run(ops.pause(request_id))
    typer.echo(f"Request {record.id} is {record.status.value}")


@content_app.command("resume")
def content_resume(request_id: int) -> None:
    ops, queue = _operations()
    job_id = _run(_with_queue(queue, ops.resume(request_id)))
    typer.echo(f"Enqueued job {job_id}")


@content_app.command("reschedule")
def content_reschedule(
    request_id: int,
    when: datetime = typer.Argument(..., formats=DATETIME_FORMATS),
) -> None:
    ops, _ = _operations()
    record = _run(ops.reschedule(request_id, when))
    typer.echo(f"Request {record.id} scheduled for {record.scheduled_for:%Y-%m-%d %H:%M}")


@content_app.command("delete")
def content_delete(request_id: int) -> None:
    ops, _ = _operations()
    _run(ops.delete(request_id))
    typer.echo(f"Deleted request {request_id}")


@schedule_app.command("recurring")
def schedule_recurring(
    tenant_id: int,
    title_template: str,
    frequency: Frequency,
    start: datetime = typer.Argument(..., formats=DATE_FORMATS),
    end: Optional[datetime] = typer.Option(None, formats=DATE_FORMATS),
    count: int = typer.Option(RECURRING_DEFAULT_COUNT, min=1, max=52),
    at: str = typer.Option("09:00", help="Time of day, HH:MM"),
    auto_publish: bool = True,
) -> None:
    """
    Create recurring schedule entries.

    Example:
        quillflow schedule recurring 1 "Weekly tips #{n}" weekly 2024-01-01 --count 12
    """
    scheduler = _scheduler(_repository(), get_queue(config=_get_config()))
    try:
        scheduled_time = time.fromisoformat(at)
        entries = _run(
            scheduler.create_recurring_schedule(
                tenant_id,
                title_template,
                frequency,
                start.date(),
                end=end.date() if end else None,
                count=count,
                scheduled_time=scheduled_time,
                auto_publish=auto_publish,
            )
        )
    except ValueError as e:
        typer.secho(str(e), fg=typer.colors.RED)
        raise typer.Exit(code=1)
    for entry in entries:
        typer.echo(f"{entry.scheduled_date.isoformat()} {entry.scheduled_time:%H:%M}\t{entry.title}")


@schedule_app.command("materialize")
def schedule_materialize() -> None:
    """Turn due schedule entries into pending requests."""
    scheduler = _scheduler(_repository(), get_queue(config=_get_config()))
    ids = _run(scheduler.materialize_schedules())
    typer.echo(f"Materialized {len(ids)} request(s)")


@app.command("stats")
def stats() -> None:
    """Show 7-day status counts and 24-hour step performance."""
    scheduler = _scheduler(_repository(), get_queue(config=_get_config()))
    data = _run(scheduler.system_stats())
    typer.echo("Status counts (7 days):")
    for status, count in sorted(data["queue_stats"].items()):
        typer.echo(f"  {status}\t{count}")
    typer.echo("Step performance (24 hours):")
    for row in data["step_performance"]:
        typer.echo(
            f"  {row['step_name']}\t{row['executions']} runs\t"
            f"{row['avg_duration_ms']:.0f}ms avg\t{row['failures']} failed"
        )


if __name__ == "__main__":
    app()
