"""Command line interface for running and inspecting the delivery queue."""
from __future__ import annotations

import signal
from datetime import datetime, timedelta
from pathlib import Path
from typing import Optional

import typer
from dateutil import parser as date_parser
from rich.console import Console
from rich.table import Table

from .config import Settings, load_settings
from .exceptions import MailQueueError
from .logging import setup_logging
from .messages import EnqueueRequest, build_test_message
from .models import Priority, QueueStatus, ensure_utc
from .service import MailQueueService
from .validators import validate_email_address

console = Console()
app = typer.Typer(help="Reliable email delivery queue")
entries_app = typer.Typer(help="Inspect queue entries")
app.add_typer(entries_app, name="entries")


class CliState:
    """Settings and a lazily built service shared by every command."""

    def __init__(self, settings: Settings) -> None:
        self.settings = settings
        self._service: MailQueueService | None = None

    @property
    def service(self) -> MailQueueService:
        if self._service is None:
            self._service = MailQueueService.from_settings(self.settings)
        return self._service


@app.callback()
def configure(
    ctx: typer.Context,
    config_file: Optional[Path] = typer.Option(None, help="YAML or JSON configuration file"),
    env_file: Optional[Path] = typer.Option(None, help=".env file to load"),
) -> None:
    settings = load_settings(
        env_file=str(env_file) if env_file else None,
        config_file=str(config_file) if config_file else None,
    )
    setup_logging(settings=settings)
    ctx.obj = CliState(settings)


def _state(ctx: typer.Context) -> CliState:
    return ctx.obj


@app.command()
def worker(
    ctx: typer.Context,
    interval_minutes: Optional[float] = typer.Option(
        None,
        help="Override the processing interval (minutes)",
    ),
    batch_size: Optional[int] = typer.Option(None, help="Override the batch size"),
    run_once: bool = typer.Option(False, help="Process one batch and exit"),
) -> None:
    """Run the scheduler that drains the queue periodically."""

    service = _state(ctx).service
    scheduler = service.create_scheduler(
        interval=timedelta(minutes=interval_minutes) if interval_minutes else None,
        batch_size=batch_size,
    )
    signal.signal(signal.SIGTERM, lambda *_: scheduler.stop())
    scheduler.start(run_once=run_once)


@app.command()
def process(
    ctx: typer.Context,
    batch_size: Optional[int] = typer.Option(None, help="Maximum entries to dispatch"),
) -> None:
    """Dispatch one batch of eligible entries now."""

    try:
        processed = _state(ctx).service.process_queue(batch_size)
    except MailQueueError as exc:
        console.print(f"[red]Queue processing failed:[/] {exc.message}")
        raise typer.Exit(code=1) from exc
    console.print(f"Processed [bold]{processed}[/] entries")


@app.command()
def stats(ctx: typer.Context) -> None:
    """Show entry counts per status."""

    queue_stats = _state(ctx).service.get_queue_stats()

    table = Table(title="Queue Statistics")
    table.add_column("Metric", style="cyan")
    table.add_column("Value", justify="right")
    table.add_row("Pending", str(queue_stats.pending))
    table.add_row("Retrying", str(queue_stats.retrying))
    table.add_row("Sent", str(queue_stats.sent))
    table.add_row("Failed", str(queue_stats.failed))
    table.add_row("Oldest pending", _fmt(queue_stats.oldest_pending))
    table.add_row("Last processed", _fmt(queue_stats.last_processed_at))
    console.print(table)


@app.command()
def enqueue(
    ctx: typer.Context,
    to: str = typer.Option(..., help="Recipient address"),
    subject: str = typer.Option(..., help="Message subject"),
    body: Optional[str] = typer.Option(None, help="Message body"),
    body_file: Optional[Path] = typer.Option(
        None,
        help="Read the body from a file",
        exists=True,
        readable=True,
    ),
    html: bool = typer.Option(True, "--html/--plain", help="Body content type"),
    priority: str = typer.Option("normal", help="Priority lane: high, normal or low"),
    max_retries: Optional[int] = typer.Option(None, help="Failed attempts before giving up"),
    scheduled_for: Optional[str] = typer.Option(None, help="ISO timestamp; do not send before"),
    correlation_id: Optional[str] = typer.Option(None, help="Originating form id"),
) -> None:
    """Add a message to the queue."""

    if bool(body) == bool(body_file):
        raise typer.BadParameter("Provide exactly one of --body or --body-file")
    try:
        lane = Priority[priority.upper()]
    except KeyError as exc:
        raise typer.BadParameter("Priority must be high, normal or low") from exc

    content = body if body else body_file.read_text(encoding="utf-8")
    try:
        request = EnqueueRequest(
            to_address=to,
            subject=subject,
            body=content,
            is_html=html,
            scheduled_for=_parse_datetime(scheduled_for),
            max_retries=max_retries,
        )
    except ValueError as exc:
        raise typer.BadParameter(str(exc)) from exc

    try:
        entry_id = _state(ctx).service.enqueue(request, correlation_id=correlation_id, priority=lane)
    except MailQueueError as exc:
        console.print(f"[red]Could not queue message:[/] {exc.message}")
        raise typer.Exit(code=1) from exc
    console.print(f"Queued entry [bold]{entry_id}[/] ({lane.name.lower()} priority)")


@app.command("test-transport")
def test_transport(ctx: typer.Context) -> None:
    """Check that the configured transport is reachable."""

    if _state(ctx).service.test_transport():
        console.print("[green]Transport connection OK[/]")
    else:
        console.print("[red]Transport connection failed[/]")
        raise typer.Exit(code=1)


@app.command("send-test")
def send_test(
    ctx: typer.Context,
    to: str = typer.Option(..., help="Recipient address"),
) -> None:
    """Send a test message immediately, bypassing the queue."""

    is_valid, normalized = validate_email_address(to)
    if not is_valid:
        raise typer.BadParameter(f"Invalid email address: {normalized}")

    result = _state(ctx).service.send_now(build_test_message(normalized))
    if result.success:
        console.print(f"[green]Test email sent to {normalized}[/] {result.provider_response or ''}")
    else:
        console.print(f"[red]Test email failed:[/] {result.error_message}")
        raise typer.Exit(code=1)


@app.command()
def serve(
    ctx: typer.Context,
    host: Optional[str] = typer.Option(None, help="Bind address"),
    port: Optional[int] = typer.Option(None, help="Bind port"),
) -> None:
    """Serve the operator HTTP API."""

    from .api import create_app

    state = _state(ctx)
    api_config = state.settings.api
    create_app(state.service).run(
        host=host or api_config.host,
        port=port or api_config.port,
        debug=api_config.debug,
    )


@entries_app.command("list")
def list_entries(
    ctx: typer.Context,
    status: Optional[QueueStatus] = typer.Option(None, case_sensitive=False, help="Filter by status"),
    limit: int = typer.Option(50, help="Number of entries to display"),
) -> None:
    """List the most recent queue entries."""

    entries = _state(ctx).service.list_entries(status=status, limit=limit)

    table = Table(title="Queue Entries")
    table.add_column("ID", style="cyan")
    table.add_column("To")
    table.add_column("Subject")
    table.add_column("Priority", justify="center")
    table.add_column("Status", justify="center")
    table.add_column("Retries", justify="right")
    table.add_column("Created")
    table.add_column("Next retry")

    for entry in entries:
        table.add_row(
            entry.id,
            entry.to_address,
            entry.subject[:40],
            Priority(entry.priority).name.lower(),
            entry.status.value,
            f"{entry.retry_count}/{entry.max_retries}",
            _fmt(entry.created_at),
            _fmt(entry.next_retry_at),
        )

    console.print(table)


@entries_app.command("attempts")
def list_attempts(
    ctx: typer.Context,
    entry_id: str = typer.Argument(..., help="Queue entry ID"),
    limit: int = typer.Option(20, help="Number of attempts to display"),
) -> None:
    """Show the delivery attempts recorded for an entry."""

    attempts = _state(ctx).service.recent_attempts(entry_id, limit=limit)

    table = Table(title=f"Attempts for entry {entry_id}")
    table.add_column("Attempt", justify="right")
    table.add_column("Status", justify="center")
    table.add_column("Attempted at")
    table.add_column("Duration", justify="right")
    table.add_column("Provider response")
    table.add_column("Error")

    for attempt in attempts:
        duration = f"{attempt.duration.total_seconds() * 1000:.0f}ms" if attempt.duration else "-"
        table.add_row(
            str(attempt.attempt_number),
            attempt.status.value,
            _fmt(attempt.attempted_at),
            duration,
            (attempt.provider_response or "-")[:40],
            (attempt.error_message or "-")[:60],
        )

    console.print(table)


def _fmt(value: Optional[datetime]) -> str:
    return ensure_utc(value).isoformat() if value else "-"


def _parse_datetime(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    try:
        parsed = date_parser.parse(value)
    except (ValueError, OverflowError) as exc:
        raise typer.BadParameter(f"Invalid timestamp: {value}") from exc
    return ensure_utc(parsed)


def main() -> None:
    app()


if __name__ == "__main__":  # pragma: no cover - CLI entry point
    main()
