"""Operator command-line interface for the reminder scheduling engine."""

from __future__ import annotations

import json
import logging
import sys
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

import typer

from config import settings
from reminders.interfaces import MessageStoreError, NotificationSinkError
from reminders.orchestrator import PassResult, SchedulingOrchestrator
from reminders.types import NotificationKind, PendingNotification
from services.database import get_engine, get_session_factory, init_db
from services.message_store import SqlMessageStore
from services.notification_sink import SqlNotificationSink
from time_utils import to_local

SUCCESS_EXIT_CODE = 0
VALIDATION_ERROR_EXIT_CODE = 2
PASS_FAILURE_EXIT_CODE = 3


@dataclass(frozen=True)
class CliConfig:
    """Global CLI runtime options shared by every command."""

    database_url: str
    as_json: bool


@dataclass(frozen=True)
class CliServices:
    """Collaborators wired for one CLI invocation."""

    store: SqlMessageStore
    sink: SqlNotificationSink
    orchestrator: SchedulingOrchestrator


def _configure_logging(level: str) -> None:
    """Configure process-wide logging for CLI runs."""
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=[logging.StreamHandler(sys.stderr)],
        force=True,
    )


def _require_config(ctx: typer.Context) -> CliConfig:
    """Return required CLI config from Typer context."""
    config = ctx.obj
    if not isinstance(config, CliConfig):
        raise RuntimeError("CLI configuration not initialized")
    return config


@contextmanager
def _collaborator_errors() -> Iterator[None]:
    """Turn store and sink failures into an error line and a failure exit."""
    try:
        yield
    except (MessageStoreError, NotificationSinkError) as exc:
        typer.echo(f"error: {exc.code}: {exc}", err=True)
        raise typer.Exit(code=PASS_FAILURE_EXIT_CODE) from exc


def _build_services(cfg: CliConfig) -> CliServices:
    """Create the store, sink, and orchestrator for one invocation."""
    with _collaborator_errors():
        engine = get_engine(cfg.database_url)
        init_db(engine)
        session_factory = get_session_factory(engine)
        store = SqlMessageStore(session_factory)
        sink = SqlNotificationSink(session_factory)
        orchestrator = SchedulingOrchestrator(store, sink)
        orchestrator.initialize()
    return CliServices(store=store, sink=sink, orchestrator=orchestrator)


def _pending_to_dict(item: PendingNotification) -> dict[str, Any]:
    """Convert a pending notification into a JSON-serializable mapping."""
    return {
        "id": item.id,
        "kind": item.kind.value,
        "fire_at": item.fire_at.isoformat(),
        "body": item.body,
        "message_ref": item.message_ref,
        "channel_id": item.channel_id,
    }


def _result_to_dict(result: PassResult) -> dict[str, Any]:
    """Convert a pass result into a JSON-serializable mapping."""
    return {
        "kind": result.kind.value,
        "ok": result.ok,
        "scheduled": len(result.scheduled),
        "cancelled": result.cancelled,
        "skipped_slots": result.skipped_slots,
        "failures": [
            {"step": failure.step, "code": failure.code, "message": failure.message}
            for failure in result.failures
        ],
    }


def _render_result(result: PassResult) -> str:
    """Render one pass result for human scanning."""
    status = "ok" if result.ok else "failed"
    line = (
        f"{result.kind.value}: {status} - scheduled {len(result.scheduled)}, "
        f"cancelled {result.cancelled}"
    )
    if result.skipped_slots:
        line = f"{line}, skipped {result.skipped_slots}"
    lines = [line]
    for failure in result.failures:
        lines.append(f"  {failure.step}: {failure.code} ({failure.message})")
    return "\n".join(lines)


def _render_pending(items: list[PendingNotification]) -> str:
    """Render pending notifications for human scanning."""
    if not items:
        return "No pending notifications."
    lines = []
    for item in items:
        when = to_local(item.fire_at).strftime("%Y-%m-%d %H:%M")
        lines.append(f"- {when} [{item.kind.value}] {item.body}")
    return "\n".join(lines)


app = typer.Typer(no_args_is_help=True, help="Note to Self reminder scheduler")


@app.callback()
def main(
    ctx: typer.Context,
    database_url: str = typer.Option(
        None,
        envvar="DATABASE_URL",
        help="SQLAlchemy database URL (defaults to configured database.url)",
    ),
    as_json: bool = typer.Option(False, "--json", help="Emit JSON output"),
    log_level: str = typer.Option(None, help="Override configured log level"),
) -> None:
    """Configure global options for every command."""
    _configure_logging(log_level or settings.log_level)
    ctx.obj = CliConfig(
        database_url=database_url or settings.database.url,
        as_json=as_json,
    )


@app.command("init-db")
def init_db_command(ctx: typer.Context) -> None:
    """Create the database schema and notification channels."""
    cfg = _require_config(ctx)
    _build_services(cfg)
    typer.echo("ok")


@app.command()
def reschedule(
    ctx: typer.Context,
    wisdom: bool = typer.Option(True, "--wisdom/--no-wisdom", help="Run the wisdom pass"),
    nag: bool = typer.Option(True, "--nag/--no-nag", help="Run the nag pass"),
) -> None:
    """Regenerate the wisdom and nag schedules."""
    cfg = _require_config(ctx)
    services = _build_services(cfg)
    results: list[PassResult] = []
    if wisdom and nag:
        results.extend(services.orchestrator.reschedule_all())
    elif wisdom:
        results.append(services.orchestrator.schedule_wisdom())
    elif nag:
        results.append(services.orchestrator.schedule_nags())

    if cfg.as_json:
        typer.echo(json.dumps([_result_to_dict(result) for result in results], sort_keys=True))
    else:
        for result in results:
            typer.echo(_render_result(result))
    if not all(result.ok for result in results):
        raise typer.Exit(code=PASS_FAILURE_EXIT_CODE)


@app.command()
def pending(
    ctx: typer.Context,
    kind: NotificationKind = typer.Option(None, help="Only show one notification kind"),
    due: bool = typer.Option(False, "--due", help="Only show notifications already due"),
) -> None:
    """List pending notifications."""
    cfg = _require_config(ctx)
    services = _build_services(cfg)
    if due:
        with _collaborator_errors():
            items = services.sink.due(datetime.now(timezone.utc))
        if kind is not None:
            items = [item for item in items if item.kind == kind]
    else:
        with _collaborator_errors():
            items = services.orchestrator.list_scheduled(kind)
    if cfg.as_json:
        typer.echo(json.dumps([_pending_to_dict(item) for item in items], sort_keys=True))
        return
    typer.echo(_render_pending(items))


@app.command("cancel-all")
def cancel_all(ctx: typer.Context) -> None:
    """Cancel every pending notification."""
    cfg = _require_config(ctx)
    services = _build_services(cfg)
    with _collaborator_errors():
        services.orchestrator.cancel_all()
    typer.echo("ok")


@app.command("test-notify")
def test_notify(ctx: typer.Context, text: str = typer.Argument(..., help="Body text")) -> None:
    """Register a notification that fires immediately."""
    cfg = _require_config(ctx)
    services = _build_services(cfg)
    with _collaborator_errors():
        notification = services.orchestrator.send_test_notification(text)
    typer.echo(notification.id)


@app.command("add-message")
def add_message(
    ctx: typer.Context,
    text: str = typer.Argument(..., help="Message text"),
    weight: int = typer.Option(None, min=1, max=5, help="Selection weight 1-5"),
    nag_interval: int = typer.Option(
        None,
        "--nag-interval",
        min=1,
        help="Make this a nag repeating every N minutes",
    ),
) -> None:
    """Store a message and regenerate the affected schedule."""
    cfg = _require_config(ctx)
    services = _build_services(cfg)
    is_nag = nag_interval is not None
    try:
        with _collaborator_errors():
            message = services.store.add_message(
                text,
                weight=weight,
                is_nag_me=is_nag,
                nag_interval_minutes=nag_interval,
            )
    except ValueError as exc:
        typer.echo(f"error: {exc}", err=True)
        raise typer.Exit(code=VALIDATION_ERROR_EXIT_CODE) from exc
    typer.echo(message.id)
    if is_nag:
        result = services.orchestrator.schedule_nags()
        if not result.ok:
            raise typer.Exit(code=PASS_FAILURE_EXIT_CODE)


if __name__ == "__main__":
    app()
