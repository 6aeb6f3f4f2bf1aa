# src/taskledger/cli.py
"""taskledger Command Line Interface.

Operator tooling over an existing ledger: page through executions, show
one execution, and inspect or clear single-instance locks.
"""

from __future__ import annotations

import json
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import typer
from pydantic import ValidationError

from taskledger import __version__
from taskledger.contracts import ExecutionNotFoundError, LedgerError, NamedLock, TaskExecution
from taskledger.core.config import LedgerSettings, load_settings

__all__ = ["app"]

app = typer.Typer(
    name="taskledger",
    help="taskledger: task execution ledger and single-instance locks.",
    no_args_is_help=True,
)

executions_app = typer.Typer(help="Inspect recorded task executions.", no_args_is_help=True)
lock_app = typer.Typer(help="Inspect and clear single-instance locks.", no_args_is_help=True)
app.add_typer(executions_app, name="executions")
app.add_typer(lock_app, name="lock")


@dataclass(frozen=True)
class _CliState:
    settings_path: Path | None
    url: str | None
    verbose: bool = False
    json_logs: bool = False


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        typer.echo(f"taskledger version {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    ctx: typer.Context,
    version: bool | None = typer.Option(
        None,
        "--version",
        "-V",
        callback=version_callback,
        is_eager=True,
        help="Show version and exit.",
    ),
    settings: Path | None = typer.Option(
        None,
        "--settings",
        "-s",
        help="Path to settings YAML file.",
    ),
    url: str | None = typer.Option(
        None,
        "--url",
        help="Database URL (overrides the settings file).",
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-v",
        help="Enable verbose/debug logging.",
    ),
    json_logs: bool = typer.Option(
        False,
        "--json-logs",
        help="Output structured JSON logs (for machine processing).",
    ),
) -> None:
    """taskledger: task execution ledger and single-instance locks."""
    from taskledger.core.logging import configure_logging

    log_level = "DEBUG" if verbose else "WARNING"
    configure_logging(json_output=json_logs, level=log_level)
    ctx.obj = _CliState(settings_path=settings, url=url, verbose=verbose, json_logs=json_logs)


def _resolve_settings(state: _CliState) -> LedgerSettings:
    """Settings file (if any), then --url on top."""
    try:
        resolved = load_settings(state.settings_path) if state.settings_path is not None else LedgerSettings()
    except FileNotFoundError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1) from None
    except ValidationError as e:
        typer.echo("Configuration errors:", err=True)
        for error in e.errors():
            loc = ".".join(str(x) for x in error["loc"])
            typer.echo(f"  - {loc}: {error['msg']}", err=True)
        raise typer.Exit(1) from None
    if state.settings_path is not None:
        from taskledger.core.logging import configure_logging

        # The settings file may ask for more logging than the command line did
        configure_logging(
            json_output=state.json_logs or resolved.logging.json_output,
            level="DEBUG" if state.verbose else resolved.logging.level,
        )
    if state.url is not None:
        resolved = resolved.model_copy(update={"url": state.url})
    return resolved


@contextmanager
def _open_ledger(ctx: typer.Context) -> Iterator[tuple[Any, LedgerSettings]]:
    """Open the configured ledger; ledger errors become exit code 1."""
    from taskledger.core.ledger import LedgerDB

    resolved = _resolve_settings(ctx.obj)
    try:
        db = LedgerDB.from_settings(resolved)
    except LedgerError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1) from None
    try:
        yield db, resolved
    except LedgerError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1) from None
    finally:
        db.close()


def _execution_dict(execution: TaskExecution) -> dict[str, Any]:
    def _ts(value: Any) -> str | None:
        return value.isoformat() if value is not None else None

    return {
        "execution_id": execution.execution_id,
        "task_name": execution.task_name,
        "start_time": _ts(execution.start_time),
        "end_time": _ts(execution.end_time),
        "exit_code": execution.exit_code,
        "exit_message": execution.exit_message,
        "error_message": execution.error_message,
        "external_execution_id": execution.external_execution_id,
        "parent_execution_id": execution.parent_execution_id,
        "parameters": list(execution.parameters),
    }


def _execution_line(execution: TaskExecution) -> str:
    start = execution.start_time.isoformat() if execution.start_time else "-"
    end = execution.end_time.isoformat() if execution.end_time else "running"
    exit_code = "-" if execution.exit_code is None else str(execution.exit_code)
    return f"{execution.execution_id:>8}  {execution.task_name or '-':<30}  {start:<32}  {end:<32}  {exit_code}"


# === executions ===


@executions_app.command("list")
def list_executions(
    ctx: typer.Context,
    task: str | None = typer.Option(None, "--task", "-t", help="Only executions of this task name."),
    page: int = typer.Option(0, "--page", "-p", min=0, help="Zero-based page index."),
    size: int = typer.Option(20, "--size", "-n", min=1, help="Executions per page."),
    json_output: bool = typer.Option(False, "--json", help="Output as JSON."),
) -> None:
    """List executions, newest first."""
    from taskledger.core.ledger import TaskExplorer

    with _open_ledger(ctx) as (db, _):
        result = TaskExplorer(db).list_page(task, page, size)

    if json_output:
        payload = {
            "total": result.total,
            "page_index": result.page_index,
            "page_size": result.page_size,
            "total_pages": result.total_pages,
            "items": [_execution_dict(e) for e in result.items],
        }
        typer.echo(json.dumps(payload))
        return

    if not result.items:
        typer.echo("No task executions found.")
        return
    for execution in result.items:
        typer.echo(_execution_line(execution))
    typer.echo(f"Page {result.page_index + 1} of {result.total_pages} ({result.total} executions)")


@executions_app.command("show")
def show_execution(
    ctx: typer.Context,
    execution_id: int = typer.Argument(..., help="Execution id."),
    json_output: bool = typer.Option(False, "--json", help="Output as JSON."),
) -> None:
    """Show one execution with its parameters and correlated batch jobs."""
    from taskledger.core.ledger import TaskExplorer

    with _open_ledger(ctx) as (db, _):
        explorer = TaskExplorer(db)
        execution = explorer.get(execution_id)
        if execution is None:
            raise ExecutionNotFoundError(execution_id)
        job_ids = sorted(explorer.job_execution_ids(execution_id))

    if json_output:
        typer.echo(json.dumps({**_execution_dict(execution), "job_execution_ids": job_ids}))
        return

    for key, value in _execution_dict(execution).items():
        typer.echo(f"{key}: {value}")
    typer.echo(f"job_execution_ids: {job_ids}")


@executions_app.command("running")
def running_executions(
    ctx: typer.Context,
    task_name: str = typer.Argument(..., help="Task name."),
) -> None:
    """List executions of a task that have not completed."""
    from taskledger.core.ledger import TaskExplorer

    with _open_ledger(ctx) as (db, _):
        running = sorted(TaskExplorer(db).find_running(task_name), key=lambda e: e.execution_id)

    if not running:
        typer.echo(f"No running executions of {task_name}.")
        return
    for execution in running:
        typer.echo(_execution_line(execution))


# === lock ===


def _lock_line(task_name: str, held: NamedLock) -> str:
    return f"{task_name} is locked by client {held.client_id} since {held.created_at.isoformat()} (key {held.lock_key}, region {held.region})"


@lock_app.command("status")
def lock_status(
    ctx: typer.Context,
    task_name: str = typer.Argument(..., help="Task name."),
) -> None:
    """Show who holds the single-instance lock for a task."""
    from taskledger.core.ledger import SingleInstanceLock

    with _open_ledger(ctx) as (db, resolved):
        held = SingleInstanceLock(db, region=resolved.lock_region).holder(task_name)

    if held is None:
        typer.echo(f"{task_name} is not locked.")
        return
    typer.echo(_lock_line(task_name, held))


@lock_app.command("release")
def lock_release(
    ctx: typer.Context,
    task_name: str = typer.Argument(..., help="Task name."),
) -> None:
    """Clear a task's lock, e.g. after its holder crashed.

    Locks have no expiry, so a crashed holder keeps the lock until it is
    released here.
    """
    from taskledger.core.ledger import SingleInstanceLock

    with _open_ledger(ctx) as (db, resolved):
        released = SingleInstanceLock(db, region=resolved.lock_region).release(task_name)

    if released:
        typer.echo(f"Released lock for {task_name}.")
    else:
        typer.echo(f"{task_name} was not locked.")


if __name__ == "__main__":
    app()
