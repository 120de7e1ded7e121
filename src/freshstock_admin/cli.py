"""Command line interface for the back-office service."""

from __future__ import annotations

import json
from datetime import date
from pathlib import Path
from typing import Optional

import typer
import uvicorn

from . import crud, schemas
from .auth import OperatorContext
from .bulk import BulkUpdateEngine
from .clock import SystemClock
from .config import Settings, get_settings
from .crud import DuplicateUsernameError
from .database import init_database, session_scope
from .errors import NotFoundError
from .ledger import DailyLedger
from .logging_config import setup_logging

app = typer.Typer(help="Manage and run the FreshStock back-office service.")


def _heading(title: str) -> None:
    typer.secho(title, bold=True, fg=typer.colors.CYAN)


def _prepare() -> Settings:
    """Load settings, start logging and make sure the schema exists."""

    settings = get_settings()
    setup_logging(settings)
    init_database()
    return settings


@app.command()
def run(
    host: Optional[str] = typer.Option(None, help="Interface to listen on"),
    port: Optional[int] = typer.Option(None, help="TCP port for the API"),
    reload: Optional[bool] = typer.Option(None, help="Restart when source files change"),
    log_level: Optional[str] = typer.Option(None, help="Server log level"),
) -> None:
    """Serve the back-office API."""

    settings = _prepare()
    typer.echo(f"Ledger database: {settings.database_path}")
    uvicorn.run(
        "freshstock_admin.app:create_app",
        factory=True,
        host=host or settings.host,
        port=port or settings.port,
        log_level=log_level or settings.log_level,
        reload=settings.reload if reload is None else reload,
    )


@app.command("init-db")
def init_db() -> None:
    """Create the ledger, catalog and audit tables."""

    settings = _prepare()
    typer.secho(f"Tables ready in {settings.database_path}", fg=typer.colors.GREEN)


@app.command("create-admin")
def create_admin(
    username: str = typer.Argument(..., help="Operator login"),
    password: Optional[str] = typer.Option(
        None,
        "--password",
        help="Login password; prompted for when omitted",
        prompt=True,
        hide_input=True,
        confirmation_prompt=True,
    ),
    full_name: Optional[str] = typer.Option(None, "--name", help="Name shown in the back office"),
    superuser: bool = typer.Option(True, help="Allow bulk updates, catalog edits and purges"),
) -> None:
    """Register an operator who can sign in to the back office."""

    _prepare()
    if not password:
        typer.secho("A password is needed to create an operator", fg=typer.colors.RED)
        raise typer.Exit(code=1)
    payload = schemas.OperatorCreate(
        username=username, password=password, full_name=full_name, is_superuser=superuser
    )
    with session_scope() as session:
        try:
            operator = crud.create_operator(session, payload)
        except DuplicateUsernameError as exc:
            typer.secho(str(exc), fg=typer.colors.RED)
            raise typer.Exit(code=1) from exc
        role = "administrator" if operator.is_superuser else "operator"
        typer.secho(f"Added {role} {operator.username} (#{operator.id})", fg=typer.colors.GREEN)


@app.command("list-operators")
def list_operators_cmd() -> None:
    """Show every registered operator."""

    _prepare()
    with session_scope() as session:
        operators = crud.list_operators(session)
        if not operators:
            typer.echo("Nobody has been registered yet.")
            return
        _heading("Operators")
        for operator in operators:
            flags = ", ".join(
                label
                for label, on in (("admin", operator.is_superuser), ("disabled", not operator.is_active))
                if on
            )
            typer.echo(f"#{operator.id:<4} {operator.username}" + (f" [{flags}]" if flags else ""))


@app.command("show-paths")
def show_paths() -> None:
    """Print where the database and log file live."""

    settings = _prepare()
    typer.echo(f"Ledger database: {settings.database_path}")
    typer.echo(f"Log file:        {settings.log_file}")


@app.command("ledger-report")
def ledger_report(
    entry_date: Optional[str] = typer.Option(None, "--date", help="ISO date, defaults to today"),
    csv_output: Optional[Path] = typer.Option(None, "--csv", help="Also write the day's entries to this file"),
) -> None:
    """Print the day's ledger totals."""

    _prepare()
    day = date.fromisoformat(entry_date) if entry_date else SystemClock().today()
    with session_scope() as session:
        ledger = DailyLedger(session, SystemClock())
        summary = ledger.daily_summary(day)
        _heading(f"Daily stock report for {day.isoformat()}")
        typer.echo(f"Entries:          {summary.entry_count}")
        typer.echo(f"Yesterday net:    {summary.yesterday_net:.2f}")
        typer.echo(f"Today quantity:   {summary.today_quantity:.2f}")
        typer.echo(f"Total:            {summary.total:.2f}")
        typer.echo(f"Sales:            {summary.today_sale:.2f}")
        typer.echo(f"Returned:         {summary.return_to_market:.2f}")
        typer.echo(f"Adjustments:      {summary.adjust_quantity:+.2f}")
        typer.echo(f"Net amount:       {summary.net_amount:.2f}")
        if csv_output:
            try:
                csv_output.write_text(ledger.export_csv(day), encoding="utf-8")
            except NotFoundError as exc:
                typer.secho(str(exc), fg=typer.colors.YELLOW)
                return
            typer.secho(f"Saved to {csv_output}", fg=typer.colors.GREEN)


@app.command("purge-ledger")
def purge_ledger(
    days: int = typer.Option(..., "--days", min=1, help="Delete entries older than this many days"),
    yes: bool = typer.Option(False, "--yes", help="Skip the confirmation prompt"),
) -> None:
    """Delete ledger entries dated before today minus DAYS."""

    _prepare()
    if not yes:
        typer.confirm(f"Delete every ledger entry older than {days} days? This cannot be undone", abort=True)
    with session_scope() as session:
        report = DailyLedger(session, SystemClock()).delete_entries_older_than(days)
    if not report.deleted and not report.failed:
        typer.echo(f"No entries found older than {days} days.")
        return
    typer.secho(
        f"Deleted {report.deleted} entries from {len(report.dates)} dates before {report.cutoff}",
        fg=typer.colors.GREEN,
    )
    if report.failed:
        typer.secho(f"Could not delete entries: {report.failed}", fg=typer.colors.RED)
        raise typer.Exit(code=1)


@app.command("bulk-update")
def bulk_update(
    source: Path = typer.Argument(..., exists=True, dir_okay=False, help="JSON list of {item_id, rate, available}"),
    operator_name: str = typer.Option(..., "--operator", help="Operator recorded in the audit log"),
    max_retries: Optional[int] = typer.Option(None, min=1, help="Attempts before giving up"),
) -> None:
    """Apply a file of rate/availability changes as one transaction."""

    _prepare()
    try:
        changes = json.loads(source.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        typer.secho(f"{source} is not valid JSON: {exc}", fg=typer.colors.RED)
        raise typer.Exit(code=1) from exc
    if not isinstance(changes, list):
        typer.secho("Expected a JSON list of updates.", fg=typer.colors.RED)
        raise typer.Exit(code=1)

    with session_scope() as session:
        operator = crud.get_operator_by_username(session, operator_name)
        if not operator or not operator.is_active or not operator.is_superuser:
            typer.secho(f"{operator_name} is not an active administrator", fg=typer.colors.RED)
            raise typer.Exit(code=1)
        engine = BulkUpdateEngine(session, SystemClock())
        result = engine.bulk_update(changes, OperatorContext.from_operator(operator), max_retries)

    if not result.success:
        for error in result.errors:
            typer.secho(error, fg=typer.colors.RED)
        raise typer.Exit(code=1)
    typer.secho(f"Updated {result.updated_count} items:", fg=typer.colors.GREEN)
    for name in result.touched_items:
        typer.echo(f"- {name}")


@app.command("audit-log")
def audit_log(limit: int = typer.Option(20, min=1, help="Number of entries to show")) -> None:
    """Show the most recent bulk update audit entries."""

    _prepare()
    with session_scope() as session:
        entries = crud.list_audit_log(session, limit=limit)
    if not entries:
        typer.echo("No audit entries found.")
        return
    _heading("Audit log")
    for entry in entries:
        colour = typer.colors.GREEN if entry.status == "success" else typer.colors.RED
        line = f"{entry.timestamp:%Y-%m-%d %H:%M} {entry.operator} {entry.status} ({entry.requested_count} requested)"
        if entry.error:
            line += f": {entry.error}"
        typer.secho(line, fg=colour)


def main() -> None:
    """Entry-point for console scripts."""

    app()


if __name__ == "__main__":  # pragma: no cover
    main()
