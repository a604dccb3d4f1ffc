"""ashen errors commands."""

from __future__ import annotations

import json
from pathlib import Path

import click

from ashen.cli._common import get_manager, reported
from ashen.core.models import ErrorRecord, ErrorStatus, Severity
from ashen.core.output import console, notify_success, print_errors


@click.group()
def errors():
    """Record and manage error records."""


@errors.command("add")
@click.argument("component_path")
@click.argument("error_type")
@click.argument("message")
@click.option(
    "--severity", "-s",
    type=click.Choice([s.value for s in Severity]),
    default="medium",
    show_default=True,
)
@click.option("--line", type=int, help="Line number of the failure")
def add(component_path: str, error_type: str, message: str, severity: str, line: int | None):
    """Record a new open error."""
    record = ErrorRecord(
        component_path=component_path,
        error_type=error_type,
        error_message=message,
        severity=Severity(severity),
        line_number=line,
    )
    with reported("Recording error"):
        get_manager().report_error(record)
    notify_success(f"Recorded {record.id}")


@errors.command("import")
@click.argument("source", type=click.Path(exists=True, dir_okay=False, path_type=Path))
def import_errors(source: Path):
    """Import error records from a JSON list."""
    try:
        items = json.loads(source.read_text())
    except json.JSONDecodeError as e:
        raise click.BadParameter(f"{source} is not valid JSON: {e}") from e
    if not isinstance(items, list):
        raise click.BadParameter(f"{source} must contain a JSON list of records")

    try:
        records = [ErrorRecord.from_dict(item) for item in items]
    except (AttributeError, TypeError, ValueError) as e:
        raise click.BadParameter(f"{source} contains an invalid record: {e}") from e

    with reported("Import"):
        manager = get_manager()
        for record in records:
            manager.report_error(record)
    notify_success(f"Imported {len(items)} error record(s)")


@errors.command("list")
@click.option(
    "--status",
    type=click.Choice([s.value for s in ErrorStatus]),
    help="Only show records with this status",
)
@click.option("--limit", type=int, default=50, show_default=True)
@click.option("--json", "as_json", is_flag=True, help="Export as JSON")
def list_errors(status: str | None, limit: int, as_json: bool):
    """List recorded errors, newest first."""
    with reported("Loading errors"):
        records = get_manager().list_errors(ErrorStatus(status) if status else None, limit=limit)
    if as_json:
        click.echo(json.dumps([r.to_dict() for r in records], indent=2))
        return
    print_errors(records)


@errors.command("resolve")
@click.argument("error_id")
def resolve(error_id: str):
    """Mark an error as resolved."""
    with reported("Resolving error"):
        get_manager().resolve_error(error_id)
    notify_success(f"{error_id} marked as resolved")


@errors.command("ignore")
@click.argument("error_id")
def ignore(error_id: str):
    """Mark an error as ignored."""
    with reported("Ignoring error"):
        get_manager().ignore_error(error_id)
    console.print(f"  [dim]{error_id} ignored[/dim]")
