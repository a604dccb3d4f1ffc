"""ashen history command."""

from __future__ import annotations

import json

import click

from ashen.cli._common import get_manager, reported
from ashen.core.output import console, print_history


@click.command()
@click.option("--limit", type=int, default=50, show_default=True)
@click.option("--chain", "chain_id", help="Only entries for this chain")
@click.option("--summary", is_flag=True, help="Show per-method result counts")
@click.option("--json", "as_json", is_flag=True, help="Export as JSON")
def history(limit: int, chain_id: str | None, summary: bool, as_json: bool):
    """Show the healing history of applied and rolled-back patches."""
    with reported("Loading history"):
        manager = get_manager()
        if summary:
            data = manager.history.success_by_method()
        else:
            data = manager.history.recent(limit=limit, chain_id=chain_id)

    if as_json:
        click.echo(json.dumps(data, indent=2))
        return

    if summary:
        if not data:
            console.print("\n  No healing history yet.\n")
            return
        console.print("\n  [bold]Results by fix method[/bold]\n")
        for method, counts in data.items():
            parts = ", ".join(f"{k}={v}" for k, v in sorted(counts.items()))
            console.print(f"  {method:<20} {parts}")
        console.print()
        return

    print_history(data)
