"""ashen scan command."""

from __future__ import annotations

import json

import click

from ashen.cli._common import get_manager, reported
from ashen.core.output import print_groups


@click.command()
@click.option("--json", "as_json", is_flag=True, help="Output groups as JSON")
def scan(as_json: bool):
    """Group open errors into batch-fixable groups."""
    with reported("Scan"):
        groups = get_manager().scan()

    if as_json:
        click.echo(json.dumps([g.to_dict() for g in groups], indent=2))
        return
    print_groups(groups)
