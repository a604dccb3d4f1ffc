"""ashen invoke command."""

from __future__ import annotations

import json

import click

from ashen.cli._common import get_manager, reported


@click.command()
@click.argument("name")
@click.option("--body", default="{}", help="JSON body passed to the function")
def invoke(name: str, body: str):
    """Invoke a named server-side function (auto-healer, learning-engine)."""
    try:
        payload = json.loads(body)
    except json.JSONDecodeError as e:
        raise click.BadParameter(f"--body is not valid JSON: {e}") from e

    with reported(f"Function {name}"):
        result = get_manager().functions.invoke(name, payload)
    click.echo(json.dumps(result, indent=2))
