"""ashen flags commands."""

from __future__ import annotations

from pathlib import Path

import click

from ashen.backend import Backend
from ashen.cli._common import reported
from ashen.core.flags import FLAG_SCHEMA, FlagStore
from ashen.core.output import notify_success, print_flags


@click.group()
def flags():
    """Show and change feature flags."""


@flags.command("list")
def list_flags():
    """Show the current flag snapshot."""
    with reported("Loading flags"):
        snapshot = FlagStore(Backend(Path.cwd())).snapshot()
    print_flags(snapshot)


@flags.command("set")
@click.argument("key", type=click.Choice(sorted(FLAG_SCHEMA)))
@click.argument("value")
def set_flag(key: str, value: str):
    """Set flag KEY to VALUE (true/false for toggles, numbers otherwise)."""
    with reported("Updating flag"):
        snapshot = FlagStore(Backend(Path.cwd())).set(key, value)
    notify_success(f"{key} = {getattr(snapshot, key)!r}")
