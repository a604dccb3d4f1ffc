"""ashen watchdog command."""

from __future__ import annotations

import click

from ashen.cli._common import get_manager, reported
from ashen.core.output import print_watchdog


@click.command()
@click.option("--all", "show_all", is_flag=True, help="Include healthy modules")
def watchdog(show_all: bool):
    """Attribute recent errors to known modules and report their health."""
    with reported("Watchdog"):
        reports = get_manager().watchdog()
    print_watchdog(reports, show_healthy=show_all)
