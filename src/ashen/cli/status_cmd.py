"""ashen status command."""

from __future__ import annotations

import click

from ashen.backend import ERROR_LOGS
from ashen.cli._common import get_manager, reported
from ashen.core.models import ErrorStatus
from ashen.core.output import print_status


@click.command()
def status():
    """Show overall system health from open errors."""
    with reported("Status"):
        manager = get_manager()
        health = manager.system_status()
        open_count = manager.backend.count(ERROR_LOGS, eq={"status": ErrorStatus.OPEN.value})
    print_status(health, open_count)
