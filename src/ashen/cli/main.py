"""Click CLI entry point for Ashen."""

from __future__ import annotations

import logging

import click
from rich.logging import RichHandler

from ashen._version import __version__
from ashen.core.output import error_console


@click.group()
@click.version_option(version=__version__, prog_name="ashen")
@click.option("--verbose", "-v", count=True, help="Log more (-v info, -vv debug)")
def cli(verbose: int):
    """Ashen - batch error-fix manager.

    Group recorded errors, build fix chains and run them with rollback.
    """
    level = logging.WARNING
    if verbose == 1:
        level = logging.INFO
    elif verbose > 1:
        level = logging.DEBUG
    logging.basicConfig(
        level=level,
        format="%(message)s",
        handlers=[RichHandler(console=error_console, show_path=False)],
        force=True,
    )


# Import and register subcommands
from ashen.cli.errors_cmd import errors  # noqa: E402
from ashen.cli.scan_cmd import scan  # noqa: E402
from ashen.cli.chain_cmd import chain  # noqa: E402
from ashen.cli.flags_cmd import flags  # noqa: E402
from ashen.cli.watchdog_cmd import watchdog  # noqa: E402
from ashen.cli.history_cmd import history  # noqa: E402
from ashen.cli.status_cmd import status  # noqa: E402
from ashen.cli.invoke_cmd import invoke  # noqa: E402

cli.add_command(errors)
cli.add_command(scan)
cli.add_command(chain)
cli.add_command(flags)
cli.add_command(watchdog)
cli.add_command(history)
cli.add_command(status)
cli.add_command(invoke)


if __name__ == "__main__":
    cli()
