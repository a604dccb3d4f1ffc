"""ashen chain commands."""

from __future__ import annotations

import asyncio
import json
import signal

import click
from rich.prompt import Confirm

from ashen.cli._common import get_manager, reported
from ashen.core.errors import BackendError
from ashen.core.models import ChainStatus, FixChain, PatchStatus
from ashen.core.output import (
    console,
    get_progress,
    notify_error,
    notify_success,
    print_chain,
    print_chain_list,
)
from ashen.fix.engine import BatchFixManager
from ashen.fix.executor import CancellationToken


@click.group()
def chain():
    """Create, inspect and run fix chains."""


@chain.command("create")
@click.argument("group_ids", nargs=-1)
def create(group_ids: tuple[str, ...]):
    """Create a fix chain from one or more GROUP_IDS (see `ashen scan`)."""
    with reported("Creating fix chain"):
        fix_chain = get_manager().create_chain(list(group_ids))
    notify_success(f"Created {fix_chain.id} with {fix_chain.total_fixes} fixes")
    print_chain(fix_chain)


@chain.command("list")
@click.option("--limit", type=int, default=20, show_default=True)
def list_chains(limit: int):
    """List fix chains, newest first."""
    with reported("Loading chains"):
        chains = get_manager().list_chains(limit=limit)
    print_chain_list(chains)


@chain.command("show")
@click.argument("chain_id")
@click.option("--json", "as_json", is_flag=True, help="Output the chain as JSON")
def show(chain_id: str, as_json: bool):
    """Show a chain and the status of each patch."""
    with reported("Loading chain"):
        fix_chain = get_manager().get_chain(chain_id)
        if fix_chain is None:
            raise BackendError(f"No fix chain {chain_id}")
    if as_json:
        click.echo(json.dumps(fix_chain.to_dict(), indent=2))
        return
    print_chain(fix_chain)


@chain.command("run")
@click.argument("chain_id")
@click.option("--yes", "-y", is_flag=True, help="Skip confirmation prompt")
def run(chain_id: str, yes: bool):
    """Run a pending chain. Ctrl-C stops it after the current patch and rolls back."""
    with reported("Running fix chain"):
        manager = get_manager()
        fix_chain = manager.get_chain(chain_id)
        if fix_chain is None:
            raise BackendError(f"No fix chain {chain_id}")

        if fix_chain.status is not ChainStatus.PENDING:
            notify_error(f"{chain_id} is {fix_chain.status.value}; only pending chains can run")
            raise click.exceptions.Exit(1)

        if not yes:
            if not Confirm.ask(f"  Apply {fix_chain.total_fixes} fixes in {chain_id}?", default=False):
                console.print("  [dim]Cancelled.[/dim]")
                return

        result = asyncio.run(_run_with_progress(manager, fix_chain))

    print_chain(result)
    if result.status is ChainStatus.COMPLETED:
        notify_success(f"Fix chain completed: {result.successful_fixes} fixes applied")
    else:
        notify_error(f"Fix chain rolled back: {result.rollback_reason}")
        raise click.exceptions.Exit(1)


async def _run_with_progress(manager: BatchFixManager, fix_chain: FixChain) -> FixChain:
    token = CancellationToken()
    loop = asyncio.get_running_loop()
    try:
        loop.add_signal_handler(signal.SIGINT, token.cancel)
    except (NotImplementedError, RuntimeError):
        pass  # no signal handlers on this platform; Ctrl-C aborts immediately

    try:
        with get_progress() as progress:
            task = progress.add_task(fix_chain.name, total=fix_chain.total_fixes)

            def on_progress(c: FixChain, patch) -> None:
                done = sum(1 for p in c.patches if p.status in (PatchStatus.SUCCESS, PatchStatus.FAILED))
                label = f"#{patch.execution_order} {patch.description}" if patch else c.status.value
                progress.update(task, completed=done, description=label)

            return await manager.run_chain(fix_chain.id, token=token, on_progress=on_progress)
    finally:
        try:
            loop.remove_signal_handler(signal.SIGINT)
        except (NotImplementedError, RuntimeError):
            pass
