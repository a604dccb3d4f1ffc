"""Rich terminal formatting for Ashen output."""

from __future__ import annotations

from typing import Any

from rich.console import Console
from rich.panel import Panel
from rich.progress import BarColumn, Progress, SpinnerColumn, TextColumn
from rich.table import Table

from ashen.core.flags import FeatureFlags
from ashen.core.models import (
    ChainStatus,
    ErrorGroup,
    ErrorRecord,
    FixChain,
    PatchStatus,
    Severity,
)
from ashen.fix.watchdog import ModuleReport

console = Console()
error_console = Console(stderr=True)


SEVERITY_COLORS = {
    Severity.CRITICAL: "red",
    Severity.HIGH: "dark_orange",
    Severity.MEDIUM: "yellow",
    Severity.LOW: "blue",
}

CHAIN_COLORS = {
    ChainStatus.PENDING: "dim",
    ChainStatus.RUNNING: "blue",
    ChainStatus.COMPLETED: "green",
    ChainStatus.FAILED: "red",
    ChainStatus.ROLLED_BACK: "yellow",
}

PATCH_ICONS = {
    PatchStatus.PENDING: "[dim]○[/dim]",
    PatchStatus.APPLYING: "[blue]◔[/blue]",
    PatchStatus.SUCCESS: "[green]✅[/green]",
    PatchStatus.FAILED: "[red]❌[/red]",
    PatchStatus.ROLLED_BACK: "[yellow]↺[/yellow]",
}

STATUS_COLORS = {
    "healthy": "green",
    "warning": "yellow",
    "degraded": "yellow",
    "critical": "red",
    "broken": "red",
}


def notify_success(message: str) -> None:
    console.print(f"  [green]✅ {message}[/green]")


def notify_error(message: str) -> None:
    error_console.print(f"  [red]❌ {message}[/red]")


def severity_label(severity: Severity) -> str:
    color = SEVERITY_COLORS[severity]
    return f"[{color}]{severity.value}[/{color}]"


def chain_label(status: ChainStatus) -> str:
    color = CHAIN_COLORS[status]
    return f"[{color}]{status.value}[/{color}]"


def print_errors(records: list[ErrorRecord]) -> None:
    if not records:
        console.print("\n  No error records.\n")
        return
    table = Table(title="Error Records", show_lines=False)
    table.add_column("ID", style="dim", no_wrap=True)
    table.add_column("Path")
    table.add_column("Type")
    table.add_column("Severity")
    table.add_column("Status")
    table.add_column("Message")
    for r in records:
        table.add_row(r.id, r.component_path, r.error_type, severity_label(r.severity), r.status.value, r.error_message)
    console.print(table)


def print_groups(groups: list[ErrorGroup]) -> None:
    if not groups:
        console.print("\n  No error groups found. Nothing to batch-fix.\n")
        return
    table = Table(title=f"{len(groups)} Error Group(s)")
    table.add_column("Group ID", no_wrap=True)
    table.add_column("Kind")
    table.add_column("Name")
    table.add_column("Errors", justify="right")
    table.add_column("Severity")
    table.add_column("Batch")
    table.add_column("Est.", justify="right")
    for g in groups:
        table.add_row(
            g.id,
            g.kind.value,
            g.name,
            str(g.error_count),
            severity_label(g.severity),
            "[green]yes[/green]" if g.can_batch_fix else "[dim]no[/dim]",
            f"{g.estimated_fix_minutes}m",
        )
    console.print(table)
    console.print("  Create a chain: [bold]ashen chain create <GROUP_ID> ...[/bold]\n")


def print_chain(chain: FixChain) -> None:
    """Print one chain with every patch."""
    lines = []
    lines.append(f"  Status:   {chain_label(chain.status)}")
    lines.append(
        f"  Fixes:    {chain.successful_fixes}/{chain.total_fixes} succeeded, "
        f"{chain.failed_fixes} failed"
    )
    lines.append(f"  Created:  {chain.created_at:%Y-%m-%d %H:%M:%S}")
    if chain.started_at:
        lines.append(f"  Started:  {chain.started_at:%Y-%m-%d %H:%M:%S}")
    if chain.completed_at:
        lines.append(f"  Finished: {chain.completed_at:%Y-%m-%d %H:%M:%S}")
    if chain.rollback_reason:
        lines.append(f"  [yellow]Rollback: {chain.rollback_reason}[/yellow]")
    for err in chain.rollback_errors:
        lines.append(f"  [red]Revert error: {err}[/red]")
    lines.append("")

    for patch in chain.patches_in_order():
        icon = PATCH_ICONS[patch.status]
        lines.append(
            f"  {icon} {patch.execution_order:>3}. {patch.fix_type.value:<18} "
            f"{patch.component_path}  [dim]{patch.description}[/dim]"
        )

    console.print(Panel(
        "\n".join(lines),
        title=f"[bold]{chain.name}[/bold]  [dim]{chain.id}[/dim]",
        border_style=CHAIN_COLORS[chain.status],
        padding=(0, 1),
    ))


def print_chain_list(chains: list[FixChain]) -> None:
    if not chains:
        console.print("\n  No fix chains yet. Run `ashen scan` then `ashen chain create`.\n")
        return
    table = Table(title="Fix Chains")
    table.add_column("Chain ID", no_wrap=True)
    table.add_column("Name")
    table.add_column("Status")
    table.add_column("Done", justify="right")
    table.add_column("Created")
    for c in chains:
        table.add_row(
            c.id,
            c.name,
            chain_label(c.status),
            f"{c.successful_fixes}/{c.total_fixes}",
            f"{c.created_at:%Y-%m-%d %H:%M}",
        )
    console.print(table)


def print_flags(flags: FeatureFlags) -> None:
    table = Table(title="Feature Flags")
    table.add_column("Flag")
    table.add_column("Value")
    for name, value in vars(flags).items():
        if isinstance(value, bool):
            shown = "[green]on[/green]" if value else "[dim]off[/dim]"
        else:
            shown = str(value)
        table.add_row(name, shown)
    console.print(table)


def print_watchdog(reports: list[ModuleReport], show_healthy: bool = False) -> None:
    lines = []
    for report in reports:
        if report.status == "healthy" and not show_healthy:
            continue
        color = STATUS_COLORS.get(report.status, "white")
        lines.append(
            f"  [{color}]{report.status:<9}[/{color}] {report.module.name:<22} "
            f"{len(report.open_errors)} open  [dim]{report.module.priority}[/dim]"
        )
        for issue in report.issues[:5]:
            lines.append(f"      - {issue}")
    if not lines:
        lines.append("  [green]All modules healthy.[/green]")
    console.print(Panel("\n".join(lines), title="[bold]Module Watchdog[/bold]", padding=(0, 1)))


def print_history(rows: list[dict[str, Any]]) -> None:
    if not rows:
        console.print("\n  No healing history yet.\n")
        return
    table = Table(title="Healing History")
    table.add_column("When")
    table.add_column("Chain", no_wrap=True)
    table.add_column("Method")
    table.add_column("Result")
    table.add_column("Files")
    for row in rows:
        result = row.get("result_status", "")
        color = {"applied": "green", "failed": "red", "rolled_back": "yellow"}.get(result, "white")
        table.add_row(
            str(row.get("created_at", ""))[:19],
            row.get("chain_id", ""),
            row.get("fix_method", ""),
            f"[{color}]{result}[/{color}]",
            ", ".join(row.get("files_modified") or []),
        )
    console.print(table)


def print_status(status: str, open_count: int) -> None:
    color = STATUS_COLORS.get(status, "white")
    console.print(f"\n  System status: [{color} bold]{status.upper()}[/{color} bold]  ({open_count} open errors)\n")


def get_progress() -> Progress:
    """Create a progress instance for chain execution."""
    return Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        BarColumn(),
        TextColumn("{task.completed}/{task.total}"),
        console=console,
    )
