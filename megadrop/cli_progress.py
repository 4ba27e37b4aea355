"""Console rendering helpers for the megadrop CLI."""
from __future__ import annotations

from typing import Any, Dict, Iterable

from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from .models import UploadResult

console = Console()


def _human_size(value: int) -> str:
    size = float(max(value, 0))
    units = ["B", "KB", "MB", "GB", "TB"]
    unit_idx = 0
    while size >= 1024.0 and unit_idx < len(units) - 1:
        size /= 1024.0
        unit_idx += 1
    if unit_idx == 0:
        return f"{int(size)} {units[unit_idx]}"
    return f"{size:.2f} {units[unit_idx]}"


def render_configuration_summary(config: Dict[str, Any], title: str = "megadrop") -> None:
    """Render startup configuration summary."""
    table = Table.grid(padding=(0, 2))
    table.add_column(style="bold cyan", justify="right")
    table.add_column(style="white")

    for key, value in config.items():
        rendered = "-" if value is None else str(value)
        table.add_row(key, rendered)

    panel = Panel(
        table,
        title=f"[bold green]{title}[/bold green]",
        subtitle="[dim]MEGA device uploads[/dim]",
        border_style="blue",
    )
    console.print(panel)


def _status_cell(result: UploadResult) -> str:
    if result.skipped:
        return "[yellow]skipped[/yellow]"
    if result.success:
        return "[green]uploaded[/green]"
    if result.retryable:
        return "[red]failed[/red] [dim](retryable)[/dim]"
    return "[red]failed[/red]"


def render_upload_results(results: Iterable[UploadResult]) -> None:
    """One row per file: status, stored name, size, time, detail."""
    table = Table(title="Upload results", show_lines=False)
    table.add_column("File", style="white")
    table.add_column("Status")
    table.add_column("Stored as", style="cyan")
    table.add_column("Size", justify="right")
    table.add_column("Time", justify="right")
    table.add_column("Detail", style="dim")

    for result in results:
        detail = result.skip_reason if result.skipped else (result.error or result.folder_path or "")
        table.add_row(
            result.original_name,
            _status_cell(result),
            result.file_name if result.success else "-",
            _human_size(result.size),
            f"{result.duration_ms} ms",
            detail,
        )
    console.print(table)


def render_batch_summary(summary: Dict[str, Any]) -> None:
    failed = summary.get("failed", 0)
    style = "green" if not failed else "red"
    console.print(
        f"[{style}]{summary.get('successful', 0)}/{summary.get('total', 0)} successful, "
        f"{failed} failed[/{style}] in {summary.get('totalTimeMs', 0)} ms"
    )


def render_health(attempt: int, max_attempts: int, status_code: int, payload: Dict[str, Any]) -> None:
    """Render one health check of the monitor command."""
    if status_code == 200 and payload.get("status"):
        table = Table.grid(padding=(0, 2))
        table.add_column(style="bold cyan", justify="right")
        table.add_column(style="white")
        table.add_row("Status", str(payload.get("status")))
        table.add_row("Environment", str(payload.get("environment", "-")))
        table.add_row("Uptime", f"{payload.get('uptime', '-')}s")
        table.add_row("MEGA Connected", "yes" if payload.get("megaConnected") else "no")
        console.print(Panel(table, title="[bold green]Deployment is live[/bold green]", border_style="green"))
        return
    console.print(f"[yellow]Attempt {attempt}/{max_attempts}: HTTP {status_code}[/yellow]")


def echo(message: str) -> None:
    console.print(message)
