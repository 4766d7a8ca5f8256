"""Rich terminal output for mapping summaries and search results."""

from __future__ import annotations

from rich.console import Console
from rich.table import Table

from .mappings import MappingSummary

console = Console()


def display_mapping_summary(summary: MappingSummary) -> None:
    """One table per index: field, exact path (if any)."""
    if not summary.fields:
        console.print("[yellow]No mapping information available.[/yellow]")
        return
    for index, paths in summary.fields.items():
        table = Table(title=f"Index: {index}", show_lines=False)
        table.add_column("Field", style="cyan")
        table.add_column("Exact match", justify="center")
        table.add_column("Exact path", style="dim")
        for path, exact in paths.items():
            marker = "[green]yes[/green]" if exact else "[red]no[/red]"
            table.add_row(path, marker, exact or "")
        console.print(table)
    if summary.loaded_at:
        console.print(f"[dim]Loaded at {summary.loaded_at}[/dim]")


def display_results(results: list[dict], title: str = "Results") -> None:
    if not results:
        console.print(f"[yellow]{title}: no matches.[/yellow]")
        return
    table = Table(title=f"{title} ({len(results)})")
    table.add_column("ID", style="cyan")
    table.add_column("Type")
    table.add_column("Title / Name", style="bold")
    table.add_column("Index", style="dim")
    table.add_column("Score", justify="right")
    for item in results:
        score = item.get("score")
        table.add_row(
            str(item.get("$id") or ""),
            str(item.get("docType") or ""),
            str(item.get("title") or item.get("name") or ""),
            str(item.get("index") or ""),
            f"{score:.2f}" if isinstance(score, (int, float)) else "",
        )
    console.print(table)
