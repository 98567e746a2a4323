from __future__ import annotations

from typing import Mapping, Optional, Sequence

from rich.console import Console
from rich.markup import escape
from rich.table import Table

from ..validate import ValidationResult


def render_validation_table(result: ValidationResult, *, console: Optional[Console] = None) -> None:
    table = Table(title="Model Validation", show_header=True, header_style="bold")
    table.add_column("#", style="dim", justify="right")
    table.add_column("Kind", style="cyan", no_wrap=True)
    table.add_column("Message", style="white")
    for index, warning in enumerate(result.warnings, start=1):
        style = "yellow" if warning.is_defaulting else "red"
        table.add_row(str(index), f"[{style}]{warning.kind.value}[/{style}]", escape(warning.message))
    status = "[green]valid[/green]" if result.is_valid else "[red]invalid[/red]"
    table.caption = f"{status}: {len(result.warnings)} warning(s)"
    (console or Console()).print(table)


def render_summary_table(
    *,
    status: str,
    counts: Mapping[str, int],
    written: Sequence[str],
    outdir: str,
    console: Optional[Console] = None,
) -> None:
    table = Table(title="Diagram Summary", show_header=True, header_style="bold")
    table.add_column("Metric", style="cyan")
    table.add_column("Value", style="white")
    table.add_row("Status", status)
    for key, value in counts.items():
        table.add_row(key, str(value))
    table.add_row("Files", ", ".join(written))
    table.add_row("Output dir", outdir)
    (console or Console()).print(table)
