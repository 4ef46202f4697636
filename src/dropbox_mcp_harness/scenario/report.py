"""Summary rendering and JSON export for scenario runs."""

import json
from pathlib import Path
from typing import Any, Dict, Optional, Union

import aiofiles
from rich.markup import escape
from rich.table import Table

from .context import RunSummary, ScenarioContext


def render_summary(ctx: ScenarioContext, summary: Optional[RunSummary] = None) -> None:
    summary = summary or ctx.summary()

    table = Table(title="Test Summary", show_header=False)
    table.add_column("metric")
    table.add_column("value", justify="right")
    table.add_row("Total", str(summary.total))
    table.add_row("Passed", f"[green]{summary.passed}[/green]")
    table.add_row("Failed", f"[red]{summary.failed}[/red]" if summary.failed else "0")
    table.add_row("Success rate", f"{summary.success_rate:.1f}%")
    ctx.console.print(table)

    failures = ctx.failures()
    if failures:
        ctx.console.print("[bold red]Failed steps:[/bold red]")
        for name, error in failures:
            ctx.console.print(f"  - {escape(name)}: {escape(str(error))}")

    not_run = summary.total - summary.passed - summary.failed
    if not_run:
        ctx.console.print(f"[yellow]{not_run} step(s) not run[/yellow]")


def build_report(ctx: ScenarioContext) -> Dict[str, Any]:
    return {
        "summary": ctx.summary().to_dict(),
        "steps": {name: result.to_dict() for name, result in ctx.results.items()},
        "aborted_by": ctx.aborted_by,
        "started_at": ctx.started_at.isoformat(),
        "finished_at": ctx.finished_at.isoformat() if ctx.finished_at else None,
    }


async def write_report(ctx: ScenarioContext, path: Union[str, Path]) -> Path:
    """Write the JSON run report, creating parent directories as needed."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    async with aiofiles.open(path, mode="w", encoding="utf-8") as f:
        await f.write(json.dumps(build_report(ctx), indent=2))
    return path
