"""Sequential scenario driver."""

from datetime import datetime
from typing import Sequence

from rich.markup import escape

from ..utils.errors import CredentialError, HarnessError, error_context
from ..utils.logging import get_logger
from .context import RunSummary, ScenarioContext
from .report import render_summary
from .steps import STEPS, Step

logger = get_logger("dropbox-mcp-harness.scenario")


async def run_step(ctx: ScenarioContext, step: Step) -> None:
    """Run one step and record its outcome.

    A failed soft step is recorded and swallowed; any other failure is
    recorded and re-raised to abort the run.
    """
    logger.info("step_started", step=step.name)
    try:
        with error_context("scenario", step.name):
            detail = await step.run(ctx)
    except HarnessError as e:
        ctx.record(step.name, False, e.message, details=e.to_dict()["error"])
        ctx.console.print(f"[red]✗[/red] {step.name}: {escape(e.message)}")
        logger.warning("step_failed", step=step.name, code=e.code, soft=step.soft)
        if step.soft and not isinstance(e, CredentialError):
            return
        raise

    ctx.record(step.name, True)
    suffix = f" ({escape(detail)})" if detail else ""
    ctx.console.print(f"[green]✓[/green] {step.name}{suffix}")
    logger.info("step_passed", step=step.name)


async def run_scenario(ctx: ScenarioContext, steps: Sequence[Step] = STEPS) -> RunSummary:
    """
    Run every step once, in order.

    The first hard failure stops the run; the summary is rendered whether or
    not the run completed. A CredentialError is fatal and propagates without
    a summary.
    """
    ctx.total_steps = len(steps)
    ctx.console.rule("Dropbox MCP end-to-end scenario")

    try:
        for step in steps:
            await run_step(ctx, step)
    except CredentialError:
        ctx.finished_at = datetime.utcnow()
        raise
    except HarnessError as e:
        ctx.aborted_by = e.message
        ctx.console.print(f"[bold red]Run aborted:[/bold red] {escape(e.message)}")
        logger.error("scenario_aborted", error=e.message, code=e.code)

    ctx.finished_at = datetime.utcnow()
    summary = ctx.summary()
    render_summary(ctx, summary)
    logger.info("scenario_finished", **summary.to_dict())
    return summary
