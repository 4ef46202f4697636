"""End-to-end Dropbox scenario

Fifteen sequential tool calls against a live Dropbox account, each recorded
as a pass or fail, followed by a summary.
"""

from .context import ScenarioContext, StepResult, RunSummary
from .steps import STEPS, Step
from .runner import run_scenario, run_step
from .report import render_summary, build_report, write_report

__all__ = [
    "ScenarioContext",
    "StepResult",
    "RunSummary",
    "STEPS",
    "Step",
    "run_scenario",
    "run_step",
    "render_summary",
    "build_report",
    "write_report",
]
