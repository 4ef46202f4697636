"""Run-scoped state for one scenario run."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

from rich.console import Console

from ..client import ToolClient
from ..credentials import TokenStore
from ..utils.config import ScenarioConfig


@dataclass
class StepResult:
    """Outcome of one named step."""
    success: bool
    error: Optional[str] = None
    details: Optional[Dict[str, Any]] = None

    def to_dict(self) -> Dict[str, Any]:
        data = {"success": self.success, "error": self.error}
        if self.details is not None:
            data["details"] = self.details
        return data


@dataclass
class RunSummary:
    """Aggregate counts for a run."""
    total: int
    passed: int
    failed: int

    @property
    def success_rate(self) -> float:
        if self.total == 0:
            return 0.0
        return self.passed / self.total * 100

    @property
    def completed(self) -> bool:
        return self.passed + self.failed == self.total

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total": self.total,
            "passed": self.passed,
            "failed": self.failed,
            "success_rate": round(self.success_rate, 1),
        }


@dataclass
class ScenarioContext:
    """Everything a step needs, passed explicitly to each step function."""
    client: ToolClient
    tokens: TokenStore
    settings: ScenarioConfig
    console: Console
    total_steps: int = 0
    results: Dict[str, StepResult] = field(default_factory=dict)
    started_at: datetime = field(default_factory=datetime.utcnow)
    finished_at: Optional[datetime] = None
    aborted_by: Optional[str] = None

    def record(self, name: str, success: bool, error: Optional[str] = None,
               details: Optional[Dict[str, Any]] = None) -> None:
        if name in self.results:
            raise RuntimeError(f"Step {name!r} already recorded")
        self.results[name] = StepResult(success=success, error=error, details=details)

    def summary(self) -> RunSummary:
        passed = sum(1 for r in self.results.values() if r.success)
        failed = len(self.results) - passed
        return RunSummary(total=self.total_steps, passed=passed, failed=failed)

    def failures(self) -> List[Tuple[str, Optional[str]]]:
        return [(name, r.error) for name, r in self.results.items() if not r.success]
