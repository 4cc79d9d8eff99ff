"""
RunReport schema - aggregate of all StepResults for one invocation.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Optional

from .step_result import StepResult, StepStatus


def _utcnow() -> datetime:
    """Return current UTC time as timezone-aware datetime."""
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class RunReport:
    """
    The result of one orchestrator invocation.

    Attributes:
        results: StepResults in execution order (units never attempted are absent)
        dry_run: Whether the whole invocation was a preview
        log_dir: Run-scoped log directory (not created on dry runs)
        stopped_early: True when stop-on-failure halted the loop
        started_at: When the run started
        completed_at: When the last unit reached its terminal state
    """
    results: tuple[StepResult, ...] = ()
    dry_run: bool = False
    log_dir: Optional[Path] = None
    stopped_early: bool = False
    started_at: datetime = field(default_factory=_utcnow)
    completed_at: Optional[datetime] = None

    @property
    def any_failed(self) -> bool:
        """True if any unit ended FAIL or MISSING."""
        return any(result.failed for result in self.results)

    @property
    def exit_code(self) -> int:
        """Process exit code: 0 only if no unit ended FAIL or MISSING."""
        return 1 if self.any_failed else 0

    def count(self, status: StepStatus) -> int:
        return sum(1 for result in self.results if result.status == status)

    def to_dict(self) -> dict[str, Any]:
        """Serialize to dictionary for JSON output."""
        result: dict[str, Any] = {
            "results": [step.to_dict() for step in self.results],
            "dry_run": self.dry_run,
            "log_dir": str(self.log_dir) if self.log_dir is not None else None,
            "stopped_early": self.stopped_early,
            "any_failed": self.any_failed,
            "exit_code": self.exit_code,
            "started_at": self.started_at.isoformat(),
        }
        if self.completed_at is not None:
            result["completed_at"] = self.completed_at.isoformat()
        return result

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "RunReport":
        """Deserialize from dictionary. Derived fields are recomputed."""
        return cls(
            results=tuple(StepResult.from_dict(step) for step in data.get("results", [])),
            dry_run=data.get("dry_run", False),
            log_dir=Path(data["log_dir"]) if data.get("log_dir") else None,
            stopped_early=data.get("stopped_early", False),
            started_at=datetime.fromisoformat(data["started_at"]),
            completed_at=datetime.fromisoformat(data["completed_at"]) if data.get("completed_at") else None,
        )
