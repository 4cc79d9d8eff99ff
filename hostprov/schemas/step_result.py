"""
StepResult schema - the outcome of processing one provisioning unit.

A StepResult is built once the unit reaches a terminal state and is
appended to the run's ordered result sequence. It is never mutated.
"""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Any, Optional

from .unit import ProvisioningUnit


class StepStatus(str, Enum):
    """Terminal status of a unit."""
    OK = "OK"
    FAIL = "FAIL"
    MISSING = "MISSING"
    DRY_RUN = "DRY-RUN"

    @property
    def is_failure(self) -> bool:
        """Whether this status counts toward the run's failure flag."""
        return self in (StepStatus.FAIL, StepStatus.MISSING)


@dataclass(frozen=True)
class StepResult:
    """
    The outcome of processing a single unit.

    Attributes:
        index: 1-based position of the unit in the run
        unit: The unit that was processed
        status: Terminal status (OK, FAIL, MISSING, DRY-RUN)
        exit_code: Exit status of the unit (None for MISSING, 0 for DRY-RUN)
        elapsed_seconds: Wall-clock duration (None for MISSING)
        log_path: File holding the unit's combined output (None unless executed)
        started_at: When processing of the unit started
        completed_at: When the unit reached its terminal state
    """
    index: int
    unit: ProvisioningUnit
    status: StepStatus
    exit_code: Optional[int] = None
    elapsed_seconds: Optional[float] = None
    log_path: Optional[Path] = None
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

    def __post_init__(self):
        if self.index < 1:
            raise ValueError(f"Step index must be 1-based, got {self.index}")
        if self.status == StepStatus.MISSING:
            if self.exit_code is not None or self.elapsed_seconds is not None:
                raise ValueError("Missing units have no exit code or elapsed time")
            if self.log_path is not None:
                raise ValueError("Missing units have no log file")
        elif self.status == StepStatus.DRY_RUN:
            if self.exit_code != 0:
                raise ValueError("Dry-run steps must have exit code 0")
            if self.log_path is not None:
                raise ValueError("Dry-run steps have no log file")
        elif self.status == StepStatus.OK:
            if self.exit_code != 0:
                raise ValueError("OK steps must have exit code 0")
        elif self.status == StepStatus.FAIL:
            if self.exit_code is None or self.exit_code == 0:
                raise ValueError("FAIL steps must have a non-zero exit code")

    @property
    def name(self) -> str:
        return self.unit.name

    @property
    def failed(self) -> bool:
        return self.status.is_failure

    def to_dict(self) -> dict[str, Any]:
        """Serialize to dictionary for JSON output."""
        result: dict[str, Any] = {
            "index": self.index,
            "unit": self.unit.to_dict(),
            "status": self.status.value,
            "exit_code": self.exit_code,
            "elapsed_seconds": self.elapsed_seconds,
            "log_path": str(self.log_path) if self.log_path is not None else None,
        }
        if self.started_at is not None:
            result["started_at"] = self.started_at.isoformat()
        if self.completed_at is not None:
            result["completed_at"] = self.completed_at.isoformat()
        return result

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "StepResult":
        """Deserialize from dictionary."""
        return cls(
            index=data["index"],
            unit=ProvisioningUnit.from_dict(data["unit"]),
            status=StepStatus(data["status"]),
            exit_code=data.get("exit_code"),
            elapsed_seconds=data.get("elapsed_seconds"),
            log_path=Path(data["log_path"]) if data.get("log_path") else None,
            started_at=datetime.fromisoformat(data["started_at"]) if data.get("started_at") else None,
            completed_at=datetime.fromisoformat(data["completed_at"]) if data.get("completed_at") else None,
        )
