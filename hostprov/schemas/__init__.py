"""
hostprov.schemas - Records produced by the orchestrator.

ProvisioningUnit -> StepResult -> RunReport

Lifecycle:
1. ProvisioningUnit: A resolved reference to one external provisioning script
2. StepResult: Terminal outcome of processing one unit (immutable once built)
3. RunReport: Ordered StepResults for one invocation plus aggregate status
"""

from .unit import ProvisioningUnit
from .step_result import (
    StepResult,
    StepStatus,
)
from .run_report import RunReport

__all__ = [
    "ProvisioningUnit",
    "StepResult",
    "StepStatus",
    "RunReport",
]
