"""
Executor for hostprov runs.

Processes resolved units strictly in order, one at a time:

    PENDING -> MISSING                  (unit not on disk, never invoked)
    PENDING -> RUNNING -> OK | FAIL     (real run, child process per unit)
    PENDING -> DRY-RUN                  (preview, nothing is spawned)

The privilege check and log directory creation happen once, before the
first unit. Every processed unit yields one immutable StepResult; units
after a stop-on-failure halt are never attempted and do not appear in
the report.
"""

import logging
import os
import shlex
import time
from datetime import datetime, timezone
from typing import Callable, Iterable, List, Optional

from hostprov.config import RunConfig
from hostprov.errors import PreconditionError, UnitLaunchError
from hostprov.runner import SubprocessUnitRunner, UnitRunner
from hostprov.schemas import ProvisioningUnit, RunReport, StepResult, StepStatus
from hostprov.utils import (
    ensure_directory_permissions,
    print_error,
    print_info,
    print_success,
    print_warning,
)


logger = logging.getLogger("hostprov")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def is_root() -> bool:
    """Check whether the process runs with an effective UID of 0."""
    return os.geteuid() == 0


def require_privileges(config: RunConfig, is_privileged: Callable[[], bool] = is_root) -> None:
    """
    Enforce the privilege precondition for a real run.

    Dry runs are never checked.

    Raises:
        PreconditionError: If the run is real and the process is not root
    """
    if config.dry_run:
        return
    if not is_privileged():
        raise PreconditionError("Must run as root.")


class Executor:
    """
    Runs provisioning units in order and collects their results.

    Args:
        config: Immutable configuration for this run
        runner: How units are launched (defaults to a SubprocessUnitRunner
            built from the config's interpreter and timeout)
        is_privileged: Privilege probe used for real runs
    """

    def __init__(
        self,
        config: RunConfig,
        runner: Optional[UnitRunner] = None,
        is_privileged: Callable[[], bool] = is_root,
    ):
        self.config = config
        self.runner = runner or SubprocessUnitRunner(
            interpreter=config.interpreter,
            timeout=config.unit_timeout,
        )
        self.is_privileged = is_privileged

    def run(self, units: Iterable[ProvisioningUnit]) -> RunReport:
        """
        Execute units and build the run report.

        Args:
            units: Resolved units in run order

        Returns:
            RunReport with one StepResult per processed unit

        Raises:
            PreconditionError: If a real run is attempted without root
        """
        units = list(units)
        require_privileges(self.config, self.is_privileged)

        started_at = _utcnow()
        logger.info(
            f"Starting run of {len(units)} units",
            extra={
                "event": "run_started",
                "metadata": {
                    "units": [unit.name for unit in units],
                    "dry_run": self.config.dry_run,
                    "stop_on_failure": self.config.stop_on_failure,
                    "stop_on_missing": self.config.stop_on_missing,
                },
            },
        )

        self._prepare_log_dir()

        results: List[StepResult] = []
        stopped_early = False

        for index, unit in enumerate(units, start=1):
            result = self._process(index, unit)
            results.append(result)

            if self._should_stop(result):
                stopped_early = True
                remaining = [u.name for u in units[index:]]
                print_warning("Stopping on failure (stop-on-failure enabled).")
                logger.warning(
                    f"Run stopped after {unit.name}",
                    extra={
                        "unit": unit.name,
                        "event": "run_stopped",
                        "metadata": {"status": result.status.value, "not_attempted": remaining},
                    },
                )
                break

        report = RunReport(
            results=tuple(results),
            dry_run=self.config.dry_run,
            log_dir=self.config.log_dir,
            stopped_early=stopped_early,
            started_at=started_at,
            completed_at=_utcnow(),
        )

        logger.info(
            "Run completed" if not report.any_failed else "Run completed with failures",
            extra={
                "event": "run_completed",
                "metadata": {
                    "exit_code": report.exit_code,
                    "failed": [r.name for r in report.results if r.failed],
                },
            },
        )
        return report

    def _prepare_log_dir(self) -> None:
        log_dir = self.config.log_dir
        if self.config.dry_run:
            print_info(f"[DRY-RUN] Would create log dir: {log_dir}")
            return
        ensure_directory_permissions(log_dir, self.config.log_dir_mode)
        logger.debug(
            f"Prepared log directory {log_dir}",
            extra={"event": "log_dir_ready", "metadata": {"mode": oct(self.config.log_dir_mode)}},
        )

    def _should_stop(self, result: StepResult) -> bool:
        """Loop control after a unit reaches its terminal state."""
        if not self.config.stop_on_failure:
            return False
        if result.status == StepStatus.FAIL:
            return not self.config.dry_run
        if result.status == StepStatus.MISSING:
            # MISSING only halts the run under the break-on-missing policy
            return self.config.stop_on_missing
        return False

    def _process(self, index: int, unit: ProvisioningUnit) -> StepResult:
        """Drive one unit from PENDING to a terminal status."""
        started_at = _utcnow()

        if not unit.exists():
            print_warning(f"[WARN] {unit.name} not found; skipping")
            logger.warning(
                f"Unit {unit.name} not found at {unit.path}",
                extra={"unit": unit.name, "event": "unit_missing", "metadata": {"path": str(unit.path)}},
            )
            return StepResult(
                index=index,
                unit=unit,
                status=StepStatus.MISSING,
                started_at=started_at,
                completed_at=_utcnow(),
            )

        print_info(f"Running step {index}: {unit.name}")

        if self.config.dry_run:
            return self._preview(index, unit, started_at)
        return self._execute(index, unit, started_at)

    def _preview(self, index: int, unit: ProvisioningUnit, started_at: datetime) -> StepResult:
        start_time = time.monotonic()
        command = self.runner.command(unit.path) + ["--dry-run"]
        print_info(f"[DRY-RUN] {shlex.join(command)}")
        elapsed = time.monotonic() - start_time

        logger.info(
            f"Previewed unit {unit.name}",
            extra={"unit": unit.name, "event": "unit_dry_run", "metadata": {"command": command}},
        )
        return StepResult(
            index=index,
            unit=unit,
            status=StepStatus.DRY_RUN,
            exit_code=0,
            elapsed_seconds=elapsed,
            started_at=started_at,
            completed_at=_utcnow(),
        )

    def _execute(self, index: int, unit: ProvisioningUnit, started_at: datetime) -> StepResult:
        log_path = self.config.log_dir / f"{unit.name}.log"

        logger.info(
            f"Executing unit: {unit.name}",
            extra={"unit": unit.name, "event": "unit_started", "metadata": {"log": str(log_path)}},
        )

        try:
            outcome = self.runner.run(unit.path, self.config.workdir, log_path)
            exit_code = outcome.exit_code
            elapsed = outcome.elapsed_seconds
            timed_out = outcome.timed_out
        except UnitLaunchError as e:
            logger.error(
                f"Unit {unit.name} could not be launched: {e}",
                extra={"unit": unit.name, "event": "unit_launch_failed", "metadata": {"exit_code": e.exit_code}},
            )
            exit_code = e.exit_code
            elapsed = 0.0
            timed_out = False

        status = StepStatus.OK if exit_code == 0 else StepStatus.FAIL

        if status == StepStatus.OK:
            print_success(f"{unit.name} completed")
            logger.info(
                f"Unit {unit.name} completed",
                extra={"unit": unit.name, "event": "unit_completed", "metadata": {"elapsed_seconds": elapsed}},
            )
        else:
            reason = "timed out" if timed_out else f"exited with {exit_code}"
            print_error(f"{unit.name} {reason} (see {log_path})")
            logger.error(
                f"Unit {unit.name} {reason}",
                extra={
                    "unit": unit.name,
                    "event": "unit_failed",
                    "metadata": {"exit_code": exit_code, "elapsed_seconds": elapsed, "timed_out": timed_out},
                },
            )

        return StepResult(
            index=index,
            unit=unit,
            status=status,
            exit_code=exit_code,
            elapsed_seconds=elapsed,
            log_path=log_path,
            started_at=started_at,
            completed_at=_utcnow(),
        )


def execute_units(
    config: RunConfig,
    units: Iterable[ProvisioningUnit],
    runner: Optional[UnitRunner] = None,
    is_privileged: Callable[[], bool] = is_root,
) -> RunReport:
    """Convenience wrapper: run units with a fresh Executor."""
    return Executor(config, runner=runner, is_privileged=is_privileged).run(units)
