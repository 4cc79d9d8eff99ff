"""
Unit runners for hostprov.

A runner is the only piece that knows how a unit is launched. The executor
hands it a resolved unit path, a working directory and a log file, and gets
back the exit status and the wall-clock duration.
"""

import subprocess
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional

from hostprov.errors import UnitLaunchError


# Exit status recorded when a unit is killed for exceeding its timeout
TIMEOUT_EXIT_CODE = 124

# Shell convention for a child killed by signal N
SIGNAL_EXIT_BASE = 128


def shell_exit_code(returncode: int) -> int:
    """Map a Popen returncode to the status a shell would report (-15 -> 143)."""
    if returncode < 0:
        return SIGNAL_EXIT_BASE - returncode
    return returncode


@dataclass(frozen=True)
class UnitOutcome:
    """Exit status and duration of one unit execution."""
    exit_code: int
    elapsed_seconds: float
    timed_out: bool = False


class UnitRunner(ABC):
    """
    Base class for unit runners.

    Implementations run exactly one unit per call and block until it
    terminates.
    """

    @abstractmethod
    def command(self, unit_path: Path) -> List[str]:
        """
        Build the command line used to launch a unit.

        Args:
            unit_path: Resolved path of the unit

        Returns:
            argv list
        """
        pass

    @abstractmethod
    def run(self, unit_path: Path, cwd: Optional[Path], log_path: Path) -> UnitOutcome:
        """
        Run a unit to completion.

        Args:
            unit_path: Resolved path of the unit
            cwd: Working directory for the unit (None = inherit)
            log_path: File the unit's combined stdout/stderr is appended to

        Returns:
            UnitOutcome with exit status and elapsed time

        Raises:
            UnitLaunchError: If the unit could not be started
        """
        pass


class SubprocessUnitRunner(UnitRunner):
    """
    Run units as child processes through an interpreter (bash by default).

    Output is appended to the log file, so re-runs accumulate history.
    """

    def __init__(self, interpreter: str = "bash", timeout: Optional[float] = None):
        """
        Initialize SubprocessUnitRunner.

        Args:
            interpreter: Program the unit path is passed to
            timeout: Seconds before a unit is killed (None = wait forever)
        """
        self.interpreter = interpreter
        self.timeout = timeout

    def command(self, unit_path: Path) -> List[str]:
        return [self.interpreter, str(unit_path)]

    def run(self, unit_path: Path, cwd: Optional[Path], log_path: Path) -> UnitOutcome:
        command = self.command(unit_path)

        try:
            log_file = open(log_path, "ab")
        except OSError as e:
            raise UnitLaunchError(f"Could not open log file {log_path}: {e}", exit_code=126)

        with log_file:
            start_time = time.monotonic()
            try:
                result = subprocess.run(
                    command,
                    cwd=cwd,
                    stdin=subprocess.DEVNULL,
                    stdout=log_file,
                    stderr=subprocess.STDOUT,
                    timeout=self.timeout,
                    check=False,  # Don't raise, the exit code is the result
                )
            except subprocess.TimeoutExpired:
                elapsed = time.monotonic() - start_time
                log_file.write(
                    f"\n[hostprov] unit killed after {self.timeout}s timeout\n".encode()
                )
                return UnitOutcome(
                    exit_code=TIMEOUT_EXIT_CODE,
                    elapsed_seconds=elapsed,
                    timed_out=True,
                )
            except FileNotFoundError as e:
                raise UnitLaunchError(
                    f"Could not launch {self.interpreter}: {e}", exit_code=127
                )
            except PermissionError as e:
                raise UnitLaunchError(
                    f"Could not execute {self.interpreter}: {e}", exit_code=126
                )
            elapsed = time.monotonic() - start_time

        return UnitOutcome(exit_code=shell_exit_code(result.returncode), elapsed_seconds=elapsed)
