import logging
from pathlib import Path
from typing import Dict, List, Optional

import pytest

from hostprov.config import RunConfig
from hostprov.errors import UnitLaunchError
from hostprov.runner import UnitOutcome, UnitRunner


class FakeRunner(UnitRunner):
    """Records calls instead of spawning processes."""

    def __init__(self, exit_codes: Optional[Dict[str, int]] = None, launch_errors: Optional[Dict[str, int]] = None):
        self.exit_codes = exit_codes or {}
        self.launch_errors = launch_errors or {}
        self.calls: List[Path] = []

    def command(self, unit_path: Path) -> List[str]:
        return ["bash", str(unit_path)]

    def run(self, unit_path: Path, cwd: Optional[Path], log_path: Path) -> UnitOutcome:
        self.calls.append(unit_path)
        if unit_path.name in self.launch_errors:
            raise UnitLaunchError("could not launch", exit_code=self.launch_errors[unit_path.name])
        with open(log_path, "a") as f:
            f.write(f"ran {unit_path.name}\n")
        return UnitOutcome(exit_code=self.exit_codes.get(unit_path.name, 0), elapsed_seconds=0.5)

    @property
    def called_names(self) -> List[str]:
        return [path.name for path in self.calls]


def write_unit(directory: Path, name: str, body: str = "exit 0") -> Path:
    """Write a bash unit script into directory."""
    directory.mkdir(parents=True, exist_ok=True)
    path = directory / name
    path.write_text(f"#!/usr/bin/env bash\n{body}\n")
    path.chmod(0o755)
    return path


def _privilege_probe_must_not_run() -> bool:
    raise AssertionError("privilege check must not run")


@pytest.fixture(autouse=True)
def isolated_home(tmp_path, monkeypatch):
    """Keep settings and run state out of the real home directory."""
    home = tmp_path / "hostprov_home"
    monkeypatch.setenv("HOSTPROV_HOME", str(home))
    monkeypatch.delenv("HOSTPROV_CONFIG", raising=False)
    yield home
    logging.getLogger("hostprov").handlers = []


@pytest.fixture
def units_dir(tmp_path):
    return tmp_path / "units"


@pytest.fixture
def log_dir(tmp_path):
    return tmp_path / "log" / "ilof_run"


@pytest.fixture
def fake_runner():
    return FakeRunner()


@pytest.fixture
def make_config(units_dir, log_dir):
    """Build a RunConfig pointing at the per-test units and log dirs."""
    def _make(**overrides):
        values = {"units_dir": units_dir, "log_dir": log_dir}
        values.update(overrides)
        return RunConfig(**values)
    return _make


@pytest.fixture
def never_privileged_check():
    return _privilege_probe_must_not_run


@pytest.fixture
def make_unit(units_dir):
    """Write a bash unit script into the per-test units dir."""
    def _make(name: str, body: str = "exit 0", directory: Optional[Path] = None) -> Path:
        return write_unit(directory or units_dir, name, body)
    return _make


@pytest.fixture
def runner_factory():
    return FakeRunner
