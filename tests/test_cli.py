"""Tests for the hostprov command line."""

import json

import pytest
import yaml
from click.testing import CliRunner

from hostprov import __version__
from hostprov.cli import main, run
from hostprov.config import DEFAULT_UNITS


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture
def as_root(monkeypatch):
    monkeypatch.setattr("hostprov.executor.os.geteuid", lambda: 0)


@pytest.fixture
def as_user(monkeypatch):
    monkeypatch.setattr("hostprov.executor.os.geteuid", lambda: 1000)


def _run_args(units_dir, log_dir, *extra):
    return ["run", "--units-dir", str(units_dir), "--log-dir", str(log_dir), *extra]


# =============================================================================
# ARGUMENT HANDLING
# =============================================================================


class TestArguments:

    @pytest.mark.parametrize("flag", ["-h", "--help"])
    def test_help_exits_zero(self, runner, flag):
        result = runner.invoke(main, ["run", flag])

        assert result.exit_code == 0
        assert "--dry-run" in result.output
        assert "--stop-on-failure" in result.output
        assert "--scripts" in result.output

    def test_group_help(self, runner):
        result = runner.invoke(main, ["-h"])

        assert result.exit_code == 0
        for command in ("run", "units", "status", "init"):
            assert command in result.output

    def test_unknown_flag_exits_one(self, runner):
        result = runner.invoke(main, ["run", "--bogus"])

        assert result.exit_code == 1
        assert "No such option" in result.output
        assert "Usage:" in result.output

    def test_unknown_command_exits_one(self, runner):
        result = runner.invoke(main, ["provision"])

        assert result.exit_code == 1

    def test_scripts_requires_argument(self, runner):
        result = runner.invoke(main, ["run", "--scripts"])

        assert result.exit_code == 1
        assert "requires an argument" in result.output

    def test_empty_scripts_list_rejected(self, runner):
        result = runner.invoke(main, ["run", "--dry-run", "--scripts", ","])

        assert result.exit_code == 1

    def test_non_positive_timeout_rejected(self, runner):
        result = runner.invoke(main, ["run", "--dry-run", "--timeout", "0"])

        assert result.exit_code == 1

    def test_version(self, runner):
        result = runner.invoke(main, ["--version"])

        assert result.exit_code == 0
        assert __version__ in result.output

    def test_standalone_run_command(self, runner):
        result = runner.invoke(run, ["--bogus"])

        assert result.exit_code == 1

    def test_bad_config_file(self, runner, tmp_path):
        bad = tmp_path / "bad.yaml"
        bad.write_text("run: [oops\n")

        result = runner.invoke(main, ["run", "--dry-run", "--config", str(bad)])

        assert result.exit_code == 1
        assert "Configuration invalid" in result.output


# =============================================================================
# RUN
# =============================================================================


class TestRun:

    def test_dry_run_default_units(self, runner, make_unit, units_dir, log_dir, tmp_path, monkeypatch, as_user):
        for name in DEFAULT_UNITS:
            make_unit(name, "touch should-not-exist")
        monkeypatch.chdir(tmp_path)

        result = runner.invoke(main, _run_args(units_dir, log_dir, "--dry-run"))

        assert result.exit_code == 0
        assert result.output.count("DRY-RUN") >= 8
        assert "Note: This was a dry-run; no changes were made." in result.output
        assert "All steps completed successfully." in result.output
        assert not log_dir.exists()
        assert not (tmp_path / "should-not-exist").exists()

    def test_dry_run_preserves_selection_order(self, runner, make_unit, units_dir, log_dir):
        make_unit("ilof_createuser.sh")
        make_unit("ilof_security_hardening.sh")

        result = runner.invoke(main, _run_args(
            units_dir, log_dir, "--dry-run",
            "--scripts", "ilof_security_hardening.sh,ilof_createuser.sh",
        ))

        assert result.exit_code == 0
        summary = result.output.split("Summary:")[1]
        assert summary.index("ilof_security_hardening.sh") < summary.index("ilof_createuser.sh")

    def test_requires_root(self, runner, make_unit, units_dir, log_dir, as_user):
        make_unit("a.sh")

        result = runner.invoke(main, _run_args(units_dir, log_dir, "--scripts", "a.sh"))

        assert result.exit_code == 1
        assert "Must run as root" in result.output
        assert not log_dir.exists()

    def test_all_units_succeed(self, runner, make_unit, units_dir, log_dir, as_root):
        for name in DEFAULT_UNITS:
            make_unit(name, f"echo {name}")

        result = runner.invoke(main, _run_args(units_dir, log_dir))

        assert result.exit_code == 0
        assert "All steps completed successfully." in result.output
        assert sorted(p.name for p in log_dir.iterdir()) == sorted(f"{n}.log" for n in DEFAULT_UNITS)
        assert (log_dir / "ilof_memory_cron.sh.log").read_text() == "ilof_memory_cron.sh\n"

    def test_default_units_not_taken_from_current_directory(
        self, runner, make_unit, tmp_path, units_dir, log_dir, monkeypatch, as_root
    ):
        cwd = tmp_path / "cwd"
        for name in DEFAULT_UNITS:
            make_unit(name, "echo FROM_CWD", directory=cwd)
        units_dir.mkdir()
        monkeypatch.chdir(cwd)

        result = runner.invoke(main, _run_args(units_dir, log_dir))

        assert result.exit_code == 1
        summary = result.output.split("Summary:")[1]
        assert summary.count("MISSING") == len(DEFAULT_UNITS)
        assert "FROM_CWD" not in "".join(p.read_text() for p in log_dir.iterdir())

    def test_selected_unit_may_come_from_current_directory(
        self, runner, make_unit, tmp_path, units_dir, log_dir, monkeypatch, as_root
    ):
        cwd = tmp_path / "cwd"
        make_unit("local.sh", "echo FROM_CWD", directory=cwd)
        monkeypatch.chdir(cwd)

        result = runner.invoke(main, _run_args(units_dir, log_dir, "--scripts", "local.sh"))

        assert result.exit_code == 0
        assert (log_dir / "local.sh.log").read_text() == "FROM_CWD\n"

    def test_unwritable_unit_log_recorded_as_failure(self, runner, make_unit, units_dir, log_dir, as_root):
        for name in ("a.sh", "b.sh", "c.sh"):
            make_unit(name)
        (log_dir / "b.sh.log").mkdir(parents=True)

        result = runner.invoke(main, _run_args(units_dir, log_dir, "--scripts", "a.sh,b.sh,c.sh"))

        assert result.exit_code == 1
        rows = [line.split() for line in result.output.split("Summary:")[1].splitlines() if line[:2] in ("1 ", "2 ", "3 ")]
        assert [row[2] for row in rows] == ["OK", "FAIL", "OK"]
        assert rows[1][3] == "126"
        assert "Run aborted" not in result.output

    def test_workdir_option(self, runner, make_unit, tmp_path, units_dir, log_dir, as_root):
        workdir = tmp_path / "work"
        workdir.mkdir()
        make_unit("a.sh", "pwd")

        result = runner.invoke(main, _run_args(
            units_dir, log_dir, "--scripts", "a.sh", "--workdir", str(workdir),
        ))

        assert result.exit_code == 0
        assert (log_dir / "a.sh.log").read_text().strip() == str(workdir)

    def test_missing_and_ok(self, runner, make_unit, units_dir, log_dir, as_root):
        make_unit("unitB")

        result = runner.invoke(main, _run_args(units_dir, log_dir, "--scripts", "unitA,unitB"))

        assert result.exit_code == 1
        rows = [line.split() for line in result.output.splitlines() if line[:2] in ("1 ", "2 ")]
        assert rows[0] == ["1", "unitA", "MISSING", "-", "-", "-"]
        assert rows[1][:4] == ["2", "unitB", "OK", "0"]
        assert rows[1][5] == str(log_dir / "unitB.log")
        assert "[WARN] unitA not found; skipping" in result.output

    def test_stop_on_failure(self, runner, make_unit, units_dir, log_dir, as_root):
        make_unit("a.sh", "exit 3")
        make_unit("b.sh", "touch ran-b")

        result = runner.invoke(main, _run_args(
            units_dir, log_dir, "--stop-on-failure", "--scripts", "a.sh,b.sh",
        ))

        assert result.exit_code == 1
        assert "Stopping on failure" in result.output
        assert "b.sh" not in result.output.split("Summary:")[1]
        assert not (log_dir / "b.sh.log").exists()

    def test_stop_on_missing(self, runner, make_unit, units_dir, log_dir, as_root):
        make_unit("c.sh")

        result = runner.invoke(main, _run_args(
            units_dir, log_dir, "--stop-on-failure", "--stop-on-missing", "--scripts", "b.sh,c.sh",
        ))

        assert result.exit_code == 1
        assert "c.sh" not in result.output.split("Summary:")[1]

    def test_absolute_unit_path(self, runner, make_unit, tmp_path, units_dir, log_dir, as_root):
        path = make_unit("custom.sh", directory=tmp_path / "elsewhere")

        result = runner.invoke(main, _run_args(units_dir, log_dir, "--scripts", str(path)))

        assert result.exit_code == 0
        assert (log_dir / "custom.sh.log").exists()

    def test_settings_file_supplies_defaults(self, runner, make_unit, tmp_path, isolated_home, as_root):
        scripts = tmp_path / "scripts"
        logs = tmp_path / "logs"
        make_unit("only.sh", directory=scripts)
        isolated_home.mkdir(parents=True)
        (isolated_home / "config.yaml").write_text(yaml.safe_dump({
            "orchestrator": {"units_dir": str(scripts), "default_units": ["only.sh"]},
            "run": {"log_dir": str(logs)},
        }))

        result = runner.invoke(main, ["run"])

        assert result.exit_code == 0
        assert (logs / "only.sh.log").exists()


# =============================================================================
# UNITS / STATUS / INIT
# =============================================================================


class TestUnits:

    def test_lists_resolution(self, runner, make_unit, units_dir):
        make_unit("ilof_createuser.sh")

        result = runner.invoke(main, ["units", "--units-dir", str(units_dir)])

        assert result.exit_code == 0
        lines = result.output.splitlines()
        assert len(lines) == len(DEFAULT_UNITS)
        assert str(units_dir / "ilof_createuser.sh") in lines[0]
        assert "missing" in lines[1]


class TestStatus:

    def test_no_previous_runs(self, runner):
        result = runner.invoke(main, ["status"])

        assert result.exit_code == 0
        assert "No previous runs found" in result.output

    def test_shows_last_real_run(self, runner, make_unit, units_dir, log_dir, as_root):
        make_unit("a.sh", "exit 2")
        runner.invoke(main, _run_args(units_dir, log_dir, "--scripts", "a.sh"))

        result = runner.invoke(main, ["status"])

        assert result.exit_code == 0
        assert "Summary:" in result.output
        assert "FAIL" in result.output

    def test_json_output(self, runner, make_unit, units_dir, log_dir, as_root):
        make_unit("a.sh")
        runner.invoke(main, _run_args(units_dir, log_dir, "--scripts", "a.sh"))

        result = runner.invoke(main, ["status", "--json"])

        data = json.loads(result.output)
        assert data["exit_code"] == 0
        assert data["results"][0]["status"] == "OK"

    def test_dry_run_not_recorded(self, runner, make_unit, units_dir, log_dir):
        make_unit("a.sh")
        runner.invoke(main, _run_args(units_dir, log_dir, "--dry-run", "--scripts", "a.sh"))

        result = runner.invoke(main, ["status"])

        assert "No previous runs found" in result.output


class TestInit:

    def test_creates_config(self, runner, isolated_home):
        result = runner.invoke(main, ["init"])

        assert result.exit_code == 0
        cfg = yaml.safe_load((isolated_home / "config.yaml").read_text())
        assert cfg["orchestrator"]["default_units"] == list(DEFAULT_UNITS)

    def test_does_not_overwrite_without_force(self, runner, isolated_home):
        isolated_home.mkdir(parents=True)
        (isolated_home / "config.yaml").write_text("existing: true")

        result = runner.invoke(main, ["init"])

        assert result.exit_code == 1
        assert "Config already exists" in result.output
        assert (isolated_home / "config.yaml").read_text() == "existing: true"

    def test_force_overwrites(self, runner, isolated_home):
        isolated_home.mkdir(parents=True)
        (isolated_home / "config.yaml").write_text("existing: true")

        result = runner.invoke(main, ["init", "--force"])

        assert result.exit_code == 0
        assert "orchestrator" in yaml.safe_load((isolated_home / "config.yaml").read_text())
