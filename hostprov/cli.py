"""
CLI interface for hostprov.

Runs the host provisioning units (deploy user, SSH hardening and firewall,
Nginx container, memory logger cron) in order and prints a summary table.

    hostprov run [--dry-run] [--stop-on-failure] [--scripts a.sh,b.sh]
    hostprov units
    hostprov status
    hostprov init

`run` is also installed on its own as `hostprov-run`.
"""

import json
from pathlib import Path

import click
import yaml

from hostprov import __version__
from hostprov.config import (
    build_run_config,
    default_settings_document,
    get_hostprov_home,
    load_settings,
)
from hostprov.errors import ConfigError, PreconditionError
from hostprov.executor import Executor
from hostprov.report import render_summary
from hostprov.resolver import anchor_units, parse_unit_list, resolve_units
from hostprov.run_store import FileRunStore
from hostprov.utils import (
    print_banner,
    print_error,
    print_info,
    print_success,
    setup_logging,
)


CONTEXT_SETTINGS = {"help_option_names": ["-h", "--help"]}


class ProvisionCommand(click.Command):
    """Command whose usage errors exit with status 1."""

    def make_context(self, info_name, args, parent=None, **extra):
        try:
            return super().make_context(info_name, args, parent=parent, **extra)
        except click.UsageError as e:
            e.exit_code = 1
            raise


class ProvisionGroup(click.Group):
    """Group whose usage errors (including unknown commands) exit with status 1."""

    command_class = ProvisionCommand

    def make_context(self, info_name, args, parent=None, **extra):
        try:
            return super().make_context(info_name, args, parent=parent, **extra)
        except click.UsageError as e:
            e.exit_code = 1
            raise

    def resolve_command(self, ctx, args):
        try:
            return super().resolve_command(ctx, args)
        except click.UsageError as e:
            e.exit_code = 1
            raise


def _parse_scripts(ctx, param, value):
    """Click callback for --scripts."""
    if value is None:
        return []
    try:
        return parse_unit_list(value)
    except ValueError as e:
        raise click.BadParameter(str(e), ctx=ctx, param=param)


def _load_settings_or_exit(config_path):
    try:
        return load_settings(config_path)
    except ConfigError as e:
        print_error(f"Configuration invalid: {e}")
        raise SystemExit(1)


config_option = click.option(
    "--config",
    "config_path",
    type=click.Path(dir_okay=False, path_type=Path),
    help="Settings file (default: $HOSTPROV_CONFIG or $HOSTPROV_HOME/config.yaml)",
)

scripts_option = click.option(
    "--scripts",
    callback=_parse_scripts,
    metavar="CSV",
    help="Comma-separated list of units to run (default: all known units, in order)",
)

units_dir_option = click.option(
    "--units-dir",
    type=click.Path(file_okay=False, path_type=Path),
    help="Directory bare unit names are resolved against",
)


@click.group(cls=ProvisionGroup, context_settings=CONTEXT_SETTINGS)
@click.version_option(version=__version__, prog_name="hostprov")
def main():
    """
    hostprov - Run host provisioning units in order and report the outcome.
    """
    pass


@main.command("run", context_settings=CONTEXT_SETTINGS)
@click.option("--dry-run", is_flag=True, help="Show what would be executed without making changes")
@click.option("--stop-on-failure", is_flag=True, help="Stop the run if any step fails (default: continue)")
@click.option(
    "--stop-on-missing",
    is_flag=True,
    help="With --stop-on-failure, also stop when a unit is missing",
)
@scripts_option
@units_dir_option
@click.option(
    "--log-dir",
    type=click.Path(file_okay=False, path_type=Path),
    help="Directory for per-unit log files (default: ./log/ilof_run)",
)
@click.option(
    "--timeout",
    type=click.FloatRange(min=0, min_open=True),
    help="Kill a unit after this many seconds (default: no timeout)",
)
@click.option(
    "--workdir",
    type=click.Path(exists=True, file_okay=False, path_type=Path),
    help="Working directory for each unit (default: the current directory)",
)
@config_option
@click.option("--verbose", is_flag=True, help="Enable debug logging on the console")
def run(
    dry_run, stop_on_failure, stop_on_missing, scripts, units_dir, log_dir, timeout, workdir, config_path, verbose
):
    """
    Run provisioning units sequentially and show a summary table.

    Requires root unless --dry-run is given. Exits 0 when every unit
    succeeded, 1 when any unit failed or was missing.

    Examples:

        sudo hostprov run

        sudo hostprov run --stop-on-failure

        hostprov run --dry-run --scripts ilof_security_hardening.sh,ilof_createuser.sh
    """
    settings = _load_settings_or_exit(config_path)

    try:
        run_config = build_run_config(
            settings,
            dry_run=dry_run,
            stop_on_failure=stop_on_failure,
            stop_on_missing=stop_on_missing,
            selected_units=scripts,
            units_dir=units_dir,
            log_dir=log_dir,
            unit_timeout=timeout,
            workdir=workdir,
        )
    except ConfigError as e:
        print_error(f"Configuration invalid: {e}")
        raise SystemExit(1)

    # No orchestrator log file on dry runs: nothing may touch the filesystem
    setup_logging(
        log_file=None if dry_run else settings.get_log_file_path(),
        log_level="DEBUG" if verbose else settings.get_log_level(),
        log_format=settings.get_log_format(),
        console_output=verbose or settings.should_log_to_console(),
    )

    if dry_run:
        print_banner("DRY RUN MODE (no changes will be made)")

    units = resolve_units(run_config.selected_units, run_config.units_dir)

    try:
        report = Executor(run_config).run(units)
    except PreconditionError as e:
        print_error(f"ERROR: {e}")
        raise SystemExit(1)
    except OSError as e:
        print_error(f"Run aborted: {e}")
        raise SystemExit(1)

    click.echo("\n")
    click.echo(render_summary(report))

    if not report.dry_run:
        FileRunStore(get_hostprov_home()).save(report)

    raise SystemExit(report.exit_code)


@main.command("units")
@scripts_option
@units_dir_option
@config_option
def units(scripts, units_dir, config_path):
    """
    List the units a run would process, in order.

    Shows where each unit resolves to and whether it exists.
    """
    settings = _load_settings_or_exit(config_path)
    units_dir = units_dir or settings.get_units_dir()
    references = scripts or anchor_units(settings.get_default_units(), units_dir)
    resolved = resolve_units(references, units_dir)

    for index, unit in enumerate(resolved, start=1):
        marker = "✓" if unit.exists() else "✗ missing"
        click.echo(f"{index:<4} {unit.name:<35} {unit.path}  {marker}")


@main.command("status")
@click.option("--json", "as_json", is_flag=True, help="Print the last report as JSON")
def status(as_json):
    """
    Show the summary of the last real run.

    Examples:

        hostprov status

        hostprov status --json
    """
    store = FileRunStore(get_hostprov_home())
    last_run = store.load()

    if last_run is None:
        print_info("No previous runs found")
        return

    if as_json:
        click.echo(json.dumps(last_run.to_dict(), indent=2))
        return

    click.echo(f"Last run: {last_run.started_at.strftime('%Y-%m-%d %H:%M:%S %Z')}")
    if last_run.stopped_early:
        click.echo("Stopped early (stop-on-failure)")
    click.echo()
    click.echo(render_summary(last_run))


@main.command("init")
@click.option("--force", is_flag=True, help="Overwrite existing configuration")
def init(force: bool):
    """Initialize hostprov configuration."""
    home = get_hostprov_home()
    home.mkdir(parents=True, exist_ok=True)

    cfg_path = home / "config.yaml"
    if cfg_path.exists() and not force:
        print_error(f"Config already exists at {cfg_path}. Use --force to overwrite.")
        raise SystemExit(1)

    cfg_path.write_text(yaml.safe_dump(default_settings_document(), sort_keys=False))
    print_success(f"Initialized hostprov config at {cfg_path}")
    click.echo("Set orchestrator.units_dir to the directory holding your provisioning scripts.")
