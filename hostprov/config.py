"""
Configuration management for hostprov.

Loads the optional settings YAML and builds the immutable RunConfig
that drives one orchestrator invocation.
"""

import os
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

from hostprov.errors import ConfigError
from hostprov.resolver import anchor_units


# Directory bare unit names are resolved against unless configured
DEFAULT_UNITS_DIR = Path(__file__).resolve().parent / "units"

# Canonical order: the deploy user and SSH access must exist before the host
# is locked down, and the firewall must allow what the web server binds.
DEFAULT_UNITS = (
    "ilof_createuser.sh",
    "ilof_security_hardening.sh",
    "ilof_nginx_docker.sh",
    "ilof_memory_cron.sh",
)

DEFAULT_LOG_DIR = Path("./log/ilof_run")
DEFAULT_LOG_DIR_MODE = "755"
DEFAULT_INTERPRETER = "bash"


def get_hostprov_home() -> Path:
    """Get the hostprov home directory ($HOSTPROV_HOME or ~/.hostprov)."""
    home = os.environ.get("HOSTPROV_HOME")
    if home:
        return Path(home).expanduser()
    return Path.home() / ".hostprov"


def parse_mode(value: Any) -> int:
    """
    Parse a permission mode given as an octal string ("755") or an int.

    Raises:
        ConfigError: If the value is not a valid permission mode
    """
    if isinstance(value, bool):
        raise ConfigError(f"Invalid permission mode: {value!r}")
    if isinstance(value, int):
        mode = value
    else:
        try:
            mode = int(str(value), 8)
        except ValueError:
            raise ConfigError(f"Invalid permission mode: {value!r} (expected octal, e.g. 755)")
    if not 0 <= mode <= 0o777:
        raise ConfigError(f"Permission mode out of range: {oct(mode)}")
    return mode


class Settings:
    """Contents of the settings file, with defaults for anything absent."""

    def __init__(self, raw_config: Optional[Dict[str, Any]] = None, config_path: Optional[Path] = None):
        self.config_path = config_path
        self.raw_config = raw_config or {}

        for section in ("orchestrator", "run", "logging"):
            value = self.raw_config.get(section, {})
            if value is not None and not isinstance(value, dict):
                raise ConfigError(f"Section '{section}' must be a mapping")

        self.orchestrator = self.raw_config.get("orchestrator") or {}
        self.run = self.raw_config.get("run") or {}
        self.logging = self.raw_config.get("logging") or {}

    def get_units_dir(self) -> Path:
        units_dir = self.orchestrator.get("units_dir")
        return Path(units_dir).expanduser() if units_dir else DEFAULT_UNITS_DIR

    def get_interpreter(self) -> str:
        return self.orchestrator.get("interpreter") or DEFAULT_INTERPRETER

    def get_default_units(self) -> List[str]:
        """Get the default ordered unit set."""
        units = self.orchestrator.get("default_units")
        if units is None:
            return list(DEFAULT_UNITS)
        if not isinstance(units, list) or not all(isinstance(u, str) and u for u in units):
            raise ConfigError("orchestrator.default_units must be a list of unit names")
        return list(units)

    def get_log_dir(self) -> Path:
        log_dir = self.run.get("log_dir")
        return Path(log_dir).expanduser() if log_dir else DEFAULT_LOG_DIR

    def get_log_dir_mode(self) -> int:
        return parse_mode(self.run.get("log_dir_mode", DEFAULT_LOG_DIR_MODE))

    def get_unit_timeout(self) -> Optional[float]:
        timeout = self.run.get("unit_timeout")
        if timeout is None:
            return None
        if isinstance(timeout, bool) or not isinstance(timeout, (int, float)) or timeout <= 0:
            raise ConfigError(f"run.unit_timeout must be a positive number, got {timeout!r}")
        return float(timeout)

    def get_workdir(self) -> Optional[Path]:
        workdir = self.run.get("workdir")
        return Path(workdir).expanduser() if workdir else None

    def should_stop_on_missing(self) -> bool:
        return bool(self.run.get("stop_on_missing", False))

    def get_log_level(self) -> str:
        return str(self.logging.get("level", "INFO")).upper()

    def get_log_format(self) -> str:
        """Get log format (structured or pretty)."""
        return self.logging.get("format", "structured")

    def get_log_file_path(self) -> Optional[Path]:
        """Get the orchestrator's own log file path with date interpolation."""
        output = self.logging.get("output")
        if not output:
            return None
        output = output.replace("{date}", datetime.now().strftime("%Y-%m-%d"))
        return Path(output).expanduser()

    def should_log_to_console(self) -> bool:
        return self.logging.get("console", False)

    def validate(self) -> None:
        """Validate every value eagerly so errors surface before any unit runs."""
        self.get_default_units()
        self.get_log_dir_mode()
        self.get_unit_timeout()
        if self.get_log_level() not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            raise ConfigError(f"Invalid logging.level: {self.get_log_level()}")
        if self.get_log_format() not in ("structured", "pretty"):
            raise ConfigError(f"Invalid logging.format: {self.get_log_format()}")

    def __repr__(self) -> str:
        return f"Settings(config_path={self.config_path})"


def _default_config_path() -> Path:
    env_path = os.environ.get("HOSTPROV_CONFIG")
    if env_path:
        return Path(env_path).expanduser()
    return get_hostprov_home() / "config.yaml"


def load_settings(config_path: Optional[Path] = None) -> Settings:
    """
    Load settings from a YAML file.

    Args:
        config_path: Explicit settings file. Defaults to $HOSTPROV_CONFIG,
            then $HOSTPROV_HOME/config.yaml

    Returns:
        Settings instance (built-in defaults if no implicit file exists)

    Raises:
        ConfigError: If an explicit file is missing or any file is invalid
    """
    explicit = config_path is not None or bool(os.environ.get("HOSTPROV_CONFIG"))
    path = Path(config_path) if config_path is not None else _default_config_path()

    if not path.exists():
        if explicit:
            raise ConfigError(f"Configuration file not found: {path}")
        return Settings()

    try:
        with open(path, "r") as f:
            raw = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML syntax in {path}: {e}")

    if raw is None:
        raw = {}
    if not isinstance(raw, dict):
        raise ConfigError(f"Configuration file {path} must contain a mapping")

    settings = Settings(raw, config_path=path)
    settings.validate()
    return settings


def default_settings_document() -> Dict[str, Any]:
    """The settings written by `hostprov init`."""
    return {
        "orchestrator": {
            "units_dir": str(DEFAULT_UNITS_DIR),
            "interpreter": DEFAULT_INTERPRETER,
            "default_units": list(DEFAULT_UNITS),
        },
        "run": {
            "log_dir": str(DEFAULT_LOG_DIR),
            "log_dir_mode": DEFAULT_LOG_DIR_MODE,
            "unit_timeout": None,
            "stop_on_missing": False,
            "workdir": None,
        },
        "logging": {
            "level": "INFO",
            "format": "structured",
            "output": None,
            "console": False,
        },
    }


@dataclass(frozen=True)
class RunConfig:
    """
    Immutable configuration for one orchestrator invocation.

    Attributes:
        dry_run: Preview only; no side effects and no privilege check
        stop_on_failure: Halt after the first unit that ends FAIL
        stop_on_missing: With stop_on_failure, also halt on a MISSING unit
        selected_units: Unit references in run order (empty = default set)
        units_dir: Directory bare unit names are resolved against
        log_dir: Run-scoped directory for per-unit log files
        log_dir_mode: Permissions applied to log_dir
        interpreter: Program used to launch each unit
        unit_timeout: Optional per-unit timeout in seconds
        workdir: Working directory for each unit (None = inherit)
    """
    dry_run: bool = False
    stop_on_failure: bool = False
    stop_on_missing: bool = False
    selected_units: tuple[str, ...] = ()
    units_dir: Path = DEFAULT_UNITS_DIR
    log_dir: Path = DEFAULT_LOG_DIR
    log_dir_mode: int = 0o755
    interpreter: str = DEFAULT_INTERPRETER
    unit_timeout: Optional[float] = None
    workdir: Optional[Path] = None

    def __post_init__(self):
        if self.unit_timeout is not None and self.unit_timeout <= 0:
            raise ConfigError(f"Unit timeout must be positive, got {self.unit_timeout}")
        if not 0 <= self.log_dir_mode <= 0o777:
            raise ConfigError(f"Permission mode out of range: {oct(self.log_dir_mode)}")
        if not self.interpreter:
            raise ConfigError("Interpreter must not be empty")


def build_run_config(
    settings: Settings,
    dry_run: bool = False,
    stop_on_failure: bool = False,
    stop_on_missing: bool = False,
    selected_units: Optional[List[str]] = None,
    units_dir: Optional[Path] = None,
    log_dir: Optional[Path] = None,
    unit_timeout: Optional[float] = None,
    workdir: Optional[Path] = None,
) -> RunConfig:
    """
    Build the RunConfig for one invocation. Explicit arguments win over settings.

    An empty selection falls back to the settings' default unit set, pinned
    to units_dir so that none of it is looked up in the current directory.
    """
    units_dir = units_dir if units_dir is not None else settings.get_units_dir()
    if selected_units:
        units = list(selected_units)
    else:
        units = anchor_units(settings.get_default_units(), units_dir)

    return RunConfig(
        dry_run=dry_run,
        stop_on_failure=stop_on_failure,
        stop_on_missing=stop_on_missing or settings.should_stop_on_missing(),
        selected_units=tuple(units),
        units_dir=units_dir,
        log_dir=log_dir if log_dir is not None else settings.get_log_dir(),
        log_dir_mode=settings.get_log_dir_mode(),
        interpreter=settings.get_interpreter(),
        unit_timeout=unit_timeout if unit_timeout is not None else settings.get_unit_timeout(),
        workdir=workdir if workdir is not None else settings.get_workdir(),
    )
