"""
Error classes for hostprov.

These error types separate failures of the orchestrator itself from
failures of the units it runs:
- ConfigError: Bad settings file or flag value (nothing has run yet)
- PreconditionError: The host is not in a state where a real run may start
- UnitLaunchError: A unit's interpreter could not be started at all

Error handling contract:
- A unit that runs and exits non-zero is a StepResult, not an exception
- Errors are raised where detected and reported at the CLI boundary
"""


class HostprovError(Exception):
    """Base exception for hostprov."""
    pass


class ConfigError(HostprovError):
    """Configuration validation error."""
    pass


class PreconditionError(HostprovError):
    """
    Precondition error - the run must not start.

    Examples:
    - Not running as root on a non-dry run

    Raised once, before the first unit executes.
    """
    pass


class UnitLaunchError(HostprovError):
    """
    The unit could not be launched.

    Carries the exit code a shell would report for the same situation
    (127 when the interpreter is not found, 126 when it cannot be executed),
    so the executor can record the unit as failed and keep going.
    """

    def __init__(self, message: str, exit_code: int):
        super().__init__(message)
        self.exit_code = exit_code
