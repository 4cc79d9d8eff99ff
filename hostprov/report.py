"""
Summary rendering for hostprov runs.

The table layout is fixed so output can be diffed between runs:
step index, unit name, status, exit code, elapsed (HH:MM:SS), log path.
"""

from typing import List

from hostprov.schemas import RunReport, StepResult
from hostprov.utils import format_elapsed


PLACEHOLDER = "-"
ROW_FORMAT = "{:<4} {:<35} {:<8} {:<9} {:<8} {}"
RULE = "-" * 100

DRY_RUN_NOTICE = "Note: This was a dry-run; no changes were made."
SUCCESS_MESSAGE = "All steps completed successfully."


def format_row(result: StepResult) -> str:
    """Render one StepResult as a summary table row."""
    exit_code = str(result.exit_code) if result.exit_code is not None else PLACEHOLDER
    log_path = str(result.log_path) if result.log_path is not None else PLACEHOLDER
    return ROW_FORMAT.format(
        result.index,
        result.name,
        result.status.value,
        exit_code,
        format_elapsed(result.elapsed_seconds),
        log_path,
    ).rstrip()


def summary_lines(report: RunReport) -> List[str]:
    """
    Render a report as summary lines.

    Returns:
        Lines of the summary: header, table rows, optional dry-run notice,
        and the final success/failure message
    """
    lines = [
        "Summary:",
        ROW_FORMAT.format("#", "Script", "Status", "ExitCode", "Elapsed", "Log"),
        RULE,
    ]
    lines.extend(format_row(result) for result in report.results)

    if report.dry_run:
        lines.extend(["", DRY_RUN_NOTICE])

    lines.append("")
    if report.any_failed:
        lines.append(f"Some steps failed. Check individual log files under {report.log_dir}")
    else:
        lines.append(SUCCESS_MESSAGE)
    return lines


def render_summary(report: RunReport) -> str:
    """Render a report as a single block of text."""
    return "\n".join(summary_lines(report))
