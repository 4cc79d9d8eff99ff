"""
RunStore - Persist the report of the last real run.

The report is written as JSON under the hostprov home directory, away from
the per-unit logs, so `hostprov status` can show it later. Dry runs are
never persisted.
"""

import json
import logging
from pathlib import Path
from typing import Optional

from hostprov.schemas import RunReport


STATE_FILE_NAME = "last_run.json"

logger = logging.getLogger("hostprov")


class FileRunStore:
    """
    File-based store for the last RunReport.

    Args:
        state_dir: Directory holding the state file
    """

    def __init__(self, state_dir: Path):
        self.state_dir = Path(state_dir)
        self.state_file = self.state_dir / STATE_FILE_NAME

    def save(self, report: RunReport) -> bool:
        """
        Save a report, replacing the previous one.

        Failures are logged, not raised: the run's outcome does not depend
        on its state being saved.

        Returns:
            True if the report was written
        """
        if report.dry_run:
            return False

        tmp_file = self.state_file.with_suffix(".json.tmp")
        try:
            self.state_dir.mkdir(parents=True, exist_ok=True)
            with open(tmp_file, "w") as f:
                json.dump(report.to_dict(), f, indent=2)
            tmp_file.replace(self.state_file)
        except OSError as e:
            logger.warning(
                f"Could not save run state: {e}",
                extra={"event": "state_save_failed", "metadata": {"error": str(e)}},
            )
            return False

        logger.debug(
            f"Saved run state to {self.state_file}",
            extra={"event": "state_saved", "metadata": {"file": str(self.state_file)}},
        )
        return True

    def load(self) -> Optional[RunReport]:
        """
        Load the last saved report.

        Returns:
            RunReport from the last real run, or None if there is none
            or the state file is unreadable
        """
        if not self.state_file.exists():
            return None

        try:
            with open(self.state_file, "r") as f:
                return RunReport.from_dict(json.load(f))
        except (OSError, ValueError, KeyError, TypeError) as e:
            logger.warning(
                f"Could not load run state: {e}",
                extra={"event": "state_load_failed", "metadata": {"file": str(self.state_file)}},
            )
            return None
