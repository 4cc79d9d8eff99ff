"""
Unit resolution for hostprov.

Turns unit references (bare names or paths) into ProvisioningUnits in
run order. Nothing here fails on a missing file: existence is checked
when the executor reaches the unit.
"""

from pathlib import Path
from typing import Iterable, List

from hostprov.schemas import ProvisioningUnit


def parse_unit_list(value: str) -> List[str]:
    """
    Split a comma-separated unit list, as given to --scripts.

    Surrounding whitespace and empty entries are dropped.

    Raises:
        ValueError: If the list names no units at all
    """
    units = [item.strip() for item in value.split(",")]
    units = [item for item in units if item]
    if not units:
        raise ValueError("expected a comma-separated list of unit names or paths")
    return units


def resolve_unit(reference: str, units_dir: Path) -> ProvisioningUnit:
    """
    Resolve one unit reference.

    Absolute paths pass through unchanged. A relative reference is expanded
    against units_dir when a file exists there, otherwise it is kept as given
    (and will be reported as MISSING unless it exists relative to the cwd).
    """
    path = Path(reference)
    if not path.is_absolute():
        candidate = Path(units_dir) / reference
        if candidate.is_file():
            path = candidate
    return ProvisioningUnit.from_path(path)


def resolve_units(references: Iterable[str], units_dir: Path) -> List[ProvisioningUnit]:
    """Resolve unit references in order. Duplicates are kept and run twice."""
    return [resolve_unit(reference, units_dir) for reference in references]


def anchor_units(names: Iterable[str], units_dir: Path) -> List[str]:
    """
    Pin the default unit set to units_dir.

    Unlike operator-selected references, default units never fall back to
    the current directory: a default unit absent from units_dir is MISSING.
    """
    base = Path(units_dir).absolute()
    return [str(base / name) for name in names]
