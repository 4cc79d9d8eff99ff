"""
ProvisioningUnit schema - one external, idempotent provisioning step.
"""

from dataclasses import dataclass
from pathlib import Path


@dataclass(frozen=True)
class ProvisioningUnit:
    """
    A provisioning unit the orchestrator treats as an opaque step.

    Existence is not checked here. A unit whose path does not exist is
    reported as MISSING when the executor reaches it.

    Attributes:
        name: Display identifier (the basename of the unit reference)
        path: Resolved location of the unit, absolute or as given
    """
    name: str
    path: Path

    @classmethod
    def from_path(cls, path: Path) -> "ProvisioningUnit":
        """Create a unit named after the last component of its path."""
        path = Path(path)
        return cls(name=path.name, path=path)

    def exists(self) -> bool:
        """Check whether the unit is present on disk as a regular file."""
        return self.path.is_file()

    def to_dict(self) -> dict[str, str]:
        """Serialize to dictionary for JSON output."""
        return {"name": self.name, "path": str(self.path)}

    @classmethod
    def from_dict(cls, data: dict[str, str]) -> "ProvisioningUnit":
        """Deserialize from dictionary."""
        return cls(name=data["name"], path=Path(data["path"]))
