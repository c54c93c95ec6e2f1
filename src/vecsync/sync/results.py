"""Result tallies shared by every sync engine."""

from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True)
class SyncError:
    """A per-item failure: which item, and why."""

    key: str
    message: str


@dataclass
class SyncResult:
    added: int = 0
    skipped: int = 0
    removed: int = 0
    updated: int = 0
    errors: list[SyncError] = field(default_factory=list)

    def record_error(self, key: Any, error: Exception | str) -> None:
        self.errors.append(SyncError(str(key), str(error)))

    def to_dict(self) -> dict[str, Any]:
        return {
            "added": self.added,
            "skipped": self.skipped,
            "removed": self.removed,
            "updated": self.updated,
            "errors": [{"key": e.key, "message": e.message} for e in self.errors],
        }
