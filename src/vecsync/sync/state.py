"""Persisted JSON checkpoint for resumable syncs.

The file shape is ``{fileMetadata, workQueue, lastSyncTime}``. Missing
fields default rather than error so files written by older releases keep
loading.
"""

import json
import logging
import os
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)


def utc_now() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass
class SyncState:
    file_metadata: dict[str, dict[str, Any]] = field(default_factory=dict)
    work_queue: list[dict[str, Any]] = field(default_factory=list)
    last_sync_time: str | None = None

    @classmethod
    def load(cls, path: str | Path) -> "SyncState":
        path = Path(path)
        if not path.exists():
            return cls()
        try:
            raw = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            logger.warning(f"⚠️ Ignoring unreadable sync state {path}: {e}")
            return cls()
        if not isinstance(raw, dict):
            return cls()
        return cls(
            file_metadata=dict(raw.get("fileMetadata") or {}),
            work_queue=list(raw.get("workQueue") or []),
            last_sync_time=raw.get("lastSyncTime"),
        )

    def save(self, path: str | Path) -> None:
        """Write atomically so an interrupted save never corrupts the checkpoint."""
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        payload = {
            "fileMetadata": self.file_metadata,
            "workQueue": self.work_queue,
            "lastSyncTime": self.last_sync_time,
        }
        tmp_path = path.with_name(path.name + ".tmp")
        tmp_path.write_text(json.dumps(payload, indent=2), encoding="utf-8")
        os.replace(tmp_path, path)

    def is_processed(self, key: str, signature: Any = None) -> bool:
        """True if key has a completion timestamp (for this signature, when given)."""
        entry = self.file_metadata.get(key)
        if not entry or not entry.get("processedAt"):
            return False
        return signature is None or entry.get("modifiedTime") == signature

    def mark_processed(self, key: str, **signature: Any) -> None:
        self.file_metadata[key] = {**signature, "processedAt": utc_now()}
        self.work_queue = [item for item in self.work_queue if item.get("id") != key]

    def forget(self, key: str) -> None:
        self.file_metadata.pop(key, None)
