"""Incremental sync of a local directory tree.

Known files are whatever ``filePath`` values the store already holds for
``source="file"``; there is no side file. Only new files are extracted and
removed files are deleted. Content changes inside an already-tracked file
are not detected here; re-adding identical content is a ledger no-op.
"""

import asyncio
import logging
import os
from pathlib import Path

from vecsync.config import IndexConfig
from vecsync.exceptions import SourceNotFoundError
from vecsync.extract import extract_file, supported_extensions
from vecsync.extract.base import ExtractedDocument
from vecsync.index import VectorIndex
from vecsync.pipeline import ContinuousPipeline
from vecsync.sync.planner import diff
from vecsync.sync.results import SyncResult

logger = logging.getLogger(__name__)


def scan_folder(
    root: Path,
    extensions: set[str],
    ignore_dirs: set[str],
    recursive: bool = True,
) -> list[Path]:
    """List files under root whose extension is allowed, skipping ignored dirs."""
    files = []
    for dirpath, dirnames, filenames in os.walk(root):
        dirnames[:] = sorted(d for d in dirnames if d not in ignore_dirs)
        for filename in sorted(filenames):
            path = Path(dirpath) / filename
            if path.suffix.lower() in extensions:
                files.append(path.resolve())
        if not recursive:
            break
    return files


class FolderSync:
    """Add new files and remove deleted files for one folder."""

    def __init__(self, index: VectorIndex, config: IndexConfig) -> None:
        self.index = index
        self.config = config
        self.extensions = {
            ext.lower() if ext.startswith(".") else f".{ext.lower()}"
            for ext in (config.extensions or supported_extensions())
        }

    def scan(self, root: Path) -> list[Path]:
        return scan_folder(root, self.extensions, set(self.config.ignore_dirs), self.config.recursive)

    async def _extract(self, path: Path) -> list[ExtractedDocument]:
        return await asyncio.to_thread(extract_file, path, file_path=str(path))

    async def sync(self, folder: str | Path) -> SyncResult:
        """Bring the index in line with the folder's current contents.

        Raises:
            SourceNotFoundError: If the folder does not exist
        """
        root = Path(folder).expanduser().resolve()
        if not root.is_dir():
            raise SourceNotFoundError(
                f"Folder not found: {root}", "Check the path and try again."
            )

        logger.info(f"📂 Scanning {root}")
        files = await asyncio.to_thread(self.scan, root)
        tracked = await asyncio.to_thread(self.index.tracked, "file", "filePath")
        # Only files under this root belong to this sync
        prefix = str(root) + os.sep
        tracked = {path: ids for path, ids in tracked.items() if str(path).startswith(prefix)}

        plan = diff(files, {path: path for path in tracked}, key=str, signature=str)
        logger.info(f"🔧 Folder plan: {plan.summary()}")

        result = SyncResult()
        for path in plan.unchanged:
            result.skipped += len(tracked[str(path)])

        for path in plan.to_delete:
            try:
                result.removed += await self.index.delete_where("filePath", path)
            except Exception as e:
                logger.error(f"❌ Failed to remove {path}: {e}")
                result.record_error(path, e)

        if plan.to_add:
            pipeline = ContinuousPipeline(self.index, self._extract, key=str)
            await pipeline.run(plan.to_add, result)

        logger.info(
            f"✅ Folder sync done: {result.added} added, {result.skipped} skipped, "
            f"{result.removed} removed, {len(result.errors)} errors"
        )
        return result
