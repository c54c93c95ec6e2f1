"""Resumable sync of a Google Drive folder tree.

Known state comes from the store (``fileId -> modifiedTime`` for
``source="gdrive"`` records). Progress is checkpointed to a JSON state file
after every file, so an interrupted run, or a scheduler calling incremental
mode one file at a time, never redoes finished work.
"""

import asyncio
import logging
from pathlib import Path

from vecsync.config import IndexConfig
from vecsync.extract import extract_bytes
from vecsync.index import VectorIndex
from vecsync.sync.drive_client import DriveClient, DriveFile, list_all_files
from vecsync.sync.planner import diff
from vecsync.sync.results import SyncResult
from vecsync.sync.state import SyncState, utc_now

logger = logging.getLogger(__name__)


class DriveSync:
    """Scan, plan, execute with a checkpoint per file, persist."""

    def __init__(
        self,
        index: VectorIndex,
        client: DriveClient,
        config: IndexConfig,
        state_file: str | Path | None = None,
    ) -> None:
        self.index = index
        self.client = client
        self.config = config
        self.state_file = Path(state_file or config.drive_state_file)

    def known_files(self) -> dict[str, str]:
        known: dict[str, str] = {}
        for _, metadata in self.index.store.get_metadata_by_source("gdrive"):
            file_id = metadata.get("fileId")
            if file_id:
                known[file_id] = metadata.get("modifiedTime") or ""
        return known

    async def process_file(self, drive_file: DriveFile, is_update: bool) -> None:
        data = await asyncio.to_thread(self.client.fetch_content, drive_file)
        file_name = Path(drive_file.name).stem + drive_file.extension
        documents = await asyncio.to_thread(
            extract_bytes, data, file_name, file_path=drive_file.web_url
        )

        if is_update:
            await self.index.delete_where("fileId", drive_file.id)

        single = len(documents) == 1
        for position, doc in enumerate(documents):
            doc_id = f"gdrive:{drive_file.id}" if single else f"gdrive:{drive_file.id}:{position}"
            metadata = {
                **doc.metadata,
                "source": "gdrive",
                "fileId": drive_file.id,
                "mimeType": drive_file.mime_type,
                "modifiedTime": drive_file.modified_time,
                "size": drive_file.size,
                "driveUrl": drive_file.web_url,
            }
            outcome = await self.index.add_document(doc_id, doc.content, metadata)
            if outcome.skipped:
                logger.debug(f"Skipped {doc_id}: {outcome.reason}")
        await self.index.flush()

    async def sync(self, folder_id: str = "root") -> SyncResult:
        """Run one invocation of the drive sync.

        Args:
            folder_id: Drive folder to sync recursively ("root" for My Drive)

        Returns:
            SyncResult: ``added`` counts new files, ``updated`` changed files
        """
        logger.info(f"📂 Scanning Google Drive folder: {folder_id}")
        files = await asyncio.to_thread(list_all_files, self.client, folder_id)
        known = await asyncio.to_thread(self.known_files)

        plan = diff(files, known, key=lambda f: f.id, signature=lambda f: f.modified_time)
        logger.info(f"🔧 Drive plan: {plan.summary()}")

        state = await asyncio.to_thread(SyncState.load, self.state_file)
        result = SyncResult(skipped=len(plan.unchanged))

        for file_id in plan.to_delete:
            try:
                result.removed += await self.index.delete_where("fileId", file_id)
                state.forget(file_id)
            except Exception as e:
                logger.error(f"❌ Failed to remove drive file {file_id}: {e}")
                result.record_error(file_id, e)

        work = [(f, False) for f in plan.to_add] + [(f, True) for f in plan.to_update]
        state.work_queue = [
            {"id": f.id, "name": f.name, "modifiedTime": f.modified_time}
            for f, _ in work
            if not state.is_processed(f.id, f.modified_time)
        ]
        await asyncio.to_thread(state.save, self.state_file)

        limit = 1 if self.config.incremental else self.config.max_files
        total = min(len(state.work_queue), limit)
        processed = 0
        for drive_file, is_update in work:
            if state.is_processed(drive_file.id, drive_file.modified_time):
                result.skipped += 1
                continue
            if processed >= limit:
                break
            try:
                action = "Updating" if is_update else "Adding"
                logger.info(f"📥 [{processed + 1}/{total}] {action}: {drive_file.name}")
                await self.process_file(drive_file, is_update)
                state.mark_processed(
                    drive_file.id, name=drive_file.name, modifiedTime=drive_file.modified_time
                )
                await asyncio.to_thread(state.save, self.state_file)
                if is_update:
                    result.updated += 1
                else:
                    result.added += 1
                processed += 1
            except Exception as e:
                logger.error(f"❌ Failed to sync {drive_file.name}: {e}")
                result.record_error(drive_file.name, e)

        state.last_sync_time = utc_now()
        await asyncio.to_thread(state.save, self.state_file)
        logger.info(
            f"✅ Drive sync: {result.added} added, {result.updated} updated, "
            f"{result.removed} removed, {len(state.work_queue)} remaining"
        )
        return result
