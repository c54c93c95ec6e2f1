"""Background indexing and change monitoring for server mode.

Indexing never runs on the request path. The monitor owns at most one
indexing task at a time, checks the watched directory for changes on a
fixed interval, and throttles full re-syncs to a longer minimum interval.
Every sync failure is logged and kept as ``last_error``; none propagate.
"""

import asyncio
import logging
import time
from typing import Any, Callable

from vecsync.constants import MONITOR_TICK
from vecsync.server.session import ServerSession, make_engine
from vecsync.sync.code import CodeSync
from vecsync.sync.results import SyncResult

logger = logging.getLogger(__name__)

FileSignatures = dict[str, tuple[float, int]]


def detect_changes(current: FileSignatures, known: FileSignatures, deletion_threshold: int) -> bool:
    """New or modified files, or more than deletion_threshold missing files."""
    for path, signature in current.items():
        if known.get(path) != signature:
            return True
    missing = sum(1 for path in known if path not in current)
    return missing > deletion_threshold


class IndexingMonitor:
    """State machine driving background sync for one session."""

    def __init__(
        self,
        session: ServerSession,
        clock: Callable[[], float] = time.monotonic,
        tick: float = MONITOR_TICK,
    ) -> None:
        self.session = session
        self.config = session.config
        self.clock = clock
        self.tick = tick

        self.indexing_task: asyncio.Task | None = None
        self.indexing_completed = False
        self.last_file_check = 0.0
        self.last_full_sync = 0.0
        self.known_files: FileSignatures = {}
        self.last_result: SyncResult | None = None
        self.last_error: str | None = None
        self._watch_task: asyncio.Task | None = None

    @property
    def indexing(self) -> bool:
        return self.indexing_task is not None and not self.indexing_task.done()

    def snapshot(self) -> FileSignatures:
        """Current ``path -> (mtime, size)`` for every file the engine would index."""
        root = self.session.root
        engine = make_engine(self.session.require_index(), self.config, root)
        if isinstance(engine, CodeSync):
            return {f.relative_path: (f.mtime, f.size) for f in engine.scan(root)}
        signatures: FileSignatures = {}
        for path in engine.scan(root):
            try:
                stat = path.stat()
            except OSError:
                continue
            signatures[str(path)] = (stat.st_mtime, stat.st_size)
        return signatures

    async def start(self) -> None:
        """Kick off initial indexing if the store is empty, then start watching."""
        index = self.session.require_index()
        count = await asyncio.to_thread(index.store.count)
        now = self.clock()
        self.last_file_check = now
        if count == 0:
            logger.info("🚀 Empty index, starting background indexing")
            self.schedule_sync()
        else:
            logger.info(f"✅ Index already holds {count} documents, skipping initial sync")
            self.indexing_completed = True
            self.last_full_sync = now
            self.known_files = await asyncio.to_thread(self.snapshot)

        if self._watch_task is None:
            self._watch_task = asyncio.create_task(self._watch())

    def schedule_sync(self) -> asyncio.Task:
        """Start a background sync unless one is already running."""
        if self.indexing:
            return self.indexing_task
        self.indexing_task = asyncio.create_task(self._run_sync())
        return self.indexing_task

    async def _run_sync(self) -> None:
        started = self.clock()
        try:
            self.last_result = await self.session.sync()
            self.known_files = await asyncio.to_thread(self.snapshot)
            self.indexing_completed = True
            self.last_error = None
            logger.info(
                f"✅ Background sync: {self.last_result.added} added, "
                f"{self.last_result.removed} removed, {len(self.last_result.errors)} errors"
            )
        except asyncio.CancelledError:
            raise
        except Exception as e:
            self.last_error = f"{type(e).__name__}: {e}"
            logger.error(f"❌ Background sync failed: {self.last_error}", exc_info=True)
        finally:
            self.last_full_sync = started

    async def check(self) -> bool:
        """Run one change check if due. Returns True when a sync was scheduled."""
        now = self.clock()
        if now - self.last_file_check < self.config.file_check_interval:
            return False
        self.last_file_check = now

        try:
            current = await asyncio.to_thread(self.snapshot)
        except Exception as e:
            logger.error(f"❌ File check failed: {e}")
            return False

        if not detect_changes(current, self.known_files, self.config.deletion_threshold):
            return False
        if self.indexing:
            return False
        if now - self.last_full_sync < self.config.full_sync_interval:
            logger.debug("Changes detected, full sync throttled")
            return False

        logger.info("🔍 File changes detected, scheduling background sync")
        self.schedule_sync()
        return True

    async def _watch(self) -> None:
        while True:
            await asyncio.sleep(self.tick)
            await self.check()

    def status(self) -> dict[str, Any]:
        return {
            "indexing": self.indexing,
            "completed": self.indexing_completed,
            "last_full_sync": self.last_full_sync or None,
            "last_error": self.last_error,
            "last_result": self.last_result.to_dict() if self.last_result else None,
        }

    async def stop(self) -> None:
        for task in (self._watch_task, self.indexing_task):
            if task is not None and not task.done():
                task.cancel()
                try:
                    await task
                except asyncio.CancelledError:
                    pass
        self._watch_task = None
