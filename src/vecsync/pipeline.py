"""Producer/consumer pipeline overlapping extraction with embedding.

A prefetch loop extracts documents from source items into a bounded queue
while a process loop schedules every document for embedding without
waiting on it. Scheduled adds are owned by a ``TaskSupervisor`` that tracks
what is outstanding and collects failures, so nothing runs unsupervised.
The number of outstanding adds is capped; the process loop waits for a
slot before scheduling more.
"""

import asyncio
import logging
from typing import Any, Awaitable, Callable, Coroutine, Hashable, Iterable

from vecsync.constants import FLUSH_EVERY, MAX_OUTSTANDING, MAX_PREFETCH
from vecsync.extract.base import ExtractedDocument
from vecsync.index import AddResult, VectorIndex
from vecsync.sync.results import SyncResult

logger = logging.getLogger(__name__)

_DONE = object()


class TaskSupervisor:
    """Tracks fire-and-forget tasks and gathers their outcomes.

    Failures go to ``errors`` as (key, exception) pairs instead of surfacing
    as unhandled task exceptions.
    """

    def __init__(self) -> None:
        self._tasks: set[asyncio.Task] = set()
        self.errors: list[tuple[str, BaseException]] = []

    @property
    def outstanding(self) -> int:
        return len(self._tasks)

    def spawn(
        self,
        key: str,
        coro: Coroutine[Any, Any, Any],
        on_result: Callable[[Any], None] | None = None,
    ) -> asyncio.Task:
        task = asyncio.create_task(coro)
        self._tasks.add(task)

        def _done(finished: asyncio.Task) -> None:
            self._tasks.discard(finished)
            if finished.cancelled():
                return
            error = finished.exception()
            if error is not None:
                logger.error(f"❌ Failed to index {key}: {error}")
                self.errors.append((key, error))
            elif on_result is not None:
                on_result(finished.result())

        task.add_done_callback(_done)
        return task

    async def wait_below(self, limit: int) -> None:
        """Wait until fewer than ``limit`` tasks are outstanding."""
        while len(self._tasks) >= limit:
            await asyncio.wait(list(self._tasks), return_when=asyncio.FIRST_COMPLETED)
            # Done callbacks run on the next loop iteration
            await asyncio.sleep(0)

    async def join(self) -> None:
        """Wait until every spawned task has finished."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def cancel_all(self) -> None:
        for task in list(self._tasks):
            task.cancel()
        await self.join()


class ContinuousPipeline:
    """Bounded prefetch queue between an extractor and the vector index."""

    def __init__(
        self,
        index: VectorIndex,
        extract: Callable[[Any], Awaitable[list[ExtractedDocument]]],
        key: Callable[[Any], Hashable] = str,
        max_prefetch: int = MAX_PREFETCH,
        flush_every: int = FLUSH_EVERY,
        max_outstanding: int = MAX_OUTSTANDING,
    ) -> None:
        self.index = index
        self.extract = extract
        self.key = key
        self.max_prefetch = max(1, max_prefetch)
        self.flush_every = max(1, flush_every)
        self.max_outstanding = max(1, max_outstanding)
        self.supervisor = TaskSupervisor()

    async def run(self, items: Iterable[Any], result: SyncResult | None = None) -> SyncResult:
        """Extract and index every item, then drain and flush.

        Args:
            items: Source items handed to the extractor one by one
            result: Tally to accumulate into; a fresh one when omitted

        Returns:
            SyncResult: added/skipped counts and per-item errors

        Raises:
            Exception: A store failure from a forced flush; both loops and
                every scheduled add are cancelled before it propagates
        """
        result = result or SyncResult()
        queue: asyncio.Queue = asyncio.Queue(maxsize=self.max_prefetch)

        producer = asyncio.create_task(self._prefetch(items, queue, result))
        consumer = asyncio.create_task(self._process(queue, result))
        try:
            await asyncio.gather(producer, consumer)
        except BaseException:
            for task in (producer, consumer):
                task.cancel()
            await asyncio.gather(producer, consumer, return_exceptions=True)
            await self.supervisor.cancel_all()
            self.supervisor.errors.clear()
            raise

        await self.supervisor.join()
        await self.index.drain()

        for key, error in self.supervisor.errors:
            result.record_error(key, error)
        self.supervisor.errors.clear()
        return result

    async def _prefetch(self, items: Iterable[Any], queue: asyncio.Queue, result: SyncResult) -> None:
        for item in items:
            try:
                documents = await self.extract(item)
            except Exception as e:
                logger.error(f"❌ Extraction failed for {self.key(item)}: {e}")
                result.record_error(self.key(item), e)
                continue
            # Blocks while the consumer is MAX_PREFETCH items behind
            await queue.put((item, documents))
        await queue.put(_DONE)

    async def _process(self, queue: asyncio.Queue, result: SyncResult) -> None:
        processed = 0

        def tally(outcome: AddResult) -> None:
            if outcome.skipped:
                result.skipped += 1
            else:
                result.added += 1

        while True:
            entry = await queue.get()
            if entry is _DONE:
                break
            _, documents = entry
            for doc in documents:
                await self.supervisor.wait_below(self.max_outstanding)
                self.supervisor.spawn(
                    doc.id,
                    self.index.add_document(doc.id, doc.content, doc.metadata),
                    tally,
                )
                processed += 1
                if processed % self.flush_every == 0:
                    await self.index.flush()
            # Let scheduled adds start before pulling the next item
            await asyncio.sleep(0)
