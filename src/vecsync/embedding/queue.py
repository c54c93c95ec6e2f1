"""Bounded-concurrency batching queue in front of an embedding backend.

Single ``embed()`` requests are collected into a pending list and drained
into batches of up to ``batch_size``. At most ``max_concurrent`` batches run
at a time; within a batch every text is sent to the backend in parallel and
each caller's future is resolved or rejected individually. ``embed_now()``
bypasses the pending list for latency-sensitive callers.
"""

import asyncio
import logging

from vecsync.constants import (
    DRAIN_POLL_INTERVAL,
    EMBED_BATCH_SIZE,
    EMBED_MAX_CONCURRENT,
    EMBED_RETRIES,
    EMBED_RETRY_DELAY,
)
from vecsync.embedding.base import EmbeddingBackend
from vecsync.exceptions import ModelNotFoundError, TransientBackendError

logger = logging.getLogger(__name__)


class EmbeddingQueue:
    """Worker pool over a shared pending list of embed requests."""

    def __init__(
        self,
        backend: EmbeddingBackend,
        batch_size: int = EMBED_BATCH_SIZE,
        max_concurrent: int = EMBED_MAX_CONCURRENT,
        retries: int = EMBED_RETRIES,
        retry_delay: float = EMBED_RETRY_DELAY,
        auto_pull: bool = True,
        poll_interval: float = DRAIN_POLL_INTERVAL,
    ) -> None:
        self.backend = backend
        self.batch_size = max(1, batch_size)
        self.max_concurrent = max(1, max_concurrent)
        self.retries = max(1, retries)
        self.retry_delay = retry_delay
        self.auto_pull = auto_pull
        self.poll_interval = poll_interval

        self._pending: list[tuple[str, asyncio.Future]] = []
        self._active = 0
        self._tasks: set[asyncio.Task] = set()
        self._pull_lock = asyncio.Lock()
        self._pull_result: bool | None = None

    @property
    def pending(self) -> int:
        return len(self._pending)

    @property
    def active(self) -> int:
        return self._active

    def embed(self, text: str) -> asyncio.Future:
        """Queue a text for embedding.

        Returns:
            asyncio.Future: Resolves to the vector, or raises the backend error
        """
        future = asyncio.get_running_loop().create_future()
        self._pending.append((text, future))
        self._schedule()
        return future

    async def embed_now(self, text: str) -> list[float]:
        """Embed one text immediately, outside the pending list and batch slots.

        Interactive queries use this so they never wait behind queued indexing work.
        """
        return await self._embed_with_retry(text)

    def _schedule(self) -> None:
        while self._pending and self._active < self.max_concurrent:
            batch = self._pending[: self.batch_size]
            del self._pending[: self.batch_size]
            self._active += 1
            task = asyncio.create_task(self._run_batch(batch))
            self._tasks.add(task)
            task.add_done_callback(self._tasks.discard)

    async def _run_batch(self, batch: list[tuple[str, asyncio.Future]]) -> None:
        try:
            results = await asyncio.gather(
                *(self._embed_with_retry(text) for text, _ in batch),
                return_exceptions=True,
            )
            failed = 0
            for (_, future), result in zip(batch, results):
                if future.done():
                    continue
                if isinstance(result, BaseException):
                    failed += 1
                    future.set_exception(result)
                else:
                    future.set_result(result)
            if failed:
                logger.warning(f"⚠️ {failed}/{len(batch)} embeddings failed in batch")
        finally:
            self._active -= 1
            self._schedule()

    async def _embed_with_retry(self, text: str) -> list[float]:
        for attempt in range(self.retries):
            try:
                return await self.backend.embed(text)
            except ModelNotFoundError:
                if not self.auto_pull or not await self._pull_once():
                    raise
                return await self.backend.embed(text)
            except TransientBackendError as e:
                if attempt == self.retries - 1:
                    raise
                delay = self.retry_delay * (attempt + 1)
                logger.debug(f"Embed attempt {attempt + 1} failed ({e}), retrying in {delay}s")
                await asyncio.sleep(delay)
        raise TransientBackendError("Embedding retries exhausted")

    async def _pull_once(self) -> bool:
        # Concurrent requests share one provisioning attempt
        async with self._pull_lock:
            if self._pull_result is None:
                self._pull_result = await self.backend.pull_model()
            return self._pull_result

    async def drain(self) -> None:
        """Wait until nothing is pending and no batch is in flight."""
        while self._pending or self._active:
            await asyncio.sleep(self.poll_interval)
