"""Vector index facade: ledger, embedding queue and store working together.

``VectorIndex`` is what every sync engine and the server talk to. Writes
are buffered and flushed in batches; a flush re-checks checksums against
the store and within the batch so identical content never produces two
records, even when it was added concurrently.
"""

import asyncio
import logging
from collections import Counter
from dataclasses import dataclass, field
from typing import Any

from vecsync.config import IndexConfig
from vecsync.embedding.base import EmbeddingBackend
from vecsync.embedding.queue import EmbeddingQueue
from vecsync.ledger import REASON_DUPLICATE, ContentLedger, compare_versions
from vecsync.store import open_store
from vecsync.store.base import SupportsIndexing, VectorStore, validate_vector
from vecsync.store.metadata import validate_metadata
from vecsync.store.models import Document, ScoredDocument

logger = logging.getLogger(__name__)


def store_stats(store: VectorStore) -> dict[str, Any]:
    """Document count, dimension and per-source counts of a store."""
    sources = Counter((doc.metadata or {}).get("source", "unknown") for doc in store.get_all())
    return {"documents": store.count(), "dimension": store.dimension, "sources": dict(sources)}


@dataclass(frozen=True)
class AddResult:
    """Outcome of ``VectorIndex.add_document``."""

    id: str
    checksum: str
    skipped: bool = False
    reason: str | None = None
    existing_id: str | None = None


@dataclass
class ReembedReport:
    checked: int = 0
    reprocessed: int = 0
    errors: list[dict[str, str]] = field(default_factory=list)


class VectorIndex:
    """Content-addressed, versioned vector index over a single-writer store."""

    def __init__(
        self,
        store: VectorStore,
        queue: EmbeddingQueue,
        ledger: ContentLedger,
        version: str = "0.0.0",
        buffer_size: int = 100,
        store_content: bool = True,
    ) -> None:
        self.store = store
        self.queue = queue
        self.ledger = ledger
        self.version = version
        self.buffer_size = max(1, buffer_size)
        self.store_content = store_content

        self._buffer: list[Document] = []
        # checksum -> id for documents accepted but not yet written
        self._in_flight: dict[str, str] = {}
        self._flush_lock = asyncio.Lock()

    @classmethod
    def open(cls, config: IndexConfig, backend: EmbeddingBackend) -> "VectorIndex":
        """Build an index for a selected backend from a resolved config."""
        store = open_store(config, backend.get_dimension())
        queue = EmbeddingQueue(
            backend,
            batch_size=config.embed_batch_size,
            max_concurrent=config.embed_max_concurrent,
            retries=config.embed_retries,
            retry_delay=config.embed_retry_delay,
            auto_pull=config.auto_setup,
        )
        ledger = ContentLedger(store, config.min_content_length)
        return cls(
            store,
            queue,
            ledger,
            version=config.version,
            buffer_size=config.buffer_size,
            store_content=config.store_content,
        )

    @property
    def dimension(self) -> int:
        return self.store.dimension

    async def add_document(
        self, doc_id: str, content: str, metadata: dict[str, Any] | None = None
    ) -> AddResult:
        """Embed and buffer one document unless the ledger skips it.

        Args:
            doc_id: Caller-supplied id, scoped by source
            content: Text to embed (already cleaned)
            metadata: Provenance metadata, validated against the allow-list

        Returns:
            AddResult: Written-or-buffered, or skipped with a reason

        Raises:
            MetadataValidationError: On unknown or mistyped metadata
            DimensionMismatchError: If the backend returns a wrong-length vector
        """
        metadata = dict(metadata or {})
        validate_metadata(metadata)

        checksum = self.ledger.identify(content)
        in_flight_id = self._in_flight.get(checksum)
        if in_flight_id is not None:
            return AddResult(doc_id, checksum, True, REASON_DUPLICATE, in_flight_id)

        verdict = await asyncio.to_thread(self.ledger.admit, content, checksum)
        if not verdict.accepted:
            return AddResult(doc_id, checksum, True, verdict.reason, verdict.existing_id)

        # Re-check after the thread hop: another add may have claimed it meanwhile
        in_flight_id = self._in_flight.get(checksum)
        if in_flight_id is not None:
            return AddResult(doc_id, checksum, True, REASON_DUPLICATE, in_flight_id)
        self._in_flight[checksum] = doc_id

        try:
            vector = await self.queue.embed(content)
            validate_vector(vector, self.store.dimension, doc_id)
        except Exception:
            self._in_flight.pop(checksum, None)
            raise

        self._buffer.append(
            Document(
                id=doc_id,
                vector=vector,
                checksum=checksum,
                version=self.version,
                content=content if self.store_content else None,
                metadata=metadata,
            )
        )
        if len(self._buffer) >= self.buffer_size:
            await self.flush()
        return AddResult(doc_id, checksum)

    async def flush(self) -> int:
        """Write buffered documents to the store. Returns the number written."""
        async with self._flush_lock:
            if not self._buffer:
                return 0
            batch, self._buffer = self._buffer, []

            existing = await asyncio.to_thread(
                self.store.existing_checksums, [doc.checksum for doc in batch]
            )
            seen: set[str] = set(existing)
            to_write = []
            for doc in batch:
                if doc.checksum in seen:
                    continue
                seen.add(doc.checksum)
                to_write.append(doc)

            try:
                if to_write:
                    await asyncio.to_thread(self.store.put_batch, to_write)
            finally:
                for doc in batch:
                    self._in_flight.pop(doc.checksum, None)

            skipped = len(batch) - len(to_write)
            logger.debug(f"Flushed {len(to_write)} documents ({skipped} duplicates dropped)")
            return len(to_write)

    async def drain(self) -> int:
        """Wait for all queued embeddings, then flush."""
        await self.queue.drain()
        return await self.flush()

    async def query(self, text: str, top_k: int = 5) -> list[ScoredDocument]:
        # Not queued: a search must not wait on the indexing backlog
        vector = await self.queue.embed_now(text)
        if isinstance(self.store, SupportsIndexing):
            return await asyncio.to_thread(self.store.search_index, vector, top_k)
        return await asyncio.to_thread(self.store.query, vector, top_k)

    def tracked(self, source: str, field_name: str) -> dict[Any, list[str]]:
        """Map each value of a provenance field to the ids carrying it."""
        values: dict[Any, list[str]] = {}
        for doc_id, metadata in self.store.get_metadata_by_source(source):
            value = metadata.get(field_name)
            if value is not None:
                values.setdefault(value, []).append(doc_id)
        return values

    async def delete_where(self, field_name: str, value: Any) -> int:
        """Delete every record whose metadata field equals value."""
        ids = await asyncio.to_thread(self.store.get_ids_where, field_name, value)
        if not ids:
            return 0
        deleted = await asyncio.to_thread(self.store.delete_by_ids, ids)
        logger.info(f"🗑️ Removed {deleted} documents where {field_name}={value}")
        return deleted

    async def clear_source(
        self, source: str, field_name: str | None = None, value: Any = None
    ) -> int:
        """Delete every record of a source kind, optionally narrowed by a field value."""
        rows = await asyncio.to_thread(self.store.get_metadata_by_source, source)
        ids = [
            doc_id
            for doc_id, metadata in rows
            if field_name is None or metadata.get(field_name) == value
        ]
        if not ids:
            return 0
        deleted = await asyncio.to_thread(self.store.delete_by_ids, ids)
        logger.info(f"🗑️ Cleared {deleted} documents from source={source}")
        return deleted

    async def reembed_all(self) -> ReembedReport:
        """Re-embed in place every record stored under an older scheme version."""
        report = ReembedReport()
        documents = await asyncio.to_thread(self.store.get_all)

        for doc in documents:
            report.checked += 1
            if compare_versions(doc.version, self.version) >= 0 or not doc.content:
                continue
            try:
                vector = await self.queue.embed(doc.content)
                validate_vector(vector, self.store.dimension, doc.id)
                doc.vector = vector
                doc.checksum = self.ledger.identify(doc.content)
                doc.version = self.version
                await asyncio.to_thread(self.store.put, doc)
                report.reprocessed += 1
            except Exception as e:
                logger.error(f"❌ Failed to re-embed {doc.id}: {e}")
                report.errors.append({"id": doc.id, "error": str(e)})

        logger.info(f"✅ Re-embed checked {report.checked}, reprocessed {report.reprocessed}")
        return report

    def stats(self) -> dict[str, Any]:
        return store_stats(self.store)

    def close(self) -> None:
        self.store.close()
