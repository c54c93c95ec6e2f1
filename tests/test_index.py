"""Tests for the content ledger and the vector index facade."""

import asyncio

import pytest

from conftest import FakeEmbedder, long_text
from vecsync.exceptions import DimensionMismatchError, MetadataValidationError
from vecsync.ledger import REASON_DUPLICATE, REASON_TOO_SHORT, ContentLedger, compare_versions
from vecsync.store.models import Document


class FlakyEmbedder(FakeEmbedder):
    """Raises a non-retryable error for the first few calls."""

    def __init__(self, failures: int) -> None:
        super().__init__()
        self.failures = failures

    async def embed(self, text: str) -> list[float]:
        if self.failures:
            self.failures -= 1
            raise RuntimeError("backend exploded")
        return await super().embed(text)


class TestCompareVersions:
    """Tests for dotted version comparison."""

    def test_orders_numerically(self):
        assert compare_versions("1.10.0", "1.9.0") == 1
        assert compare_versions("0.9.9", "1.0.0") == -1

    def test_missing_parts_are_zero(self):
        assert compare_versions("1.0", "1.0.0") == 0
        assert compare_versions(None, "0.0.0") == 0


class TestContentLedger:
    """Tests for admission decisions."""

    def test_identify_is_sha256_of_exact_text(self, sqlite_store):
        ledger = ContentLedger(sqlite_store)
        assert ledger.identify("abc") == (
            "ba7816bf8f01cfea414140de5dae2223b00361a396177a9cb410ff61f20015ad"
        )
        assert ledger.identify("abc ") != ledger.identify("abc")

    def test_short_content_is_skipped(self, sqlite_store):
        verdict = ContentLedger(sqlite_store, min_length=150).admit("   too short   ")
        assert not verdict.accepted
        assert verdict.reason == REASON_TOO_SHORT

    def test_length_counts_stripped_text(self, sqlite_store):
        ledger = ContentLedger(sqlite_store, min_length=10)
        assert not ledger.admit(" " * 50 + "short" + " " * 50).accepted
        assert ledger.admit("long enough text").accepted

    def test_duplicate_reports_existing_id(self, sqlite_store):
        ledger = ContentLedger(sqlite_store, min_length=1)
        content = "already stored"
        sqlite_store.put(
            Document(id="doc-1", vector=[0.1] * sqlite_store.dimension, checksum=ledger.identify(content))
        )

        verdict = ledger.admit(content)

        assert not verdict.accepted
        assert verdict.reason == REASON_DUPLICATE
        assert verdict.existing_id == "doc-1"


class TestVectorIndexAdd:
    """Tests for add_document, buffering and deduplication."""

    @pytest.mark.asyncio
    async def test_add_then_flush_writes_record(self, make_index, sqlite_store):
        index = make_index()
        content = long_text("nebula")

        outcome = await index.add_document("doc-1", content, {"source": "file"})
        assert not outcome.skipped
        assert sqlite_store.count() == 0  # still buffered

        await index.drain()

        stored = sqlite_store.get_all()
        assert len(stored) == 1
        assert stored[0].id == "doc-1"
        assert stored[0].checksum == outcome.checksum
        assert stored[0].version == "1.0.0"
        assert stored[0].content == content

    @pytest.mark.asyncio
    async def test_full_buffer_flushes(self, make_index, sqlite_store):
        index = make_index(buffer_size=2)
        await index.add_document("a", long_text("alpha"))
        await index.add_document("b", long_text("bravo"))
        assert sqlite_store.count() == 2

    @pytest.mark.asyncio
    async def test_too_short_is_skipped_without_embedding(self, make_index, fake_embedder):
        index = make_index()
        outcome = await index.add_document("short", "tiny")

        assert outcome.skipped
        assert outcome.reason == REASON_TOO_SHORT
        assert fake_embedder.calls == []

    @pytest.mark.asyncio
    async def test_identical_content_stored_once(self, make_index, sqlite_store):
        index = make_index()
        content = long_text("quasar")

        first = await index.add_document("first", content)
        await index.drain()
        second = await index.add_document("second", content)
        await index.drain()

        assert not first.skipped
        assert second.skipped
        assert second.reason == REASON_DUPLICATE
        assert second.existing_id == "first"
        assert sqlite_store.count() == 1

    @pytest.mark.asyncio
    async def test_concurrent_identical_adds_produce_one_record(self, make_index, sqlite_store, fake_embedder):
        index = make_index()
        content = long_text("pulsar")

        outcomes = await asyncio.gather(
            *(index.add_document(f"doc-{i}", content) for i in range(5))
        )
        await index.drain()

        assert sum(1 for o in outcomes if not o.skipped) == 1
        assert all(o.reason == REASON_DUPLICATE for o in outcomes if o.skipped)
        assert sqlite_store.count() == 1
        assert len(fake_embedder.calls) == 1

    @pytest.mark.asyncio
    async def test_unknown_metadata_key_rejected(self, make_index):
        index = make_index()
        with pytest.raises(MetadataValidationError):
            await index.add_document("doc", long_text("comet"), {"colour": "red"})

    @pytest.mark.asyncio
    async def test_wrong_dimension_vector_rejected(self, make_index, sqlite_store):
        index = make_index(backend=FakeEmbedder(dimension=32))

        with pytest.raises(DimensionMismatchError) as exc_info:
            await index.add_document("doc", long_text("meteor"))
        await index.drain()

        assert exc_info.value.expected == 64
        assert exc_info.value.actual == 32
        assert sqlite_store.count() == 0

    @pytest.mark.asyncio
    async def test_failed_embed_releases_checksum(self, make_index, sqlite_store):
        content = long_text("aurora")
        backend = FlakyEmbedder(failures=1)
        index = make_index(backend=backend)

        with pytest.raises(RuntimeError):
            await index.add_document("doc", content)
        outcome = await index.add_document("doc", content)
        await index.drain()

        assert not outcome.skipped
        assert sqlite_store.count() == 1


class TestVectorIndexMaintenance:
    """Tests for query, deletion helpers, stats and re-embedding."""

    @pytest.mark.asyncio
    async def test_query_ranks_matching_topic_first(self, make_index):
        index = make_index()
        await index.add_document("space", long_text("galaxy"), {"source": "file"})
        await index.add_document("food", long_text("recipe"), {"source": "file"})
        await index.drain()

        results = await index.query("galaxy", top_k=2)

        assert results[0].id == "space"
        assert results[0].score > results[1].score

    @pytest.mark.asyncio
    async def test_delete_where_and_tracked(self, make_index, sqlite_store):
        index = make_index()
        await index.add_document("a:0", long_text("apple"), {"source": "file", "filePath": "/x/a.txt"})
        await index.add_document("a:1", long_text("apricot"), {"source": "file", "filePath": "/x/a.txt"})
        await index.add_document("b", long_text("banana"), {"source": "file", "filePath": "/x/b.txt"})
        await index.drain()

        tracked = index.tracked("file", "filePath")
        assert sorted(tracked["/x/a.txt"]) == ["a:0", "a:1"]

        removed = await index.delete_where("filePath", "/x/a.txt")

        assert removed == 2
        assert [doc.id for doc in sqlite_store.get_all()] == ["b"]

    @pytest.mark.asyncio
    async def test_clear_source_narrowed_by_field(self, make_index, sqlite_store):
        index = make_index()
        await index.add_document("c1", long_text("cherry"), {"source": "code", "absolutePath": "/r/one.py"})
        await index.add_document("c2", long_text("citrus"), {"source": "code", "absolutePath": "/r/two.py"})
        await index.add_document("f1", long_text("fig"), {"source": "file"})
        await index.drain()

        assert await index.clear_source("code", "absolutePath", "/r/one.py") == 1
        assert await index.clear_source("code") == 1
        assert index.stats()["sources"] == {"file": 1}

    @pytest.mark.asyncio
    async def test_reembed_only_older_versions(self, make_index, sqlite_store):
        index = make_index(version="2.0.0")
        old_content = long_text("eclipse")
        sqlite_store.put_batch(
            [
                Document("old", [0.0] * 64, "stale", version="1.0.0", content=old_content),
                Document("new", [0.5] * 64, "fresh", version="2.0.0", content=long_text("orbit")),
            ]
        )

        report = await index.reembed_all()

        assert report.checked == 2
        assert report.reprocessed == 1
        assert report.errors == []
        refreshed = {doc.id: doc for doc in sqlite_store.get_all()}
        assert refreshed["old"].version == "2.0.0"
        assert refreshed["old"].checksum == index.ledger.identify(old_content)
        assert refreshed["old"].vector != [0.0] * 64
        assert refreshed["new"].checksum == "fresh"
