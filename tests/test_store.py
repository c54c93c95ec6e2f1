"""Tests for vector stores, similarity ranking and metadata validation."""

from unittest.mock import patch

import pytest

from vecsync.config import IndexConfig
from vecsync.exceptions import DimensionMismatchError, MetadataValidationError
from vecsync.store import open_store
from vecsync.store.base import SupportsIndexing, validate_vector
from vecsync.store.metadata import enrich_metadata, validate_metadata
from vecsync.store.models import Document
from vecsync.store.search import cosine_similarity, rank_documents
from vecsync.store.sqlite import SQLiteVectorStore


def make_doc(doc_id: str, vector: list[float], checksum: str | None = None, **metadata) -> Document:
    return Document(
        id=doc_id,
        vector=vector,
        checksum=checksum or f"sum-{doc_id}",
        version="1.0.0",
        content=f"content of {doc_id}",
        metadata=metadata,
    )


class TestCosineSimilarity:
    """Tests for cosine_similarity and rank_documents."""

    def test_identical_vectors(self):
        assert cosine_similarity([1.0, 2.0, 3.0], [1.0, 2.0, 3.0]) == pytest.approx(1.0)

    def test_orthogonal_vectors(self):
        assert cosine_similarity([1.0, 0.0], [0.0, 1.0]) == pytest.approx(0.0)

    def test_degenerate_inputs(self):
        assert cosine_similarity([], [1.0]) == 0.0
        assert cosine_similarity([0.0, 0.0], [1.0, 1.0]) == 0.0
        assert cosine_similarity([1.0], [1.0, 2.0]) == 0.0

    def test_rank_keeps_top_k_in_order(self):
        docs = [
            make_doc("far", [0.0, 1.0]),
            make_doc("near", [1.0, 0.1]),
            make_doc("exact", [1.0, 0.0]),
        ]
        hits = rank_documents([1.0, 0.0], docs, top_k=2)
        assert [hit.id for hit in hits] == ["exact", "near"]


class TestDimensionGuard:
    """Tests for validate_vector."""

    def test_matching_length_passes(self):
        validate_vector([0.0] * 4, 4)

    def test_mismatch_raises(self):
        with pytest.raises(DimensionMismatchError) as exc_info:
            validate_vector([0.0] * 3, 4, "doc-1")
        assert "doc-1" in str(exc_info.value)


class TestSQLiteVectorStore:
    """Tests for the SQLite store."""

    def test_put_and_get_all_round_trip_metadata(self, tmp_path):
        store = SQLiteVectorStore(tmp_path / "v.db", 3)
        store.put(make_doc("a", [0.5, 0.25, 0.0], source="file", filePath="/tmp/a.txt"))

        (doc,) = store.get_all()

        assert doc.id == "a"
        assert doc.vector == pytest.approx([0.5, 0.25, 0.0])
        assert doc.metadata == {"source": "file", "filePath": "/tmp/a.txt"}
        assert doc.content == "content of a"
        store.close()

    def test_rejects_wrong_length_vector(self, tmp_path):
        store = SQLiteVectorStore(tmp_path / "v.db", 3)
        with pytest.raises(DimensionMismatchError):
            store.put(make_doc("a", [1.0, 2.0]))
        assert store.count() == 0
        store.close()

    def test_reopen_with_other_dimension_fails(self, tmp_path):
        SQLiteVectorStore(tmp_path / "v.db", 3).close()
        with pytest.raises(DimensionMismatchError):
            SQLiteVectorStore(tmp_path / "v.db", 5)

    def test_checksum_lookups(self, tmp_path):
        store = SQLiteVectorStore(tmp_path / "v.db", 2)
        store.put_batch([make_doc("a", [1.0, 0.0], "x"), make_doc("b", [0.0, 1.0], "y")])

        assert store.get_by_checksum("x") == "a"
        assert store.get_by_checksum("missing") is None
        assert store.existing_checksums(["x", "y", "z"]) == {"x", "y"}
        assert store.existing_checksums([]) == set()
        store.close()

    def test_metadata_queries_and_delete(self, tmp_path):
        store = SQLiteVectorStore(tmp_path / "v.db", 2)
        store.put_batch(
            [
                make_doc("a", [1.0, 0.0], source="gdrive", fileId="f1"),
                make_doc("b", [0.0, 1.0], source="gdrive", fileId="f2"),
                make_doc("c", [1.0, 1.0], source="file"),
            ]
        )

        assert sorted(doc_id for doc_id, _ in store.get_metadata_by_source("gdrive")) == ["a", "b"]
        assert store.get_ids_where("fileId", "f2") == ["b"]
        assert store.delete_by_ids(["a", "c"]) == 2
        assert store.count() == 1
        store.close()

    def test_unknown_metadata_field_query_rejected(self, tmp_path):
        store = SQLiteVectorStore(tmp_path / "v.db", 2)
        with pytest.raises(ValueError):
            store.get_ids_where("nope') OR 1=1 --", "x")
        store.close()

    def test_query_returns_nearest(self, tmp_path):
        store = SQLiteVectorStore(tmp_path / "v.db", 2)
        store.put_batch([make_doc("x", [1.0, 0.0]), make_doc("y", [0.0, 1.0])])

        hits = store.query([0.9, 0.1], top_k=1)

        assert [hit.id for hit in hits] == ["x"]
        store.close()

    def test_not_an_indexing_store(self, sqlite_store):
        assert not isinstance(sqlite_store, SupportsIndexing)


class TestOpenStore:
    """Tests for store selection."""

    def test_sqlite_default(self, tmp_path):
        store = open_store(IndexConfig(db_path=str(tmp_path / "s.db")), 8)
        assert isinstance(store, SQLiteVectorStore)
        assert store.dimension == 8
        store.close()

    def test_unknown_store_rejected(self):
        with pytest.raises(ValueError, match="Unsupported"):
            open_store(IndexConfig(store="cassandra"), 8)

    @patch("vecsync.store.ravendb.RavenDBVectorStore")
    def test_ravendb_ensures_index(self, mock_store_cls):
        store = open_store(IndexConfig(store="ravendb"), 768)

        mock_store_cls.assert_called_once()
        assert mock_store_cls.call_args.args == (768,)
        assert mock_store_cls.call_args.kwargs["database"] == "vecsync"
        store.ensure_index.assert_called_once()


class TestMetadataValidation:
    """Tests for the metadata allow-list."""

    def test_known_fields_pass(self):
        validate_metadata({"source": "file", "pageNumber": 3, "keywords": ["a"], "title": None})

    def test_unknown_field_rejected(self):
        with pytest.raises(MetadataValidationError, match="Unknown metadata field"):
            validate_metadata({"author": "someone"})

    def test_wrong_type_rejected(self):
        with pytest.raises(MetadataValidationError):
            validate_metadata({"pageNumber": "three"})

    def test_bool_is_not_a_number(self):
        with pytest.raises(MetadataValidationError):
            validate_metadata({"size": True})

    def test_non_dict_rejected(self):
        with pytest.raises(MetadataValidationError):
            validate_metadata(["source"])

    def test_enrich_keeps_explicit_values(self):
        merged = enrich_metadata({"source": "crawl"}, source="file", format="html")
        assert merged == {"source": "crawl", "format": "html"}


@pytest.mark.integration
@pytest.mark.requires_ravendb
class TestRavenDBVectorStore:
    """Integration tests against a running RavenDB server."""

    def test_put_and_search(self, ravendb_url, tmp_path):
        from vecsync.store.ravendb import RavenDBVectorStore, create_database, database_exists

        database = f"vecsync_test_{tmp_path.name}"[:60]
        if not database_exists(ravendb_url, database):
            create_database(ravendb_url, database)

        store = RavenDBVectorStore(url=ravendb_url, database=database, dimension=3)
        try:
            store.ensure_index()
            store.put_batch([make_doc("a", [1.0, 0.0, 0.0], source="file")])
            assert store.get_by_checksum("sum-a") == "a"
            hits = store.search_index([1.0, 0.0, 0.0], top_k=1)
            assert hits and hits[0].id == "a"
        finally:
            store.delete_by_ids(["a"])
            store.close()
