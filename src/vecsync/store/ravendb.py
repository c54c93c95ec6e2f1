"""Vector store backed by a RavenDB server with a server-side vector index."""

import logging
from dataclasses import dataclass, field
from typing import Any

import requests
from ravendb import DocumentStore
from ravendb.documents.indexes.definitions import (
    FieldIndexing,
    FieldStorage,
    IndexDefinition,
    IndexFieldOptions,
)
from ravendb.documents.indexes.vector.options import VectorOptions
from ravendb.documents.operations.indexes import GetIndexNamesOperation, PutIndexesOperation

from vecsync.constants import (
    DEFAULT_RAVENDB_COLLECTION,
    DEFAULT_RAVENDB_DATABASE,
    DEFAULT_RAVENDB_URL,
)
from vecsync.store.base import SupportsIndexing, validate_vector
from vecsync.store.metadata import METADATA_TYPES
from vecsync.store.models import Document, ScoredDocument
from vecsync.store.search import cosine_similarity

logger = logging.getLogger(__name__)


@dataclass(eq=False)
class VectorRecord:
    """RavenDB entity for one stored document.

    Note: eq=False keeps instances hashable by identity, which RavenDB's
    session entity tracking requires.
    """

    Id: str | None = None
    embedding: list[float] = field(default_factory=list)
    checksum: str = ""
    version: str = "0.0.0"
    content: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)

    def __hash__(self) -> int:
        return id(self)


def create_document_store(url: str, database: str) -> DocumentStore:
    """Create and initialize a DocumentStore instance."""
    store = DocumentStore([url], database)
    store.initialize()
    return store


def database_exists(url: str, database: str) -> bool:
    """Check whether the database is reachable on the RavenDB server."""
    try:
        response = requests.get(f"{url}/databases/{database}/stats", timeout=5)
        return response.status_code == 200
    except requests.RequestException:
        return False


def create_database(url: str, database: str) -> None:
    """Create a new database on the RavenDB server."""
    response = requests.put(
        f"{url}/admin/databases",
        json={"DatabaseName": database, "Settings": {}, "Disabled": False},
        timeout=10,
    )
    response.raise_for_status()


class RavenDBVectorStore(SupportsIndexing):
    """Store documents in a RavenDB collection and rank them with its vector index."""

    def __init__(
        self,
        dimension: int,
        url: str = DEFAULT_RAVENDB_URL,
        database: str = DEFAULT_RAVENDB_DATABASE,
        collection: str = DEFAULT_RAVENDB_COLLECTION,
        create_if_missing: bool = True,
    ) -> None:
        self.dimension = dimension
        self.url = url
        self.database = database
        self.collection = collection
        self.index_name = f"{collection}/ByEmbedding"

        if create_if_missing and not database_exists(url, database):
            logger.info(f"📦 Creating RavenDB database '{database}' at {url}")
            create_database(url, database)

        self._store = create_document_store(url, database)
        logger.info(f"🔧 Connected to RavenDB {url}/{database} (collection={collection})")

    def ensure_index(self) -> None:
        """Ensure the vector search index exists for the collection."""
        existing_indexes = self._store.maintenance.send(GetIndexNamesOperation(0, 100))
        if self.index_name in existing_indexes:
            return

        index_definition = IndexDefinition()
        index_definition.name = self.index_name
        index_definition.maps = {
            f"""from doc in docs.{self.collection}
            where doc.embedding != null
            select new {{
                checksum = doc.checksum,
                version = doc.version,
                embedding = CreateField("embedding", doc.embedding, new CreateFieldOptions {{ Storage = FieldStorage.Yes, Indexing = FieldIndexing.No }})
            }}"""
        }
        index_definition.fields = {
            "embedding": IndexFieldOptions(
                storage=FieldStorage.YES,
                indexing=FieldIndexing.NO,
                vector=VectorOptions(dimensions=self.dimension),
            )
        }
        self._store.maintenance.send(PutIndexesOperation(index_definition))
        logger.info(f"✅ Created vector index {self.index_name} ({self.dimension} dimensions)")

    def put(self, doc: Document) -> None:
        self.put_batch([doc])

    def put_batch(self, docs: list[Document]) -> None:
        for doc in docs:
            validate_vector(doc.vector, self.dimension, doc.id)

        with self._store.open_session() as session:
            for doc in docs:
                record = VectorRecord(
                    Id=doc.id,
                    embedding=doc.vector,
                    checksum=doc.checksum,
                    version=doc.version,
                    content=doc.content,
                    metadata=doc.metadata,
                )
                session.store(record, doc.id)
                metadata = session.advanced.get_metadata_for(record)
                metadata["@collection"] = self.collection
            session.save_changes()

    def _raw(self, rql: str, **params: Any) -> list[dict]:
        with self._store.open_session() as session:
            query = session.advanced.raw_query(rql, object_type=dict)
            for name, value in params.items():
                query = query.add_parameter(name, value)
            return list(query)

    def get_by_checksum(self, checksum: str) -> str | None:
        rows = self._raw(
            f"from {self.collection} where checksum = $checksum limit 1", checksum=checksum
        )
        return self._record_id(rows[0]) if rows else None

    def existing_checksums(self, checksums: list[str]) -> set[str]:
        if not checksums:
            return set()
        rows = self._raw(
            f"from {self.collection} where checksum in ($checksums) select checksum",
            checksums=list(checksums),
        )
        return {row.get("checksum") for row in rows if row.get("checksum")}

    def get_all(self) -> list[Document]:
        return [self._to_document(row) for row in self._raw(f"from {self.collection}")]

    def get_metadata_by_source(self, source: str) -> list[tuple[str, dict[str, Any]]]:
        rows = self._raw(
            f"from {self.collection} where metadata.source = $source", source=source
        )
        return [(self._record_id(row), row.get("metadata") or {}) for row in rows]

    def get_ids_where(self, field: str, value: Any) -> list[str]:
        if field not in METADATA_TYPES:
            raise ValueError(f"Unknown metadata field: {field}")
        rows = self._raw(f"from {self.collection} where metadata.{field} = $value", value=value)
        return [self._record_id(row) for row in rows]

    def delete_by_ids(self, ids: list[str]) -> int:
        if not ids:
            return 0
        with self._store.open_session() as session:
            for doc_id in ids:
                session.delete(doc_id)
            session.save_changes()
        return len(ids)

    def count(self) -> int:
        return len(self._raw(f"from {self.collection} select id()"))

    def search_index(self, vector: list[float], top_k: int) -> list[ScoredDocument]:
        validate_vector(vector, self.dimension, "query")
        with self._store.open_session() as session:
            results = list(
                session.query_collection(self.collection, object_type=dict)
                .vector_search("embedding", vector)
                .order_by_score()
                .take(top_k)
            )

        hits = []
        for result in results:
            index_score = result.get("@metadata", {}).get("@index-score")
            if index_score is not None:
                score = float(index_score)
            else:
                score = cosine_similarity(vector, result.get("embedding", []))
            hits.append(
                ScoredDocument(
                    id=self._record_id(result),
                    score=score,
                    content=result.get("content"),
                    metadata=result.get("metadata") or {},
                )
            )
        hits.sort(key=lambda hit: hit.score, reverse=True)
        return hits[:top_k]

    def query(self, vector: list[float], top_k: int) -> list[ScoredDocument]:
        return self.search_index(vector, top_k)

    def close(self) -> None:
        self._store.close()

    @staticmethod
    def _record_id(row: dict) -> str:
        return row.get("Id") or row.get("@metadata", {}).get("@id", "")

    def _to_document(self, row: dict) -> Document:
        return Document(
            id=self._record_id(row),
            vector=row.get("embedding", []),
            checksum=row.get("checksum", ""),
            version=row.get("version", "0.0.0"),
            content=row.get("content"),
            metadata=row.get("metadata") or {},
        )
