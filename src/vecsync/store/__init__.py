"""Vector store layer for vecsync.

This package provides the storage side of the index:
- Document / ScoredDocument records
- Metadata allow-list validation
- SQLiteVectorStore: local single-file store (default)
- RavenDBVectorStore: server store with a native vector index
- open_store(): build the configured store for a known dimension

Usage:
    from vecsync.store import open_store

    store = open_store(config, dimension=768)
"""

from vecsync.config import IndexConfig
from vecsync.store.base import SupportsIndexing, VectorStore, validate_vector
from vecsync.store.metadata import METADATA_TYPES, enrich_metadata, validate_metadata
from vecsync.store.models import Document, ScoredDocument
from vecsync.store.search import cosine_similarity, rank_documents
from vecsync.store.sqlite import SQLiteVectorStore


def open_store(config: IndexConfig, dimension: int) -> VectorStore:
    """Open the store selected by ``config.store`` for the given dimension.

    Args:
        config: Resolved configuration
        dimension: Vector length of the active embedding model

    Returns:
        VectorStore: The opened store (index ensured for indexed stores)

    Raises:
        ValueError: If ``config.store`` names an unsupported store.
    """
    if config.store == "sqlite":
        return SQLiteVectorStore(config.db_path, dimension)

    if config.store == "ravendb":
        from vecsync.store.ravendb import RavenDBVectorStore

        store = RavenDBVectorStore(
            dimension,
            url=config.ravendb_url,
            database=config.ravendb_database,
            collection=config.ravendb_collection,
        )
        store.ensure_index()
        return store

    raise ValueError(f"Unsupported store type: {config.store}")


__all__ = [
    "Document",
    "ScoredDocument",
    "VectorStore",
    "SupportsIndexing",
    "SQLiteVectorStore",
    "METADATA_TYPES",
    "validate_metadata",
    "enrich_metadata",
    "validate_vector",
    "cosine_similarity",
    "rank_documents",
    "open_store",
]
