"""Store interfaces and the dimension guard shared by all stores."""

from abc import ABC, abstractmethod
from typing import Any, Protocol

from vecsync.exceptions import DimensionMismatchError
from vecsync.store.models import Document, ScoredDocument


class VectorStore(Protocol):
    """Protocol for single-writer document stores.

    A store owns persistence and nearest-neighbour ranking. It is opened for a
    fixed vector dimension and rejects any record of another length.
    """

    dimension: int

    def put(self, doc: Document) -> None: ...

    def put_batch(self, docs: list[Document]) -> None: ...

    def get_by_checksum(self, checksum: str) -> str | None: ...

    def existing_checksums(self, checksums: list[str]) -> set[str]: ...

    def get_all(self) -> list[Document]: ...

    def get_metadata_by_source(self, source: str) -> list[tuple[str, dict[str, Any]]]: ...

    def get_ids_where(self, field: str, value: Any) -> list[str]: ...

    def delete_by_ids(self, ids: list[str]) -> int: ...

    def count(self) -> int: ...

    def query(self, vector: list[float], top_k: int) -> list[ScoredDocument]: ...

    def close(self) -> None: ...


class SupportsIndexing(ABC):
    """Capability declared by stores that maintain a server-side vector index.

    Stores that subclass this are queried through ``search_index`` instead of
    a brute-force scan, and have ``ensure_index`` called once at startup.
    """

    @abstractmethod
    def ensure_index(self) -> None:
        """Create the vector index if it does not exist yet."""

    @abstractmethod
    def search_index(self, vector: list[float], top_k: int) -> list[ScoredDocument]:
        """Answer a nearest-neighbour query from the index."""


def validate_vector(vector: list[float], dimension: int, doc_id: str = "vector") -> None:
    """Reject vectors whose length differs from the store dimension.

    Raises:
        DimensionMismatchError: If ``len(vector) != dimension``.
    """
    if len(vector) != dimension:
        raise DimensionMismatchError(dimension, len(vector), context=doc_id)
