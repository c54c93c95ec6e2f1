"""Data models for vector store records."""

from dataclasses import dataclass, field
from typing import Any


@dataclass(eq=False)
class Document:
    """A content-addressed, versioned record paired with its embedding.

    Attributes:
        id: Caller-supplied identifier, unique within the store and scoped
            by source (file path, remote file id + page, row index, ...)
        vector: Embedding vector; its length must equal the store dimension
        checksum: SHA-256 of the embedded text, the deduplication key
        version: Embedding-scheme version the vector was produced under
        content: Original text, or None when content storage is disabled
        metadata: Provenance fields, validated against the metadata schema
    """

    id: str
    vector: list[float]
    checksum: str
    version: str = "0.0.0"
    content: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass
class ScoredDocument:
    """A nearest-neighbour hit returned by a store query."""

    id: str
    score: float
    content: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)
