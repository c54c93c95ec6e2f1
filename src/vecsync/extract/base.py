"""Base processor and document shape for format extractors."""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from vecsync.constants import CHUNK_OVERLAP_WORDS, CHUNK_SIZE_WORDS
from vecsync.store.metadata import enrich_metadata

logger = logging.getLogger(__name__)


@dataclass
class ExtractedDocument:
    """A candidate document produced by a processor, not yet embedded."""

    id: str
    content: str
    metadata: dict[str, Any] = field(default_factory=dict)


def chunk_text(
    text: str, chunk_size: int = CHUNK_SIZE_WORDS, overlap: int = CHUNK_OVERLAP_WORDS
) -> list[str]:
    """Split text into overlapping chunks based on word count.

    Args:
        text: The text to chunk
        chunk_size: Target number of words per chunk (default: 500)
        overlap: Number of words to overlap between chunks (default: 50)

    Returns:
        list[str]: List of text chunks; short text comes back unchanged
    """
    words = text.split()
    if len(words) <= chunk_size:
        return [text]

    chunks = []
    step = max(1, chunk_size - overlap)
    for start in range(0, len(words), step):
        chunks.append(" ".join(words[start : start + chunk_size]))
        if start + chunk_size >= len(words):
            break
    return chunks


def document_id(file_path: str, index: int | None = None) -> str:
    return f"file:{file_path}" if index is None else f"file:{file_path}:{index}"


class Processor:
    """Base class for format processors.

    Subclasses implement ``process_bytes``; ``process`` reads the file and
    delegates. Both return ``[]`` for empty but valid input.
    """

    extensions: tuple[str, ...] = ()
    doc_type: str = "text"

    def process(self, path: str | Path, **source_options: Any) -> list[ExtractedDocument]:
        path = Path(path)
        source_options.setdefault("file_path", str(path))
        return self.process_bytes(path.read_bytes(), path.name, **source_options)

    def process_bytes(
        self, data: bytes, file_name: str, **source_options: Any
    ) -> list[ExtractedDocument]:
        raise NotImplementedError

    def base_metadata(self, file_name: str, file_path: str, **extra: Any) -> dict[str, Any]:
        return enrich_metadata(
            {key: value for key, value in extra.items() if value is not None},
            source="file",
            filePath=file_path,
            fileName=file_name,
            processedAt=datetime.now(timezone.utc).isoformat(),
            type=self.doc_type,
        )

    def build_documents(
        self,
        contents: list[str],
        file_name: str,
        file_path: str,
        extra: list[dict[str, Any]] | None = None,
        **shared: Any,
    ) -> list[ExtractedDocument]:
        """Turn extracted texts into documents with ids and metadata.

        A single text gets the bare file id; several get ``:<index>`` suffixes.
        """
        documents = []
        single = len(contents) == 1
        for index, content in enumerate(contents):
            per_item = extra[index] if extra else {}
            documents.append(
                ExtractedDocument(
                    id=document_id(file_path, None if single else index),
                    content=content,
                    metadata=self.base_metadata(file_name, file_path, **shared, **per_item),
                )
            )
        return documents

    def indexed_documents(
        self,
        contents: list[str],
        file_name: str,
        file_path: str,
        extra: list[dict[str, Any]],
    ) -> list[ExtractedDocument]:
        """Documents that always carry an index suffix (rows, items)."""
        return [
            ExtractedDocument(
                id=document_id(file_path, index),
                content=content,
                metadata=self.base_metadata(file_name, file_path, **extra[index]),
            )
            for index, content in enumerate(contents)
        ]


def decode_text(data: bytes) -> str:
    try:
        return data.decode("utf-8")
    except UnicodeDecodeError:
        return data.decode("latin-1")
