"""Format extraction: turn files and byte buffers into candidate documents.

Usage:
    from vecsync.extract import extract_file, supported_extensions

    documents = extract_file("notes/report.pdf")
"""

from pathlib import Path
from typing import Any

from vecsync.extract.base import ExtractedDocument, Processor, chunk_text
from vecsync.extract.html import HtmlProcessor, html_to_text
from vecsync.extract.office import DocxProcessor, XlsxProcessor
from vecsync.extract.pdf import PdfProcessor
from vecsync.extract.tabular import CsvProcessor, JsonProcessor
from vecsync.extract.text import TextProcessor

PROCESSORS: dict[str, Processor] = {}

for _processor in (
    TextProcessor(),
    HtmlProcessor(),
    PdfProcessor(),
    CsvProcessor(),
    JsonProcessor(),
    DocxProcessor(),
    XlsxProcessor(),
):
    for _extension in _processor.extensions:
        PROCESSORS[_extension] = _processor


def supported_extensions() -> list[str]:
    return sorted(PROCESSORS)


def get_processor(name: str | Path) -> Processor | None:
    """Return the processor for a file name, path or bare extension."""
    name = str(name).lower()
    extension = name if name.startswith(".") and "/" not in name else Path(name).suffix
    return PROCESSORS.get(extension)


def extract_file(path: str | Path, **source_options: Any) -> list[ExtractedDocument]:
    """Extract documents from a file on disk.

    Raises:
        ValueError: If the extension has no processor
    """
    processor = get_processor(path)
    if processor is None:
        raise ValueError(f"Unsupported file type: {Path(path).suffix or path}")
    return processor.process(path, **source_options)


def extract_bytes(data: bytes, file_name: str, **source_options: Any) -> list[ExtractedDocument]:
    processor = get_processor(file_name)
    if processor is None:
        raise ValueError(f"Unsupported file type: {file_name}")
    return processor.process_bytes(data, file_name, **source_options)


__all__ = [
    "ExtractedDocument",
    "Processor",
    "PROCESSORS",
    "chunk_text",
    "extract_bytes",
    "extract_file",
    "get_processor",
    "html_to_text",
    "supported_extensions",
]
