"""PDF document processor using PyMuPDF, one document per page."""

import logging
from typing import Any

import fitz  # PyMuPDF

from vecsync.extract.base import ExtractedDocument, Processor

logger = logging.getLogger(__name__)


class PdfProcessor(Processor):
    extensions = (".pdf",)
    doc_type = "pdf"

    def process_bytes(
        self, data: bytes, file_name: str, **source_options: Any
    ) -> list[ExtractedDocument]:
        if not data:
            return []
        file_path = source_options.get("file_path", file_name)

        doc = fitz.open(stream=data, filetype="pdf")
        try:
            total_pages = len(doc)
            pages = []
            for page_number, page in enumerate(doc, start=1):
                text = page.get_text().strip()
                if text:
                    pages.append((page_number, text))
        finally:
            doc.close()

        logger.debug(f"Extracted {len(pages)}/{total_pages} non-empty pages from {file_name}")
        return [
            ExtractedDocument(
                id=f"file:{file_path}:page{page_number}",
                content=text,
                metadata=self.base_metadata(
                    file_name, file_path, pageNumber=page_number, totalPages=total_pages
                ),
            )
            for page_number, text in pages
        ]
