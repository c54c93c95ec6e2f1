"""Word and Excel processors using python-docx and openpyxl."""

import io
import logging
from datetime import datetime
from typing import Any

import docx
from openpyxl import load_workbook

from vecsync.extract.base import ExtractedDocument, Processor

logger = logging.getLogger(__name__)

MAX_SINGLE_DOCUMENT_PARAGRAPHS = 3  # Short documents stay whole


def cell_value(value: Any) -> Any:
    """Cell values as JSON-safe scalars."""
    if value is None or isinstance(value, (str, int, float, bool)):
        return value
    if isinstance(value, datetime):
        return value.isoformat()
    return str(value)


class DocxProcessor(Processor):
    """One document for short files, otherwise one per paragraph."""

    extensions = (".docx",)
    doc_type = "docx"

    def process_bytes(
        self, data: bytes, file_name: str, **source_options: Any
    ) -> list[ExtractedDocument]:
        if not data:
            return []
        file_path = source_options.get("file_path", file_name)

        document = docx.Document(io.BytesIO(data))
        title = document.core_properties.title or None
        paragraphs = [p.text.strip() for p in document.paragraphs if p.text.strip()]
        if not paragraphs:
            return []

        if len(paragraphs) <= MAX_SINGLE_DOCUMENT_PARAGRAPHS:
            content = "\n\n".join(paragraphs)
            return self.build_documents([content], file_name, file_path, title=title, length=len(content))

        extra = [{"paragraphIndex": index, "length": len(text)} for index, text in enumerate(paragraphs)]
        return self.indexed_documents(paragraphs, file_name, file_path, extra)


class XlsxProcessor(Processor):
    """One document per data row of every sheet; the first row holds headers."""

    extensions = (".xlsx",)
    doc_type = "excel"

    def process_bytes(
        self, data: bytes, file_name: str, **source_options: Any
    ) -> list[ExtractedDocument]:
        if not data:
            return []
        file_path = source_options.get("file_path", file_name)

        workbook = load_workbook(io.BytesIO(data), read_only=True, data_only=True)
        documents = []
        try:
            for sheet_name in workbook.sheetnames:
                rows = workbook[sheet_name].iter_rows(values_only=True)
                header = next(rows, None)
                if header is None:
                    continue
                names = [str(h) if h is not None else f"Column{i + 1}" for i, h in enumerate(header)]

                row_index = 0
                for row in rows:
                    row_data = {
                        names[i] if i < len(names) else f"Column{i + 1}": cell_value(value)
                        for i, value in enumerate(row)
                        if value is not None
                    }
                    if not row_data:
                        continue
                    documents.append(
                        ExtractedDocument(
                            id=f"file:{file_path}:{sheet_name}_{row_index}",
                            content="\n".join(f"{key}: {value}" for key, value in row_data.items()),
                            metadata=self.base_metadata(
                                file_name,
                                file_path,
                                sheetName=sheet_name,
                                rowIndex=row_index,
                                rowData=row_data,
                            ),
                        )
                    )
                    row_index += 1
        finally:
            workbook.close()

        logger.debug(f"Extracted {len(documents)} rows from {file_name}")
        return documents
