"""Plain text and markup-light document processor."""

from typing import Any

from vecsync.extract.base import ExtractedDocument, Processor, chunk_text, decode_text


class TextProcessor(Processor):
    extensions = (".txt", ".text", ".md", ".markdown", ".rst")
    doc_type = "text"

    def process_bytes(
        self, data: bytes, file_name: str, **source_options: Any
    ) -> list[ExtractedDocument]:
        text = decode_text(data).strip()
        if not text:
            return []
        file_path = source_options.get("file_path", file_name)
        return self.build_documents(chunk_text(text), file_name, file_path)
