"""CSV and JSON processors: one document per row or item."""

import csv
import io
import json
from typing import Any

from vecsync.extract.base import ExtractedDocument, Processor, decode_text


def item_to_text(item: Any) -> str:
    """Render a JSON value as ``key: value`` lines."""
    if isinstance(item, str):
        return item
    if not isinstance(item, dict):
        return json.dumps(item) if isinstance(item, list) else str(item)
    lines = []
    for key, value in item.items():
        if isinstance(value, (dict, list)):
            value = json.dumps(value)
        lines.append(f"{key}: {value}")
    return "\n".join(lines)


class CsvProcessor(Processor):
    extensions = (".csv",)
    doc_type = "csv"

    def process_bytes(
        self, data: bytes, file_name: str, **source_options: Any
    ) -> list[ExtractedDocument]:
        text = decode_text(data)
        if not text.strip():
            return []
        file_path = source_options.get("file_path", file_name)

        rows = [
            row
            for row in csv.DictReader(io.StringIO(text))
            if any((value or "").strip() for value in row.values() if isinstance(value, str))
        ]
        contents = [
            "\n".join(f"{key}: {value}" for key, value in row.items() if key is not None)
            for row in rows
        ]
        extra = [{"rowIndex": index} for index in range(len(rows))]
        return self.indexed_documents(contents, file_name, file_path, extra)


class JsonProcessor(Processor):
    extensions = (".json", ".jsonl")
    doc_type = "json"

    def process_bytes(
        self, data: bytes, file_name: str, **source_options: Any
    ) -> list[ExtractedDocument]:
        text = decode_text(data).strip()
        if not text:
            return []
        file_path = source_options.get("file_path", file_name)

        if file_name.lower().endswith(".jsonl"):
            items = [json.loads(line) for line in text.splitlines() if line.strip()]
        else:
            parsed = json.loads(text)
            if not isinstance(parsed, list):
                return self.build_documents(
                    [item_to_text(parsed)], file_name, file_path, itemData=parsed
                )
            items = parsed

        contents = [item_to_text(item) for item in items]
        extra = [{"itemIndex": index, "itemData": item} for index, item in enumerate(items)]
        return self.indexed_documents(contents, file_name, file_path, extra)
