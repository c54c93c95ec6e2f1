"""Allow-list validation for document metadata.

Unknown keys are rejected rather than stored so that schema drift between
extractors and sync engines surfaces immediately.
"""

from typing import Any

from vecsync.exceptions import MetadataValidationError

_STRING = (str,)
_NUMBER = (int, float)

METADATA_TYPES: dict[str, tuple[type, ...]] = {
    "filePath": _STRING,
    "source": _STRING,
    "title": _STRING,
    "format": _STRING,
    "language": _STRING,
    "hash": _STRING,
    "checksum": _STRING,
    "lastIndexed": _NUMBER,
    "fileSignature": (dict,),
    "keywords": (list,),
    "type": _STRING,
    "length": _NUMBER,
    "crawlUrl": _STRING,
    "fileName": _STRING,
    "contentHash": _STRING,
    "pageNumber": _NUMBER,
    "totalPages": _NUMBER,
    "itemIndex": _NUMBER,
    "itemData": (dict, list, str, int, float, bool),
    "rowIndex": _NUMBER,
    "rowData": (dict,),
    "sheetName": _STRING,
    "paragraphIndex": _NUMBER,
    "processedAt": _STRING,
    "fileId": _STRING,
    "mimeType": _STRING,
    "modifiedTime": _STRING,
    "size": _NUMBER,
    "driveUrl": _STRING,
    "absolutePath": _STRING,
    "lastModified": _STRING,
    "encoding": _STRING,
}


def validate_metadata(metadata: dict[str, Any]) -> None:
    """Check metadata keys against the allow-list and their value types.

    Args:
        metadata: The metadata mapping to validate

    Raises:
        MetadataValidationError: On a non-dict, an unknown key, or a wrongly
            typed value. None values are always accepted.
    """
    if not isinstance(metadata, dict):
        raise MetadataValidationError("Metadata must be a dict")

    for key, value in metadata.items():
        if key not in METADATA_TYPES:
            allowed = ", ".join(sorted(METADATA_TYPES))
            raise MetadataValidationError(f"Unknown metadata field: {key}. Allowed: {allowed}")
        if value is None:
            continue
        expected = METADATA_TYPES[key]
        # bool is an int subclass but never a valid number here
        if isinstance(value, bool) and bool not in expected:
            raise MetadataValidationError(f'Metadata field "{key}" must not be a bool')
        if not isinstance(value, expected):
            names = "/".join(t.__name__ for t in expected)
            raise MetadataValidationError(
                f'Metadata field "{key}" must be {names}, got {type(value).__name__}'
            )


def enrich_metadata(metadata: dict[str, Any] | None, **defaults: Any) -> dict[str, Any]:
    """Merge defaults under the given metadata and validate the result."""
    merged = {**defaults, **(metadata or {})}
    validate_metadata(merged)
    return merged
