"""Exception hierarchy for vecsync.

Configuration errors are fatal and abort the whole command; everything else
is either recoverable per item or a normal skip outcome.
"""


class VecsyncError(Exception):
    """Base class for all vecsync errors."""


class ConfigurationError(VecsyncError):
    """A fatal misconfiguration. Carries a remedy the user can act on."""

    def __init__(self, message: str, remedy: str | None = None) -> None:
        self.remedy = remedy
        super().__init__(f"{message}\n{remedy}" if remedy else message)


class BackendUnavailableError(ConfigurationError):
    """No embedding backend answered its liveness probe."""

    def __init__(self, attempted: list[str], remedy: str | None = None) -> None:
        self.attempted = attempted
        probes = ", ".join(attempted) if attempted else "none"
        super().__init__(f"No embedding service available (probed: {probes})", remedy)


class DimensionMismatchError(ConfigurationError):
    """A vector's length differs from the store's configured dimension."""

    def __init__(self, expected: int, actual: int, context: str = "vector") -> None:
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"Dimension mismatch for {context}: expected {expected}, got {actual}",
            "Use the embedding model the store was created with, or re-create the store.",
        )


class SourceNotFoundError(ConfigurationError):
    """The source to sync does not exist."""


class MetadataValidationError(VecsyncError, ValueError):
    """Metadata contains an unknown key or a value of the wrong type."""


class ModelNotFoundError(VecsyncError):
    """The embedding backend does not have the requested model."""

    def __init__(self, model: str) -> None:
        self.model = model
        super().__init__(f"Embedding model not found: {model}")


class TransientBackendError(VecsyncError):
    """A retryable embedding backend failure (timeout, connection, 5xx)."""
