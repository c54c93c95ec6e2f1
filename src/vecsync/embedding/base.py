"""Base protocol for embedding backends."""

from typing import Protocol


class EmbeddingBackend(Protocol):
    """Protocol for services that turn text into fixed-length vectors.

    Backends are swappable: sync engines and the index only ever talk to
    this interface, never to a concrete client.
    """

    name: str
    model: str

    async def embed(self, text: str) -> list[float]:
        """Embed a single text.

        Raises:
            ModelNotFoundError: The backend does not have the model.
            TransientBackendError: Retryable failure (timeout, connection, 5xx).
        """
        ...

    async def check_connection(self) -> bool:
        """Lightweight liveness probe."""
        ...

    def get_dimension(self) -> int:
        """Return the vector length this backend produces."""
        ...

    async def pull_model(self) -> bool:
        """Ask the backend to provision the model. Returns True on success."""
        ...
