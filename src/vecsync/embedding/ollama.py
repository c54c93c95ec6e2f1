"""Ollama embedding backend."""

import asyncio
import logging

import ollama

from vecsync.constants import (
    DEFAULT_EMBEDDING_DIMENSIONS,
    DEFAULT_EMBEDDING_MODEL,
    DEFAULT_OLLAMA_HOST,
    EMBED_TIMEOUT,
    MODEL_DIMENSIONS,
    PROBE_TIMEOUT,
)
from vecsync.exceptions import ModelNotFoundError, TransientBackendError

logger = logging.getLogger(__name__)


def model_dimension(model: str, default: int = DEFAULT_EMBEDDING_DIMENSIONS) -> int:
    """Look up the vector length of a known Ollama model.

    Tags are ignored, so ``nomic-embed-text:latest`` resolves like
    ``nomic-embed-text``.
    """
    base = model.split(":", 1)[0]
    return MODEL_DIMENSIONS.get(base, default)


class OllamaEmbedder:
    """Embedding backend using a local or remote Ollama server.

    Vectors longer than a declared dimension are truncated to it; shorter
    ones are returned as-is and caught by the store's dimension guard.
    """

    name = "ollama"

    def __init__(
        self,
        host: str = DEFAULT_OLLAMA_HOST,
        model: str = DEFAULT_EMBEDDING_MODEL,
        dimension: int | None = None,
        timeout: float = EMBED_TIMEOUT,
    ) -> None:
        """Initialize the Ollama embedder.

        Args:
            host: The Ollama server host URL (e.g., "http://localhost:11434")
            model: The embedding model name (e.g., "nomic-embed-text")
            dimension: Declared vector length; defaults to the model table
            timeout: Hard wall-clock timeout per embed call, in seconds
        """
        self.host = host
        self.model = model
        self.dimension = dimension or model_dimension(model)
        self.timeout = timeout
        self.client = ollama.AsyncClient(host=host)
        logger.info(f"🤖 Initializing OllamaEmbedder: host={host}, model={model}")

    async def embed(self, text: str) -> list[float]:
        try:
            response = await asyncio.wait_for(
                self.client.embed(model=self.model, input=text), timeout=self.timeout
            )
        except asyncio.TimeoutError as e:
            raise TransientBackendError(f"Ollama embed timed out after {self.timeout}s") from e
        except ollama.ResponseError as e:
            if e.status_code == 404 or "not found" in str(e.error).lower():
                raise ModelNotFoundError(self.model) from e
            if e.status_code >= 500:
                raise TransientBackendError(f"Ollama server error: {e.error}") from e
            raise
        except ConnectionError as e:
            raise TransientBackendError(f"Cannot reach Ollama at {self.host}: {e}") from e

        vector = list(response["embeddings"][0])
        if len(vector) > self.dimension:
            vector = vector[: self.dimension]
        return vector

    async def check_connection(self) -> bool:
        try:
            await asyncio.wait_for(self.client.list(), timeout=PROBE_TIMEOUT)
            return True
        except (asyncio.TimeoutError, ConnectionError, ollama.ResponseError) as e:
            logger.debug(f"Ollama probe failed at {self.host}: {e}")
            return False

    def get_dimension(self) -> int:
        return self.dimension

    async def pull_model(self) -> bool:
        logger.info(f"📥 Pulling embedding model {self.model} from {self.host}...")
        try:
            await self.client.pull(self.model)
        except (ConnectionError, ollama.ResponseError) as e:
            logger.error(f"❌ Failed to pull {self.model}: {e}")
            return False
        logger.info(f"✅ Model {self.model} is ready")
        return True
