"""Factory for selecting a live embedding backend."""

import logging

from vecsync.config import IndexConfig
from vecsync.embedding.base import EmbeddingBackend
from vecsync.embedding.gemini import GeminiEmbedder
from vecsync.embedding.ollama import OllamaEmbedder
from vecsync.embedding.setup import OllamaSetup
from vecsync.exceptions import BackendUnavailableError, ConfigurationError

logger = logging.getLogger(__name__)

SUPPORTED_BACKENDS = ("ollama", "gemini")


def create_backend(name: str, config: IndexConfig) -> EmbeddingBackend:
    """Create an embedding backend by name.

    Args:
        name: Backend name ("ollama" or "gemini")
        config: Resolved configuration

    Returns:
        EmbeddingBackend: An unprobed backend instance

    Raises:
        ConfigurationError: If the backend name is not supported
    """
    backend = name.lower()
    if backend == "ollama":
        return OllamaEmbedder(
            host=config.ollama_host,
            model=config.model_name,
            dimension=config.dimension,
            timeout=config.embed_timeout,
        )
    if backend == "gemini":
        return GeminiEmbedder(
            model=config.gemini_model,
            dimension=config.dimension,
            timeout=config.embed_timeout,
        )
    raise ConfigurationError(
        f"Unsupported embedding backend: {name}",
        f"Set VECSYNC_BACKENDS to a comma-separated list of: {', '.join(SUPPORTED_BACKENDS)}",
    )


async def select_backend(config: IndexConfig) -> EmbeddingBackend:
    """Return the first configured backend that answers its liveness probe.

    Backends are probed in ``config.backends`` order. When none answers and
    ``config.auto_setup`` is enabled, a local Ollama server is started and
    the model pulled before giving up.

    Raises:
        BackendUnavailableError: If no backend is reachable.
    """
    attempted: list[str] = []
    candidates = [create_backend(name, config) for name in config.backends]

    for backend in candidates:
        probe = f"{backend.name}({getattr(backend, 'host', backend.model)})"
        attempted.append(probe)
        logger.debug(f"🔍 Probing embedding backend {probe}")
        if await backend.check_connection():
            logger.info(f"✅ Using {backend.name} embeddings (model={backend.model})")
            return backend

    if config.auto_setup:
        for backend in candidates:
            if isinstance(backend, OllamaEmbedder):
                attempted.append(f"{backend.name}(auto-setup)")
                if await OllamaSetup(backend).ensure_ready():
                    logger.info(f"✅ Auto-started Ollama, using model {backend.model}")
                    return backend

    raise BackendUnavailableError(
        attempted,
        "Start Ollama (`ollama serve`), set GEMINI_API_KEY, or enable VECSYNC_AUTO_SETUP=true.",
    )
