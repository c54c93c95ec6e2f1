"""Embedding backends and the batching queue that drives them.

Usage:
    from vecsync.embedding import EmbeddingQueue, select_backend

    backend = await select_backend(config)
    queue = EmbeddingQueue(backend)
    vector = await queue.embed("some text")
"""

from vecsync.embedding.base import EmbeddingBackend
from vecsync.embedding.factory import create_backend, select_backend
from vecsync.embedding.gemini import GeminiEmbedder
from vecsync.embedding.ollama import OllamaEmbedder, model_dimension
from vecsync.embedding.queue import EmbeddingQueue
from vecsync.embedding.setup import OllamaSetup

__all__ = [
    "EmbeddingBackend",
    "EmbeddingQueue",
    "GeminiEmbedder",
    "OllamaEmbedder",
    "OllamaSetup",
    "create_backend",
    "model_dimension",
    "select_backend",
]
