"""Pytest configuration and shared fixtures for the test suite."""

import asyncio
import hashlib
import math
import re
from pathlib import Path

import pytest
import requests

from vecsync.config import IndexConfig
from vecsync.embedding.queue import EmbeddingQueue
from vecsync.index import VectorIndex
from vecsync.ledger import ContentLedger
from vecsync.store.sqlite import SQLiteVectorStore

FAKE_DIMENSION = 64


# Service availability checks
def ollama_available() -> bool:
    """Check if Ollama server is running and accessible.

    Returns:
        True if Ollama is available, False otherwise
    """
    try:
        response = requests.get("http://localhost:11434/api/tags", timeout=2)
        return response.status_code == 200
    except requests.RequestException:
        return False


def ravendb_available() -> bool:
    """Check if RavenDB server is running and accessible.

    Returns:
        True if RavenDB is available, False otherwise
    """
    try:
        response = requests.get("http://localhost:8080/databases", timeout=2)
        return response.status_code in (200, 401)  # Auth required is OK
    except requests.RequestException:
        return False


class FakeEmbedder:
    """Deterministic bag-of-words embedder: shared words mean similar vectors."""

    name = "fake"

    def __init__(self, dimension: int = FAKE_DIMENSION, model: str = "fake-embed") -> None:
        self.model = model
        self.dimension = dimension
        self.calls: list[str] = []

    async def embed(self, text: str) -> list[float]:
        self.calls.append(text)
        vector = [0.0] * self.dimension
        for word in re.findall(r"[a-z0-9]+", text.lower()):
            bucket = int(hashlib.md5(word.encode("utf-8")).hexdigest(), 16) % self.dimension
            vector[bucket] += 1.0
        norm = math.sqrt(sum(v * v for v in vector)) or 1.0
        return [v / norm for v in vector]

    async def check_connection(self) -> bool:
        return True

    def get_dimension(self) -> int:
        return self.dimension

    async def pull_model(self) -> bool:
        return True


class SlowEmbedder(FakeEmbedder):
    """Fake backend that takes a fixed time per embed and tracks overlap."""

    def __init__(self, delay: float) -> None:
        super().__init__()
        self.delay = delay
        self.in_flight = 0
        self.max_in_flight = 0

    async def embed(self, text: str) -> list[float]:
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            await asyncio.sleep(self.delay)
            return await super().embed(text)
        finally:
            self.in_flight -= 1


def long_text(topic: str, words: int = 40) -> str:
    """Text about one topic, comfortably above the minimum content length."""
    return " ".join(f"{topic}{i % 7}" if i % 3 else topic for i in range(words))


@pytest.fixture
def fake_embedder() -> FakeEmbedder:
    return FakeEmbedder()


@pytest.fixture
def test_config(tmp_path) -> IndexConfig:
    """Config pointing at a temporary SQLite store with fast retries."""
    return IndexConfig(
        db_path=str(tmp_path / "test.db"),
        embed_retry_delay=0.0,
        buffer_size=10,
        auto_setup=False,
    )


@pytest.fixture
def sqlite_store(tmp_path):
    """Provide a temporary SQLite store at the fake embedder's dimension.

    Yields:
        SQLiteVectorStore instance, closed after the test
    """
    store = SQLiteVectorStore(tmp_path / "store.db", FAKE_DIMENSION)
    yield store
    store.close()


@pytest.fixture
def make_index(sqlite_store, fake_embedder):
    """Factory fixture building a VectorIndex over the temporary store.

    Returns:
        Function that creates an index with optional overrides
    """

    def _make(backend=None, min_length: int = 150, buffer_size: int = 10, version: str = "1.0.0"):
        queue = EmbeddingQueue(backend or fake_embedder, retry_delay=0.0, poll_interval=0.01)
        ledger = ContentLedger(sqlite_store, min_length)
        return VectorIndex(sqlite_store, queue, ledger, version=version, buffer_size=buffer_size)

    return _make


@pytest.fixture
def ravendb_url() -> str:
    """Skip unless a RavenDB server is reachable."""
    if not ravendb_available():
        pytest.skip("RavenDB server not running on localhost:8080")
    return "http://localhost:8080"


@pytest.fixture
def docs_folder(tmp_path) -> Path:
    """A folder with three topical text files."""
    folder = tmp_path / "docs"
    folder.mkdir()
    (folder / "astronomy.txt").write_text(long_text("galaxy"))
    (folder / "cooking.md").write_text(long_text("recipe"))
    (folder / "sailing.txt").write_text(long_text("harbor"))
    return folder
