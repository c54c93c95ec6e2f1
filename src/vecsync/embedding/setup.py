"""Automatic provisioning of a local Ollama server."""

import asyncio
import logging
import shutil
import subprocess

from vecsync.embedding.ollama import OllamaEmbedder

logger = logging.getLogger(__name__)

STARTUP_TIMEOUT = 30.0
STARTUP_POLL = 0.5


class OllamaSetup:
    """Start ``ollama serve`` when the binary is installed, then pull the model."""

    def __init__(self, embedder: OllamaEmbedder, startup_timeout: float = STARTUP_TIMEOUT) -> None:
        self.embedder = embedder
        self.startup_timeout = startup_timeout
        self.process: subprocess.Popen | None = None

    @staticmethod
    def is_installed() -> bool:
        return shutil.which("ollama") is not None

    def start_server(self) -> None:
        logger.info("🚀 Starting local Ollama server (ollama serve)...")
        self.process = subprocess.Popen(
            ["ollama", "serve"],
            stdout=subprocess.DEVNULL,
            stderr=subprocess.DEVNULL,
            start_new_session=True,
        )

    async def wait_until_ready(self) -> bool:
        loop = asyncio.get_running_loop()
        deadline = loop.time() + self.startup_timeout
        while loop.time() < deadline:
            if await self.embedder.check_connection():
                return True
            await asyncio.sleep(STARTUP_POLL)
        return False

    async def ensure_ready(self) -> bool:
        """Bring the embedder up. Returns False when setup is not possible.

        Returns:
            bool: True once the server answers and the model is available
        """
        if not await self.embedder.check_connection():
            if not self.is_installed():
                logger.warning("⚠️ Ollama binary not found on PATH, cannot auto-start")
                return False
            self.start_server()
            if not await self.wait_until_ready():
                logger.error(f"❌ Ollama did not become ready within {self.startup_timeout}s")
                return False

        return await self.embedder.pull_model()
