"""Process-wide state for server mode, held on one explicit object."""

import asyncio
import logging
from dataclasses import dataclass, field
from pathlib import Path

from vecsync.config import IndexConfig
from vecsync.embedding import EmbeddingBackend, select_backend
from vecsync.index import VectorIndex
from vecsync.sync.code import CodeSync
from vecsync.sync.folder import FolderSync
from vecsync.sync.results import SyncResult

logger = logging.getLogger(__name__)

PROJECT_MARKERS = (
    "package.json",
    "pyproject.toml",
    "requirements.txt",
    "Cargo.toml",
    "pom.xml",
    "build.gradle",
    "tsconfig.json",
)


def is_code_repository(root: Path) -> bool:
    return any((root / marker).exists() for marker in PROJECT_MARKERS)


def make_engine(index: VectorIndex, config: IndexConfig, root: Path) -> FolderSync | CodeSync:
    """Code repositories get the code-tree engine, anything else folder sync."""
    return CodeSync(index, config) if is_code_repository(root) else FolderSync(index, config)


@dataclass
class ServerSession:
    """Everything the server shares across requests.

    The embedding backend is probed once in ``open`` and cached here for the
    lifetime of the process.
    """

    config: IndexConfig
    root: Path
    backend: EmbeddingBackend | None = None
    index: VectorIndex | None = None
    closed: bool = field(default=False, init=False)

    async def open(self) -> "ServerSession":
        if self.index is not None:
            return self
        if self.backend is None:
            self.backend = await select_backend(self.config)
        self.index = await asyncio.to_thread(VectorIndex.open, self.config, self.backend)
        logger.info(f"✅ Session ready for {self.root} ({self.backend.name}/{self.backend.model})")
        return self

    async def sync(self) -> SyncResult:
        engine = make_engine(self.require_index(), self.config, self.root)
        return await engine.sync(self.root)

    def require_index(self) -> VectorIndex:
        if self.index is None:
            raise RuntimeError("Session is not open")
        return self.index

    def close(self) -> None:
        if self.closed:
            return
        self.closed = True
        if self.index is not None:
            self.index.close()
            logger.info("🔧 Store closed")
