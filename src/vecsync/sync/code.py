"""Incremental indexing of a source-code tree.

One document per text file. Files are planned by root-relative path with
an ``{mtime, size}`` signature stored in ``fileSignature`` metadata, so only
new and modified files are read; modified files have their old record
removed first and deleted files are dropped.
"""

import asyncio
import fnmatch
import hashlib
import logging
import os
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path

from vecsync.config import IndexConfig
from vecsync.exceptions import SourceNotFoundError
from vecsync.extract.base import ExtractedDocument
from vecsync.index import VectorIndex
from vecsync.pipeline import ContinuousPipeline
from vecsync.sync.ignore import IgnoreRules
from vecsync.sync.planner import diff
from vecsync.sync.results import SyncResult

logger = logging.getLogger(__name__)

BINARY_EXTENSIONS = frozenset({
    ".jpg", ".jpeg", ".png", ".gif", ".bmp", ".tiff", ".ico", ".webp",
    ".mp4", ".avi", ".mov", ".wmv", ".flv", ".webm",
    ".mp3", ".wav", ".flac", ".ogg", ".aac",
    ".zip", ".tar", ".gz", ".rar", ".7z", ".iso",
    ".exe", ".dll", ".so", ".dylib", ".class", ".jar", ".pyc",
    ".pdf", ".doc", ".docx", ".xls", ".xlsx", ".ppt", ".pptx",
})

# Exact file names (or globs) checked before extensions
LANGUAGE_FILES: dict[str, tuple[str, ...]] = {
    "dockerfile": ("Dockerfile", "docker-compose.yml", "docker-compose.yaml"),
    "github": (".github/workflows/*.yml", ".github/workflows/*.yaml"),
    "gitlab": (".gitlab-ci.yml",),
    "npm": ("package.json",),
    "pip": ("requirements*.txt", "setup.py", "pyproject.toml"),
    "cargo": ("Cargo.toml",),
    "maven": ("pom.xml",),
    "gradle": ("build.gradle", "settings.gradle"),
    "make": ("Makefile", "makefile", "*.mk"),
}

LANGUAGE_PATTERNS: dict[str, tuple[str, ...]] = {
    "kubernetes": ("k8s/*.yaml", "k8s/*.yml", "kubernetes/*.yaml", "kubernetes/*.yml"),
}

LANGUAGE_EXTENSIONS: dict[str, tuple[str, ...]] = {
    "javascript": (".js", ".jsx", ".mjs", ".cjs"),
    "typescript": (".ts", ".tsx"),
    "html": (".html", ".htm"),
    "css": (".css", ".scss", ".sass", ".less"),
    "vue": (".vue",),
    "svelte": (".svelte",),
    "python": (".py", ".pyw", ".pyi"),
    "java": (".java",),
    "c": (".c", ".h"),
    "cpp": (".cpp", ".cxx", ".cc", ".hpp", ".hxx", ".hh"),
    "csharp": (".cs",),
    "go": (".go",),
    "rust": (".rs",),
    "php": (".php", ".phtml"),
    "ruby": (".rb",),
    "swift": (".swift",),
    "kotlin": (".kt", ".kts"),
    "scala": (".scala", ".sc"),
    "dart": (".dart",),
    "bash": (".sh", ".bash", ".zsh", ".fish"),
    "powershell": (".ps1", ".psm1", ".psd1"),
    "json": (".json",),
    "yaml": (".yaml", ".yml"),
    "toml": (".toml",),
    "xml": (".xml",),
    "markdown": (".md", ".markdown"),
    "tex": (".tex", ".latex"),
    "sql": (".sql",),
    "text": (".txt", ".rst", ".adoc"),
    "config": (".conf", ".cfg", ".ini", ".properties"),
}


def detect_language(relative_path: str) -> str:
    """Best-effort language tag: file name, then path pattern, then extension."""
    name = os.path.basename(relative_path)
    for language, patterns in LANGUAGE_FILES.items():
        if any(fnmatch.fnmatch(name, p) or fnmatch.fnmatch(relative_path, p) for p in patterns):
            return language
    for language, patterns in LANGUAGE_PATTERNS.items():
        if any(fnmatch.fnmatch(relative_path, f"*{p}") for p in patterns):
            return language
    extension = os.path.splitext(name)[1].lower()
    for language, extensions in LANGUAGE_EXTENSIONS.items():
        if extension in extensions:
            return language
    return "text"


def is_binary(path: Path, data: bytes) -> bool:
    """Binary if the extension says so, the data has a NUL byte, or is not UTF-8."""
    if path.suffix.lower() in BINARY_EXTENSIONS:
        return True
    if b"\x00" in data:
        return True
    try:
        data.decode("utf-8")
    except UnicodeDecodeError:
        return True
    return False


def code_document_id(relative_path: str) -> str:
    return "code-" + hashlib.sha256(relative_path.encode("utf-8")).hexdigest()[:16]


@dataclass(frozen=True)
class SourceFile:
    path: Path
    relative_path: str
    mtime: float
    size: int

    @property
    def signature(self) -> dict[str, float | int]:
        return {"mtime": self.mtime, "size": self.size}


class CodeSync:
    """Index a repository's text files with language metadata."""

    def __init__(self, index: VectorIndex, config: IndexConfig) -> None:
        self.index = index
        self.config = config
        self._skipped_files = 0

    def scan(self, root: Path) -> list[SourceFile]:
        """Walk root up to the configured depth, honouring ignore rules."""
        rules = IgnoreRules(root, self.config.ignore_patterns)
        files: list[SourceFile] = []
        for dirpath, dirnames, filenames in os.walk(root):
            current = Path(dirpath)
            depth = len(current.relative_to(root).parts)
            if depth >= self.config.code_max_depth:
                dirnames[:] = []
            else:
                dirnames[:] = sorted(
                    d for d in dirnames if not rules.is_ignored(current / d, is_dir=True)
                )
            for filename in sorted(filenames):
                path = current / filename
                if rules.is_ignored(path, is_dir=False) or not path.is_file():
                    continue
                stat = path.stat()
                files.append(
                    SourceFile(path, path.relative_to(root).as_posix(), stat.st_mtime, stat.st_size)
                )
        return files

    def known_files(self, root: Path) -> dict[str, dict]:
        prefix = str(root) + os.sep
        known: dict[str, dict] = {}
        for _, metadata in self.index.store.get_metadata_by_source("code"):
            absolute = metadata.get("absolutePath") or ""
            if absolute.startswith(prefix) and metadata.get("filePath"):
                known[metadata["filePath"]] = metadata.get("fileSignature") or {}
        return known

    def read_file(self, source: SourceFile) -> list[ExtractedDocument]:
        if source.size > self.config.code_max_file_size:
            logger.warning(f"⚠️ Skipping large file: {source.relative_path} ({source.size // 1024}KB)")
            self._skipped_files += 1
            return []

        data = source.path.read_bytes()
        if not self.config.include_binary and is_binary(source.path, data):
            self._skipped_files += 1
            return []

        content = data.decode("utf-8", errors="replace")
        return [
            ExtractedDocument(
                id=code_document_id(source.relative_path),
                content=content,
                metadata={
                    "source": "code",
                    "filePath": source.relative_path,
                    "absolutePath": str(source.path),
                    "language": detect_language(source.relative_path),
                    "size": source.size,
                    "lastModified": datetime.fromtimestamp(source.mtime, timezone.utc).isoformat(),
                    "encoding": "utf8",
                    "fileSignature": source.signature,
                },
            )
        ]

    async def _extract(self, source: SourceFile) -> list[ExtractedDocument]:
        return await asyncio.to_thread(self.read_file, source)

    async def sync(self, root_path: str | Path) -> SyncResult:
        """Bring the index in line with the repository at root_path.

        Raises:
            SourceNotFoundError: If the directory does not exist
        """
        root = Path(root_path).expanduser().resolve()
        if not root.is_dir():
            raise SourceNotFoundError(
                f"Repository not found: {root}", "Check the path and try again."
            )

        logger.info(f"🔍 Scanning code repository {root} (max depth {self.config.code_max_depth})")
        files = await asyncio.to_thread(self.scan, root)
        known = await asyncio.to_thread(self.known_files, root)

        plan = diff(files, known, key=lambda f: f.relative_path, signature=lambda f: f.signature)
        logger.info(f"🔧 Code plan: {plan.summary()}")

        result = SyncResult(skipped=len(plan.unchanged))
        for relative_path in plan.to_delete:
            try:
                result.removed += await self.index.clear_source(
                    "code", "absolutePath", str(root / relative_path)
                )
            except Exception as e:
                logger.error(f"❌ Failed to remove {relative_path}: {e}")
                result.record_error(relative_path, e)

        failed: set[str] = set()
        for source in plan.to_update:
            try:
                await self.index.clear_source("code", "absolutePath", str(source.path))
            except Exception as e:
                logger.error(f"❌ Failed to replace {source.relative_path}: {e}")
                result.record_error(source.relative_path, e)
                failed.add(source.relative_path)
                continue
            result.updated += 1

        self._skipped_files = 0
        pending = [source for source in plan.pending if source.relative_path not in failed]
        if pending:
            pipeline = ContinuousPipeline(self.index, self._extract, key=lambda f: f.relative_path)
            await pipeline.run(pending, result)
        result.skipped += self._skipped_files

        logger.info(
            f"✅ Code sync done: {result.added} added, {result.updated} updated, "
            f"{result.removed} removed, {result.skipped} skipped"
        )
        return result
