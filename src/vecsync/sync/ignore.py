"""Ignore rules for source-tree indexing.

Patterns follow a pragmatic subset of gitignore syntax: a trailing ``/``
matches directories only, a leading ``!`` re-includes, patterns containing
``/`` are matched against the root-relative path, others against the name.
"""

import fnmatch
import logging
from pathlib import Path

logger = logging.getLogger(__name__)

IGNORE_FILES = (".gitignore", ".ignore", ".dockerignore")

DEFAULT_IGNORE_PATTERNS = (
    # Version control
    ".git/", ".hg/", ".svn/", ".gitmodules", ".gitattributes",
    # Dependencies
    "node_modules/", ".pnpm-store/", "bower_components/", "vendor/",
    ".venv/", "venv/", "env/", "site-packages/", ".eggs/", "*.egg-info/",
    # Build output and caches
    "dist/", "build/", "out/", "target/", ".next/", ".nuxt/", ".cache/",
    "__pycache__/", ".pytest_cache/", ".mypy_cache/", ".ruff_cache/", ".tox/",
    "coverage/", ".nyc_output/", "*.tsbuildinfo", "*.py[cod]",
    # Lock files
    "package-lock.json", "yarn.lock", "pnpm-lock.yaml", "Cargo.lock",
    "poetry.lock", "Pipfile.lock", "composer.lock", "Gemfile.lock",
    # Logs, env and runtime data
    "*.log", "logs/", "*.pid", ".env", ".env.*", "tmp/", "temp/",
    # Editors and OS
    ".vscode/", ".idea/", "*.swp", "*.swo", "*~", ".DS_Store", "Thumbs.db",
    # Media and binaries
    "*.png", "*.jpg", "*.jpeg", "*.gif", "*.bmp", "*.ico", "*.webp",
    "*.mp3", "*.mp4", "*.wav", "*.mov", "*.zip", "*.tar", "*.gz", "*.7z",
    "*.exe", "*.dll", "*.so", "*.dylib", "*.class", "*.jar", "*.woff", "*.woff2",
    # vecsync's own artifacts
    "*.db", "*.db-wal", "*.db-shm", ".gdrive-sync-state.json",
)


class IgnoreRules:
    """Compiled ignore patterns for one root directory."""

    def __init__(self, root: Path, extra_patterns: tuple[str, ...] | list[str] = ()) -> None:
        self.root = root
        self.patterns: list[tuple[str, bool, bool]] = []
        for pattern in DEFAULT_IGNORE_PATTERNS:
            self.add(pattern)
        for name in IGNORE_FILES:
            self.load_file(root / name)
        for pattern in extra_patterns:
            self.add(pattern)
        logger.debug(f"Loaded {len(self.patterns)} ignore patterns for {root}")

    def add(self, pattern: str) -> None:
        pattern = pattern.strip()
        if not pattern or pattern.startswith("#"):
            return
        negated = pattern.startswith("!")
        if negated:
            pattern = pattern[1:]
        dir_only = pattern.endswith("/")
        pattern = pattern.strip("/")
        if pattern:
            self.patterns.append((pattern, dir_only, negated))

    def load_file(self, path: Path) -> None:
        if not path.is_file():
            return
        try:
            lines = path.read_text(encoding="utf-8", errors="replace").splitlines()
        except OSError as e:
            logger.warning(f"⚠️ Could not read {path}: {e}")
            return
        for line in lines:
            self.add(line)

    def is_ignored(self, path: Path, is_dir: bool | None = None) -> bool:
        """Last matching pattern wins, as in gitignore."""
        if is_dir is None:
            is_dir = path.is_dir()
        relative = path.relative_to(self.root).as_posix() if path.is_absolute() else path.as_posix()
        name = path.name

        ignored = False
        for pattern, dir_only, negated in self.patterns:
            if dir_only and not is_dir:
                continue
            target = relative if "/" in pattern else name
            if fnmatch.fnmatch(target, pattern):
                ignored = not negated
        return ignored
