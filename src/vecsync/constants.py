"""Application-wide constants and defaults for vecsync.

This module provides a single source of truth for configuration defaults,
magic numbers, and other constants used throughout the application.
"""

# =============================================================================
# Storage
# =============================================================================
DEFAULT_DB_PATH = "./vecsync.db"
DEFAULT_STORE = "sqlite"  # "sqlite" or "ravendb"
DEFAULT_RAVENDB_URL = "http://localhost:8080"
DEFAULT_RAVENDB_DATABASE = "vecsync"
DEFAULT_RAVENDB_COLLECTION = "VectorDocuments"
WRITE_BUFFER_SIZE = 100  # Buffered documents before a forced flush

# =============================================================================
# Embedding Backends
# =============================================================================
DEFAULT_OLLAMA_HOST = "http://localhost:11434"
DEFAULT_EMBEDDING_MODEL = "nomic-embed-text"
DEFAULT_GEMINI_EMBEDDING_MODEL = "text-embedding-004"
DEFAULT_BACKENDS = ("ollama", "gemini")  # Probe order for backend auto-detection
DEFAULT_EMBEDDING_DIMENSIONS = 768

# Known output dimensions of common embedding models
MODEL_DIMENSIONS = {
    "all-minilm": 384,
    "nomic-embed-text": 768,
    "mxbai-embed-large": 1024,
    "snowflake-arctic-embed": 1024,
    "embeddinggemma": 768,
    "text-embedding-004": 768,
}

# =============================================================================
# Embedding Queue
# =============================================================================
EMBED_BATCH_SIZE = 32
EMBED_MAX_CONCURRENT = 4
EMBED_RETRIES = 3
EMBED_RETRY_DELAY = 1.0  # Seconds, multiplied by attempt number
EMBED_TIMEOUT = 30.0  # Hard wall-clock timeout per embed call
PROBE_TIMEOUT = 2.0  # Liveness probe timeout
DRAIN_POLL_INTERVAL = 0.1

# =============================================================================
# Content Ledger
# =============================================================================
MIN_CONTENT_LENGTH = 150  # Shorter content is skipped as "too_short"

# =============================================================================
# Extraction
# =============================================================================
CHUNK_SIZE_WORDS = 500
CHUNK_OVERLAP_WORDS = 50

# =============================================================================
# Sync Engines
# =============================================================================
DEFAULT_IGNORE_DIRS = ("node_modules", ".git", "dist", "build", "__pycache__", ".venv")
MAX_PREFETCH = 5  # Continuous pipeline prefetch queue capacity
FLUSH_EVERY = 100  # Continuous pipeline forced flush interval (items)
MAX_OUTSTANDING = 200  # Continuous pipeline cap on scheduled, unfinished adds
DRIVE_STATE_FILE = ".gdrive-sync-state.json"
DRIVE_MAX_FILES = 1000
CRAWL_MAX_PAGES = 100
CRAWL_MAX_DEPTH = 3
CRAWL_CONCURRENCY = 3
CRAWL_PAGE_TIMEOUT = 15.0
CODE_MAX_DEPTH = 10
CODE_MAX_FILE_SIZE = 1024 * 1024  # 1MB

# =============================================================================
# Boilerplate Dedup
# =============================================================================
DEDUP_NGRAM_SIZES = (3, 5, 7, 10)
DEDUP_MIN_PHRASE_CHARS = 50
DEDUP_MIN_OCCURRENCES = 2
DEDUP_MAX_PHRASES = 1000
DEDUP_SAMPLE_SIZE = 5

# =============================================================================
# Server Mode
# =============================================================================
FILE_CHECK_INTERVAL = 60.0  # Seconds between file-change checks
FULL_SYNC_INTERVAL = 300.0  # Minimum seconds between full re-syncs
DELETION_THRESHOLD = 2  # Missing files tolerated before counting as a change
MONITOR_TICK = 1.0
DEFAULT_SERVER_HOST = "0.0.0.0"
DEFAULT_SERVER_PORT = 8001

# =============================================================================
# Display Settings
# =============================================================================
DEFAULT_TOP_K = 5
CONTENT_PREVIEW_LENGTH = 200
SNIPPET_CONTEXT = 50
MAX_DISPLAYED_ERRORS = 5
