"""Command-line interface for vecsync using Click."""

import asyncio
import logging
import os
from pathlib import Path

import click
from dotenv import load_dotenv

from vecsync import __version__
from vecsync.client.cli_helpers import (
    format_search_result,
    print_sync_summary,
    run_async,
    with_index,
)
from vecsync.config import IndexConfig
from vecsync.constants import DEFAULT_SERVER_HOST, DEFAULT_SERVER_PORT, DEFAULT_TOP_K
from vecsync.embedding import model_dimension
from vecsync.extract import PROCESSORS, extract_file, supported_extensions
from vecsync.index import VectorIndex, store_stats
from vecsync.store import open_store

# Load environment variables
load_dotenv()


def build_config(ctx: click.Context, source: str | None = None, **overrides) -> IndexConfig:
    """Resolve a config from the group options plus command-specific overrides."""
    return IndexConfig.resolve(source=source, **{**ctx.obj, **overrides})


@click.group()
@click.version_option(__version__, prog_name="vecsync")
@click.option("--db-path", default=None, help="Path of the SQLite store (default: ./vecsync.db)")
@click.option("--store", type=click.Choice(["sqlite", "ravendb"]), default=None, help="Vector store to use")
@click.option(
    "--backend",
    "backends",
    multiple=True,
    type=click.Choice(["ollama", "gemini"]),
    help="Embedding backend(s) to probe, in order (repeatable)",
)
@click.option(
    "--embedding-model",
    default=None,
    help="Embedding model to use (default: from EMBEDDING_MODEL env or 'nomic-embed-text')",
)
@click.option("--no-auto-setup", is_flag=True, default=False, help="Never start Ollama or pull models")
@click.option("-v", "--verbose", is_flag=True, default=False, help="Enable debug logging")
@click.pass_context
def cli(
    ctx: click.Context,
    db_path: str | None,
    store: str | None,
    backends: tuple[str, ...],
    embedding_model: str | None,
    no_auto_setup: bool,
    verbose: bool,
) -> None:
    """vecsync: keep a local vector index in sync with your documents."""
    log_level = "DEBUG" if verbose else os.getenv("LOG_LEVEL", "WARNING").upper()
    logging.basicConfig(
        level=getattr(logging, log_level, logging.WARNING),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    ctx.ensure_object(dict)
    ctx.obj.update(
        db_path=db_path,
        store=store,
        backends=backends or None,
        model_name=embedding_model,
        auto_setup=False if no_auto_setup else None,
    )


@cli.command()
@click.pass_context
def init(ctx: click.Context) -> None:
    """Create the vector store for the selected embedding model.

    Example:
        vecsync init
        vecsync --store ravendb init
    """
    config = build_config(ctx)

    async def _stats(index: VectorIndex) -> dict:
        return await asyncio.to_thread(index.stats)

    stats = run_async(with_index(config, _stats))
    location = config.db_path if config.store == "sqlite" else f"{config.ravendb_url}/{config.ravendb_database}"
    click.echo(f"✓ Store ready at {location} (dimension {stats['dimension']}, {stats['documents']} documents)")


@cli.command()
@click.argument("path", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.pass_context
def add(ctx: click.Context, path: Path) -> None:
    """Extract and index a single file.

    Example:
        vecsync add notes/report.pdf
    """
    config = build_config(ctx, source="folder")
    file_path = path.expanduser().resolve()

    try:
        documents = extract_file(file_path, file_path=str(file_path))
    except ValueError as e:
        click.echo(f"✗ Error: {e}", err=True)
        raise click.Abort()

    async def _add(index: VectorIndex) -> tuple[int, int]:
        added = skipped = 0
        for doc in documents:
            outcome = await index.add_document(doc.id, doc.content, doc.metadata)
            if outcome.skipped:
                skipped += 1
            else:
                added += 1
        return added, skipped

    added, skipped = run_async(with_index(config, _add))
    click.echo(f"✓ {file_path.name}: {added} added, {skipped} skipped")


@cli.command()
@click.argument("text", type=str)
@click.option("--top-k", type=int, default=DEFAULT_TOP_K, help="Number of results to return (default: 5)")
@click.pass_context
def query(ctx: click.Context, text: str, top_k: int) -> None:
    """Search the index for documents similar to TEXT.

    Example:
        vecsync query "quantum mechanics"
        vecsync query "machine learning" --top-k 3
    """
    config = build_config(ctx)
    click.echo(f"🔍 Searching for: '{text}'")

    async def _query(index: VectorIndex):
        return await index.query(text, top_k)

    results = run_async(with_index(config, _query))
    if not results:
        click.echo("No results found.")
        return

    click.echo(f"✅ Found {len(results)} result(s):\n")
    for i, result in enumerate(results, 1):
        click.echo(format_search_result(i, result))


@cli.command()
@click.argument("folder", type=click.Path(file_okay=False, path_type=Path))
@click.option("--extension", "extensions", multiple=True, help="Only index these extensions (repeatable)")
@click.option("--no-recursive", is_flag=True, default=False, help="Do not descend into subfolders")
@click.pass_context
def sync(ctx: click.Context, folder: Path, extensions: tuple[str, ...], no_recursive: bool) -> None:
    """Sync FOLDER into the index: add new files, remove deleted ones.

    Example:
        vecsync sync documents/
        vecsync sync documents/ --extension .pdf --extension .md
    """
    from vecsync.sync.folder import FolderSync

    normalized = tuple(e if e.startswith(".") else f".{e}" for e in extensions) or None
    config = build_config(
        ctx, source="folder", extensions=normalized, recursive=False if no_recursive else None
    )
    click.echo(f"📂 Syncing {folder}")
    result = run_async(with_index(config, lambda index: FolderSync(index, config).sync(folder)))
    print_sync_summary(result)


@cli.command()
@click.argument("url", type=str)
@click.option("--max-pages", type=int, default=None, help="Maximum pages to fetch (default: 100)")
@click.option("--max-depth", type=int, default=None, help="Maximum link depth from URL (default: 3)")
@click.option("--concurrency", type=int, default=None, help="Pages fetched per batch (default: 3)")
@click.option(
    "--output-dir",
    type=click.Path(file_okay=False, path_type=Path),
    default=Path("crawl-output"),
    help="Where fetched pages are written (default: ./crawl-output)",
)
@click.option("--state-file", default=None, help="Resume file for interrupted crawls")
@click.option("--no-dedup", is_flag=True, default=False, help="Keep repeated boilerplate text")
@click.pass_context
def crawl(
    ctx: click.Context,
    url: str,
    max_pages: int | None,
    max_depth: int | None,
    concurrency: int | None,
    output_dir: Path,
    state_file: str | None,
    no_dedup: bool,
) -> None:
    """Crawl a website from URL and index the pages it reaches.

    Example:
        vecsync crawl https://docs.example.com --max-pages 50
    """
    from vecsync.sync.crawl import CrawlSync
    from vecsync.sync.fetcher import HttpPageFetcher

    config = build_config(
        ctx,
        source="crawl",
        crawl_max_pages=max_pages,
        crawl_max_depth=max_depth,
        crawl_concurrency=concurrency,
    )
    fetcher = HttpPageFetcher(timeout=config.crawl_page_timeout)
    click.echo(f"🕷️ Crawling {url}")

    def _crawl(index: VectorIndex):
        engine = CrawlSync(index, fetcher, config, output_dir, state_file=state_file, dedup=not no_dedup)
        return engine.sync(url)

    result = run_async(with_index(config, _crawl))
    print_sync_summary(result)


@cli.command("drive-sync")
@click.option("--folder-id", default="root", help="Drive folder to sync (default: 'root')")
@click.option(
    "--service-account",
    default=lambda: os.getenv("GOOGLE_APPLICATION_CREDENTIALS"),
    help="Service account JSON key (default: GOOGLE_APPLICATION_CREDENTIALS)",
)
@click.option("--impersonate", default=None, help="User to impersonate with domain-wide delegation")
@click.option("--token", "token_path", default=None, help="Authorised user token JSON")
@click.option("--max-files", type=int, default=None, help="Maximum files per run (default: 1000)")
@click.option("--incremental", is_flag=True, default=False, help="Process one pending file and exit")
@click.option("--state-file", default=None, help="Checkpoint file (default: .gdrive-sync-state.json)")
@click.pass_context
def drive_sync(
    ctx: click.Context,
    folder_id: str,
    service_account: str | None,
    impersonate: str | None,
    token_path: str | None,
    max_files: int | None,
    incremental: bool,
    state_file: str | None,
) -> None:
    """Sync a Google Drive folder tree into the index, resumably.

    Example:
        vecsync drive-sync --folder-id 1AbC... --service-account key.json
        vecsync drive-sync --incremental    # one file per run, for schedulers
    """
    from vecsync.sync.drive import DriveSync
    from vecsync.sync.drive_client import GoogleDriveClient, load_credentials

    config = build_config(
        ctx,
        source="drive",
        max_files=max_files,
        incremental=incremental or None,
        drive_state_file=state_file,
    )

    async def _drive() -> object:
        credentials = load_credentials(service_account, token_path, impersonate)
        client = GoogleDriveClient(credentials)
        return await with_index(config, lambda index: DriveSync(index, client, config).sync(folder_id))

    click.echo(f"☁️ Syncing Google Drive folder {folder_id}")
    result = run_async(_drive())
    print_sync_summary(result)


@cli.command()
@click.argument("directory", default=".", type=click.Path(file_okay=False, path_type=Path))
@click.option("--ignore", "ignore_patterns", multiple=True, help="Extra ignore pattern (repeatable)")
@click.option("--include-binary", is_flag=True, default=False, help="Index files detected as binary")
@click.pass_context
def code(ctx: click.Context, directory: Path, ignore_patterns: tuple[str, ...], include_binary: bool) -> None:
    """Index the source files of a code repository.

    Example:
        vecsync code .
        vecsync code ~/src/project --ignore "*.lock"
    """
    from vecsync.sync.code import CodeSync

    config = build_config(
        ctx,
        source="code",
        ignore_patterns=ignore_patterns or None,
        include_binary=include_binary or None,
    )
    click.echo(f"💻 Indexing repository {directory}")
    result = run_async(with_index(config, lambda index: CodeSync(index, config).sync(directory)))
    print_sync_summary(result)


@cli.command()
@click.pass_context
def reembed(ctx: click.Context) -> None:
    """Re-embed every document stored under an older embedding version.

    Example:
        vecsync reembed
    """
    config = build_config(ctx)
    report = run_async(with_index(config, lambda index: index.reembed_all()))

    click.echo(f"Checked: {report.checked}")
    click.echo(f"Reprocessed: {report.reprocessed}")
    if report.errors:
        click.echo(f"✗ {len(report.errors)} error(s)", err=True)
        for error in report.errors[:5]:
            click.echo(f"  - {error['id']}: {error['error']}", err=True)
    else:
        click.echo("✓ Re-embed complete")


@cli.command()
def formats() -> None:
    """List the file formats that can be extracted.

    Example:
        vecsync formats
    """
    click.echo("Supported formats:")
    for extension in supported_extensions():
        click.echo(f"  {extension:<10} {type(PROCESSORS[extension]).__name__}")


@cli.command()
@click.pass_context
def stats(ctx: click.Context) -> None:
    """Show document counts per source.

    Reads the store directly, so no embedding backend needs to be running.

    Example:
        vecsync stats
    """
    config = build_config(ctx)
    if config.store == "sqlite" and not Path(config.db_path).exists():
        click.echo(f"✗ No store at {config.db_path}. Run: vecsync init", err=True)
        raise click.Abort()

    dimension = config.dimension or model_dimension(config.model_name)

    async def _stats() -> dict:
        store = await asyncio.to_thread(open_store, config, dimension)
        try:
            return await asyncio.to_thread(store_stats, store)
        finally:
            store.close()

    info = run_async(_stats())
    click.echo(f"📊 Store contains {info['documents']} document(s) (dimension {info['dimension']})")
    for source, count in sorted(info["sources"].items()):
        click.echo(f"   {source}: {count}")


@cli.command()
@click.argument("directory", default=".", type=click.Path(file_okay=False, path_type=Path))
@click.option("--transport", type=click.Choice(["stdio", "sse"]), default="stdio", help="MCP transport")
@click.option("--host", default=DEFAULT_SERVER_HOST, help="Bind host for sse transport")
@click.option("--port", default=DEFAULT_SERVER_PORT, type=int, help="Bind port for sse transport")
@click.pass_context
def serve(ctx: click.Context, directory: Path, transport: str, host: str, port: int) -> None:
    """Watch DIRECTORY and serve semantic search over MCP.

    Example:
        vecsync serve ~/notes
        vecsync serve . --transport sse --port 8001
    """
    from vecsync.server.mcp_server import serve as serve_mcp

    root = directory.expanduser().resolve()
    overrides = dict(ctx.obj)
    overrides["db_path"] = overrides.get("db_path") or os.getenv("VECSYNC_DB_PATH") or str(root / ".vecsync.db")
    config = IndexConfig.resolve(source="server", **overrides)
    try:
        run_async(serve_mcp(config, root, transport, host, port))
    except (KeyboardInterrupt, asyncio.CancelledError):
        click.echo("👋 Server stopped")


if __name__ == "__main__":
    cli()
