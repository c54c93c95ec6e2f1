"""FastMCP server exposing semantic search over a watched directory.

Search answers from the store's current state and never waits on
indexing; the ``IndexingMonitor`` keeps the index fresh in the background.
Logs go to stderr because stdout carries the protocol on stdio transport.
"""

import asyncio
import logging
import os
import signal
import sys
from pathlib import Path
from typing import Any

import click
from dotenv import load_dotenv
from fastmcp import FastMCP

from vecsync.config import IndexConfig
from vecsync.constants import (
    CONTENT_PREVIEW_LENGTH,
    DEFAULT_SERVER_HOST,
    DEFAULT_SERVER_PORT,
    DEFAULT_TOP_K,
    SNIPPET_CONTEXT,
)
from vecsync.server.monitor import IndexingMonitor
from vecsync.server.session import ServerSession

# Load environment variables
load_dotenv()

logger = logging.getLogger(__name__)


def configure_logging() -> None:
    log_level = os.getenv("LOG_LEVEL", "INFO").upper()
    logging.basicConfig(
        level=getattr(logging, log_level, logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        stream=sys.stderr,
    )


def create_snippet(content: str | None, query: str, max_length: int = CONTENT_PREVIEW_LENGTH) -> str:
    """Cut a window of content around the first case-insensitive query match.

    Falls back to the first ``max_length`` characters when the query text
    does not occur verbatim.
    """
    if not content:
        return ""
    position = content.lower().find(query.lower())
    if position == -1:
        return content[:max_length] + ("..." if len(content) > max_length else "")

    start = max(0, position - SNIPPET_CONTEXT)
    end = min(len(content), position + len(query) + SNIPPET_CONTEXT)
    snippet = content[start:end]
    if start > 0:
        snippet = "..." + snippet
    if end < len(content):
        snippet = snippet + "..."
    return snippet


async def search_impl(
    session: ServerSession, query: str, top_k: int = DEFAULT_TOP_K, include_content: bool = True
) -> list[dict[str, Any]]:
    """Query the index as it is right now."""
    logger.debug(f"MCP Tool search: query='{query[:100]}', top_k={top_k}")
    results = await session.require_index().query(query, top_k)
    logger.info(f"✅ MCP Tool: Returning {len(results)} results")
    return [
        {
            "id": hit.id,
            "score": hit.score,
            "content": hit.content if include_content else None,
            "metadata": hit.metadata,
            "snippet": create_snippet(hit.content, query),
        }
        for hit in results
    ]


async def index_status_impl(session: ServerSession, monitor: IndexingMonitor) -> dict[str, Any]:
    documents = await asyncio.to_thread(session.require_index().store.count)
    return {**monitor.status(), "documents": documents, "root": str(session.root)}


async def reindex_impl(monitor: IndexingMonitor) -> dict[str, Any]:
    """Schedule a background sync; the caller never waits for it."""
    already_running = monitor.indexing
    monitor.schedule_sync()
    return {
        "scheduled": not already_running,
        "message": "Indexing already in progress" if already_running else "Background sync started",
    }


def create_server(session: ServerSession, monitor: IndexingMonitor) -> FastMCP:
    """Build the FastMCP app with tools bound to this session."""
    mcp = FastMCP("vecsync Semantic Search")

    @mcp.tool()
    async def search(query: str, top_k: int = DEFAULT_TOP_K, include_content: bool = True) -> list[dict[str, Any]]:
        """
        Semantic search over the indexed documents and code. Returns the
        top_k most relevant results with a snippet around the query.

        Args:
            query: Natural-language search text
            top_k: Number of results to return (default: 5)
            include_content: Include the full stored text of each result
        """
        try:
            return await search_impl(session, query, top_k, include_content)
        except Exception as e:
            error_msg = f"Search failed: {type(e).__name__}: {e}"
            logger.error(f"❌ MCP Tool: {error_msg}", exc_info=True)
            raise ValueError(error_msg) from e

    @mcp.tool()
    async def index_status() -> dict[str, Any]:
        """
        Reports whether background indexing is running or finished, the
        number of indexed documents, and the last sync error if any.
        """
        return await index_status_impl(session, monitor)

    @mcp.tool()
    async def reindex() -> dict[str, Any]:
        """
        Starts a background re-sync of the watched directory and returns
        immediately. Use index_status to follow progress.
        """
        return await reindex_impl(monitor)

    return mcp


async def serve(
    config: IndexConfig,
    root: Path,
    transport: str = "stdio",
    host: str = DEFAULT_SERVER_HOST,
    port: int = DEFAULT_SERVER_PORT,
) -> None:
    """Open the session, start background monitoring and run the MCP server."""
    session = ServerSession(config=config, root=root)
    await session.open()
    monitor = IndexingMonitor(session)

    loop = asyncio.get_running_loop()
    current = asyncio.current_task()
    try:
        loop.add_signal_handler(signal.SIGTERM, current.cancel)
    except (NotImplementedError, RuntimeError):
        logger.debug("SIGTERM handler not supported on this platform")

    try:
        await monitor.start()
        mcp = create_server(session, monitor)
        logger.info(f"🚀 Starting vecsync MCP server for {root} ({transport})")
        if transport == "sse":
            await mcp.run_async(transport="sse", host=host, port=port)
        else:
            await mcp.run_async(transport="stdio")
    finally:
        await monitor.stop()
        session.close()


@click.command()
@click.argument("directory", default=".", type=click.Path(file_okay=False, path_type=Path))
@click.option("--transport", type=click.Choice(["stdio", "sse"]), default="stdio", help="MCP transport")
@click.option("--host", default=DEFAULT_SERVER_HOST, help="Bind host for sse transport")
@click.option("--port", default=DEFAULT_SERVER_PORT, type=int, help="Bind port for sse transport")
@click.option("--db-path", default=None, help="Path of the vector store file")
def main(directory: Path, transport: str, host: str, port: int, db_path: str | None) -> None:
    """Entry point for the MCP server command-line interface."""
    configure_logging()
    root = directory.expanduser().resolve()
    # The store lives next to the watched directory unless told otherwise
    db_path = db_path or os.getenv("VECSYNC_DB_PATH") or str(root / ".vecsync.db")
    config = IndexConfig.resolve(source="server", db_path=db_path)
    try:
        asyncio.run(serve(config, root, transport, host, port))
    except (KeyboardInterrupt, asyncio.CancelledError):
        logger.info("👋 MCP server stopped")


if __name__ == "__main__":
    main()
