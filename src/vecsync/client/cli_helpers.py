"""Helper functions for CLI commands."""

import asyncio
from typing import Any, Awaitable, Callable, TypeVar

import click

from vecsync.config import IndexConfig
from vecsync.constants import CONTENT_PREVIEW_LENGTH, MAX_DISPLAYED_ERRORS
from vecsync.embedding import select_backend
from vecsync.exceptions import ConfigurationError
from vecsync.index import VectorIndex
from vecsync.store.models import ScoredDocument
from vecsync.sync.results import SyncResult

T = TypeVar("T")


async def open_index(config: IndexConfig) -> VectorIndex:
    """Probe for an embedding backend and open the index on it."""
    backend = await select_backend(config)
    click.echo(f"Using embedding backend: {backend.name} ({backend.model})")
    return await asyncio.to_thread(VectorIndex.open, config, backend)


async def with_index(config: IndexConfig, work: Callable[[VectorIndex], Awaitable[T]]) -> T:
    """Run work against an open index, draining pending writes and closing it after."""
    index = await open_index(config)
    try:
        result = await work(index)
        await index.drain()
        return result
    finally:
        index.close()


def run_async(coro: Awaitable[T]) -> T:
    """Run a coroutine, turning fatal configuration errors into a clean abort.

    Raises:
        click.Abort: If the command hit a ConfigurationError
    """
    try:
        return asyncio.run(coro)
    except ConfigurationError as e:
        click.echo(f"✗ Error: {e}", err=True)
        raise click.Abort()


def print_sync_summary(result: SyncResult, max_errors: int = MAX_DISPLAYED_ERRORS) -> None:
    """Print the tallies of a sync run and the first few errors."""
    click.echo(f"Added: {result.added}")
    click.echo(f"Skipped: {result.skipped}")
    click.echo(f"Removed: {result.removed}")
    if result.updated:
        click.echo(f"Updated: {result.updated}")

    if not result.errors:
        click.echo("✓ Sync complete")
        return

    click.echo(f"✗ {len(result.errors)} error(s):", err=True)
    for error in result.errors[:max_errors]:
        click.echo(f"  - {error.key}: {error.message}", err=True)
    if len(result.errors) > max_errors:
        click.echo(f"  ... and {len(result.errors) - max_errors} more", err=True)


def describe_source(metadata: dict[str, Any]) -> str:
    """Short human label for where a document came from."""
    for field_name in ("filePath", "crawlUrl", "driveUrl", "relativePath", "fileName"):
        if metadata.get(field_name):
            return str(metadata[field_name])
    return metadata.get("source", "unknown")


def format_search_result(index: int, result: ScoredDocument, max_length: int = CONTENT_PREVIEW_LENGTH) -> str:
    """Format a search result for display.

    Args:
        index: Result number (1-based)
        result: Scored document returned by the index
        max_length: Maximum content length before truncation

    Returns:
        Formatted string for display
    """
    content = (result.content or "").strip()
    display_content = content[:max_length] + "..." if len(content) > max_length else content

    lines = [
        f"{index}. [{describe_source(result.metadata or {})}] (score: {result.score:.4f})",
        f"   {display_content}",
        "",
    ]
    return "\n".join(lines)
