"""Breadth-first crawl of one site into the index.

URLs the store already holds as ``source="crawl"`` seed the visited set, so
repeat crawls only fetch pages not indexed yet; the seed URL itself is
always fetched so new links can be discovered. Fetched pages are planned
against their stored content hash: new pages are added, changed pages
replaced, unchanged pages skipped.

Pages at one depth level are fetched in concurrent batches. A checkpoint
of the visited set and the frontier is written after each batch and
removed when the crawl finishes. Boilerplate analysis runs once, as soon
as enough HTML pages have been seen; pages indexed before that point are
not cleaned retroactively.
"""

import asyncio
import hashlib
import json
import logging
import os
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any
from urllib.parse import urlparse

from vecsync.config import IndexConfig
from vecsync.dedup import BoilerplateAnalyzer
from vecsync.extract import extract_file, get_processor
from vecsync.extract.base import ExtractedDocument
from vecsync.index import VectorIndex
from vecsync.sync.fetcher import FetchedPage, PageFetcher, output_file_name
from vecsync.sync.planner import diff
from vecsync.sync.results import SyncResult

logger = logging.getLogger(__name__)

HTML_EXTENSIONS = (".html", ".htm")


def normalize_hostname(hostname: str | None) -> str:
    host = (hostname or "").lower()
    return host[4:] if host.startswith("www.") else host


def page_hash(documents: list[ExtractedDocument]) -> str:
    digest = hashlib.sha256()
    for doc in documents:
        digest.update(doc.content.encode("utf-8"))
    return digest.hexdigest()


@dataclass
class CrawlState:
    visited: set[str] = field(default_factory=set)
    queue: list[dict[str, Any]] = field(default_factory=list)
    fetched: int = 0

    @classmethod
    def load(cls, path: Path | None) -> "CrawlState | None":
        if path is None or not path.exists():
            return None
        try:
            raw = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            logger.warning(f"⚠️ Could not load crawl state from {path}: {e}")
            return None
        visited = set(raw.get("visited") or [])
        # Checkpoints without a page count are bounded by everything visited
        fetched = raw.get("fetched", len(visited))
        return cls(visited=visited, queue=list(raw.get("queue") or []), fetched=int(fetched))

    def save(self, path: Path | None) -> None:
        if path is None:
            return
        payload = {
            "visited": sorted(self.visited),
            "queue": self.queue,
            "fetched": self.fetched,
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "progress": {"visited": len(self.visited), "queued": len(self.queue)},
        }
        tmp_path = path.with_name(path.name + ".tmp")
        tmp_path.write_text(json.dumps(payload, indent=2), encoding="utf-8")
        os.replace(tmp_path, path)


class CrawlSync:
    """Crawl a site from a seed URL and index what it reaches."""

    def __init__(
        self,
        index: VectorIndex,
        fetcher: PageFetcher,
        config: IndexConfig,
        output_dir: str | Path,
        state_file: str | Path | None = None,
        dedup: bool = True,
    ) -> None:
        self.index = index
        self.fetcher = fetcher
        self.config = config
        self.output_dir = Path(output_dir)
        self.state_file = Path(state_file) if state_file else None
        self.analyzer = BoilerplateAnalyzer() if dedup else None
        self._sample: list[str] = []
        self._known: dict[str, str] = {}

    def known_pages(self) -> dict[str, str]:
        """Map each indexed crawl URL to the content hash it was indexed with."""
        known: dict[str, str] = {}
        for _, metadata in self.index.store.get_metadata_by_source("crawl"):
            url = metadata.get("crawlUrl")
            if url:
                known[url] = metadata.get("contentHash") or ""
        return known

    async def _fetch(self, url: str, depth: int) -> FetchedPage | None:
        extension = Path(urlparse(url).path).suffix.lower()
        if extension and extension not in HTML_EXTENSIONS and get_processor(extension):
            page = await self.fetcher.download(url, output_file_name(url, self.output_dir))
            logger.info(f"📥 Downloaded: {url}")
            return page

        collect_links = depth < self.config.crawl_max_depth
        path = output_file_name(url, self.output_dir, ".html")
        page = await asyncio.wait_for(
            self.fetcher.fetch_page(url, path, collect_links),
            timeout=self.config.crawl_page_timeout,
        )
        if page is not None:
            logger.info(f"🔍 Crawled: {url}")
        return page

    def _extract(self, page: FetchedPage) -> list[ExtractedDocument]:
        documents = extract_file(page.path, file_path=str(page.path), url=page.url)
        content_hash = page_hash(documents)
        for position, doc in enumerate(documents):
            doc.id = page.url if len(documents) == 1 else f"{page.url}#{position}"
            doc.metadata.update(source="crawl", crawlUrl=page.url, contentHash=content_hash)
        return documents

    def _observe(self, page: FetchedPage, documents: list[ExtractedDocument]) -> None:
        """Feed HTML pages into the boilerplate sample until it is full."""
        if self.analyzer is None or self.analyzer.analyzed or page.kind != "page":
            return
        self._sample.extend(doc.content for doc in documents)
        if len(self._sample) >= self.analyzer.sample_size:
            self.analyzer.analyze(self._sample)
            self._sample = []

    async def _index_pages(self, pages: list[FetchedPage], result: SyncResult) -> None:
        extracted: list[tuple[FetchedPage, list[ExtractedDocument]]] = []
        for page in pages:
            try:
                extracted.append((page, await asyncio.to_thread(self._extract, page)))
            except Exception as e:
                logger.error(f"❌ Failed to extract {page.url}: {e}")
                result.record_error(page.url, e)

        plan = diff(
            extracted,
            {url: self._known[url] for url in (p.url for p in pages) if url in self._known},
            key=lambda entry: entry[0].url,
            signature=lambda entry: page_hash(entry[1]),
        )
        result.skipped += len(plan.unchanged)

        failed: set[str] = set()
        for page, documents in plan.to_update:
            try:
                await self.index.delete_where("crawlUrl", page.url)
            except Exception as e:
                logger.error(f"❌ Failed to replace {page.url}: {e}")
                result.record_error(page.url, e)
                failed.add(page.url)
                continue
            result.updated += 1

        for page, documents in plan.pending:
            if page.url in failed:
                continue
            cleaned_before = self.analyzer is not None and self.analyzer.analyzed
            self._observe(page, documents)
            for doc in documents:
                content = doc.content
                if cleaned_before and page.kind == "page":
                    content = self.analyzer.clean(content)
                try:
                    outcome = await self.index.add_document(doc.id, content, doc.metadata)
                except Exception as e:
                    logger.error(f"❌ Failed to index {doc.id}: {e}")
                    result.record_error(doc.id, e)
                    continue
                if outcome.skipped:
                    result.skipped += 1
                else:
                    result.added += 1
            self._known[page.url] = page_hash(documents)

    async def sync(self, start_url: str) -> SyncResult:
        """Crawl from start_url within its host, bounded by depth and page count.

        Returns:
            SyncResult: added/skipped document counts and per-URL errors
        """
        self.output_dir.mkdir(parents=True, exist_ok=True)
        base_host = normalize_hostname(urlparse(start_url).hostname)
        result = SyncResult()
        self._known = await asyncio.to_thread(self.known_pages)

        state = CrawlState.load(self.state_file)
        if state is not None:
            logger.info(f"🔧 Resuming crawl: {len(state.visited)} visited, {len(state.queue)} queued")
        else:
            already_indexed = set(self._known) - {start_url}
            logger.info(f"🔍 {len(already_indexed)} URLs already indexed")
            result.skipped += len(already_indexed)
            state = CrawlState(visited=already_indexed)
            state.queue.append({"url": start_url, "depth": 0})

        # Pages fetched before an interruption count against the budget
        fetched = state.fetched
        max_pages = self.config.crawl_max_pages
        while state.queue and fetched < max_pages:
            batch: list[dict[str, Any]] = []
            while (
                state.queue
                and len(batch) < self.config.crawl_concurrency
                and fetched + len(batch) < max_pages
            ):
                entry = state.queue.pop(0)
                url, depth = entry["url"], entry["depth"]
                if url in state.visited or depth > self.config.crawl_max_depth:
                    continue
                if normalize_hostname(urlparse(url).hostname) != base_host:
                    continue
                state.visited.add(url)
                batch.append(entry)

            if not batch:
                break
            fetched += len(batch)
            state.fetched = fetched

            outcomes = await asyncio.gather(
                *(self._fetch(entry["url"], entry["depth"]) for entry in batch),
                return_exceptions=True,
            )

            pages: list[FetchedPage] = []
            for entry, outcome in zip(batch, outcomes):
                if isinstance(outcome, asyncio.TimeoutError):
                    logger.warning(f"⚠️ Timed out loading {entry['url']}, moving on")
                    result.record_error(entry["url"], "page load timed out")
                elif isinstance(outcome, Exception):
                    logger.error(f"❌ Error fetching {entry['url']}: {outcome}")
                    result.record_error(entry["url"], outcome)
                elif outcome is not None:
                    pages.append(outcome)
                    for link in outcome.links:
                        if link not in state.visited:
                            state.queue.append({"url": link, "depth": entry["depth"] + 1})

            await self._index_pages(pages, result)
            await asyncio.to_thread(state.save, self.state_file)

        await self.index.drain()
        if self.state_file is not None and self.state_file.exists():
            self.state_file.unlink()

        logger.info(
            f"✅ Crawl done: {fetched} URLs fetched, {result.added} added, "
            f"{result.updated} updated, {result.skipped} skipped, {len(result.errors)} errors"
        )
        return result
