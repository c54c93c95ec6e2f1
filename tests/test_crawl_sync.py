"""Tests for the breadth-first site crawler with an in-memory fetcher."""

import asyncio
import json
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from conftest import long_text
from vecsync.config import IndexConfig
from vecsync.sync.crawl import CrawlState, CrawlSync, normalize_hostname
from vecsync.sync.fetcher import (
    FetchedPage,
    HttpPageFetcher,
    extract_links,
    is_interstitial,
    output_file_name,
)

SITE = "https://docs.example.com"


def html_page(title: str, body: str, links: list[str] = ()) -> str:
    anchors = "".join(f'<a href="{link}">{link}</a>' for link in links)
    return f"<html><head><title>{title}</title></head><body><p>{body}</p>{anchors}</body></html>"


class FakeFetcher:
    """Serves pages from a dict and records what was requested."""

    def __init__(self, pages: dict[str, str], slow: set[str] = frozenset()) -> None:
        self.pages = pages
        self.slow = slow
        self.requested: list[str] = []

    async def fetch_page(self, url: str, output_path: Path, collect_links: bool) -> FetchedPage | None:
        self.requested.append(url)
        if url in self.slow:
            await asyncio.sleep(5)
        if url not in self.pages:
            raise RuntimeError(f"404 for {url}")
        html = self.pages[url]
        output_path.write_text(html, encoding="utf-8")
        links = extract_links(html, url) if collect_links else []
        return FetchedPage(url=url, kind="page", path=output_path, links=links)

    async def download(self, url: str, output_path: Path) -> FetchedPage:
        self.requested.append(url)
        output_path.write_text(self.pages[url], encoding="utf-8")
        return FetchedPage(url=url, kind="file", path=output_path)


@pytest.fixture
def site() -> dict[str, str]:
    return {
        f"{SITE}/": html_page("Home", long_text("welcome"), ["/guide", "/api", "https://elsewhere.org/x"]),
        f"{SITE}/guide": html_page("Guide", long_text("tutorial"), ["/guide/advanced", "/notes.txt"]),
        f"{SITE}/api": html_page("API", long_text("endpoint"), ["/"]),
        f"{SITE}/guide/advanced": html_page("Advanced", long_text("tuning")),
        f"{SITE}/notes.txt": long_text("changelog"),
    }


@pytest.fixture
def crawl_config(test_config) -> IndexConfig:
    from dataclasses import replace

    return replace(test_config, crawl_max_pages=20, crawl_max_depth=3, crawl_concurrency=2, crawl_page_timeout=0.5)


class TestFetcherHelpers:
    """Tests for URL and HTML helpers."""

    def test_output_file_name(self, tmp_path):
        assert output_file_name(f"{SITE}/", tmp_path, ".html") == tmp_path / "index.html"
        assert output_file_name(f"{SITE}/a/b page", tmp_path, ".html") == tmp_path / "a_b_page.html"
        assert output_file_name(f"{SITE}/files/report.pdf", tmp_path) == tmp_path / "files_report.pdf"

    def test_extract_links_resolves_and_drops_fragments(self):
        html = '<a href="/x#top">x</a><a href="mailto:a@b.c">m</a><a href="https://o.org/y">y</a>'
        assert extract_links(html, f"{SITE}/page") == [f"{SITE}/x", "https://o.org/y"]

    def test_interstitial_detection(self):
        assert is_interstitial("<title>Just a moment...</title>")
        assert not is_interstitial("<title>Docs</title>")

    def test_normalize_hostname(self):
        assert normalize_hostname("WWW.Example.com") == "example.com"
        assert normalize_hostname(None) == ""

    @pytest.mark.asyncio
    async def test_http_fetcher_saves_page(self, tmp_path):
        fetcher = HttpPageFetcher(timeout=1)
        response = MagicMock(text=html_page("T", "body", ["/next"]), url=f"{SITE}/start")
        with patch.object(fetcher, "_get", return_value=response):
            page = await fetcher.fetch_page(f"{SITE}/start", tmp_path / "start.html", collect_links=True)

        assert page.kind == "page"
        assert page.links == [f"{SITE}/next"]
        assert (tmp_path / "start.html").read_text().startswith("<html>")


class TestCrawlSync:
    """Tests for CrawlSync.sync."""

    @pytest.mark.asyncio
    async def test_crawls_same_host_only(self, make_index, crawl_config, site, tmp_path, sqlite_store):
        fetcher = FakeFetcher(site)
        engine = CrawlSync(make_index(), fetcher, crawl_config, tmp_path / "out", dedup=False)

        result = await engine.sync(f"{SITE}/")

        assert "https://elsewhere.org/x" not in fetcher.requested
        assert sorted(fetcher.requested) == sorted(site)
        assert result.added == 5
        assert result.errors == []
        urls = {doc.metadata["crawlUrl"] for doc in sqlite_store.get_all()}
        assert urls == set(site)
        assert all(doc.metadata["source"] == "crawl" for doc in sqlite_store.get_all())

    @pytest.mark.asyncio
    async def test_page_limit(self, make_index, crawl_config, site, tmp_path):
        from dataclasses import replace

        fetcher = FakeFetcher(site)
        engine = CrawlSync(make_index(), fetcher, replace(crawl_config, crawl_max_pages=2), tmp_path / "out")

        await engine.sync(f"{SITE}/")

        assert len(fetcher.requested) == 2

    @pytest.mark.asyncio
    async def test_depth_limit(self, make_index, crawl_config, site, tmp_path):
        from dataclasses import replace

        fetcher = FakeFetcher(site)
        engine = CrawlSync(make_index(), fetcher, replace(crawl_config, crawl_max_depth=1), tmp_path / "out")

        await engine.sync(f"{SITE}/")

        assert f"{SITE}/guide/advanced" not in fetcher.requested
        assert f"{SITE}/guide" in fetcher.requested

    @pytest.mark.asyncio
    async def test_recrawl_skips_indexed_urls(self, make_index, crawl_config, site, tmp_path):
        index = make_index()
        await CrawlSync(index, FakeFetcher(site), crawl_config, tmp_path / "out").sync(f"{SITE}/")

        fetcher = FakeFetcher(site)
        result = await CrawlSync(index, fetcher, crawl_config, tmp_path / "out").sync(f"{SITE}/")

        assert fetcher.requested == [f"{SITE}/"]
        assert result.added == 0
        assert result.skipped == 5

    @pytest.mark.asyncio
    async def test_changed_seed_page_is_replaced(self, make_index, crawl_config, site, tmp_path, sqlite_store):
        index = make_index()
        await CrawlSync(index, FakeFetcher(site), crawl_config, tmp_path / "out").sync(f"{SITE}/")

        site[f"{SITE}/"] = html_page("Home", long_text("renovated"), ["/guide"])
        result = await CrawlSync(index, FakeFetcher(site), crawl_config, tmp_path / "out").sync(f"{SITE}/")

        assert result.updated == 1
        assert result.added == 1
        (home,) = [doc for doc in sqlite_store.get_all() if doc.metadata["crawlUrl"] == f"{SITE}/"]
        assert "renovated" in home.content

    @pytest.mark.asyncio
    async def test_timeouts_and_errors_do_not_stop_the_crawl(self, make_index, crawl_config, site, tmp_path):
        site[f"{SITE}/"] = html_page("Home", long_text("welcome"), ["/guide", "/api", "/missing"])
        fetcher = FakeFetcher(site, slow={f"{SITE}/api"})
        engine = CrawlSync(make_index(), fetcher, crawl_config, tmp_path / "out")

        result = await engine.sync(f"{SITE}/")

        failed = {e.key: e.message for e in result.errors}
        assert failed[f"{SITE}/api"] == "page load timed out"
        assert f"{SITE}/missing" in failed
        assert result.added == 4

    @pytest.mark.asyncio
    async def test_state_file_removed_after_success(self, make_index, crawl_config, site, tmp_path):
        state_file = tmp_path / "crawl-state.json"
        engine = CrawlSync(make_index(), FakeFetcher(site), crawl_config, tmp_path / "out", state_file=state_file)

        await engine.sync(f"{SITE}/")

        assert not state_file.exists()

    @pytest.mark.asyncio
    async def test_resumes_from_saved_state(self, make_index, crawl_config, site, tmp_path):
        state_file = tmp_path / "crawl-state.json"
        CrawlState(visited={f"{SITE}/"}, queue=[{"url": f"{SITE}/api", "depth": 1}]).save(state_file)
        fetcher = FakeFetcher(site)
        engine = CrawlSync(make_index(), fetcher, crawl_config, tmp_path / "out", state_file=state_file)

        await engine.sync(f"{SITE}/")

        assert fetcher.requested == [f"{SITE}/api"]

    @pytest.mark.asyncio
    async def test_resumed_crawl_keeps_its_page_budget(self, make_index, crawl_config, site, tmp_path):
        from dataclasses import replace

        state_file = tmp_path / "crawl-state.json"
        queue = [{"url": f"{SITE}/api", "depth": 1}, {"url": f"{SITE}/guide/advanced", "depth": 2}]
        CrawlState(visited={f"{SITE}/", f"{SITE}/guide"}, queue=queue, fetched=1).save(state_file)
        fetcher = FakeFetcher(site)
        config = replace(crawl_config, crawl_max_pages=2)
        engine = CrawlSync(make_index(), fetcher, config, tmp_path / "out", state_file=state_file)

        await engine.sync(f"{SITE}/")

        assert fetcher.requested == [f"{SITE}/api"]

    @pytest.mark.asyncio
    async def test_checkpoint_without_page_count_uses_visited(self, make_index, crawl_config, site, tmp_path):
        from dataclasses import replace

        state_file = tmp_path / "crawl-state.json"
        state_file.write_text(
            json.dumps(
                {
                    "visited": [f"{SITE}/", f"{SITE}/guide"],
                    "queue": [{"url": f"{SITE}/api", "depth": 1}, {"url": f"{SITE}/guide/advanced", "depth": 2}],
                }
            )
        )
        fetcher = FakeFetcher(site)
        config = replace(crawl_config, crawl_max_pages=2)
        engine = CrawlSync(make_index(), fetcher, config, tmp_path / "out", state_file=state_file)

        await engine.sync(f"{SITE}/")

        assert CrawlState.load(state_file) is None
        assert fetcher.requested == []

    @pytest.mark.asyncio
    async def test_failed_replacement_is_recorded(self, make_index, crawl_config, site, tmp_path, sqlite_store):
        """Test that a store error replacing one changed page does not abort the crawl."""
        index = make_index()
        await CrawlSync(index, FakeFetcher(site), crawl_config, tmp_path / "out").sync(f"{SITE}/")

        site[f"{SITE}/"] = html_page("Home", long_text("renovated"), ["/guide"])
        index.delete_where = AsyncMock(side_effect=RuntimeError("store locked"))
        result = await CrawlSync(index, FakeFetcher(site), crawl_config, tmp_path / "out").sync(f"{SITE}/")

        assert [(e.key, e.message) for e in result.errors] == [(f"{SITE}/", "store locked")]
        assert result.updated == 0
        assert result.added == 0
        (home,) = [doc for doc in sqlite_store.get_all() if doc.metadata["crawlUrl"] == f"{SITE}/"]
        assert "welcome" in home.content

    @pytest.mark.asyncio
    async def test_boilerplate_stripped_after_analysis(self, make_index, crawl_config, tmp_path, sqlite_store):
        from dataclasses import replace

        nav = "Homepage Products Solutions Enterprise Pricing Documentation Community Careers Newsroom Subscribe"
        topics = ["volcano", "swallow", "cabbage", "glacier", "telescope", "orchard", "lantern"]
        pages = {
            f"{SITE}/": html_page("Home", f"{nav} {long_text('welcome')}", [f"/{t}" for t in topics]),
        }
        for topic in topics:
            pages[f"{SITE}/{topic}"] = html_page(topic, f"{nav} {long_text(topic)}")

        engine = CrawlSync(
            make_index(), FakeFetcher(pages), replace(crawl_config, crawl_concurrency=1), tmp_path / "out"
        )
        engine.analyzer.sample_size = 3
        engine.analyzer.min_occurrences = 3

        await engine.sync(f"{SITE}/")

        assert engine.analyzer.analyzed
        contents = {doc.metadata["crawlUrl"]: doc.content for doc in sqlite_store.get_all()}
        assert "Newsroom" in contents[f"{SITE}/"]
        assert "Newsroom" not in contents[f"{SITE}/lantern"]
