"""Page fetching for the crawler.

``PageFetcher`` is the seam where a browser-automation backend can be
plugged in; ``HttpPageFetcher`` is the default plain-HTTP implementation.
"""

import asyncio
import logging
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Protocol
from urllib.parse import urldefrag, urljoin, urlparse

import requests
from bs4 import BeautifulSoup

from vecsync.constants import CRAWL_PAGE_TIMEOUT

logger = logging.getLogger(__name__)

INTERSTITIAL_MARKERS = ("Just a moment", "Verifying you are human")
USER_AGENT = "Mozilla/5.0 (compatible; vecsync crawler)"


@dataclass
class FetchedPage:
    """Result of fetching one URL.

    ``kind`` is "page" for rendered HTML (with outbound ``links``) or
    "file" for a downloaded non-HTML document.
    """

    url: str
    kind: str
    path: Path
    links: list[str] = field(default_factory=list)


class PageFetcher(Protocol):
    async def fetch_page(self, url: str, output_path: Path, collect_links: bool) -> FetchedPage | None:
        """Render and save a page; None when it should be skipped."""
        ...

    async def download(self, url: str, output_path: Path) -> FetchedPage:
        ...


def output_file_name(url: str, output_dir: Path, force_ext: str | None = None) -> Path:
    """Map a URL path to a sanitised file name inside output_dir."""
    pathname = urlparse(url).path
    if pathname in ("", "/"):
        pathname = "/index"
    if force_ext:
        pathname = re.sub(r"\.[^./]*$", "", pathname) + force_ext
    sanitized = re.sub(r"[^a-zA-Z0-9._-]", "_", pathname.lstrip("/"))
    return output_dir / (sanitized or "index.html")


def extract_links(html: str, base_url: str) -> list[str]:
    soup = BeautifulSoup(html, "html.parser")
    links = []
    for anchor in soup.find_all("a", href=True):
        absolute, _ = urldefrag(urljoin(base_url, anchor["href"]))
        if absolute.startswith(("http://", "https://")):
            links.append(absolute)
    return links


def is_interstitial(html: str) -> bool:
    return any(marker in html for marker in INTERSTITIAL_MARKERS)


class HttpPageFetcher:
    """Fetch pages with requests in a worker thread."""

    def __init__(self, timeout: float = CRAWL_PAGE_TIMEOUT, user_agent: str = USER_AGENT) -> None:
        self.timeout = timeout
        self.session = requests.Session()
        self.session.headers["User-Agent"] = user_agent

    def _get(self, url: str) -> requests.Response:
        response = self.session.get(url, timeout=self.timeout)
        response.raise_for_status()
        return response

    async def fetch_page(self, url: str, output_path: Path, collect_links: bool) -> FetchedPage | None:
        response = await asyncio.to_thread(self._get, url)
        html = response.text
        if is_interstitial(html):
            logger.warning(f"⚠️ Skipping {url}: still showing an anti-bot challenge")
            return None

        output_path.write_text(html, encoding="utf-8")
        links = extract_links(html, response.url) if collect_links else []
        return FetchedPage(url=url, kind="page", path=output_path, links=links)

    async def download(self, url: str, output_path: Path) -> FetchedPage:
        response = await asyncio.to_thread(self._get, url)
        output_path.write_bytes(response.content)
        return FetchedPage(url=url, kind="file", path=output_path)
