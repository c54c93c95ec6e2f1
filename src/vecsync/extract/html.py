"""HTML document processor."""

import re
from typing import Any

from bs4 import BeautifulSoup

from vecsync.extract.base import ExtractedDocument, Processor, decode_text

_BLANK_LINES = re.compile(r"\n\s*\n+")
_NON_CONTENT_TAGS = ("script", "style", "noscript", "template", "svg")


def html_to_text(html: str) -> tuple[str, str]:
    """Extract (title, visible text) from an HTML page."""
    soup = BeautifulSoup(html, "html.parser")
    for tag in soup(_NON_CONTENT_TAGS):
        tag.decompose()

    title = soup.title.get_text(strip=True) if soup.title else ""
    body = soup.body or soup
    text = body.get_text("\n", strip=True)
    return title, _BLANK_LINES.sub("\n\n", text).strip()


class HtmlProcessor(Processor):
    extensions = (".html", ".htm")
    doc_type = "html"

    def process_bytes(
        self, data: bytes, file_name: str, **source_options: Any
    ) -> list[ExtractedDocument]:
        title, text = html_to_text(decode_text(data))
        if not text:
            return []

        content = f"{title}\n\n{text}" if title else text
        file_path = source_options.get("file_path", file_name)
        return self.build_documents(
            [content],
            file_name,
            file_path,
            title=title or None,
            crawlUrl=source_options.get("url"),
            length=len(text),
        )
