"""Feed generation for Quill.

Feeds (sitemap.xml, rss.xml) are produced by ``FeedGenerator`` subclasses held
in a ``FeedRegistry``. Both default feeds need an absolute site URL, taken from
``url`` in site data, and are skipped without one. Draft pages never appear in
a feed.

Classes:
    FeedGenerator: Base class for feed generators.
    SitemapGenerator: Generates sitemap.xml.
    RSSGenerator: Generates an RSS 2.0 feed.
    FeedRegistry: Runs every registered generator.

Functions:
    create_default_feed_registry: Registry with sitemap and RSS generators.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from collections.abc import Iterable
from datetime import datetime, timezone
from pathlib import Path
from typing import TYPE_CHECKING, Any

from markupsafe import escape

if TYPE_CHECKING:
    from .content import Page

logger = logging.getLogger(__name__)

RFC822_FORMAT = "%a, %d %b %Y %H:%M:%S +0000"


def _base_url(data: dict[str, Any]) -> str:
    return str(data.get("url", "")).rstrip("/")


class FeedGenerator(ABC):
    """Base class for feed generators."""

    @property
    @abstractmethod
    def filename(self) -> str:
        """Output filename, e.g. 'sitemap.xml'."""
        ...

    @abstractmethod
    def generate(self, pages: Iterable[Page], data: dict[str, Any]) -> str | None:
        """Return feed content, or None when the feed cannot be generated."""
        ...

    def write(
        self,
        output_dir: Path,
        pages: Iterable[Page],
        data: dict[str, Any],
    ) -> bool:
        """Generate and write the feed; return False if it was skipped."""
        content = self.generate(pages, data)
        if content is None:
            logger.debug("Skipping %s: no site url configured", self.filename)
            return False
        (output_dir / self.filename).write_text(content, encoding="utf-8")
        return True


class SitemapGenerator(FeedGenerator):
    """Generates a sitemaps.org sitemap listing every published page."""

    @property
    def filename(self) -> str:
        return "sitemap.xml"

    def generate(self, pages: Iterable[Page], data: dict[str, Any]) -> str | None:
        base_url = _base_url(data)
        if not base_url:
            return None

        lines = [
            '<?xml version="1.0" encoding="UTF-8"?>',
            '<urlset xmlns="http://www.sitemaps.org/schemas/sitemap/0.9">',
        ]
        for page in sorted(pages, key=lambda p: p.url):
            if page.draft:
                continue
            loc = escape(f"{base_url}{page.url}")
            lastmod = page.date.strftime("%Y-%m-%d")
            lines.append(f"  <url><loc>{loc}</loc><lastmod>{lastmod}</lastmod></url>")
        lines.append("</urlset>")
        return "\n".join(lines)


class RSSGenerator(FeedGenerator):
    """Generates an RSS 2.0 feed of published pages, newest first.

    Only pages in the ``posts`` group are syndicated when any exist; otherwise
    every published page is. Section index pages are never items.
    """

    group = "posts"

    @property
    def filename(self) -> str:
        return "rss.xml"

    def generate(self, pages: Iterable[Page], data: dict[str, Any]) -> str | None:
        base_url = _base_url(data)
        if not base_url:
            return None
        title = escape(str(data.get("title", "Quill Feed")))
        description = escape(str(data.get("description", "")))

        published = [p for p in pages if not p.draft and p.slug != "index"]
        posts = [p for p in published if p.group == self.group]
        entries = posts or published

        items = []
        for page in sorted(entries, key=lambda p: p.date, reverse=True):
            link = escape(f"{base_url}{page.url}")
            categories = "".join(
                f"<category>{escape(name)}</category>" for name in page.categories
            )
            items.append(
                f"<item><title>{escape(page.title)}</title><link>{link}</link>"
                f"<guid>{link}</guid>"
                f"<description>{escape(page.description or page.title)}</description>"
                f"{categories}"
                f"<pubDate>{page.date.strftime(RFC822_FORMAT)}</pubDate></item>"
            )

        build_date = datetime.now(timezone.utc).strftime(RFC822_FORMAT)
        rss = [
            '<?xml version="1.0" encoding="UTF-8"?>',
            '<rss version="2.0"><channel>',
            f"<title>{title}</title>",
            f"<link>{escape(base_url)}</link>",
            f"<description>{description}</description>",
            f"<lastBuildDate>{build_date}</lastBuildDate>",
        ]
        rss.extend(items)
        rss.append("</channel></rss>")
        return "\n".join(rss)


class FeedRegistry:
    """Runs a list of feed generators against one build."""

    def __init__(self) -> None:
        self._generators: list[FeedGenerator] = []

    def register(self, generator: FeedGenerator) -> None:
        self._generators.append(generator)

    def generate_all(
        self,
        output_dir: Path,
        pages: Iterable[Page],
        data: dict[str, Any],
    ) -> list[str]:
        """Write every feed that can be generated; return their filenames."""
        pages_list = list(pages)
        generated = []
        for generator in self._generators:
            if generator.write(output_dir, pages_list, data):
                generated.append(generator.filename)
        return generated


def create_default_feed_registry() -> FeedRegistry:
    registry = FeedRegistry()
    registry.register(SitemapGenerator())
    registry.register(RSSGenerator())
    return registry
