"""Content processing for Quill.

This module discovers content documents under ``site/``, extracts their
metadata, renders their bodies and turns each into a ``Page``.

Key classes:
- Page: Dataclass representing a site page with all its metadata.
- Heading: Dataclass representing a heading for TOC generation.
- FileContentLoader: Finds processable files, honouring drafts and ``_`` dirs.
- LayoutResolver: Chooses the layout template for a page.
- UrlDeriver: Maps a source path to its output URL.
- DefaultPageBuilder: Builds a Page from one source file.
- ContentProcessor: Loads every page in a site directory.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any

from .extractors import CompositeMetadataExtractor, default_metadata_extractor
from .protocols import ContentLoader, PageBuilder
from .renderers import RendererRegistry, _rewrite_image_path, default_renderer_registry
from .utils import is_html, is_markdown, is_template, slugify, titleize

logger = logging.getLogger(__name__)

IMAGE_SRC_RE = re.compile(r'<img\s+[^>]*src="([^"]+)"', re.IGNORECASE)

LAYOUT_SUFFIXES = (".html.jinja", ".jinja", ".html", "")


@dataclass
class Heading:
    """A heading collected from Markdown content for TOC generation.

    Attributes:
        id: Anchor ID for the heading.
        text: The heading text (may contain inline HTML).
        level: Heading level (1-6).
    """

    id: str
    text: str
    level: int


@dataclass
class Page:
    """A content document together with its rendered body.

    Attributes:
        title: Human-readable title of the page.
        body: Source text with frontmatter removed.
        content: Rendered HTML body (unrendered source for Jinja pages).
        description: Short description, frontmatter or first paragraph.
        url: URL path for the page, always ending in ``/``.
        slug: URL-friendly slug.
        date: Publication date.
        categories: Category names from frontmatter.
        draft: Whether this is a draft page.
        layout: Layout template to use.
        group: First folder component, e.g. ``posts``.
        path: Path to the source file.
        folder: Folder path relative to the site directory.
        filename: Name of the source file.
        source_type: "markdown", "html" or "jinja".
    """

    title: str
    body: str
    content: str
    description: str
    url: str
    slug: str
    date: datetime
    categories: list[str]
    draft: bool
    layout: str
    group: str
    path: Path
    folder: str
    filename: str
    source_type: str
    frontmatter: dict[str, Any] = field(default_factory=dict)
    toc: list[Heading] = field(default_factory=list)


class FileContentLoader:
    """Finds content files in a site directory.

    Files below any ``_``-prefixed directory (layouts, partials) are never
    content. Files whose own name starts with ``_`` are drafts.
    """

    def __init__(self, site_dir: Path):
        self.site_dir = site_dir

    def iter_files(self, include_drafts: bool = False) -> list[Path]:
        files: list[Path] = []
        for path in sorted(self.site_dir.rglob("*")):
            if path.is_dir():
                continue
            rel = path.relative_to(self.site_dir)
            if any(part.startswith("_") for part in rel.parts[:-1]):
                continue
            if rel.name.startswith("_") and not include_drafts:
                continue
            if is_markdown(path) or is_template(path) or is_html(path):
                files.append(path)
        return files


class LayoutResolver:
    """Resolves layout templates for pages.

    Candidates, most specific first: ``{folder}/{name}``, then the group
    (first folder component), or ``{name}`` for root pages, then ``default``.
    """

    def __init__(self, site_dir: Path):
        self.site_dir = site_dir
        self.layout_dir = site_dir / "_layouts"

    def exists(self, name: str) -> bool:
        return any(
            (self.layout_dir / f"{name}{suffix}").is_file()
            for suffix in LAYOUT_SUFFIXES
        )

    def resolve(self, path: Path, folder: str) -> str:
        name = self._stem(path)
        candidates: list[str] = []
        if folder:
            candidates.append(f"{folder}/{name}")
            candidates.append(self.group_from_folder(folder))
        else:
            candidates.append(name)
        for candidate in candidates:
            if self.exists(candidate):
                return candidate
        return "default"

    @staticmethod
    def group_from_folder(folder: str) -> str:
        if not folder:
            return ""
        return Path(folder).parts[0]

    @staticmethod
    def _stem(path: Path) -> str:
        name = path.name
        for suffix in (".html.jinja", ".jinja", ".html", ".md"):
            if name.endswith(suffix):
                return name[: -len(suffix)]
        return path.stem


class UrlDeriver:
    """Maps a source path relative to ``site/`` to its URL path."""

    def derive(self, rel: Path, slug: str) -> str:
        segments = [p for p in rel.parent.parts if p]
        url_parts = segments if slug == "index" else segments + [slug]
        path = "/".join(url_parts)
        return f"/{path}/" if path else "/"


class DefaultPageBuilder:
    """Builds Page objects from source files.

    Attributes:
        site_dir: Directory containing site content.
        renderer_registry: Registry of content renderers.
        metadata_extractor: Composite metadata extractor.
        layout_resolver: Layout resolver instance.
        url_deriver: URL deriver instance.
    """

    def __init__(
        self,
        site_dir: Path,
        renderer_registry: RendererRegistry | None = None,
        metadata_extractor: CompositeMetadataExtractor | None = None,
    ):
        self.site_dir = site_dir
        self.renderer_registry = renderer_registry or default_renderer_registry
        self.metadata_extractor = metadata_extractor or default_metadata_extractor
        self.layout_resolver = LayoutResolver(site_dir)
        self.url_deriver = UrlDeriver()

    def build(self, path: Path, draft: bool = False) -> Page:
        """Build a Page object from a source file.

        Args:
            path: Path to the source file.
            draft: Whether the file was loaded as a draft. Frontmatter
                ``draft: true`` also marks a page as a draft.
        """
        rel = path.relative_to(self.site_dir)
        folder = rel.parent.as_posix() if rel.parent != Path(".") else ""
        raw = path.read_text(encoding="utf-8")

        metadata = self.metadata_extractor.extract(raw, path)
        body = metadata.get("body", raw)

        renderer = self.renderer_registry.get_renderer(path)
        if renderer is not None:
            source_type = renderer.source_type
            content, toc = renderer.render(body, folder)
        else:
            source_type = "unknown"
            content, toc = body, []

        layout = metadata.get("layout") or self.layout_resolver.resolve(path, folder)
        slug = slugify(LayoutResolver._stem(path))
        content = self._rewrite_inline_images(content, folder)

        return Page(
            title=metadata.get("title", titleize(path.name)),
            body=body,
            content=content,
            description=metadata.get("description", ""),
            url=self.url_deriver.derive(rel, slug),
            slug=slug,
            date=metadata.get("date", datetime.now()),
            categories=metadata.get("categories", []),
            draft=draft or bool(metadata.get("draft", False)),
            layout=layout,
            group=self.layout_resolver.group_from_folder(folder),
            path=path,
            folder=folder,
            filename=path.name,
            source_type=source_type,
            frontmatter=metadata.get("frontmatter", {}),
            toc=toc,
        )

    def _rewrite_inline_images(self, html: str, folder: str) -> str:
        def repl(match: re.Match) -> str:
            src = match.group(1)
            rewritten = _rewrite_image_path(src, folder)
            return match.group(0).replace(src, rewritten)

        return IMAGE_SRC_RE.sub(repl, html)


class ContentProcessor:
    """Loads every content document in a site directory as a Page."""

    def __init__(
        self,
        site_dir: Path,
        content_loader: ContentLoader | None = None,
        page_builder: PageBuilder | None = None,
    ):
        self.site_dir = site_dir
        self._content_loader = content_loader or FileContentLoader(site_dir)
        self._page_builder = page_builder or DefaultPageBuilder(site_dir)

    def load(self, include_drafts: bool = False) -> list[Page]:
        """Load all content files and create Page objects.

        Pages marked as drafts in frontmatter are dropped unless
        ``include_drafts`` is set.
        """
        pages: list[Page] = []
        for path in self._content_loader.iter_files(include_drafts):
            page = self._page_builder.build(path, draft=path.name.startswith("_"))
            if page.draft and not include_drafts:
                logger.debug("Skipping draft %s", path)
                continue
            pages.append(page)
        logger.info("Loaded %d pages from %s", len(pages), self.site_dir)
        return pages
