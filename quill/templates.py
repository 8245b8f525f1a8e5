"""Template rendering engine for Quill.

This module uses Jinja2 to render pages into their layouts. Templates are
looked up in ``_layouts``, ``_partials`` and the site directory itself.

Key objects:
- TemplateEngine: Owns the Jinja environment and renders pages.
- render_toc: Template global that renders a page's headings as nested lists.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from pathlib import Path
from typing import Any

from jinja2 import Environment, FileSystemLoader, Template, TemplateNotFound, select_autoescape
from markupsafe import Markup, escape
from pygments.formatters import HtmlFormatter

from .collections import CategoryCollection, PageCollection
from .content import LAYOUT_SUFFIXES, Heading, Page
from .utils import join_url

logger = logging.getLogger(__name__)

__all__ = ["TemplateEngine", "render_toc"]


def render_toc(page: Page) -> Markup:
    """Render a page's headings as nested ``<ul>`` lists.

    Returns:
        Markup-safe HTML, or empty Markup when the page has no headings.
    """
    if not page.toc:
        return Markup("")
    return _render_toc_from_headings(page.toc)


def _render_toc_from_headings(headings: list[Heading]) -> Markup:
    html_parts: list[str] = []
    level_stack: list[int] = []

    for heading in headings:
        level = heading.level

        while level_stack and level_stack[-1] > level:
            level_stack.pop()
            html_parts.append("</li></ul>")

        if level_stack and level_stack[-1] == level:
            html_parts.append("</li>")
        elif not level_stack or level > level_stack[-1]:  # pragma: no branch
            html_parts.append("<ul>")
            level_stack.append(level)

        # Heading text may already contain inline markup from Markdown.
        html_parts.append(f'<li><a href="#{escape(heading.id)}">{Markup(heading.text)}</a>')

    while level_stack:
        level_stack.pop()
        html_parts.append("</li></ul>")

    return Markup("".join(html_parts))


class TemplateEngine:
    """Jinja2-based page renderer.

    Attributes:
        site_dir: Directory containing templates.
        data: Global site data.
        env: Jinja2 environment.
        pages: PageCollection of every page in the build.
        categories: CategoryCollection of every category in the build.
    """

    def __init__(
        self,
        site_dir: Path,
        data: dict[str, Any],
        root_url: str | None = None,
    ):
        self.site_dir = site_dir
        self.data = data
        self.root_url = root_url or str(data.get("root_url") or "")
        self.env = Environment(
            loader=FileSystemLoader(
                [
                    site_dir / "_layouts",
                    site_dir / "_partials",
                    site_dir,
                ]
            ),
            autoescape=select_autoescape(["html", "xml", "jinja"]),
        )
        self.pages: PageCollection = PageCollection([])
        self.categories: CategoryCollection = CategoryCollection({})
        self._install_globals()

    def _install_globals(self) -> None:
        self.env.globals["data"] = self.data
        self.env.globals["nav"] = self.data.get("nav", [])
        self.env.globals["pages"] = self.pages
        self.env.globals["categories"] = self.categories
        self.env.globals["url_for"] = self._url_for
        self.env.globals["asset_url"] = self._asset_url
        self.env.globals["pygments_css"] = self._pygments_css
        self.env.globals["render_toc"] = render_toc

    @staticmethod
    def _pygments_css() -> Markup:
        """Return the Pygments stylesheet for ``.highlight`` blocks."""
        return Markup(HtmlFormatter().get_style_defs(".highlight"))

    def update_collections(
        self, pages: Iterable[Page], categories: dict[str, list[Page]]
    ) -> None:
        self.pages = PageCollection(pages)
        self.categories = CategoryCollection(categories)
        self.env.globals["pages"] = self.pages
        self.env.globals["categories"] = self.categories

    def _url_for(self, path: str) -> str:
        """Return ``path`` as a root-relative URL, prefixed with root_url if set."""
        if path.startswith(("http://", "https://", "//")):
            return path
        normalized = path if path.startswith("/") else f"/{path}"
        if self.root_url:
            return join_url(self.root_url, normalized)
        return normalized

    def _asset_url(self, path: str) -> str:
        return self._url_for(f"/assets/{path.lstrip('/')}")

    def render_page(self, page: Page, **extra: Any) -> str:
        """Render a page body and wrap it in its layout.

        Args:
            page: Page object to render.
            **extra: Additional context, e.g. ``category`` on category pages.
        """
        context = {
            "data": self.data,
            "current_page": page,
            "frontmatter": page.frontmatter,
            "pages": self.pages,
            "categories": self.categories,
            **extra,
        }
        body_html = self._render_body(page, context)
        layout_template = self._resolve_layout_template(page.layout)
        return layout_template.render(page_content=Markup(body_html), **context)

    def _render_body(self, page: Page, context: dict[str, Any]) -> str:
        if page.source_type == "jinja":
            template = self.env.from_string(page.content)
            return template.render(**context)
        return page.content

    def _resolve_layout_template(self, layout: str) -> Template:
        names = [layout] if layout == "default" else [layout, "default"]
        for name in names:
            for suffix in LAYOUT_SUFFIXES:
                try:
                    return self.env.get_template(f"{name}{suffix}")
                except TemplateNotFound:
                    continue
            if name != "default":
                logger.warning("Layout %r not found; falling back to default", name)
        return self.env.from_string("{{ page_content }}")

    def has_layout(self, layout: str) -> bool:
        for suffix in LAYOUT_SUFFIXES:
            try:
                self.env.get_template(f"{layout}{suffix}")
            except TemplateNotFound:
                continue
            return True
        return False

    def render_string(self, template: str, context: dict[str, Any]) -> str:
        return self.env.from_string(template).render(**context)
