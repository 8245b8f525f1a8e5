"""Extension points of the content pipeline.

``ContentProcessor`` takes a loader and a page builder, ``RendererRegistry``
holds renderers and ``CompositeMetadataExtractor`` runs extractors. Anything
with the right methods can be plugged in; no base class is required.
"""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

if TYPE_CHECKING:
    from .content import Heading, Page


@runtime_checkable
class ContentRenderer(Protocol):
    """Turns the body of one kind of source file into HTML.

    ``source_type`` ends up on ``Page.source_type``; the template engine
    re-renders ``"jinja"`` bodies with the full page context.
    """

    source_type: str

    def can_render(self, path: Path) -> bool: ...

    def render(self, content: str, folder: str) -> tuple[str, list[Heading]]:
        """Return the HTML body and the headings collected for the TOC.

        ``folder`` is the page's folder under ``site/``, used to rewrite
        relative image paths.
        """
        ...


@runtime_checkable
class MetadataExtractor(Protocol):
    """Reads part of a page's metadata (title, date, ...) from its body."""

    def extract(self, content: str, path: Path) -> dict[str, Any]: ...


@runtime_checkable
class ContentLoader(Protocol):
    def iter_files(self, include_drafts: bool = False) -> list[Path]: ...


@runtime_checkable
class PageBuilder(Protocol):
    def build(self, path: Path, draft: bool = False) -> Page: ...
