"""Metadata extractors for Quill.

Each extractor derives one piece of page metadata from the document body or
its path. ``CompositeMetadataExtractor`` splits off YAML frontmatter first,
runs the extractors over the remaining body and finally lets explicit
frontmatter values win.

Key classes:
- TitleExtractor: First level-1 heading, else the titleized filename.
- DateExtractor: YYYY-MM-DD filename prefix, else file modification time.
- DescriptionExtractor: First prose paragraph, truncated.
- CompositeMetadataExtractor: Runs the above and applies frontmatter.
"""

from __future__ import annotations

import logging
import re
from datetime import datetime
from pathlib import Path
from typing import Any

import yaml

from .protocols import MetadataExtractor
from .utils import (
    coerce_datetime,
    extract_date_from_name,
    first_paragraph,
    normalize_categories,
    titleize,
)

logger = logging.getLogger(__name__)

FRONTMATTER_RE = re.compile(r"^---\s*\n(.*?)\n---\s*(?:\n|$)", re.DOTALL)


def extract_frontmatter(text: str) -> tuple[dict[str, Any], str]:
    """Split YAML frontmatter from a document.

    Malformed YAML, or YAML that is not a mapping, is treated as if there
    were no frontmatter at all.

    Returns:
        Tuple of (frontmatter dict, remaining content).
    """
    match = FRONTMATTER_RE.match(text)
    if not match:
        return {}, text
    try:
        data = yaml.safe_load(match.group(1)) or {}
    except yaml.YAMLError as exc:
        logger.warning("Ignoring malformed frontmatter: %s", exc)
        return {}, text
    if not isinstance(data, dict):
        return {}, text
    return data, text[match.end() :]


class TitleExtractor:
    """Uses the first ``# `` heading, falling back to the filename."""

    def extract(self, content: str, path: Path) -> dict[str, Any]:
        in_fence = False
        for line in content.splitlines():
            stripped = line.strip()
            if stripped.startswith("```"):
                in_fence = not in_fence
                continue
            if not in_fence and stripped.startswith("# "):
                return {"title": stripped[2:].strip()}
        return {"title": titleize(path.name)}


class DateExtractor:
    """Uses a YYYY-MM-DD filename prefix, falling back to the file mtime."""

    def extract(self, content: str, path: Path) -> dict[str, Any]:
        date = extract_date_from_name(path.stem)
        if date is None:
            date = datetime.fromtimestamp(path.stat().st_mtime)
        return {"date": date}


class DescriptionExtractor:
    """Uses the first prose paragraph, capped at 160 characters."""

    def extract(self, content: str, path: Path) -> dict[str, Any]:
        return {"description": first_paragraph(content)}


class CompositeMetadataExtractor:
    """Combines metadata extractors and applies frontmatter overrides.

    Extractors run in order and later ones override earlier keys. Explicit
    frontmatter fields (``title``, ``date``, ``categories``, ``description``,
    ``draft``, ``layout``) are applied last.
    """

    def __init__(self, extractors: list[MetadataExtractor] | None = None):
        if extractors is None:
            self._extractors: list[MetadataExtractor] = [
                TitleExtractor(),
                DateExtractor(),
                DescriptionExtractor(),
            ]
        else:
            self._extractors = list(extractors)

    def add_extractor(self, extractor: MetadataExtractor) -> None:
        self._extractors.append(extractor)

    def extract(self, content: str, path: Path) -> dict[str, Any]:
        """Extract all metadata from a raw document.

        Returns:
            Dictionary with ``frontmatter``, ``body``, ``categories`` and
            whatever the extractors and frontmatter provide.
        """
        frontmatter, body = extract_frontmatter(content)
        result: dict[str, Any] = {
            "frontmatter": frontmatter,
            "body": body,
            "categories": [],
        }
        for extractor in self._extractors:
            result.update(extractor.extract(body, path))
        result.update(self._frontmatter_overrides(frontmatter, path))
        return result

    @staticmethod
    def _frontmatter_overrides(
        frontmatter: dict[str, Any], path: Path
    ) -> dict[str, Any]:
        overrides: dict[str, Any] = {}
        if frontmatter.get("title"):
            overrides["title"] = str(frontmatter["title"])
        if "date" in frontmatter:
            date = coerce_datetime(frontmatter["date"])
            if date is None:
                logger.warning(
                    "Ignoring unparseable date %r in %s", frontmatter["date"], path
                )
            else:
                overrides["date"] = date
        if "categories" in frontmatter:
            overrides["categories"] = normalize_categories(frontmatter["categories"])
        if frontmatter.get("description"):
            overrides["description"] = str(frontmatter["description"])
        if "draft" in frontmatter:
            overrides["draft"] = bool(frontmatter["draft"])
        if frontmatter.get("layout"):
            overrides["layout"] = str(frontmatter["layout"])
        return overrides


default_metadata_extractor = CompositeMetadataExtractor()
