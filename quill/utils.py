"""Utility functions for Quill.

This module contains the small string, date and path helpers used throughout
the Quill codebase.

Key functions:
    slugify: Convert filenames or category names to URL slugs.
    titleize: Convert filenames to human-readable titles.
    normalize_categories: Turn a frontmatter categories value into a list.
    build_category_index: Build index of pages by category.
    extract_date_from_name: Extract date from filename prefix.
    coerce_datetime: Turn a frontmatter date value into a datetime.
    is_markdown: Check if a path is a Markdown file.
    is_template: Check if a path is a Jinja template.
    is_html: Check if a path is a plain HTML file.
    ensure_clean_dir: Ensure a directory exists and is empty.
    join_url: Join a base URL and a path.
"""

from __future__ import annotations

import re
import shutil
from collections.abc import Iterable
from datetime import date, datetime
from pathlib import Path
from typing import Any

_DATE_PREFIX_PARTS = 3


def _strip_date_prefix(name: str) -> str:
    parts = name.split("-")
    if len(parts) > _DATE_PREFIX_PARTS and all(
        p.isdigit() for p in parts[:_DATE_PREFIX_PARTS]
    ):
        return "-".join(parts[_DATE_PREFIX_PARTS:])
    return name


def slugify(name: str) -> str:
    """Convert a filename stem or label to a slug, dropping any date prefix.

    Args:
        name: Filename stem or free text.

    Returns:
        URL-friendly slug, ``index`` when nothing usable remains.

    Examples:
        >>> slugify("2021-12-01-Sonar Sweep")
        'sonar-sweep'
    """
    cleaned = _strip_date_prefix(name)
    cleaned = re.sub(r"[^a-zA-Z0-9]+", "-", cleaned)
    cleaned = cleaned.strip("-").lower()
    return cleaned or "index"


def titleize(filename: str) -> str:
    """Convert a filename to a human-readable title.

    Removes date prefixes (YYYY-MM-DD), replaces hyphens and underscores
    with spaces, and capitalizes each word.

    Examples:
        >>> titleize("2024-01-15-hello-world.md")
        'Hello World'

        >>> titleize("getting-started.md")
        'Getting Started'
    """
    base = _strip_date_prefix(Path(filename).stem)
    words = re.split(r"[\s\-_]+", base)
    return " ".join(word.capitalize() for word in words if word) or "Untitled"


def extract_date_from_name(name: str) -> datetime | None:
    """Extract a date from a filename with YYYY-MM-DD prefix.

    Args:
        name: Filename stem (without extension).

    Returns:
        datetime object if a valid date prefix is found, None otherwise.
    """
    parts = name.split("-")
    if len(parts) >= _DATE_PREFIX_PARTS and all(
        p.isdigit() for p in parts[:_DATE_PREFIX_PARTS]
    ):
        try:
            return datetime(int(parts[0]), int(parts[1]), int(parts[2]))
        except ValueError:
            return None
    return None


def coerce_datetime(value: Any) -> datetime | None:
    """Convert a frontmatter date value to a naive datetime.

    YAML already turns ``2021-12-01`` into a ``date``; strings are accepted in
    ISO format as a fallback. Anything else yields None.
    """
    if isinstance(value, datetime):
        return value.replace(tzinfo=None)
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day)
    if isinstance(value, str):
        try:
            return datetime.fromisoformat(value.strip()).replace(tzinfo=None)
        except ValueError:
            return None
    return None


def normalize_categories(value: Any) -> list[str]:
    """Turn a frontmatter ``categories`` value into a list of names.

    Accepts a list or a comma-separated string. Blank entries are dropped and
    duplicates removed while keeping first-seen order.

    Examples:
        >>> normalize_categories("code, advent-of-code, code")
        ['code', 'advent-of-code']
    """
    if value is None:
        return []
    if isinstance(value, str):
        raw = value.split(",")
    elif isinstance(value, Iterable):
        raw = [str(item) for item in value]
    else:
        raw = [str(value)]
    seen: list[str] = []
    for item in raw:
        name = item.strip()
        if name and name not in seen:
            seen.append(name)
    return seen


def first_paragraph(text: str, limit: int = 160) -> str:
    """Extract and clean the first prose paragraph from text.

    Skips headings, images, fenced code and rules. Strips HTML tags and Jinja
    syntax, collapses whitespace and truncates to ``limit`` characters.
    """
    paragraphs = [p.strip() for p in text.split("\n\n") if p.strip()]
    for para in paragraphs:
        if para.startswith(("#", "![", "```", "---")):
            continue
        para = re.sub(r"<[^>]+>", "", para)
        para = re.sub(r"\{[%#{].*?[%#}]\}", "", para)
        collapsed = " ".join(para.split())
        if collapsed:
            return collapsed[:limit]
    return ""


def ensure_clean_dir(path: Path) -> None:
    """Ensure a directory exists and is empty.

    If the directory exists, removes all contents. Creates the
    directory if it doesn't exist.
    """
    if path.exists():
        shutil.rmtree(path)
    path.mkdir(parents=True, exist_ok=True)


def is_markdown(path: Path) -> bool:
    """Check if a path is a Markdown file."""
    return path.suffix.lower() == ".md"


def is_template(path: Path) -> bool:
    """Check if a path is a Jinja template file.

    Matches both .jinja and .html.jinja extensions.
    """
    return path.suffixes[-2:] == [".html", ".jinja"] or path.suffix == ".jinja"


def is_html(path: Path) -> bool:
    """Check if a path is a plain HTML file (not a Jinja template)."""
    return path.suffix.lower() == ".html" and not is_template(path)


def extract_number_from_name(name: str) -> int | None:
    """Extract a leading number from a filename for sorting.

    Handles filenames like "01-intro.md" and "2021-12-01-02-second.md". If the
    filename has a date prefix, the number after the date is used.
    """
    parts = name.split("-")

    if len(parts) > _DATE_PREFIX_PARTS and all(
        p.isdigit() for p in parts[:_DATE_PREFIX_PARTS]
    ):
        if parts[_DATE_PREFIX_PARTS].isdigit():
            return int(parts[_DATE_PREFIX_PARTS])
        return None

    if parts and parts[0].isdigit():
        return int(parts[0])

    return None


def strip_number_prefix(name: str) -> str:
    """Strip date and number prefixes from a filename stem."""
    parts = name.split("-")

    if len(parts) > _DATE_PREFIX_PARTS and all(
        p.isdigit() for p in parts[:_DATE_PREFIX_PARTS]
    ):
        parts = parts[_DATE_PREFIX_PARTS:]
        if parts and parts[0].isdigit():
            parts = parts[1:]
    elif parts and parts[0].isdigit():
        parts = parts[1:]

    return "-".join(parts) if parts else name


def build_category_index(pages: Iterable) -> dict[str, list]:
    """Build an index mapping category names to the pages filed under them.

    Names that slugify alike (``Rust`` and ``rust``) share one entry, keyed by
    the first spelling seen, since they would share a URL. A page listed
    under several spellings appears once.

    Args:
        pages: Iterable of Page objects with a ``categories`` attribute.

    Returns:
        Dictionary mapping category names to lists of pages, in first-seen
        order.
    """
    names: dict[str, str] = {}
    index: dict[str, list] = {}
    for page in pages:
        for category in page.categories:
            name = names.setdefault(slugify(category), category)
            members = index.setdefault(name, [])
            if page not in members:
                members.append(page)
    return index


def join_url(base: str, path: str) -> str:
    """Join a site base URL and a path with exactly one slash between them.

    Examples:
        >>> join_url("https://example.com/", "/posts/")
        'https://example.com/posts/'
    """
    if not base:
        return path
    return f"{base.rstrip('/')}/{path.lstrip('/')}"
