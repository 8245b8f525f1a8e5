from __future__ import annotations

from collections.abc import Iterable, Iterator, Mapping, Sequence

from .content import Page
from .utils import extract_number_from_name, slugify, strip_number_prefix


class PageCollection(Sequence[Page]):
    """Lightweight helper for working with lists of Pages in templates and code."""

    def __init__(self, pages: Iterable[Page]):
        self._pages = list(pages)

    def __iter__(self) -> Iterator[Page]:
        return iter(self._pages)

    def __len__(self) -> int:
        return len(self._pages)

    def __getitem__(self, item):
        if isinstance(item, slice):
            return PageCollection(self._pages[item])
        return self._pages[item]

    def group(self, name: str) -> PageCollection:
        return PageCollection(p for p in self._pages if p.group == name)

    def in_category(self, category: str) -> PageCollection:
        """Pages filed under ``category``, matched by slug so case is ignored."""
        wanted = slugify(category)
        return PageCollection(
            p for p in self._pages if any(slugify(c) == wanted for c in p.categories)
        )

    def drafts(self) -> PageCollection:
        return PageCollection(p for p in self._pages if p.draft)

    def published(self) -> PageCollection:
        return PageCollection(p for p in self._pages if not p.draft)

    def sorted(self, reverse: bool = True) -> PageCollection:
        """Sort pages by date, then by number prefix, then by filename.

        With ``reverse=True`` (the default) the newest page comes first. Among
        pages sharing a date, numbered files (``01-intro.md``) sort by number
        and unnumbered ones go last.
        """

        def sort_key(p: Page):
            number = extract_number_from_name(p.path.stem)
            missing = float("-inf") if reverse else float("inf")
            num_key = number if number is not None else missing
            name_key = strip_number_prefix(p.path.stem).lower()
            return (p.date, num_key, name_key)

        return PageCollection(sorted(self._pages, key=sort_key, reverse=reverse))

    def latest(self, count: int = 5) -> PageCollection:
        return self.sorted()[:count]

    def __repr__(self) -> str:  # pragma: no cover - for debugging
        return f"PageCollection({len(self._pages)} pages)"


class CategoryCollection(Mapping[str, PageCollection]):
    """Mapping of category name to PageCollection."""

    def __init__(self, mapping: dict[str, Iterable[Page]]):
        self._mapping = {k: PageCollection(v) for k, v in mapping.items()}

    def __getitem__(self, key: str) -> PageCollection:
        return self._mapping[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._mapping)

    def __len__(self) -> int:
        return len(self._mapping)

    def url_for(self, name: str) -> str:
        """Return the URL of the index page for category ``name``."""
        return f"/categories/{slugify(name)}/"

    def by_size(self) -> list[tuple[str, PageCollection]]:
        """Return (name, pages) pairs, largest category first, then by name."""
        return sorted(self._mapping.items(), key=lambda item: (-len(item[1]), item[0]))

    def __repr__(self) -> str:  # pragma: no cover - for debugging
        return f"CategoryCollection({len(self._mapping)} categories)"
