from datetime import datetime
from pathlib import Path

from quill.collections import CategoryCollection, PageCollection


class FakePage:
    def __init__(self, title, group="", date=None, categories=None, draft=False, filename=None):
        self.title = title
        self.group = group
        self.date = date or datetime(2024, 1, 1)
        self.categories = categories or []
        self.draft = draft
        self.path = Path(filename if filename else f"{title.lower().replace(' ', '-')}.md")


def test_page_collection_filters_and_latest():
    pages = PageCollection(
        [
            FakePage("A", group="posts", date=datetime(2024, 1, 2), filename="a.md"),
            FakePage("B", group="posts", date=datetime(2024, 1, 3), draft=True, filename="b.md"),
            FakePage("C", group="docs", date=datetime(2024, 1, 1), categories=["css"], filename="c.md"),
        ]
    )
    assert len(pages) == 3
    assert [p.title for p in pages.group("posts")] == ["A", "B"]
    assert [p.title for p in pages.published()] == ["A", "C"]
    assert [p.title for p in pages.drafts()] == ["B"]
    assert [p.title for p in pages.in_category("css")] == ["C"]
    assert pages.latest(1)[0].title == "B"
    assert isinstance(pages.latest(2), PageCollection)
    assert [p.title for p in pages.sorted(reverse=False)] == ["C", "A", "B"]
    assert [p.title for p in pages.sorted()] == ["B", "A", "C"]


def test_sorting_by_date_number_filename():
    pages = PageCollection(
        [
            FakePage("Third", filename="03-third.md"),
            FakePage("First", filename="01-first.md"),
            FakePage("Second", filename="02-second.md"),
        ]
    )
    assert [p.title for p in pages.sorted(reverse=True)] == ["Third", "Second", "First"]
    assert [p.title for p in pages.sorted(reverse=False)] == ["First", "Second", "Third"]


def test_sorting_puts_unnumbered_last_both_ways():
    pages = PageCollection(
        [
            FakePage("Plain", filename="plain.md"),
            FakePage("One", filename="01-one.md"),
            FakePage("Two", filename="02-two.md"),
        ]
    )
    assert [p.title for p in pages.sorted(reverse=True)][-1] == "Plain"
    assert [p.title for p in pages.sorted(reverse=False)][-1] == "Plain"


def test_sorting_number_after_date_prefix():
    pages = PageCollection(
        [
            FakePage("B", filename="2021-12-01-02-part-two.md", date=datetime(2021, 12, 1)),
            FakePage("A", filename="2021-12-01-01-part-one.md", date=datetime(2021, 12, 1)),
            FakePage("Later", filename="2021-12-02-later.md", date=datetime(2021, 12, 2)),
        ]
    )
    assert [p.title for p in pages.sorted(reverse=False)] == ["A", "B", "Later"]


def test_category_collection():
    a = FakePage("A", categories=["code", "advent-of-code"])
    b = FakePage("B", categories=["code"])
    categories = CategoryCollection({"code": [a, b], "advent-of-code": [a]})
    assert len(categories) == 2
    assert list(categories) == ["code", "advent-of-code"]
    assert isinstance(categories["code"], PageCollection)
    assert [p.title for p in categories["code"]] == ["A", "B"]
    assert categories.get("missing") is None
    assert "code" in categories
    assert categories.url_for("Advent of Code") == "/categories/advent-of-code/"
    assert [name for name, _ in categories.by_size()] == ["code", "advent-of-code"]


def test_in_category_matches_by_slug():
    pages = PageCollection(
        [
            FakePage("A", categories=["Rust"]),
            FakePage("B", categories=["rust"]),
            FakePage("C", categories=["C++"]),
        ]
    )
    assert [p.title for p in pages.in_category("rust")] == ["A", "B"]
    assert [p.title for p in pages.in_category("Advent of Code")] == []
