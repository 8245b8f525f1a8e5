"""Site building for Quill.

This module turns a project directory into a static output directory. The
output is wiped and regenerated from scratch on every build.

Key functions:
- build_site: Build the whole site.
- load_config: Load ``quill.yaml`` over the defaults.
- load_data: Load ``data/*.yaml`` into the global template data.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml
from jinja2 import TemplateSyntaxError

from .assets import AssetPipeline
from .content import ContentProcessor, Page
from .feeds import create_default_feed_registry
from .templates import TemplateEngine
from .utils import build_category_index, ensure_clean_dir, join_url, slugify

logger = logging.getLogger(__name__)

CONFIG_FILENAME = "quill.yaml"
CATEGORY_LAYOUT = "category"

# href/src values starting with a single slash.
_ROOT_RELATIVE_LINK_RE = re.compile(r"""\b(href|src)=(["'])(/(?!/)[^"']*)\2""")

DEFAULT_CONFIG = {
    "output_dir": "output",
    "port": 4000,
    "root_url": "",
}


class BuildError(Exception):
    """Error during site build with file context.

    Attributes:
        source_path: Path to the source file that caused the error.
        message: Human-readable error message.
        original_error: The original exception that was caught.
    """

    def __init__(
        self,
        source_path: Path,
        message: str,
        original_error: Exception | None = None,
    ):
        self.source_path = source_path
        self.message = message
        self.original_error = original_error
        super().__init__(f"{source_path}: {message}")


@dataclass
class BuildResult:
    """Result of a site build.

    Attributes:
        pages: Every content page that was rendered.
        output_dir: Directory where the site was built.
        data: Global site data dictionary.
        category_pages: Generated category index pages.
        feeds: Filenames of the feeds that were written.
    """

    pages: list[Page]
    output_dir: Path
    data: dict[str, Any]
    category_pages: list[Page] = field(default_factory=list)
    feeds: list[str] = field(default_factory=list)


def _load_yaml_mapping(path: Path) -> dict[str, Any] | None:
    with open(path, encoding="utf-8") as f:
        loaded = yaml.safe_load(f)
    if loaded is None:
        return {}
    if not isinstance(loaded, dict):
        return None
    return loaded


def load_config(project_root: Path) -> dict[str, Any]:
    """Load ``quill.yaml`` from the project root over ``DEFAULT_CONFIG``.

    A missing file, or one that is not a mapping, yields the defaults.
    """
    config = DEFAULT_CONFIG.copy()
    config_path = project_root / CONFIG_FILENAME
    if config_path.exists():
        loaded = _load_yaml_mapping(config_path)
        if loaded is None:
            logger.warning("Ignoring %s: expected a mapping", config_path)
        else:
            config.update(loaded)
    return config


def load_data(project_root: Path) -> dict[str, Any]:
    """Load site data from YAML files in ``data/``.

    ``site.yaml`` is merged into the top level; every other file is stored
    under its stem (``nav.yaml`` becomes ``data["nav"]``). Files that do not
    hold a mapping are kept as-is under their stem, except ``site.yaml``
    which is skipped.
    """
    data_dir = project_root / "data"
    data: dict[str, Any] = {}
    if not data_dir.exists():
        return data
    for path in sorted(data_dir.glob("*.yaml")):
        with open(path, encoding="utf-8") as f:
            payload = yaml.safe_load(f)
        if path.name == "site.yaml":
            if isinstance(payload, dict):
                data.update(payload)
            else:
                logger.warning("Ignoring %s: expected a mapping", path)
        elif payload is not None:
            data[path.stem] = payload
    return data


def build_site(
    project_root: Path,
    include_drafts: bool = False,
    root_url: str | None = None,
    clean_output: bool = True,
    output_dir_override: Path | None = None,
) -> BuildResult:
    """Build the entire static site.

    Args:
        project_root: Root directory of the project.
        include_drafts: Whether to include draft pages.
        root_url: Optional base URL to absolutize links with.
        clean_output: Whether to wipe the output directory before building.
        output_dir_override: Write here instead of the configured output_dir.

    Returns:
        BuildResult describing what was written.

    Raises:
        FileNotFoundError: If the project has no ``site/`` directory.
        BuildError: If a page fails to render.
    """
    config = load_config(project_root)
    if root_url is not None:
        config["root_url"] = root_url
    site_dir = project_root / "site"
    if not site_dir.exists():
        raise FileNotFoundError(f"Expected site directory at {site_dir}")

    output_dir = output_dir_override or (
        project_root / str(config.get("output_dir", "output"))
    )
    if clean_output:
        ensure_clean_dir(output_dir)
    else:
        output_dir.mkdir(parents=True, exist_ok=True)

    data = load_data(project_root)
    resolved_root = str(config.get("root_url") or "")
    if resolved_root:
        data.setdefault("root_url", resolved_root)

    pages = ContentProcessor(site_dir).load(include_drafts=include_drafts)
    categories = build_category_index(pages)

    engine = TemplateEngine(site_dir, data, root_url=resolved_root)
    engine.update_collections(pages, categories)
    for page in pages:
        _render_and_write(engine, output_dir, page, resolved_root)

    category_pages: list[Page] = []
    if categories and engine.has_layout(CATEGORY_LAYOUT):
        for name, members in categories.items():
            page = _category_page(site_dir, name, members)
            _render_and_write(
                engine,
                output_dir,
                page,
                resolved_root,
                category=name,
                category_pages=engine.categories[name].sorted(),
            )
            category_pages.append(page)
            logger.debug("Wrote category %s with %d pages", name, len(members))

    AssetPipeline(project_root, output_dir).run()
    feeds = create_default_feed_registry().generate_all(output_dir, pages, data)
    logger.info(
        "Built %d pages and %d category pages into %s",
        len(pages),
        len(category_pages),
        output_dir,
    )
    return BuildResult(
        pages=pages,
        output_dir=output_dir,
        data=data,
        category_pages=category_pages,
        feeds=feeds,
    )


def _category_page(site_dir: Path, name: str, members: list[Page]) -> Page:
    slug = slugify(name)
    return Page(
        title=name,
        body="",
        content="",
        description=f"Posts filed under {name}",
        url=f"/categories/{slug}/",
        slug=slug,
        date=max(p.date for p in members),
        categories=[],
        draft=False,
        layout=CATEGORY_LAYOUT,
        group="categories",
        path=site_dir / "_layouts" / CATEGORY_LAYOUT,
        folder="categories",
        filename=f"{slug}.html",
        source_type="html",
    )


def _render_and_write(
    engine: TemplateEngine,
    output_dir: Path,
    page: Page,
    root_url: str,
    **extra: Any,
) -> None:
    try:
        rendered = engine.render_page(page, **extra)
    except TemplateSyntaxError as exc:
        raise BuildError(
            page.path,
            f"Template syntax error on line {exc.lineno}: {exc.message}",
            exc,
        ) from exc
    except Exception as exc:
        raise BuildError(page.path, _format_error_message(exc), exc) from exc
    if root_url:
        rendered = _absolutize_links(rendered, root_url)
    _write_page(output_dir, page, rendered)


def _format_error_message(exc: Exception) -> str:
    """Format an exception raised while rendering into a short message."""
    error_type = type(exc).__name__
    error_msg = str(exc)

    if error_type == "UndefinedError":
        return f"Undefined variable: {error_msg}"
    if error_type == "TemplateNotFound":
        return f"Template not found: {error_msg}"
    if error_type == "TypeError":
        return f"Type error: {error_msg}"
    if error_type == "AttributeError":
        return f"Attribute error: {error_msg}"

    return f"{error_type}: {error_msg}"


def _write_page(output_dir: Path, page: Page, rendered: str) -> None:
    """Write ``rendered`` to ``<output>/<page url>/index.html``."""
    target_dir = output_dir / page.url.strip("/")
    target_dir.mkdir(parents=True, exist_ok=True)
    (target_dir / "index.html").write_text(rendered, encoding="utf-8")


def _absolutize_links(html: str, root_url: str) -> str:
    """Prefix root-relative ``href``/``src`` values in ``html`` with ``root_url``."""
    return _ROOT_RELATIVE_LINK_RE.sub(
        lambda m: f"{m.group(1)}={m.group(2)}{join_url(root_url, m.group(3))}{m.group(2)}",
        html,
    )
