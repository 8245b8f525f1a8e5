"""Command-line interface for Quill.

Commands:
- new: Scaffold a new Quill site.
- build: Build the site into the output directory.
- serve: Run the preview server with live reload.
- post: Create a new Markdown post interactively.
- increases: Count depth increases in a puzzle input file.
"""

from __future__ import annotations

import logging
import os
import shutil
import subprocess
from datetime import datetime
from pathlib import Path

import click
import questionary
import yaml

from . import __version__

logger = logging.getLogger(__name__)

_TEMPLATES_DIR = Path(__file__).parent / "templates" / "default"

LOG_LEVELS = ["critical", "error", "warning", "info", "debug"]

INCREASES_USAGE = "Usage: quill increases FILE"
EXIT_USAGE = 1
EXIT_INPUT_FAILURE = 2


def _configure_logging(level_name: str) -> None:
    env_override = os.getenv("QUILL_LOG_LEVEL")
    level_str = (env_override or level_name or "warning").upper()
    if level_str.lower() not in LOG_LEVELS:
        level_str = "WARNING"
    logging.basicConfig(
        level=getattr(logging, level_str, logging.WARNING),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )
    logger.debug("Logging configured at %s", level_str)


@click.group()
@click.version_option(version=__version__, prog_name="quill")
@click.option(
    "--log-level",
    type=click.Choice(LOG_LEVELS, case_sensitive=False),
    default="warning",
    show_default=True,
    help="Logging level.",
)
def cli(log_level: str):
    """Quill personal site publisher."""
    _configure_logging(log_level)


@cli.command()
@click.argument("name")
def new(name: str):
    """Scaffold a new Quill site."""
    target = Path(name).resolve()
    if target.exists() and any(target.iterdir()):
        raise click.ClickException(
            f"Refusing to initialize into non-empty directory: {target}"
        )
    _scaffold(target)
    click.echo(f"New Quill site created at {target}")


@cli.command()
@click.option("--drafts", is_flag=True, help="Include draft content")
def build(drafts: bool):
    """Build the site into the output directory."""
    project_root = Path.cwd()
    from .build import BuildError, build_site

    try:
        result = build_site(project_root, include_drafts=drafts)
    except BuildError as exc:
        try:
            shown = exc.source_path.relative_to(project_root)
        except ValueError:
            shown = exc.source_path
        click.echo(click.style("Build failed:", fg="red", bold=True), err=True)
        click.echo(click.style(f"  File: {shown}", fg="yellow"), err=True)
        click.echo(click.style(f"  Error: {exc.message}", fg="white"), err=True)
        raise SystemExit(1) from None
    except FileNotFoundError as exc:
        raise click.ClickException(str(exc)) from None
    click.echo(f"Built {len(result.pages)} pages into {result.output_dir}")


@cli.command()
@click.option("--drafts", is_flag=True, help="Include draft content")
@click.option(
    "--port",
    type=int,
    required=False,
    help="Port to run the preview server (overrides quill.yaml)",
)
@click.option(
    "--ws-port",
    type=int,
    required=False,
    help="Port for the live reload websocket (overrides quill.yaml ws_port)",
)
def serve(drafts: bool, port: int | None, ws_port: int | None):
    """Run the preview server with live reload."""
    project_root = Path.cwd()
    from .server import DevServer

    server = DevServer(project_root, http_port=port, ws_port=ws_port)
    server.start(include_drafts=drafts)


@cli.command()
def post():
    """Create a new Markdown post interactively."""
    project_root = Path.cwd()
    site_dir = project_root / "site"

    if not site_dir.exists():
        raise click.ClickException(
            "No site/ directory found. Run this command from a Quill project root."
        )

    folders = _get_content_folders(site_dir)

    folder = questionary.select(
        "Select folder:",
        choices=folders,
        default="posts" if "posts" in folders else None,
        style=_questionary_style(),
    ).ask()
    if folder is None:
        raise click.Abort()

    title = questionary.text(
        "Title:",
        validate=lambda x: len(x.strip()) > 0 or "Title cannot be empty",
        style=_questionary_style(),
    ).ask()
    if title is None:
        raise click.Abort()
    title = title.strip()

    raw_categories = questionary.text(
        "Categories (comma separated):",
        style=_questionary_style(),
    ).ask()
    if raw_categories is None:
        raise click.Abort()

    add_date = questionary.confirm(
        "Prefix filename with today's date? (YYYY-MM-DD-)",
        default=True,
        style=_questionary_style(),
    ).ask()
    if add_date is None:
        raise click.Abort()

    from .utils import normalize_categories, slugify

    now = datetime.now()
    slug = slugify(title)
    filename = f"{now:%Y-%m-%d}-{slug}.md" if add_date else f"{slug}.md"
    target_dir = site_dir if folder == ". (root)" else site_dir / folder
    target_path = target_dir / filename

    if target_path.exists():
        raise click.ClickException(
            f"File already exists: {target_path.relative_to(project_root)}"
        )

    existing = _get_existing_slugs(target_dir)
    if slug in existing:
        raise click.ClickException(
            f"A file with slug '{slug}' already exists: {existing[slug]}"
        )

    frontmatter = {
        "title": title,
        "date": now.date(),
        "categories": normalize_categories(raw_categories),
    }
    target_dir.mkdir(parents=True, exist_ok=True)
    header = yaml.safe_dump(frontmatter, sort_keys=False, allow_unicode=True)
    target_path.write_text(f"---\n{header}---\n\n", encoding="utf-8")

    click.echo(f"Created {target_path.relative_to(project_root)}")


@cli.command(
    context_settings={"ignore_unknown_options": True},
    add_help_option=False,
    short_help="Count depth increases in a puzzle input.",
)
@click.argument("args", nargs=-1, type=click.UNPROCESSED)
def increases(args: tuple[str, ...]):
    """Count readings in FILE larger than the reading before them.

    FILE holds one integer per line. The first reading is never an increase
    and an empty file prints -1. Every token, ``--help`` included, counts
    as an argument.
    """
    if len(args) != 1:
        click.echo(INCREASES_USAGE, err=True)
        raise SystemExit(EXIT_USAGE)

    from .puzzle import PuzzleInputError, count_file_increases

    try:
        result = count_file_increases(Path(args[0]))
    except (OSError, PuzzleInputError) as exc:
        click.echo(click.style("Run failed:", fg="red", bold=True), err=True)
        click.echo(f"  File: {args[0]}", err=True)
        click.echo(f"  Error: {exc}", err=True)
        raise SystemExit(EXIT_INPUT_FAILURE) from None
    click.echo(str(result))


def _get_content_folders(site_dir: Path) -> list[str]:
    """List top-level content folders, excluding ``_`` directories.

    The site root is always offered first.
    """
    folders = sorted(
        path.name
        for path in site_dir.iterdir()
        if path.is_dir() and not path.name.startswith("_")
    )
    folders.insert(0, ". (root)")
    return folders


def _get_existing_slugs(folder: Path) -> dict[str, str]:
    """Map the slug of each Markdown file in ``folder`` to its filename."""
    from .utils import slugify

    slugs: dict[str, str] = {}
    if folder.exists():
        for f in sorted(folder.iterdir()):
            if f.is_file() and f.suffix == ".md":
                slugs[slugify(f.stem.lstrip("_"))] = f.name
    return slugs


def _questionary_style():
    return questionary.Style(
        [
            ("qmark", "fg:cyan bold"),
            ("question", "bold"),
            ("answer", "fg:cyan"),
            ("pointer", "fg:cyan bold"),
            ("highlighted", "fg:cyan bold"),
            ("selected", "fg:cyan"),
        ]
    )


def main():
    """Entry point for the CLI application."""
    cli()


def _scaffold(root: Path) -> None:
    """Copy the default site template into ``root`` and run ``git init``."""
    for src_path in _TEMPLATES_DIR.rglob("*"):
        if src_path.is_dir() or "__pycache__" in src_path.parts:
            continue
        rel_path = src_path.relative_to(_TEMPLATES_DIR)
        dest_path = root / rel_path
        dest_path.parent.mkdir(parents=True, exist_ok=True)
        shutil.copy2(src_path, dest_path)

    site_yaml = root / "data" / "site.yaml"
    site_data = yaml.safe_load(site_yaml.read_text(encoding="utf-8")) or {}
    site_data["title"] = root.name
    site_yaml.write_text(
        yaml.safe_dump(site_data, sort_keys=False, allow_unicode=True),
        encoding="utf-8",
    )

    _try_git_init(root)


def _try_git_init(root: Path) -> None:
    """Initialize a git repository if git is available."""
    if os.environ.get("QUILL_SKIP_GIT_INIT") == "1":
        return
    git_bin = shutil.which("git")
    if not git_bin:
        return
    try:
        subprocess.run(
            [git_bin, "init"],
            cwd=root,
            check=True,
            capture_output=True,
        )
    except (OSError, subprocess.CalledProcessError) as exc:
        # Non-fatal: the user can run git init manually.
        logger.warning("git init failed in %s: %s", root, exc)
