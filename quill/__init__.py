"""Quill personal site publisher.

Quill builds a personal website from Markdown and Jinja2 templates into a
static directory that any host can serve, previews it locally with live
reload, and carries the depth-reading puzzle solver from the site's Advent of
Code walkthrough.

The main entry point is the CLI module, which provides commands for
scaffolding new sites, writing posts, building, previewing and running the
puzzle solver.
"""

__all__ = ["__version__"]
__version__ = "0.1.0"
