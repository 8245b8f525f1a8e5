"""Static asset pipeline for Quill.

Everything under ``assets/`` is copied into ``<output>/assets/`` with the
same relative layout, each file going through the first matching processor
from ``asset_processors``.
"""

from __future__ import annotations

import logging
from pathlib import Path

from .asset_processors import AssetProcessorRegistry, create_default_registry

logger = logging.getLogger(__name__)


class AssetPipeline:
    """Copies and optimizes a project's static assets.

    Attributes:
        project_root: Root directory of the project.
        assets_dir: Directory containing source assets.
        output_dir: Directory where processed assets are written.
        processor_registry: Registry of asset processors.
    """

    def __init__(
        self,
        project_root: Path,
        output_dir: Path,
        processor_registry: AssetProcessorRegistry | None = None,
    ):
        self.project_root = project_root
        self.assets_dir = project_root / "assets"
        self.output_dir = output_dir
        self.processor_registry = processor_registry or create_default_registry()

    def run(self) -> int:
        """Process every asset file.

        Returns:
            Number of files written.
        """
        if not self.assets_dir.exists():
            return 0

        target = self.output_dir / "assets"
        target.mkdir(parents=True, exist_ok=True)

        written = 0
        for item in sorted(self.assets_dir.rglob("*")):
            if item.is_dir():
                continue
            rel = item.relative_to(self.assets_dir)
            if self.processor_registry.process(item, target / rel):
                written += 1
        logger.info("Processed %d assets into %s", written, target)
        return written
