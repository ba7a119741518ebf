"""Writes diff images and thumbnails for a comparison."""

from __future__ import annotations

import logging
import uuid
from pathlib import Path

from PIL import Image

from design_diff.engine.raster import RasterBuffer, save_raster

logger = logging.getLogger(__name__)

THUMBNAIL_WIDTH = 400


class ArtifactStore:
    """Lays out output files as ``<root>/<comparison_id>/{diff,diff-annotated}.png``."""

    def __init__(self, root: Path):
        self.root = Path(root)

    def new_dir(self, comparison_id: str | None = None) -> Path:
        path = self.root / (comparison_id or f"cmp_{uuid.uuid4().hex[:8]}")
        path.mkdir(parents=True, exist_ok=True)
        return path

    def write_diff(self, directory: Path, raster: RasterBuffer) -> Path:
        return save_raster(raster, directory / "diff.png")

    def write_annotated(self, directory: Path, raster: RasterBuffer) -> Path:
        return save_raster(raster, directory / "diff-annotated.png")

    def write_thumbnail(self, image_path: Path) -> Path | None:
        """Save a 400px-wide WebP next to ``image_path``; None when it fails."""
        thumb_path = image_path.with_name(f"{image_path.stem}-thumb.webp")
        try:
            with Image.open(image_path) as img:
                img.thumbnail((THUMBNAIL_WIDTH, img.height))
                img.save(thumb_path, format="WEBP", quality=80)
            return thumb_path
        except OSError as e:
            logger.warning("Thumbnail generation failed for %s: %s", image_path, e)
            return None
