"""RGBA raster buffer shared by every pipeline stage."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path

import numpy as np
from PIL import Image, UnidentifiedImageError

from design_diff.errors import AssetNotFound, ImageDecodeError

logger = logging.getLogger(__name__)

TRANSPARENT = (0, 0, 0, 0)


@dataclass(frozen=True)
class RasterBuffer:
    """An RGBA8 pixel grid stored row-major, 4 bytes per pixel."""

    width: int
    height: int
    pixels: bytes

    def __post_init__(self) -> None:
        if self.width < 0 or self.height < 0:
            raise ValueError(f"Negative raster size: {self.width}x{self.height}")
        expected = self.width * self.height * 4
        if len(self.pixels) != expected:
            raise ValueError(
                f"Pixel buffer has {len(self.pixels)} bytes, expected {expected} "
                f"for {self.width}x{self.height} RGBA"
            )

    @property
    def size(self) -> tuple[int, int]:
        return self.width, self.height

    @property
    def pixel_count(self) -> int:
        return self.width * self.height

    @classmethod
    def blank(cls, width: int, height: int, color: tuple[int, int, int, int] = TRANSPARENT) -> "RasterBuffer":
        return cls(width, height, bytes(color) * (width * height))

    @classmethod
    def from_image(cls, image: Image.Image) -> "RasterBuffer":
        rgba = image if image.mode == "RGBA" else image.convert("RGBA")
        return cls(rgba.width, rgba.height, rgba.tobytes())

    @classmethod
    def from_array(cls, array: np.ndarray) -> "RasterBuffer":
        """Build a raster from an (height, width, 4) uint8 array."""
        if array.ndim != 3 or array.shape[2] != 4:
            raise ValueError(f"Expected an (h, w, 4) array, got shape {array.shape}")
        height, width = array.shape[:2]
        return cls(width, height, np.ascontiguousarray(array, dtype=np.uint8).tobytes())

    def to_image(self) -> Image.Image:
        """Return a new PIL image; changes to it never touch this buffer."""
        return Image.frombytes("RGBA", (self.width, self.height), self.pixels)

    def to_array(self) -> np.ndarray:
        """Return a writable (height, width, 4) uint8 copy of the pixels."""
        return np.frombuffer(self.pixels, dtype=np.uint8).reshape(self.height, self.width, 4).copy()

    def pixel(self, x: int, y: int) -> tuple[int, int, int, int]:
        if not (0 <= x < self.width and 0 <= y < self.height):
            raise IndexError(f"Pixel ({x}, {y}) outside {self.width}x{self.height}")
        i = (y * self.width + x) * 4
        r, g, b, a = self.pixels[i:i + 4]
        return r, g, b, a

    def pad_to(self, width: int, height: int) -> "RasterBuffer":
        """Extend the canvas at the bottom/right with transparent pixels."""
        if width < self.width or height < self.height:
            raise ValueError(
                f"Cannot pad {self.width}x{self.height} down to {width}x{height}"
            )
        if (width, height) == self.size:
            return self
        canvas = np.zeros((height, width, 4), dtype=np.uint8)
        if self.pixel_count:
            canvas[:self.height, :self.width] = np.frombuffer(
                self.pixels, dtype=np.uint8
            ).reshape(self.height, self.width, 4)
        return RasterBuffer.from_array(canvas)


def load_raster(path: str | Path) -> RasterBuffer:
    """Decode an image file into an RGBA raster."""
    path = Path(path)
    if not path.is_file():
        raise AssetNotFound(f"Image not found: {path}")
    try:
        with Image.open(path) as img:
            img.load()
            raster = RasterBuffer.from_image(img)
    except UnidentifiedImageError as e:
        raise ImageDecodeError(f"Unsupported or corrupt image {path}: {e}") from e
    except PermissionError as e:
        raise AssetNotFound(f"Image not readable: {path}") from e
    except OSError as e:
        raise ImageDecodeError(f"Failed to decode image {path}: {e}") from e
    logger.debug("Loaded %s (%dx%d)", path, raster.width, raster.height)
    return raster


def save_raster(raster: RasterBuffer, path: str | Path) -> Path:
    """Write a raster as PNG, creating parent directories."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    raster.to_image().save(path, format="PNG")
    logger.debug("Saved raster to %s", path)
    return path
