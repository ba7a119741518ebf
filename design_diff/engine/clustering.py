"""Turns a cloud of diff-marked pixels into prioritized regions.

Pipeline: marker extraction, bounded BFS region growing, size filter,
padded bounding boxes, density-guarded merge, scoring, priority banding and
classification, final filtering.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, replace

import numpy as np

from design_diff.errors import ClusteringFailure
from design_diff.models.comparison import DiffRegion, Priority, RegionType
from design_diff.models.config import CompareOptions

from .raster import RasterBuffer

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ClusteringSettings:
    min_region_size: int = 100
    neighborhood_radius: int = 10
    max_merge_distance: float = 50.0
    max_regions: int = 15
    padding: int = 5

    # Merge density guard
    min_merge_density: float = 0.05
    merge_area_ratio: float = 1.5

    @classmethod
    def preset(cls, granularity: str) -> "ClusteringSettings":
        try:
            return GRANULARITY_PRESETS[granularity]
        except KeyError:
            raise ValueError(f"Unknown granularity '{granularity}'") from None

    @classmethod
    def from_options(cls, options: CompareOptions) -> "ClusteringSettings":
        """Resolve per-call options on top of the granularity preset."""
        settings = cls.preset(options.granularity)
        overrides = {
            "min_region_size": options.min_region_size,
            "neighborhood_radius": options.neighborhood_radius,
            "max_merge_distance": options.max_merge_distance,
            "padding": options.padding,
        }
        return replace(
            settings,
            max_regions=options.max_regions,
            **{k: v for k, v in overrides.items() if v is not None},
        )


GRANULARITY_PRESETS: dict[str, ClusteringSettings] = {
    # Component-level boxes: neighbouring text lines fold into one block
    "coarse": ClusteringSettings(),
    # Only touching pixels cluster; suited to icon and glyph level review
    "fine": ClusteringSettings(
        min_region_size=20, neighborhood_radius=2, max_merge_distance=8.0, padding=2,
    ),
}


@dataclass
class _Box:
    """Arena entry for the merge pass. ``x2``/``y2`` are exclusive."""

    x: int
    y: int
    x2: int
    y2: int
    pixel_count: int
    active: bool = True

    @property
    def width(self) -> int:
        return self.x2 - self.x

    @property
    def height(self) -> int:
        return self.y2 - self.y

    @property
    def area(self) -> int:
        return self.width * self.height

    def gap_distance(self, other: "_Box") -> float:
        gap_x = max(0, self.x - other.x2, other.x - self.x2)
        gap_y = max(0, self.y - other.y2, other.y - self.y2)
        return math.sqrt(gap_x * gap_x + gap_y * gap_y)

    def union(self, other: "_Box") -> "_Box":
        return _Box(
            x=min(self.x, other.x),
            y=min(self.y, other.y),
            x2=max(self.x2, other.x2),
            y2=max(self.y2, other.y2),
            pixel_count=self.pixel_count + other.pixel_count,
        )


class RegionClusterer:
    """Groups diff-marked pixels into scored, classified rectangular regions."""

    # Marker signature of the diff engines' red; excludes AA yellow and the
    # greyscale context pixels.
    marker_min_red = 240
    marker_max_green = 40
    marker_max_blue = 40

    # Score weights: position (top of page first), capped relative size, density
    position_weight = 30.0
    size_weight = 1000.0
    size_cap = 40.0
    density_weight = 30.0

    # Classification
    layout_aspect_max = 3.0
    layout_aspect_min = 0.33
    major_area = 10000
    medium_area = 1000

    # Frontiers smaller than this expand all offsets in one broadcast
    broadcast_frontier = 256

    def __init__(self, settings: ClusteringSettings | None = None):
        self.settings = settings or ClusteringSettings()
        radius = self.settings.neighborhood_radius
        # Euclidean disc, so growth fronts stay round
        self._neighbor_offsets = [
            (dx, dy)
            for dy in range(-radius, radius + 1)
            for dx in range(-radius, radius + 1)
            if (dx or dy) and dx * dx + dy * dy <= radius * radius
        ]

    def analyze(self, diff_image: RasterBuffer) -> list[DiffRegion]:
        """Cluster the diff raster into at most ``max_regions`` regions."""
        try:
            return self._analyze(diff_image)
        except ClusteringFailure:
            raise
        except Exception as e:
            raise ClusteringFailure(f"Region clustering failed: {e}") from e

    def _analyze(self, diff_image: RasterBuffer) -> list[DiffRegion]:
        width, height = diff_image.size
        pixels, is_diff = self.extract_diff_pixels(diff_image)
        logger.debug("Extracted %d marker pixels", len(pixels))
        if not pixels.size:
            return []

        clusters = self.grow_clusters(pixels, is_diff, width, height)
        boxes = [self.bounding_box(c, width, height) for c in clusters]
        merged = self.merge_regions(boxes)
        logger.debug("%d clusters, %d regions after merging", len(boxes), len(merged))

        total_pixels = width * height
        scored = []
        for box in merged:
            scored.append((round(self.score(box, height, total_pixels), 2), box))
        scored.sort(key=lambda item: (-item[0], item[1].y, item[1].x))

        regions = self._select(scored)
        logger.info("Clustering kept %d of %d regions", len(regions), len(merged))
        return regions

    # ------------------------------------------------------------------
    # Extraction and growth
    # ------------------------------------------------------------------

    def extract_diff_pixels(self, diff_image: RasterBuffer) -> tuple[np.ndarray, np.ndarray]:
        """Return linear indices of marker pixels (row-major) and a boolean membership mask."""
        arr = np.frombuffer(diff_image.pixels, dtype=np.uint8).reshape(-1, 4)
        mask = (
            (arr[:, 0] > self.marker_min_red)
            & (arr[:, 1] < self.marker_max_green)
            & (arr[:, 2] < self.marker_max_blue)
        )
        return np.flatnonzero(mask), mask

    def grow_clusters(
        self, pixels: np.ndarray, is_diff: np.ndarray, width: int, height: int
    ) -> list[np.ndarray]:
        """BFS region growing with one global visited mask; drops small clusters.

        Each BFS level is expanded for the whole frontier at once. The grid is
        padded by the radius on every side so neighbour lookups need no bounds
        checks. Returned clusters hold linear indices into the unpadded grid.
        """
        r = self.settings.neighborhood_radius
        stride = width + 2 * r
        # Marker pixels not yet visited; the border is never available
        available = np.zeros((height + 2 * r, stride), dtype=bool)
        available[r:r + height, r:r + width] = is_diff.reshape(height, width)
        available = available.ravel()
        slot = np.zeros(available.size, dtype=np.int64)
        steps = np.array(
            [dy * stride + dx for dx, dy in self._neighbor_offsets], dtype=np.int64
        )
        min_size = self.settings.min_region_size

        clusters: list[np.ndarray] = []
        for seed in pixels.tolist():
            start = (seed // width + r) * stride + seed % width + r
            if not available[start]:
                continue
            available[start] = False
            frontier = np.array([start], dtype=np.int64)
            levels = [frontier]
            while frontier.size:
                frontier = self._expand(frontier, steps, available, slot)
                levels.append(frontier)
            cluster = np.concatenate(levels)
            if cluster.size >= min_size:
                rows, cols = np.divmod(cluster, stride)
                clusters.append((rows - r) * width + (cols - r))
        return clusters

    def _expand(
        self, frontier: np.ndarray, steps: np.ndarray, available: np.ndarray, slot: np.ndarray
    ) -> np.ndarray:
        """Claim every available neighbour of ``frontier`` and return them as the next level."""
        if frontier.size < self.broadcast_frontier:
            reached = (frontier[:, None] + steps).ravel()
            reached = reached[available[reached]]
            # One copy per pixel: only the write that landed reads back its own position
            order = np.arange(reached.size)
            slot[reached] = order
            reached = reached[slot[reached] == order]
            available[reached] = False
            return reached

        # Wide fronts: claiming per offset keeps duplicates from piling up
        claimed = []
        for step in steps.tolist():
            reached = frontier + step
            reached = reached[available[reached]]
            available[reached] = False
            claimed.append(reached)
        return np.concatenate(claimed) if claimed else frontier[:0]

    def bounding_box(self, cluster: np.ndarray, width: int, height: int) -> _Box:
        ys, xs = np.divmod(cluster, width)
        pad = self.settings.padding
        return _Box(
            x=max(0, int(xs.min()) - pad),
            y=max(0, int(ys.min()) - pad),
            x2=min(width, int(xs.max()) + 1 + pad),
            y2=min(height, int(ys.max()) + 1 + pad),
            pixel_count=int(cluster.size),
        )

    # ------------------------------------------------------------------
    # Merging
    # ------------------------------------------------------------------

    def merge_regions(self, boxes: list[_Box]) -> list[_Box]:
        """Merge nearby boxes until a fixed point, refusing sparse giant unions."""
        arena = [replace(b) for b in boxes]
        max_dist = self.settings.max_merge_distance
        changed = len(arena) > 1
        while changed:
            changed = False
            for i, current in enumerate(arena):
                if not current.active:
                    continue
                for j in range(i + 1, len(arena)):
                    other = arena[j]
                    if not other.active or current.gap_distance(other) >= max_dist:
                        continue
                    merged = current.union(other)
                    if not self.merge_allowed(current, other, merged):
                        continue
                    arena[i] = current = merged
                    other.active = False
                    changed = True
        return [b for b in arena if b.active]

    def merge_allowed(self, a: _Box, b: _Box, merged: _Box) -> bool:
        density = merged.pixel_count / merged.area
        inflated = merged.area > (a.area + b.area) * self.settings.merge_area_ratio
        return not (density < self.settings.min_merge_density and inflated)

    # ------------------------------------------------------------------
    # Scoring, classification, selection
    # ------------------------------------------------------------------

    def score(self, box: _Box, image_height: int, total_pixels: int) -> float:
        area = box.area
        position = self.position_weight * (1 - box.y / image_height)
        size = min(area / total_pixels * self.size_weight, self.size_cap)
        density = self.density_weight * (box.pixel_count / area)
        return position + size + density

    @staticmethod
    def priority_for(score: float) -> Priority:
        if score >= 90:
            return "critical"
        if score >= 70:
            return "high"
        if score >= 50:
            return "medium"
        return "low"

    def classify(self, width: int, height: int) -> RegionType:
        aspect = width / height
        area = width * height
        if aspect > self.layout_aspect_max or aspect < self.layout_aspect_min:
            return "layout"
        if area > self.major_area:
            return "major"
        if area > self.medium_area:
            return "medium"
        return "minor"

    def _select(self, scored: list[tuple[float, _Box]]) -> list[DiffRegion]:
        """Keep every critical/high region, then fill up with medium/low ones.

        ``scored`` must already be sorted by descending score.
        """
        important = [(s, b) for s, b in scored if self.priority_for(s) in ("critical", "high")]
        others = [(s, b) for s, b in scored if self.priority_for(s) in ("medium", "low")]
        room = max(0, self.settings.max_regions - len(important))
        kept = important + others[:room]
        kept.sort(key=lambda item: (-item[0], item[1].y, item[1].x))

        regions = []
        for region_id, (score, box) in enumerate(kept, start=1):
            priority = self.priority_for(score)
            region_type = self.classify(box.width, box.height)
            regions.append(DiffRegion(
                id=region_id,
                x=box.x,
                y=box.y,
                width=box.width,
                height=box.height,
                pixel_count=box.pixel_count,
                score=score,
                priority=priority,
                type=region_type,
                description=describe_region(region_id, priority, region_type, box.width, box.height),
            ))
        return regions


_TYPE_LABELS = {
    "layout": "layout difference",
    "major": "major difference",
    "medium": "medium difference",
    "minor": "minor difference",
}


def describe_region(region_id: int, priority: str, region_type: str, width: int, height: int) -> str:
    label = _TYPE_LABELS.get(region_type, "difference")
    return f"{priority.capitalize()} {label} #{region_id} ({width}x{height}px)"
