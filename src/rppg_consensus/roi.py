"""Region sampling: chrominance over rectangles and detection miss tolerance.

Face and landmark detection live outside this package. Callers hand in the
region rectangles of the latest detection (or ``None`` when detection failed)
and get back one chrominance value per region for ``VitalsPipeline.tick``.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Mapping, Optional, Tuple

import numpy as np


@dataclass(frozen=True)
class Rect:
    x: int
    y: int
    width: int
    height: int

    def inside(self, frame_w: int, frame_h: int) -> bool:
        return (
            self.width > 0
            and self.height > 0
            and self.x >= 0
            and self.y >= 0
            and self.x + self.width <= frame_w
            and self.y + self.height <= frame_h
        )


def mean_rgb(frame_rgb: np.ndarray, rect: Optional[Rect] = None) -> Tuple[float, float, float]:
    """Compute mean RGB over a rectangle (whole frame when ``rect`` is None).

    Args:
        frame_rgb: HxWx3 uint8 or float array in RGB order.
        rect: area to average; must lie inside the frame.
    """
    if frame_rgb.ndim != 3 or frame_rgb.shape[2] != 3:
        raise ValueError("frame_rgb must be HxWx3 array")
    rgb = frame_rgb.astype(np.float64)
    if rect is not None:
        h, w = frame_rgb.shape[:2]
        if not rect.inside(w, h):
            raise ValueError("rect must lie inside the frame")
        rgb = rgb[rect.y : rect.y + rect.height, rect.x : rect.x + rect.width]
    r_mean, g_mean, b_mean = rgb.reshape(-1, 3).mean(axis=0)
    return float(r_mean), float(g_mean), float(b_mean)


def chrominance(frame_rgb: np.ndarray, rect: Rect) -> Optional[float]:
    """G - 0.3 R - 0.3 B over ``rect``; None when the rect is out of bounds."""
    h, w = frame_rgb.shape[:2]
    if not rect.inside(w, h):
        return None
    r, g, b = mean_rgb(frame_rgb, rect)
    return g - 0.3 * r - 0.3 * b


class DetectionCache:
    """Keep the last region geometry across short detection dropouts.

    After ``max_miss_count`` consecutive misses the geometry is considered
    stale and no samples are produced until detection returns.
    """

    def __init__(self, max_miss_count: int = 10) -> None:
        self.max_miss_count = int(max_miss_count)
        self._rects: Optional[Dict[str, Rect]] = None
        self.miss_count = 0

    def update(self, rects: Optional[Mapping[str, Rect]]) -> Optional[Dict[str, Rect]]:
        """Register a detection result and return the geometry to sample."""
        if rects:
            self._rects = dict(rects)
            self.miss_count = 0
            return self._rects
        self.miss_count += 1
        if self._rects is not None and self.miss_count < self.max_miss_count:
            return self._rects
        return None

    @property
    def stale(self) -> bool:
        return self._rects is None or self.miss_count >= self.max_miss_count

    def reset(self) -> None:
        self._rects = None
        self.miss_count = 0

    def sample(
        self, frame_rgb: np.ndarray, rects: Optional[Mapping[str, Rect]]
    ) -> Dict[str, Optional[float]]:
        """Per-region chrominance for one frame; missing regions map to None."""
        use = self.update(rects)
        if use is None:
            return {}
        return {name: chrominance(frame_rgb, rect) for name, rect in use.items()}
