from __future__ import annotations

from dataclasses import dataclass
from typing import NamedTuple, Tuple

import numpy as np

class Point(NamedTuple):
    """A value in the complex plane, stored at single precision."""

    re: float
    im: float

def point(re: float, im: float) -> Point:
    return Point(float(np.float32(re)), float(np.float32(im)))

@dataclass(frozen=True)
class Window:
    """Axis-aligned rectangle ``min..max`` of the complex plane."""

    min: Point
    max: Point

    @classmethod
    def from_center(cls, center: Tuple[float, float], size: float) -> "Window":
        half = size / 2.0
        return cls(point(center[0] - half, center[1] - half), point(center[0] + half, center[1] + half))

    def to_pixel(self, re: float, im: float, width: int, height: int) -> Tuple[int, int] | None:
        """Map a point to pixel coordinates, or None if it falls outside the grid."""
        x = (re - self.min.re) / (self.max.re - self.min.re) * width
        y = (im - self.min.im) / (self.max.im - self.min.im) * height
        if x < 0 or y < 0 or x >= width or y >= height:
            return None
        return int(x), int(y)
