from __future__ import annotations

import numpy as np

from buddhabrot.buffer import Buffer
from buddhabrot.errors import ShapeMismatchError
from buddhabrot.geometry import Window

class HitBuffer:
    """Count buffer addressed by points of the complex plane inside ``window``."""

    __slots__ = ("buffer", "window")

    def __init__(self, width: int, height: int, window: Window):
        self.buffer = Buffer.zeros(width, height, np.uint32)
        self.window = window

    @property
    def width(self) -> int:
        return self.buffer.width

    @property
    def height(self) -> int:
        return self.buffer.height

    def hit(self, re: float, im: float, weight: int = 1) -> bool:
        pixel = self.window.to_pixel(re, im, self.width, self.height)
        if pixel is None:
            return False
        x, y = pixel
        self.buffer.data[y, x] += np.uint32(weight)
        return True

    def record(self, points: np.ndarray, weight: int = 1) -> int:
        """Add ``weight`` at the pixel of every ``(re, im)`` row that lands on the grid."""
        if len(points) == 0:
            return 0
        w = self.window
        xs = (points[:, 0] - w.min.re) / (w.max.re - w.min.re) * self.width
        ys = (points[:, 1] - w.min.im) / (w.max.im - w.min.im) * self.height
        keep = (xs >= 0) & (ys >= 0) & (xs < self.width) & (ys < self.height)
        if not keep.any():
            return 0
        np.add.at(self.buffer.data, (ys[keep].astype(np.intp), xs[keep].astype(np.intp)), np.uint32(weight))
        return int(keep.sum())

    def __iadd__(self, other: "HitBuffer") -> "HitBuffer":
        if self.window != other.window:
            raise ShapeMismatchError(f"cannot merge hits over {other.window} into {self.window}")
        self.buffer += other.buffer
        return self
