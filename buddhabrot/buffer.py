"""Generic 2D accumulation buffer.

A :class:`Buffer` wraps a row-major numpy array of shape ``(height, width)``
or ``(height, width, channels)``. The element dtype decides which operations
make sense: unsigned counts are summed, persisted and normalised; unit floats
are tone mapped; Lab+alpha vectors are mixed and composited; 8-bit triples are
flattened for image export.
"""

from __future__ import annotations

import os
from typing import Optional, Sequence

import numpy as np

from buddhabrot import color
from buddhabrot.errors import CorruptPersistedBuffer, ShapeMismatchError
from buddhabrot.util.logging_setup import get_logger

CELL_DTYPE = np.dtype("<u4")

class Buffer:
    __slots__ = ("width", "height", "data")

    def __init__(self, width: int, height: int, data: np.ndarray):
        if data.shape[:2] != (height, width):
            raise ShapeMismatchError(f"data of shape {data.shape} for a {width}x{height} buffer")
        self.width = width
        self.height = height
        self.data = data

    @classmethod
    def zeros(cls, width: int, height: int, dtype=np.uint32, channels: Optional[int] = None) -> "Buffer":
        shape = (height, width) if channels is None else (height, width, channels)
        return cls(width, height, np.zeros(shape, dtype=dtype))

    @property
    def channels(self) -> Optional[int]:
        return self.data.shape[2] if self.data.ndim == 3 else None

    @property
    def cells(self) -> np.ndarray:
        """Flat row-major view: ``cells[y * width + x]`` is pixel ``(x, y)``."""
        return self.data.reshape((self.width * self.height,) + self.data.shape[2:])

    def get(self, x: int, y: int):
        return self.data[y, x]

    def set(self, x: int, y: int, value) -> None:
        self.data[y, x] = value

    def clone(self) -> "Buffer":
        return Buffer(self.width, self.height, self.data.copy())

    def _like(self, data: np.ndarray) -> "Buffer":
        return Buffer(self.width, self.height, data)

    def _check_shape(self, other: "Buffer") -> None:
        if self.data.shape != other.data.shape:
            raise ShapeMismatchError(f"cannot combine {self.data.shape} with {other.data.shape}")

    def _sum(self, other: "Buffer") -> np.ndarray:
        self._check_shape(other)
        a, b = self.data, other.data
        if a.dtype.kind != "u" or b.dtype.kind != "u" or a.dtype.itemsize >= 8:
            return a + b
        # Unsigned counts saturate instead of wrapping around to small values.
        limit = np.iinfo(a.dtype).max
        wide = a.astype(np.uint64) + b.astype(np.uint64)
        saturated = int(np.count_nonzero(wide > limit))
        if saturated:
            get_logger().warning("%s cells saturated at %s while adding buffers", saturated, limit)
            np.minimum(wide, limit, out=wide)
        return wide.astype(a.dtype)

    def add(self, other: "Buffer") -> "Buffer":
        return self._like(self._sum(other))

    __add__ = add

    def __iadd__(self, other: "Buffer") -> "Buffer":
        self.data[...] = self._sum(other)
        return self

    def total(self) -> int:
        return int(self.data.sum(dtype=np.uint64))

    # -- normalisation ---------------------------------------------------

    def _is_float(self) -> bool:
        return self.data.dtype.kind == "f"

    def _require_float(self, op: str) -> None:
        if not self._is_float():
            raise TypeError(f"{op} needs a float buffer, got {self.data.dtype}")

    def to_u8(self) -> "Buffer":
        """Map to bytes.

        Count buffers are divided by their own maximum so the brightest cell
        becomes 255; float buffers are taken as unit intensities and clamped.
        """
        if self._is_float():
            return self._like(np.clip(self.data * 255.0, 0.0, 255.0).astype(np.uint8))
        counts = self.data.astype(np.uint64)
        peak = counts.max() if counts.size else 0
        if peak == 0:
            return self._like(np.zeros(self.data.shape, dtype=np.uint8))
        return self._like((counts * 255 // peak).astype(np.uint8))

    def to_f32(self) -> "Buffer":
        peak = float(self.data.max()) if self.data.size else 0.0
        if peak == 0.0:
            return self._like(np.zeros(self.data.shape, dtype=np.float32))
        return self._like((self.data / peak).astype(np.float32))

    # -- response curves on unit-float buffers ---------------------------

    def polynomial(self, a: float) -> "Buffer":
        """``x ** (1/a)`` for ``a >= 1``; identity at 1, flattens towards 1 as ``a`` grows."""
        self._require_float("polynomial")
        if a < 1:
            raise ValueError("polynomial response needs a >= 1")
        return self._like(np.power(self.data, 1.0 / a).astype(np.float32))

    def exponential(self, a: float) -> "Buffer":
        """``(1 - e^(-a x)) / (1 - e^(-a))`` for ``a > 0``; identity as ``a -> 0``."""
        self._require_float("exponential")
        if a <= 0:
            raise ValueError("exponential response needs a > 0")
        divisor = -np.expm1(-a)
        return self._like((-np.expm1(-a * self.data) / divisor).astype(np.float32))

    def expose(self, a: float) -> "Buffer":
        self._require_float("expose")
        return self._like((self.data * a).astype(np.float32))

    # -- colour ----------------------------------------------------------

    def to_lab(self, lab: Sequence[float]) -> "Buffer":
        """Paint every pixel ``lab`` with alpha equal to its intensity."""
        self._require_float("to_lab")
        out = np.empty((self.height, self.width, 4), dtype=np.float32)
        out[..., :3] = np.asarray(lab, dtype=np.float32)
        out[..., 3] = self.data
        return self._like(out)

    def to_lab_rgb(self, rgb: color.RGB) -> "Buffer":
        return self.to_lab(color.rgb_to_lab(rgb))

    @classmethod
    def mix(cls, buffers: Sequence["Buffer"]) -> "Buffer":
        """Fold Lab+alpha buffers in order: layer ``j`` is blended with the running result at weight ``1/(j+1)``."""
        if not buffers:
            raise ValueError("mix needs at least one buffer")
        first = buffers[0]
        mixed = first.data.astype(np.float32)
        for j, b in enumerate(buffers[1:], start=1):
            first._check_shape(b)
            mixed = color.blend(b.data, mixed, 1.0 / (j + 1))
        return first._like(mixed.astype(np.float32))

    def to_rgb8(self, base_lab: Sequence[float]) -> "Buffer":
        """Composite Lab+alpha pixels over ``base_lab`` and convert to 8-bit RGB."""
        if self.channels != 4:
            raise TypeError("to_rgb8 needs a Lab+alpha buffer")
        lab = color.composite(base_lab, self.data[..., :3].astype(np.float64), self.data[..., 3])
        return self._like(color.lab_to_rgb8(lab))

    def to_rgb8_rgb(self, rgb: color.RGB) -> "Buffer":
        return self.to_rgb8(color.rgb_to_lab(rgb))

    @classmethod
    def join(cls, b1: "Buffer", b2: "Buffer", b3: "Buffer") -> "Buffer":
        """Zip three single-channel byte buffers into one RGB buffer."""
        b1._check_shape(b2)
        b1._check_shape(b3)
        return b1._like(np.stack([b1.data, b2.data, b3.data], axis=-1).astype(np.uint8))

    def flatten(self) -> bytes:
        """Row-major, channel-interleaved bytes for image export."""
        return self.data.astype(np.uint8, copy=False).tobytes()

    def inverse(self) -> "Buffer":
        return self._like((255 - self.data.astype(np.int16)).astype(np.uint8))

    # -- persistence -----------------------------------------------------

    def store(self, path: str) -> None:
        """Write cells as little-endian uint32, row-major, no header."""
        tmp = f"{path}.tmp"
        with open(tmp, "wb") as f:
            f.write(self.data.astype(CELL_DTYPE).tobytes())
        os.replace(tmp, path)

    @classmethod
    def load(cls, width: int, height: int, path: str) -> "Buffer":
        with open(path, "rb") as f:
            raw = f.read()
        expected = width * height * CELL_DTYPE.itemsize
        if len(raw) != expected:
            raise CorruptPersistedBuffer(path, expected, len(raw))
        data = np.frombuffer(raw, dtype=CELL_DTYPE).astype(np.uint32).reshape(height, width)
        return cls(width, height, data)

    def __repr__(self) -> str:
        return f"Buffer({self.width}x{self.height}, dtype={self.data.dtype}, channels={self.channels})"
