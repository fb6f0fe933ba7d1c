"""CIE-Lab colour helpers used when compositing bands.

Conversion goes through scikit-image (sRGB, D65); blending is linear
interpolation in Lab space.
"""

from __future__ import annotations

from typing import Tuple

import numpy as np
from skimage import color as skcolor

RGB = Tuple[int, int, int]

def rgb_to_lab(rgb: RGB) -> np.ndarray:
    """Convert an 8-bit sRGB triple to an ``(L, a, b)`` float array."""
    arr = np.asarray(rgb, dtype=np.float64).reshape(1, 1, 3) / 255.0
    return skcolor.rgb2lab(arr)[0, 0]

def lab_to_rgb8(lab: np.ndarray) -> np.ndarray:
    """Convert Lab values of shape ``(..., 3)`` to 8-bit sRGB, clipping out-of-gamut colours."""
    lab = np.asarray(lab, dtype=np.float64)
    rgb = skcolor.lab2rgb(lab.reshape(-1, 1, 3)).reshape(lab.shape)
    return np.clip(np.rint(rgb * 255.0), 0, 255).astype(np.uint8)

def blend(a: np.ndarray, b: np.ndarray, weight) -> np.ndarray:
    """Interpolate from ``a`` (weight 0) to ``b`` (weight 1)."""
    return a + (b - a) * weight

def composite(base: np.ndarray, lab: np.ndarray, alpha: np.ndarray) -> np.ndarray:
    """Lay ``lab`` colours with per-pixel ``alpha`` over a uniform ``base`` colour."""
    return blend(np.asarray(base, dtype=np.float64), lab, np.asarray(alpha)[..., None])
