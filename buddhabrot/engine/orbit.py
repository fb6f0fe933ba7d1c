"""Escape-time iteration of ``z <- z^2 + c``.

:func:`iterate` is the reference form and reports each visited point to an
observer; :func:`trace_orbit` is the compiled kernel the sampling loop uses,
writing the same points into a preallocated array instead.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Optional, Union

import numpy as np
from numba import njit

from buddhabrot.geometry import Point

Observer = Callable[[int, complex], None]

@dataclass(frozen=True)
class Escaped:
    iteration: int

class _Bounded:
    def __repr__(self) -> str:
        return "BOUNDED"

BOUNDED = _Bounded()
Classification = Union[Escaped, _Bounded]

def iterate(z: complex, c: complex, bailout: float, iterations: int, observer: Optional[Observer] = None) -> Optional[int]:
    """Iterate at most ``iterations`` times.

    Returns the index of the step at which ``|z|`` first exceeds ``bailout``,
    or None if the orbit stays bounded. ``observer(i, z)`` is called for every
    step whose result did not escape.
    """
    limit = bailout * bailout
    for i in range(iterations):
        z = z * z + c
        if z.real * z.real + z.imag * z.imag > limit:
            return i
        if observer is not None:
            observer(i, z)
    return None

@njit(nogil=True, cache=True)
def trace_orbit(c_re, c_im, bailout, iterations, out):
    """Iterate from the origin, storing ``(re, im)`` of each non-escaping step in ``out``.

    Returns the escape index, or -1 if bounded after ``iterations`` steps.
    """
    limit = bailout * bailout
    x = 0.0
    y = 0.0
    for i in range(iterations):
        xt = x * x - y * y + c_re
        y = 2.0 * x * y + c_im
        x = xt
        if x * x + y * y > limit:
            return i
        out[i, 0] = x
        out[i, 1] = y
    return -1

@njit(nogil=True, cache=True)
def count_inside(points, n, re_min, im_min, re_max, im_max):
    hits = 0
    for i in range(n):
        x = points[i, 0]
        y = points[i, 1]
        if x > re_min and x < re_max and y > im_min and y < im_max:
            hits += 1
    return hits

def in_main_bulbs(c: Point) -> bool:
    """Cheap membership test for the main cardioid and the period-2 bulb.

    Points inside either region never escape, so they can be skipped before
    iterating.
    """
    re, im = c
    q = (re - 0.25) * (re - 0.25) + im * im
    if q * (q + re - 0.25) <= 0.25 * im * im:
        return True
    return (re + 1.0) * (re + 1.0) + im * im <= 0.0625

def classify(c: Point, bailout: float, iterations: int) -> Classification:
    k = iterate(0j, complex(c.re, c.im), bailout, iterations)
    return BOUNDED if k is None else Escaped(k)

def classify_filtered(c: Point, bailout: float, iterations: int) -> Classification:
    if in_main_bulbs(c):
        return BOUNDED
    return classify(c, bailout, iterations)

def new_trajectory(iterations: int) -> np.ndarray:
    return np.empty((iterations, 2), dtype=np.float64)
