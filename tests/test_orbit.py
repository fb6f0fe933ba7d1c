import numpy as np

from buddhabrot.engine.orbit import (
    BOUNDED,
    Escaped,
    classify,
    classify_filtered,
    count_inside,
    in_main_bulbs,
    iterate,
    new_trajectory,
    trace_orbit,
)
from buddhabrot.geometry import point


def test_iterate_known_orbits():
    # c = 1: z = 1, 2, 5 -> |2| is not beyond the bailout, 5 is.
    seen = []
    assert iterate(0j, 1 + 0j, 2.0, 10, lambda i, z: seen.append((i, z))) == 2
    assert seen == [(0, 1 + 0j), (1, 2 + 0j)]
    assert iterate(0j, -1 + 0j, 2.0, 100) is None


def test_classify():
    assert classify(point(1.0, 0.0), 2.0, 10) == Escaped(2)
    assert classify(point(0.0, 0.0), 2.0, 10) is BOUNDED
    assert classify(point(3.0, 3.0), 2.0, 10) == Escaped(0)


def test_trace_orbit_matches_observer():
    out = new_trajectory(200)
    for c in [point(0.3, 0.0), point(-0.75, 0.11), point(-1.9, 0.01), point(0.26, 0.5)]:
        visited = []
        expected = iterate(0j, complex(c.re, c.im), 2.0, 200, lambda i, z: visited.append(z))
        k = trace_orbit(c.re, c.im, 2.0, 200, out)
        assert k == (-1 if expected is None else expected)
        n = len(visited)
        assert np.allclose(out[:n, 0], [z.real for z in visited])
        assert np.allclose(out[:n, 1], [z.imag for z in visited])


def test_count_inside_is_strict():
    pts = np.array([[0.0, 0.0], [1.0, 0.0], [0.5, 0.5], [2.0, 0.1]])
    assert count_inside(pts, 4, -1.0, -1.0, 1.0, 1.0) == 2
    assert count_inside(pts, 1, -1.0, -1.0, 1.0, 1.0) == 1


def test_bulb_filter_flags_known_interior_points():
    assert in_main_bulbs(point(0.0, 0.0))
    assert in_main_bulbs(point(-1.0, 0.0))
    assert in_main_bulbs(point(0.2, 0.1))
    assert not in_main_bulbs(point(0.3, 0.0))
    assert not in_main_bulbs(point(-1.5, 0.0))


def test_bulb_filter_has_no_false_negatives():
    cap = 100
    for re in np.linspace(-2.0, 0.6, 131):
        for im in np.linspace(-1.2, 1.2, 121):
            c = point(re, im)
            brute = classify(c, 2.0, cap)
            if isinstance(brute, Escaped):
                assert classify_filtered(c, 2.0, cap) == brute, c
