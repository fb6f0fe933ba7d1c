import numpy as np
import pytest

from buddhabrot.engine.deadline import Deadline
from buddhabrot.engine.hits import HitBuffer
from buddhabrot.engine.orbit import Escaped, classify, iterate
from buddhabrot.engine.sampler import GuidedSampler, UniformSampler
from buddhabrot.engine.worker import Worker, WorkerResult
from buddhabrot.geometry import Window, point
from buddhabrot.pipeline import merge, run_workers

from conftest import make_config


def _escaping_at(k, cap=60):
    # Real c just right of 1/4 escapes ever later as c approaches 1/4.
    for re in np.linspace(0.32, 0.26, 6001):
        c = point(re, 0.0)
        if classify(c, 2.0, cap) == Escaped(k):
            return c
    raise AssertionError(f"no real candidate escaping at {k}")


def _pixels(c, config, lo, hi):
    pixels = []

    def observe(i, z):
        if lo <= i < hi:
            pixels.append(config.window.to_pixel(z.real, z.imag, config.width, config.height))

    iterate(0j, complex(c.re, c.im), 2.0, config.iteration_budget, observe)
    return pixels


def test_fixed_candidates_record_only_the_escaping_orbit():
    config = make_config()
    c = _escaping_at(23)
    seq = iter([point(0.0, 0.0), point(-1.0, 0.0), c, point(3.0, 3.0), point(0.0, 0.5)])
    worker = Worker(config, UniformSampler(config, np.random.default_rng(0), source=lambda: next(seq)))
    recorded = [worker.step() for _ in range(5)]

    # Only c escapes inside [10, 50); 3+3i escapes at 0 and i/2 is bounded.
    assert recorded == [False, False, True, True, False]
    data = worker.buffers[0].buffer.data
    expected = _pixels(c, config, 10, 23)
    assert len(expected) == 13
    assert data.sum() == 13
    nonzero = {(int(x), int(y)) for y, x in zip(*np.nonzero(data))}
    assert nonzero == set(expected)
    x, y = expected[0]
    assert data[y, x] > 0


def test_single_pixel_grid_collects_the_whole_band_segment():
    config = make_config(width=1, height=1)
    c = _escaping_at(23)
    worker = Worker(config, UniformSampler(config, np.random.default_rng(0), source=lambda: c))
    worker.step()
    assert np.count_nonzero(worker.buffers[0].buffer.data) == 1
    assert worker.buffers[0].buffer.get(0, 0) == 13


def test_bands_select_by_escape_iteration():
    config = make_config(bands=[
        {"min_iterations": 0, "max_iterations": 20},
        {"min_iterations": 5, "max_iterations": 30},
        {"min_iterations": 24, "max_iterations": 50},
    ])
    c = _escaping_at(23)
    worker = Worker(config, UniformSampler(config, np.random.default_rng(0), source=lambda: c))
    worker.step()
    assert [hb.buffer.total() for hb in worker.buffers] == [0, 18, 0]


def test_per_band_shape_and_window():
    config = make_config(bands=[
        {"min_iterations": 0, "max_iterations": 50},
        {"min_iterations": 0, "max_iterations": 50, "width": 8, "height": 4,
         "window": {"min": [0.0, -0.5], "max": [1.0, 0.5]}},
    ])
    worker = Worker(config, UniformSampler(config, np.random.default_rng(0), source=lambda: point(0.3, 0.0)))
    worker.step()
    wide, narrow = worker.buffers
    assert wide.buffer.data.shape == (64, 64)
    assert narrow.buffer.data.shape == (4, 8)
    assert narrow.window.min == point(0.0, -0.5)
    assert wide.buffer.total() > narrow.buffer.total() > 0


def test_guided_weight_applies_to_whole_trajectory():
    config = make_config(sampler="guided", jump_probability=1.0)
    c = _escaping_at(23)
    worker = Worker(config, GuidedSampler(config, np.random.default_rng(0), source=lambda: c))
    worker.step()
    weight = int(50 / worker.sampler.state.hits)
    assert worker.buffers[0].buffer.total() == 13 * weight


def test_run_stops_at_deadline(clock):
    config = make_config()
    worker = Worker(config, UniformSampler(config, np.random.default_rng(0)))

    class Ticking:
        def __call__(self):
            clock.now += 0.01
            return clock.now

    result = worker.run(Deadline(0.5, clock=Ticking()))
    assert isinstance(result, WorkerResult)
    assert result.proposals > 0
    assert result.elapsed > 0.5


def test_merge_sums_workers():
    config = make_config(width=2, height=2)
    results = []
    for value in (1, 2, 3):
        w = Worker(config, UniformSampler(config, np.random.default_rng(0)))
        w.buffers[0].buffer.data[:] = value
        results.append(WorkerResult(w.buffers, samples=value, proposals=10, elapsed=0.1 * value))
    cycle = merge(config, results)
    assert cycle.buffers[0].buffer.data.tolist() == [[6, 6], [6, 6]]
    assert cycle.samples == 6
    assert cycle.proposals == 30
    assert cycle.elapsed == pytest.approx(0.3)


def test_inline_workers_produce_samples():
    config = make_config(threads=2, duration=0.2, sampler="guided")
    results = run_workers(config, inline=True, entropy=1234)
    assert len(results) == 2
    assert all(r.buffers[0].buffer.data.shape == (64, 64) for r in results)
    assert sum(r.samples for r in results) > 0


def test_process_pool_workers():
    config = make_config(threads=2, duration=0.2)
    results = run_workers(config)
    assert len(results) == 2
    merged = merge(config, results)
    assert merged.buffers[0].buffer.total() == sum(r.buffers[0].buffer.total() for r in results)


def test_hit_buffer_pixel_mapping():
    hb = HitBuffer(4, 2, Window(point(0.0, 0.0), point(4.0, 2.0)))
    assert hb.hit(0.0, 0.0)
    assert hb.hit(3.99, 1.5, weight=5)
    assert not hb.hit(4.0, 1.0)
    assert not hb.hit(-0.01, 1.0)
    assert hb.buffer.get(0, 0) == 1
    assert hb.buffer.get(3, 1) == 5
    assert hb.record(np.array([[0.5, 0.5], [0.6, 0.4], [9.0, 0.0]]), weight=2) == 2
    assert hb.buffer.get(0, 0) == 5


def test_hit_buffers_merge_only_over_the_same_window():
    a = HitBuffer(2, 2, Window(point(0.0, 0.0), point(1.0, 1.0)))
    b = HitBuffer(2, 2, Window(point(0.0, 0.0), point(2.0, 2.0)))
    with pytest.raises(AssertionError):
        a += b
