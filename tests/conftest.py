import pytest

from buddhabrot.config import normalise_config


class FakeClock:
    def __init__(self, now: float = 0.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


class ScriptedRng:
    """Stands in for numpy's Generator with fixed answers."""

    def __init__(self, randoms=(), normal_offset: float = 0.0):
        self.randoms = list(randoms)
        self.normal_offset = normal_offset

    def random(self):
        return self.randoms.pop(0)

    def normal(self, mean, dev):
        return mean + self.normal_offset

    def uniform(self, lo, hi):
        return (lo + hi) / 2.0


@pytest.fixture
def clock():
    return FakeClock()


def make_config(**overrides):
    raw = {
        "threads": 1,
        "duration": 0.05,
        "cycles": 1,
        "keep": False,
        "width": 64,
        "height": 64,
        "domain": {"min": [-2.0, -2.0], "max": [2.0, 2.0]},
        "window": {"min": [-2.0, -2.0], "max": [2.0, 2.0]},
        "bands": [{"min_iterations": 10, "max_iterations": 50}],
        "sampler": "uniform",
    }
    raw.update(overrides)
    return normalise_config(raw)


@pytest.fixture
def small_config():
    return make_config()
