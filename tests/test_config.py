import json

import pytest

from buddhabrot.config import default_config, load_config, normalise_config
from buddhabrot.errors import ConfigError
from buddhabrot.geometry import point


def test_defaults_normalise():
    config = normalise_config(load_config(None))
    assert config.threads == 6
    assert config.iteration_budget == 2000
    assert len(config.bands) == 3
    assert config.window.min == point(-0.158 - 0.015, 1.033 - 0.015)
    assert config.sampler == "guided"


def test_json_overrides_defaults(tmp_path):
    path = tmp_path / "run.json"
    path.write_text(json.dumps({"threads": 2, "bands": [{"min_iterations": 1, "max_iterations": 5}]}))
    config = normalise_config(load_config(str(path)))
    assert config.threads == 2
    assert config.iteration_budget == 5
    assert config.width == 1000


def test_json_must_be_object(tmp_path):
    path = tmp_path / "bad.json"
    path.write_text("[1, 2]")
    with pytest.raises(ConfigError):
        load_config(str(path))


@pytest.mark.parametrize("change", [
    {"bands": []},
    {"threads": 0},
    {"threads": -3},
    {"width": 0},
    {"bands": [{"min_iterations": 10, "max_iterations": 10}]},
    {"bands": [{"min_iterations": 10}]},
    {"domain": {"min": [2, 2], "max": [-2, -2]}},
    {"window": {"center": [0, 0], "size": 0}},
    {"cycles": 3, "keep": False},
    {"cycles": None, "keep": False},
    {"sampler": "metropolis-hastings"},
    {"jump_probability": 1.5},
    {"duration": -1},
    {"duration": "five"},
    {"duration": float("nan")},
    {"mutation_deviation": float("nan")},
    {"bailout": float("inf")},
    {"jump_probability": None},
    {"bands": [{"min_iterations": "x", "max_iterations": 50}]},
    {"bands": [{"min_iterations": None, "max_iterations": 50}]},
    {"window": {"min": ["a", 0], "max": [1, 1]}},
    {"window": {"center": [0, 0], "size": "big"}},
    {"threads": True},
    {"threads": "many"},
])
def test_rejects_bad_config(change):
    raw = default_config()
    raw.update(change)
    with pytest.raises(ConfigError):
        normalise_config(raw)


def test_missing_field():
    raw = default_config()
    del raw["bands"]
    with pytest.raises(ConfigError, match="bands"):
        normalise_config(raw)


def test_indefinite_cycles_with_keep():
    raw = default_config()
    raw.update(cycles=None, keep=True)
    config = normalise_config(raw)
    assert config.cycles is None
    assert config.keep


def test_band_contains():
    config = normalise_config(default_config())
    band = config.bands[0]
    assert band.contains(10)
    assert band.contains(199)
    assert not band.contains(200)
    assert not band.contains(9)
