import json
import math
from dataclasses import asdict, dataclass
from typing import Any, Dict, Optional, Tuple

from buddhabrot.errors import ConfigError
from buddhabrot.geometry import Window, point

SAMPLERS = ("uniform", "guided")

@dataclass(frozen=True)
class BandSpec:
    """Escape-iteration range ``[min_iterations, max_iterations)`` recorded by one buffer."""

    min_iterations: int
    max_iterations: int
    width: Optional[int] = None
    height: Optional[int] = None
    window: Optional[Window] = None

    def contains(self, iteration: int) -> bool:
        return self.min_iterations <= iteration < self.max_iterations

@dataclass(frozen=True)
class RunConfig:
    threads: int
    duration: float
    cycles: Optional[int]
    keep: bool
    width: int
    height: int
    domain: Window
    window: Window
    bands: Tuple[BandSpec, ...]
    sampler: str = "guided"
    jump_probability: float = 0.1
    mutation_deviation: float = 0.005
    bailout: float = 2.0
    output_dir: str = "."

    @property
    def iteration_budget(self) -> int:
        return max(b.max_iterations for b in self.bands)

    def band_shape(self, band: BandSpec) -> Tuple[int, int, Window]:
        return (
            band.width if band.width is not None else self.width,
            band.height if band.height is not None else self.height,
            band.window if band.window is not None else self.window,
        )

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

def default_config() -> Dict[str, Any]:
    return {
        "threads": 6,
        "duration": 5.0,
        "cycles": 1,
        "keep": False,
        "width": 1000,
        "height": 1000,
        "domain": {"min": [-2.0, -2.0], "max": [2.0, 2.0]},
        "window": {"center": [-0.158, 1.033], "size": 0.03},
        "bands": [
            {"min_iterations": 10, "max_iterations": 200},
            {"min_iterations": 10, "max_iterations": 400},
            {"min_iterations": 10, "max_iterations": 2000},
        ],
        "sampler": "guided",
        "jump_probability": 0.1,
        "mutation_deviation": 0.005,
        "bailout": 2.0,
        "output_dir": ".",
    }

def load_config(config_path: Optional[str]) -> Dict[str, Any]:
    if not config_path:
        return default_config()
    with open(config_path, "r", encoding="utf-8") as f:
        cfg = json.load(f)
    if not isinstance(cfg, dict):
        raise ConfigError("Config JSON must be an object.")
    out = default_config()
    out.update(cfg)
    return out

def _pair(value: Any, name: str) -> Tuple[float, float]:
    if not (isinstance(value, (list, tuple)) and len(value) == 2):
        raise ConfigError(f"{name} must be [re, im].")
    return _number(value[0], f"{name}[0]"), _number(value[1], f"{name}[1]")

def _window(value: Any, name: str) -> Window:
    if not isinstance(value, dict):
        raise ConfigError(f"{name} must be an object with min/max or center/size.")
    if "center" in value:
        size = _number(value.get("size", 0), f"{name}.size")
        if size <= 0:
            raise ConfigError(f"{name}.size must be positive.")
        return Window.from_center(_pair(value["center"], f"{name}.center"), size)
    if "min" not in value or "max" not in value:
        raise ConfigError(f"{name} needs min and max.")
    lo = point(*_pair(value["min"], f"{name}.min"))
    hi = point(*_pair(value["max"], f"{name}.max"))
    if not (lo.re < hi.re and lo.im < hi.im):
        raise ConfigError(f"{name}.min must lie below and left of {name}.max.")
    return Window(lo, hi)

def _number(value: Any, key: str) -> float:
    if isinstance(value, bool):
        raise ConfigError(f"{key} must be a number.")
    try:
        v = float(value)
    except (TypeError, ValueError) as e:
        raise ConfigError(f"{key} must be a number.") from e
    if not math.isfinite(v):
        raise ConfigError(f"{key} must be finite.")
    return v

def _int(value: Any, key: str) -> int:
    if isinstance(value, float) and value.is_integer():
        return int(value)
    if isinstance(value, bool) or not isinstance(value, (int, str)):
        raise ConfigError(f"{key} must be an integer.")
    try:
        return int(value)
    except ValueError as e:
        raise ConfigError(f"{key} must be an integer.") from e

def _positive_int(value: Any, key: str) -> int:
    v = _int(value, key)
    if v <= 0:
        raise ConfigError(f"{key} must be positive.")
    return v

def _band(raw: Any, index: int) -> BandSpec:
    if not isinstance(raw, dict):
        raise ConfigError(f"bands[{index}] must be an object.")
    for key in ("min_iterations", "max_iterations"):
        if key not in raw:
            raise ConfigError(f"bands[{index}] is missing {key}.")
    lo = _int(raw["min_iterations"], f"bands[{index}].min_iterations")
    hi = _int(raw["max_iterations"], f"bands[{index}].max_iterations")
    if lo < 0 or hi <= lo:
        raise ConfigError(f"bands[{index}] needs 0 <= min_iterations < max_iterations, got [{lo}, {hi}).")
    width = height = None
    if "width" in raw or "height" in raw:
        width = _positive_int(raw.get("width"), "width")
        height = _positive_int(raw.get("height"), "height")
    window = _window(raw["window"], f"bands[{index}].window") if "window" in raw else None
    return BandSpec(lo, hi, width, height, window)

def normalise_config(cfg: Dict[str, Any]) -> RunConfig:
    """Validate a raw config mapping and build the immutable RunConfig."""
    required = ["threads", "duration", "width", "height", "domain", "window", "bands"]
    for r in required:
        if r not in cfg:
            raise ConfigError(f"Missing config field: {r}")

    threads = _positive_int(cfg["threads"], "threads")
    width = _positive_int(cfg["width"], "width")
    height = _positive_int(cfg["height"], "height")

    duration = _number(cfg["duration"], "duration")
    if duration < 0:
        raise ConfigError("duration must not be negative.")

    cycles = cfg.get("cycles", 1)
    if cycles is not None:
        cycles = _positive_int(cycles, "cycles")
    keep = bool(cfg.get("keep", False))
    if (cycles is None or cycles > 1) and not keep:
        raise ConfigError("Running more than one cycle requires keep=true.")

    bands = cfg["bands"]
    if not isinstance(bands, list) or not bands:
        raise ConfigError("bands must be a non-empty list.")

    sampler = str(cfg.get("sampler", "guided"))
    if sampler not in SAMPLERS:
        raise ConfigError(f"sampler must be one of: {', '.join(SAMPLERS)}")

    jump = _number(cfg.get("jump_probability", 0.1), "jump_probability")
    if not 0.0 <= jump <= 1.0:
        raise ConfigError("jump_probability must lie in [0, 1].")
    deviation = _number(cfg.get("mutation_deviation", 0.005), "mutation_deviation")
    if deviation <= 0:
        raise ConfigError("mutation_deviation must be positive.")
    bailout = _number(cfg.get("bailout", 2.0), "bailout")
    if bailout <= 0:
        raise ConfigError("bailout must be positive.")

    return RunConfig(
        threads=threads,
        duration=duration,
        cycles=cycles,
        keep=keep,
        width=width,
        height=height,
        domain=_window(cfg["domain"], "domain"),
        window=_window(cfg["window"], "window"),
        bands=tuple(_band(b, i) for i, b in enumerate(bands)),
        sampler=sampler,
        jump_probability=jump,
        mutation_deviation=deviation,
        bailout=bailout,
        output_dir=str(cfg.get("output_dir", ".")),
    )
