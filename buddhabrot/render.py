"""Turn persisted band buffers into image bytes."""

from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple

from buddhabrot import color
from buddhabrot.buffer import Buffer
from buddhabrot.config import RunConfig
from buddhabrot.pipeline import buffer_path
from buddhabrot.util.logging_setup import get_logger

TONES = ("linear", "polynomial", "exponential")
MODES = ("rgb", "band", "mix")

DEFAULT_COLORS: Tuple[color.RGB, ...] = ((255, 64, 32), (64, 255, 96), (64, 96, 255))

@dataclass(frozen=True)
class ToneMap:
    curve: str = "linear"
    param: float = 1.0
    exposure: float = 1.0

    def apply(self, unit: Buffer) -> Buffer:
        if self.curve == "polynomial":
            unit = unit.polynomial(self.param)
        elif self.curve == "exponential":
            unit = unit.exponential(self.param)
        elif self.curve != "linear":
            raise ValueError(f"unknown tone curve: {self.curve}")
        if self.exposure != 1.0:
            unit = unit.expose(self.exposure)
        return unit

@dataclass
class Image:
    data: bytes
    width: int
    height: int
    channels: int

def load_bands(config: RunConfig) -> List[Buffer]:
    out = []
    for i, band in enumerate(config.bands):
        width, height, _ = config.band_shape(band)
        out.append(Buffer.load(width, height, buffer_path(config.output_dir, i)))
    return out

def _image(buf: Buffer, invert: bool) -> Image:
    if invert:
        buf = buf.inverse()
    return Image(buf.flatten(), buf.width, buf.height, buf.channels or 1)

def render_band(buf: Buffer, tone: ToneMap = ToneMap(), invert: bool = False) -> Image:
    if tone.curve == "linear" and tone.exposure == 1.0:
        return _image(buf.to_u8(), invert)
    return _image(tone.apply(buf.to_f32()).to_u8(), invert)

def render_rgb(bands: Sequence[Buffer], tone: ToneMap = ToneMap(), invert: bool = False) -> Image:
    """Join three bands as channels; the last band goes to red, the first to blue."""
    if len(bands) != 3:
        raise ValueError(f"rgb mode needs exactly 3 bands, got {len(bands)}")
    if tone.curve == "linear" and tone.exposure == 1.0:
        channels = [b.to_u8() for b in reversed(bands)]
    else:
        channels = [tone.apply(b.to_f32()).to_u8() for b in reversed(bands)]
    return _image(Buffer.join(*channels), invert)

def render_mix(
    bands: Sequence[Buffer],
    tone: ToneMap = ToneMap(),
    colors: Optional[Sequence[color.RGB]] = None,
    background: color.RGB = (0, 0, 0),
    invert: bool = False,
) -> Image:
    """Colour each band uniformly, alpha by intensity, and composite the blend over ``background``."""
    colors = list(colors or DEFAULT_COLORS)
    if len(colors) < len(bands):
        raise ValueError(f"{len(bands)} bands but only {len(colors)} colours")
    layers = [tone.apply(b.to_f32()).to_lab_rgb(c) for b, c in zip(bands, colors)]
    return _image(Buffer.mix(layers).to_rgb8_rgb(background), invert)

def render(
    config: RunConfig,
    *,
    mode: str = "rgb",
    band: int = 0,
    tone: ToneMap = ToneMap(),
    colors: Optional[Sequence[color.RGB]] = None,
    invert: bool = False,
) -> Image:
    logger = get_logger()
    bands = load_bands(config)
    logger.info("Loaded %s buffers from %s", len(bands), config.output_dir)
    if mode == "band":
        if not 0 <= band < len(bands):
            raise ValueError(f"band index {band} out of range for {len(bands)} bands")
        return render_band(bands[band], tone, invert)
    if mode == "rgb":
        return render_rgb(bands, tone, invert)
    if mode == "mix":
        return render_mix(bands, tone, colors, invert=invert)
    raise ValueError(f"mode must be one of: {', '.join(MODES)}")
