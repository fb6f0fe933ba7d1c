from __future__ import annotations

import os

from PIL import Image

from buddhabrot.util.logging_setup import get_logger

_MODES = {1: "L", 3: "RGB"}

def write_image(path: str, data: bytes, width: int, height: int, channels: int) -> str:
    """Encode row-major, channel-interleaved bytes with Pillow; the format follows the extension."""
    logger = get_logger()
    mode = _MODES.get(channels)
    if mode is None:
        raise ValueError(f"Unsupported channel count: {channels}")
    if len(data) != width * height * channels:
        raise ValueError(f"Expected {width * height * channels} bytes for {width}x{height}x{channels}, got {len(data)}")
    parent = os.path.dirname(path)
    if parent:
        os.makedirs(parent, exist_ok=True)
    img = Image.frombytes(mode, (width, height), data)
    img.save(path, optimize=True)
    logger.info("Image written: %s (%sx%s %s)", path, width, height, mode)
    return path
