from __future__ import annotations

import os

import numpy as np
from PIL import Image

from mandelgrid.config import ConfigError
from mandelgrid.mapping import ImageSize
from mandelgrid.util.logging_setup import get_logger


def buffer_to_image(buffer: np.ndarray, size: ImageSize, *, invert: bool = False) -> Image.Image:
    """Wrap a flat row-major count buffer as an 8-bit grayscale image."""
    if buffer.size != size.pixels:
        raise ConfigError(f"buffer has {buffer.size} cells, expected {size.pixels}")
    grid = np.asarray(buffer, dtype=np.uint8).reshape(size.height, size.width)
    if invert:
        grid = 255 - grid
    return Image.fromarray(np.ascontiguousarray(grid))


def write_pgm(buffer: np.ndarray, size: ImageSize, path: str, *, invert: bool = False) -> str:
    logger = get_logger()
    parent = os.path.dirname(path)
    if parent:
        os.makedirs(parent, exist_ok=True)
    img = buffer_to_image(buffer, size, invert=invert)
    img.save(path, format="PPM")
    logger.info("Image written: %s (%sx%s)", path, size.width, size.height)
    return path
