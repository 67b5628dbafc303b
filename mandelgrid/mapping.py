"""
Pixel to complex-plane mapping.

The viewport is a rectangle centered on the origin. With the default
"corner" anchor pixel (0, 0) lands on the top-left corner of the viewport
and pixel (W/2, H/2) on the origin:

    step = viewport / image_size
    c    = ((x, y) - image_size / 2) * step

which is (x, y) * step - viewport / 2 with the centering done in pixel
units. Pixel offsets from the center are exact in float32, so rows y and
H - y map to exact conjugates whatever the step. The "center" anchor
samples the middle of each pixel instead, pairing rows y and H - 1 - y.

All arithmetic is float32 so every backend produces the same sample points.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Tuple

import numpy as np
from numba import njit

from mandelgrid.config import ANCHORS, BASE_EXTENT, ConfigError, check_choice, check_size, check_viewport


@dataclass(frozen=True)
class ImageSize:
    width: int
    height: int

    def __post_init__(self) -> None:
        check_size(self.width, self.height)

    @property
    def pixels(self) -> int:
        return self.width * self.height

    @property
    def aspect(self) -> float:
        return self.width / self.height


@dataclass(frozen=True)
class Viewport:
    width: float
    height: float

    def __post_init__(self) -> None:
        check_viewport((self.width, self.height))

    @classmethod
    def from_aspect(cls, size: ImageSize, base_extent: float = BASE_EXTENT) -> "Viewport":
        return derive_viewport(size, base_extent)

    @property
    def half_extents(self) -> Tuple[np.float32, np.float32]:
        return np.float32(self.width) / np.float32(2.0), np.float32(self.height) / np.float32(2.0)


def derive_viewport(size: ImageSize, base_extent: float = BASE_EXTENT) -> Viewport:
    """Viewport of fixed vertical extent whose width follows the image aspect ratio."""
    if not base_extent > 0:
        raise ConfigError(f"base_extent must be positive, got {base_extent!r}")
    return Viewport(size.width / size.height * base_extent, float(base_extent))


def pixel_step(size: ImageSize, viewport: Viewport) -> Tuple[np.float32, np.float32]:
    return (
        np.float32(viewport.width) / np.float32(size.width),
        np.float32(viewport.height) / np.float32(size.height),
    )


def anchor_offset(anchor: str) -> np.float32:
    check_choice("anchor", anchor, ANCHORS)
    return np.float32(0.5) if anchor == "center" else np.float32(0.0)


def pixel_center(size: ImageSize) -> Tuple[np.float32, np.float32]:
    return np.float32(size.width) / np.float32(2.0), np.float32(size.height) / np.float32(2.0)


def _sample_point(x, y, step_w, step_h, mid_x, mid_y, offset):
    cr = (np.float32(x) + offset - mid_x) * step_w
    ci = (np.float32(y) + offset - mid_y) * step_h
    return cr, ci


sample_point = njit(cache=True)(_sample_point)


def map_pixel(pixel: Tuple[int, int], size: ImageSize, viewport: Viewport, anchor: str = "corner") -> complex:
    x, y = pixel
    step_w, step_h = pixel_step(size, viewport)
    mid_x, mid_y = pixel_center(size)
    cr, ci = sample_point(x, y, step_w, step_h, mid_x, mid_y, anchor_offset(anchor))
    return complex(float(cr), float(ci))
