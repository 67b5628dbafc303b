"""
Per-pixel fan-out of the escape-time kernel.

A dispatch takes an immutable DispatchContext and produces a flat uint8
buffer of width * height counts, row-major (index = row * width + column).
Every backend partitions the image so each pixel owns exactly one cell;
no locks or shared counters are involved. A failed or interrupted dispatch
returns nothing: the caller never sees a partially written buffer.
"""
from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import List, NamedTuple, Optional, Sequence, Tuple

import numpy as np

from mandelgrid.config import (
    ANCHORS,
    BACKENDS,
    BASE_EXTENT,
    BOUNDS,
    DEFAULT_CAP,
    ConfigError,
    check_cap,
    check_choice,
    check_size,
    check_viewport,
)
from mandelgrid.mapping import ImageSize, Viewport, anchor_offset, derive_viewport, pixel_center, pixel_step
from mandelgrid.renderers.cpu_jit import render_jit, render_serial
from mandelgrid.renderers.cpu_pool import render_pool
from mandelgrid.renderers.gpu import probe_cuda, render_gpu
from mandelgrid.util.logging_setup import get_logger


@dataclass(frozen=True)
class DispatchContext:
    size: ImageSize
    viewport: Viewport
    cap: int = DEFAULT_CAP
    bound: str = "viewport"
    anchor: str = "corner"

    def __post_init__(self) -> None:
        check_cap(self.cap)
        check_choice("bound", self.bound, BOUNDS)
        check_choice("anchor", self.anchor, ANCHORS)

    @property
    def step(self) -> Tuple[np.float32, np.float32]:
        return pixel_step(self.size, self.viewport)

    @property
    def offset(self) -> np.float32:
        return anchor_offset(self.anchor)

    @property
    def circle(self) -> bool:
        return self.bound == "circle"

    @property
    def kernel_args(self) -> tuple:
        """Trailing arguments shared by ``escape_tile``, ``escape_grid`` and the CUDA kernel."""
        step_w, step_h = self.step
        mid_x, mid_y = pixel_center(self.size)
        half_w, half_h = self.viewport.half_extents
        return step_w, step_h, mid_x, mid_y, half_w, half_h, self.offset, self.cap, self.circle


class Tile(NamedTuple):
    x0: int
    y0: int
    x1: int
    y1: int


def make_context(
    width: int,
    height: int,
    viewport: Optional[Sequence[float]] = None,
    *,
    base_extent: float = BASE_EXTENT,
    cap: int = DEFAULT_CAP,
    bound: str = "viewport",
    anchor: str = "corner",
) -> DispatchContext:
    size = ImageSize(*check_size(width, height))
    if viewport is None:
        vp = derive_viewport(size, base_extent)
    else:
        vp = Viewport(*check_viewport(viewport))
    return DispatchContext(size=size, viewport=vp, cap=cap, bound=bound, anchor=anchor)


def make_tiles(width: int, height: int, tile_size: int = 64) -> List[Tile]:
    """Row-major grid of tiles covering the image; edge tiles are clipped."""
    if tile_size <= 0:
        raise ConfigError("tile_size must be positive.")
    tiles = []
    for y in range(0, height, tile_size):
        for x in range(0, width, tile_size):
            tiles.append(Tile(x, y, min(x + tile_size, width), min(y + tile_size, height)))
    return tiles


def choose_backend(backend: str) -> str:
    check_choice("backend", backend, BACKENDS)
    if backend != "auto":
        return backend
    return "gpu" if probe_cuda().get("available") else "jit"


def _check_out(out: Optional[np.ndarray], size: ImageSize) -> np.ndarray:
    if out is None:
        return np.zeros(size.pixels, dtype=np.uint8)
    if not isinstance(out, np.ndarray) or out.dtype != np.uint8 or out.ndim != 1:
        raise ConfigError("out must be a flat uint8 numpy array.")
    if out.shape[0] != size.pixels:
        raise ConfigError(f"out has {out.shape[0]} cells, expected {size.pixels}")
    if not out.flags.c_contiguous or not out.flags.writeable:
        raise ConfigError("out must be contiguous and writeable.")
    return out


def dispatch(
    context: DispatchContext,
    *,
    backend: str = "auto",
    tile_size: int = 64,
    workers: Optional[int] = None,
    out: Optional[np.ndarray] = None,
    progress: bool = False,
    log_queue=None,
    log_level: int = logging.INFO,
) -> np.ndarray:
    logger = get_logger()
    resolved = choose_backend(backend)
    buf = _check_out(out, context.size)
    tiles = make_tiles(context.size.width, context.size.height, tile_size) if resolved == "pool" else None

    width, height = context.size.width, context.size.height
    logger.info(
        "Dispatch start size=%sx%s viewport=%sx%s cap=%s bound=%s anchor=%s backend=%s",
        width, height, context.viewport.width, context.viewport.height,
        context.cap, context.bound, context.anchor, resolved,
    )
    start = time.perf_counter()

    # Backends write into a scratch grid so an aborted run leaves ``out`` untouched.
    grid = np.empty((height, width), dtype=np.uint8)
    if resolved == "serial":
        render_serial(context, grid)
    elif resolved == "jit":
        render_jit(context, grid)
    elif resolved == "pool":
        render_pool(context, grid, tiles, workers=workers, progress=progress, log_queue=log_queue, log_level=log_level)
    else:
        render_gpu(context, grid)

    buf[:] = grid.reshape(-1)
    logger.info("Dispatch done backend=%s in %.3fs", resolved, time.perf_counter() - start)
    return buf
