"""
Escape-time kernel for z <- z^2 + c.

z is seeded at the origin and c is the sample point. A counter starts at
the cap and is decremented once per iteration; the loop ends when the
counter hits zero or z leaves the escape region. The counter is returned,
so bounded orbits give 0 and points that escape on the first check give
cap - 1. Callers colouring the result have to account for that inversion.

Two escape regions are supported:

    viewport  |zr| > VW/2 or |zi| > VH/2   (the visible window)
    circle    |z|^2 > 4                    (the usual radius-2 bound)

Both predicates are written as "not inside" so a NaN or infinite z counts
as escaped.
"""
from __future__ import annotations

import numpy as np
from numba import njit, prange

from mandelgrid.config import BOUNDS, DEFAULT_CAP, check_cap, check_choice
from mandelgrid.mapping import Viewport, sample_point


def _escape_time(cr, ci, half_w, half_h, cap, circle):
    two = np.float32(2.0)
    four = np.float32(4.0)
    zr = np.float32(0.0)
    zi = np.float32(0.0)
    remaining = cap
    while remaining > 0:
        if circle:
            if not (zr * zr + zi * zi <= four):
                break
        elif not (abs(zr) <= half_w and abs(zi) <= half_h):
            break
        zr, zi = zr * zr - zi * zi + cr, two * zr * zi + ci
        remaining -= 1
    return remaining


escape_time = njit(cache=True)(_escape_time)


@njit(cache=True)
def escape_tile(tile, x0, y0, step_w, step_h, mid_x, mid_y, half_w, half_h, offset, cap, circle):
    """Fill ``tile`` with counts for the pixels whose top-left is global (x0, y0)."""
    rows, cols = tile.shape
    for j in range(rows):
        for i in range(cols):
            cr, ci = sample_point(x0 + i, y0 + j, step_w, step_h, mid_x, mid_y, offset)
            tile[j, i] = escape_time(cr, ci, half_w, half_h, cap, circle)


@njit(cache=True, parallel=True)
def escape_grid(out2d, step_w, step_h, mid_x, mid_y, half_w, half_h, offset, cap, circle):
    rows, cols = out2d.shape
    for y in prange(rows):
        for x in range(cols):
            cr, ci = sample_point(x, y, step_w, step_h, mid_x, mid_y, offset)
            out2d[y, x] = escape_time(cr, ci, half_w, half_h, cap, circle)


def iterate(c: complex, viewport: Viewport, cap: int = DEFAULT_CAP, bound: str = "viewport") -> int:
    """Escape count for a single sample point."""
    cap = check_cap(cap)
    check_choice("bound", bound, BOUNDS)
    half_w, half_h = viewport.half_extents
    c = complex(c)
    return int(escape_time(np.float32(c.real), np.float32(c.imag), half_w, half_h, cap, bound == "circle"))
