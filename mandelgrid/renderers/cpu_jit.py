from __future__ import annotations

import numpy as np

from mandelgrid.kernel import escape_grid, escape_tile
from mandelgrid.util.logging_setup import get_logger


def render_serial(context, out2d: np.ndarray) -> None:
    escape_tile(out2d, 0, 0, *context.kernel_args)


def render_jit(context, out2d: np.ndarray) -> None:
    import numba

    get_logger().info("JIT dispatch rows=%s threads=%s", out2d.shape[0], numba.get_num_threads())
    escape_grid(out2d, *context.kernel_args)
