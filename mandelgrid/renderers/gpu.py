from __future__ import annotations

import functools
import math
from typing import Any, Dict

import numpy as np

from mandelgrid.util.logging_setup import get_logger


def probe_cuda() -> Dict[str, Any]:
    info: Dict[str, Any] = {"available": False}
    try:
        from numba import cuda  # type: ignore
        if not cuda.is_available():
            return info
        dev = cuda.get_current_device()
        info.update({
            "available": True,
            "name": getattr(dev, "name", None),
            "compute_capability": getattr(dev, "compute_capability", None),
            "max_threads_per_block": getattr(dev, "MAX_THREADS_PER_BLOCK", None),
            "warp_size": getattr(dev, "WARP_SIZE", None),
        })
        return info
    except Exception as e:
        info["error"] = str(e)
        return info


def block_width(max_threads_per_block: int) -> int:
    """Side of the largest square thread block that fits the device limit."""
    return max(1, math.isqrt(max_threads_per_block))


@functools.lru_cache(maxsize=None)
def _build_kernel():
    from numba import cuda  # type: ignore

    from mandelgrid.kernel import _escape_time
    from mandelgrid.mapping import _sample_point

    escape_time_dev = cuda.jit(device=True)(_escape_time)
    sample_point_dev = cuda.jit(device=True)(_sample_point)

    @cuda.jit
    def escape_grid_cuda(out2d, step_w, step_h, mid_x, mid_y, half_w, half_h, offset, cap, circle):
        x, y = cuda.grid(2)
        if y >= out2d.shape[0] or x >= out2d.shape[1]:
            return
        cr, ci = sample_point_dev(x, y, step_w, step_h, mid_x, mid_y, offset)
        out2d[y, x] = escape_time_dev(cr, ci, half_w, half_h, cap, circle)

    return escape_grid_cuda


def render_gpu(context, out2d: np.ndarray) -> None:
    logger = get_logger()
    info = probe_cuda()
    if not info.get("available"):
        raise RuntimeError(f"GPU backend not available: {info.get('error', 'no CUDA device')}")

    from numba import cuda  # type: ignore

    height, width = out2d.shape
    side = block_width(int(info.get("max_threads_per_block") or 256))
    threads_per_block = (side, side)
    blocks_per_grid = (math.ceil(width / side), math.ceil(height / side))
    logger.info("GPU dispatch grid=%s block=%s device=%s", blocks_per_grid, threads_per_block, info.get("name"))

    device_out = cuda.device_array_like(out2d)
    _build_kernel()[blocks_per_grid, threads_per_block](device_out, *context.kernel_args)
    device_out.copy_to_host(out2d)
