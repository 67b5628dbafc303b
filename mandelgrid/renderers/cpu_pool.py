from __future__ import annotations

import logging
from concurrent.futures import ProcessPoolExecutor
from typing import List, Optional, Tuple

import numpy as np
from tqdm import tqdm

from mandelgrid.kernel import escape_tile
from mandelgrid.util.logging_setup import configure_worker_logging, get_logger, pool_context

_G = {}


def _init_worker(context, log_queue, log_level):
    _G["context"] = context
    if log_queue is not None:
        configure_worker_logging(log_queue, level=log_level)


def _render_tile(tile) -> Tuple[object, np.ndarray]:
    context = _G["context"]
    block = np.empty((tile.y1 - tile.y0, tile.x1 - tile.x0), dtype=np.uint8)
    escape_tile(block, tile.x0, tile.y0, *context.kernel_args)
    get_logger().debug("Tile %s,%s done", tile.x0, tile.y0)
    return tile, block


def render_pool(
    context,
    out2d: np.ndarray,
    tiles: List,
    *,
    workers: Optional[int] = None,
    progress: bool = False,
    log_queue=None,
    log_level: int = logging.INFO,
) -> None:
    logger = get_logger()
    logger.info("Pool dispatch tiles=%s workers=%s", len(tiles), workers or "auto")

    pool = ProcessPoolExecutor(
        max_workers=workers,
        mp_context=pool_context(),
        initializer=_init_worker,
        initargs=(context, log_queue, log_level),
    )
    try:
        results = pool.map(_render_tile, tiles, chunksize=max(1, len(tiles) // 256))
        if progress:
            results = tqdm(results, total=len(tiles), unit="tile")
        for tile, block in results:
            out2d[tile.y0:tile.y1, tile.x0:tile.x1] = block
    except BaseException:
        logger.warning("Pool dispatch aborted, cancelling pending tiles")
        pool.shutdown(wait=True, cancel_futures=True)
        raise
    pool.shutdown(wait=True)
