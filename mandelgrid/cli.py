from __future__ import annotations

import argparse
import json
import logging
from typing import Any, Dict, Optional

from mandelgrid.config import ANCHORS, BACKENDS, BOUNDS, ConfigError, load_config, normalise_config
from mandelgrid.dispatch import choose_backend, dispatch, make_context
from mandelgrid.image.pgm_writer import write_pgm
from mandelgrid.renderers.gpu import probe_cuda
from mandelgrid.util.logging_setup import configure_root_logging, create_log_queue, get_logger, start_queue_listener
from mandelgrid.util.manifest import build_manifest, write_manifest


def build_arg_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="mandelgrid", description="Escape-time iteration grids for the Mandelbrot recurrence.")
    p.add_argument("--config", type=str, default=None, help="Path to config JSON. If omitted, built-in defaults are used.")
    p.add_argument("--log-level", type=str, default="INFO", choices=["DEBUG", "INFO", "WARNING", "ERROR"], help="Log level.")
    p.add_argument("--log-file", type=str, default="", help="Log file path (rotating). Empty disables file logging.")
    sub = p.add_subparsers(dest="cmd", required=True)

    r = sub.add_parser("render", help="Compute the iteration grid and write it as a PGM image.")
    r.add_argument("--width", type=int, default=None, help="Image width in pixels.")
    r.add_argument("--height", type=int, default=None, help="Image height in pixels.")
    r.add_argument("--viewport", type=float, nargs=2, metavar=("VW", "VH"), default=None,
                   help="Viewport size in plane units. Derived from the aspect ratio when omitted.")
    r.add_argument("--base-extent", type=float, default=None, help="Vertical extent of the derived viewport.")
    r.add_argument("--cap", type=int, default=None, help="Iteration cap, 0..255.")
    r.add_argument("--bound", type=str, default=None, choices=BOUNDS, help="Escape region.")
    r.add_argument("--anchor", type=str, default=None, choices=ANCHORS, help="Where in the pixel the sample is taken.")
    r.add_argument("--backend", type=str, default=None, choices=BACKENDS, help="Dispatch backend.")
    r.add_argument("--tile-size", type=int, default=None, help="Tile side for the pool backend.")
    r.add_argument("--workers", type=int, default=None, help="Worker processes for the pool backend.")
    r.add_argument("--output", type=str, default=None, help="Output PGM path.")
    r.add_argument("--invert", action="store_true", default=None, help="Write 255 - count instead of count.")
    r.add_argument("--progress", action="store_true", help="Show a progress bar (pool backend).")
    r.add_argument("--manifest", type=str, default="artifacts/run.json", help="Run manifest path. Empty disables it.")

    sub.add_parser("probe", help="Report CUDA availability.")
    return p


_OVERRIDES = ("width", "height", "viewport", "base_extent", "cap", "bound", "anchor",
              "backend", "tile_size", "workers", "output", "invert")


def _merge_overrides(cfg: Dict[str, Any], args: argparse.Namespace) -> Dict[str, Any]:
    out = dict(cfg)
    for key in _OVERRIDES:
        value = getattr(args, key, None)
        if value is not None:
            out[key] = value
    return out


def _render(cfg: Dict[str, Any], args: argparse.Namespace, log_queue, log_level: int) -> None:
    logger = get_logger()
    context = make_context(
        cfg["width"], cfg["height"], cfg["viewport"],
        base_extent=cfg["base_extent"], cap=cfg["cap"], bound=cfg["bound"], anchor=cfg["anchor"],
    )
    backend = choose_backend(cfg["backend"])
    buf = dispatch(
        context, backend=backend, tile_size=cfg["tile_size"], workers=cfg["workers"],
        progress=args.progress, log_queue=log_queue, log_level=log_level,
    )
    write_pgm(buf, context.size, cfg["output"], invert=cfg["invert"])

    if args.manifest and args.manifest.strip():
        info = {"resolved": backend}
        if backend == "gpu":
            info["cuda"] = probe_cuda()
        manifest = build_manifest(config=cfg, backend_info=info, buffer=buf)
        write_manifest(args.manifest, manifest)
        logger.info("Run manifest written: %s", args.manifest)


def main(argv: Optional[list] = None) -> int:
    args = build_arg_parser().parse_args(argv)

    log_level = getattr(logging, args.log_level.upper(), logging.INFO)
    log_file = args.log_file if args.log_file and args.log_file.strip() else None
    listener_logger = configure_root_logging(level=log_level, console=True, log_file=log_file)

    queue = create_log_queue()
    listener = start_queue_listener(queue, listener_logger)

    logger = get_logger()

    try:
        if args.cmd == "probe":
            print(json.dumps(probe_cuda(), indent=2, default=str))
            return 0

        cfg = normalise_config(_merge_overrides(load_config(args.config), args))
        _render(cfg, args, queue, log_level)
        return 0
    except ConfigError as e:
        logger.error("Configuration error: %s", e)
        return 2
    finally:
        listener.stop()
