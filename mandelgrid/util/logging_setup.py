import logging
import logging.handlers
import multiprocessing as mp
from typing import Optional

_LOGGER_NAME = "mandelgrid"

# Forked children inherit numba's threading-layer state (TBB, OpenMP) from a
# parent that already ran a parallel kernel and can hang at interpreter exit.
_START_METHOD = "spawn"


def get_logger() -> logging.Logger:
    return logging.getLogger(_LOGGER_NAME)


def pool_context():
    """Multiprocessing context shared by the worker pool and its log queue."""
    return mp.get_context(_START_METHOD)


def _build_formatter() -> logging.Formatter:
    return logging.Formatter(
        fmt="%(asctime)s.%(msecs)03dZ %(processName)s %(levelname)s %(name)s - %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%S",
    )


def _attach(logger: logging.Logger, handler: logging.Handler, level: int, fmt: Optional[logging.Formatter]) -> None:
    handler.setLevel(level)
    if fmt is not None:
        handler.setFormatter(fmt)
    logger.addHandler(handler)


def _fresh_logger(level: int) -> logging.Logger:
    logger = get_logger()
    logger.setLevel(level)
    logger.propagate = False
    for h in list(logger.handlers):
        logger.removeHandler(h)
        h.close()
    return logger


def configure_root_logging(
    *,
    level: int = logging.INFO,
    console: bool = True,
    log_file: Optional[str] = None,
    rotate_bytes: int = 5 * 1024 * 1024,
    rotate_count: int = 5,
) -> logging.Logger:
    logger = _fresh_logger(level)
    fmt = _build_formatter()
    if console:
        _attach(logger, logging.StreamHandler(), level, fmt)
    if log_file:
        rotating = logging.handlers.RotatingFileHandler(
            log_file, maxBytes=rotate_bytes, backupCount=rotate_count, encoding="utf-8"
        )
        _attach(logger, rotating, level, fmt)
    return logger


def create_log_queue():
    return pool_context().Queue(-1)


def start_queue_listener(queue, listener_logger: logging.Logger) -> logging.handlers.QueueListener:
    listener = logging.handlers.QueueListener(queue, *listener_logger.handlers, respect_handler_level=True)
    listener.start()
    return listener


def configure_worker_logging(queue, *, level: int = logging.INFO) -> None:
    """Route a worker's records to the parent process through ``queue``."""
    _attach(_fresh_logger(level), logging.handlers.QueueHandler(queue), level, None)
