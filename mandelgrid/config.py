import json
import math
from typing import Any, Dict, Optional

BASE_EXTENT = 3.5
DEFAULT_CAP = 254
MAX_CAP = 255

BOUNDS = ("viewport", "circle")
ANCHORS = ("corner", "center")
BACKENDS = ("auto", "serial", "jit", "pool", "gpu")


class ConfigError(ValueError):
    """Raised when dispatch parameters violate a precondition."""


DEFAULTS: Dict[str, Any] = {
    "width": 4000,
    "height": 3000,
    "viewport": None,
    "base_extent": BASE_EXTENT,
    "cap": DEFAULT_CAP,
    "bound": "viewport",
    "anchor": "corner",
    "backend": "auto",
    "tile_size": 64,
    "workers": None,
    "output": "image.pgm",
    "invert": False,
}


def load_config(config_path: Optional[str]) -> Dict[str, Any]:
    if config_path:
        with open(config_path, "r", encoding="utf-8") as f:
            cfg = json.load(f)
        if not isinstance(cfg, dict):
            raise ConfigError("Config JSON must be an object.")
        unknown = sorted(set(cfg) - set(DEFAULTS))
        if unknown:
            raise ConfigError(f"Unknown config fields: {', '.join(unknown)}")
        return cfg
    return dict(DEFAULTS)


def _positive_float(name: str, value: Any) -> float:
    try:
        out = float(value)
    except (TypeError, ValueError) as e:
        raise ConfigError(f"{name} must be a number, got {value!r}") from e
    if not math.isfinite(out) or out <= 0:
        raise ConfigError(f"{name} must be positive and finite, got {value!r}")
    return out


def _int(name: str, value: Any) -> int:
    if isinstance(value, bool):
        raise ConfigError(f"{name} must be an integer, got {value!r}")
    try:
        out = int(value)
    except (TypeError, ValueError) as e:
        raise ConfigError(f"{name} must be an integer, got {value!r}") from e
    if out != value and not isinstance(value, str):
        raise ConfigError(f"{name} must be an integer, got {value!r}")
    return out


def check_size(width: Any, height: Any):
    w = _int("width", width)
    h = _int("height", height)
    if w <= 0 or h <= 0:
        raise ConfigError(f"width/height must be positive, got {w}x{h}")
    return w, h


def check_viewport(viewport: Any):
    if not (isinstance(viewport, (list, tuple)) and len(viewport) == 2):
        raise ConfigError("viewport must be [width, height].")
    return _positive_float("viewport width", viewport[0]), _positive_float("viewport height", viewport[1])


def check_cap(cap: Any) -> int:
    out = _int("cap", cap)
    if not 0 <= out <= MAX_CAP:
        raise ConfigError(f"cap must be in [0, {MAX_CAP}], got {out}")
    return out


def check_choice(name: str, value: Any, choices) -> str:
    if value not in choices:
        raise ConfigError(f"{name} must be one of: {', '.join(choices)}")
    return value


def normalise_config(cfg: Dict[str, Any]) -> Dict[str, Any]:
    out = dict(DEFAULTS)
    out.update(cfg)

    out["width"], out["height"] = check_size(out["width"], out["height"])
    if out["viewport"] is not None:
        out["viewport"] = list(check_viewport(out["viewport"]))
    out["base_extent"] = _positive_float("base_extent", out["base_extent"])
    out["cap"] = check_cap(out["cap"])
    out["bound"] = check_choice("bound", out["bound"], BOUNDS)
    out["anchor"] = check_choice("anchor", out["anchor"], ANCHORS)
    out["backend"] = check_choice("backend", out["backend"], BACKENDS)

    out["tile_size"] = _int("tile_size", out["tile_size"])
    if out["tile_size"] <= 0:
        raise ConfigError("tile_size must be positive.")
    if out["workers"] is not None:
        out["workers"] = _int("workers", out["workers"])
        if out["workers"] <= 0:
            raise ConfigError("workers must be positive.")

    out["output"] = str(out["output"])
    out["invert"] = bool(out["invert"])
    return out
