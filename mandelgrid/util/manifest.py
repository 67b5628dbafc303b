import hashlib
import importlib.metadata as importlib_metadata
import json
import os
import platform
import sys
import time
from dataclasses import asdict, dataclass
from typing import Any, Dict, Optional

import numpy as np


@dataclass(frozen=True)
class RunManifest:
    started_utc: str
    config: Dict[str, Any]
    python: Dict[str, Any]
    packages: Dict[str, str]
    system: Dict[str, Any]
    backend: Dict[str, Any]
    output: Dict[str, Any]


def _utc_iso() -> str:
    return time.strftime("%Y-%m-%dT%H:%M:%SZ", time.gmtime())


def _pkg_version(name: str) -> Optional[str]:
    try:
        return importlib_metadata.version(name)
    except importlib_metadata.PackageNotFoundError:
        return None


def buffer_digest(buffer: np.ndarray) -> str:
    return hashlib.sha256(np.ascontiguousarray(buffer, dtype=np.uint8).tobytes()).hexdigest()


def build_manifest(*, config: Dict[str, Any], backend_info: Dict[str, Any], buffer: np.ndarray) -> RunManifest:
    pkgs = {}
    for name in ["numpy", "numba", "Pillow", "tqdm"]:
        v = _pkg_version(name)
        if v:
            pkgs[name] = v

    return RunManifest(
        started_utc=_utc_iso(),
        config=config,
        python={"version": sys.version, "executable": sys.executable},
        packages=pkgs,
        system={"platform": platform.platform(), "machine": platform.machine(), "processor": platform.processor()},
        backend=backend_info,
        output={"cells": int(buffer.size), "sha256": buffer_digest(buffer)},
    )


def write_manifest(path: str, manifest: RunManifest) -> None:
    parent = os.path.dirname(path)
    if parent:
        os.makedirs(parent, exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        json.dump(asdict(manifest), f, indent=2, sort_keys=True, default=str)
