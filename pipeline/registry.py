"""
Device backend registry (backend_name -> backend instance).

MVP: a simple in-process dict. Built-in backends are imported lazily so the
simulator works without torch/triton installed.
"""

from __future__ import annotations

import importlib
from typing import Dict, List

from pipeline.interfaces import DeviceBackend

_REGISTRY: Dict[str, DeviceBackend] = {}

_LAZY = {
    "cuda": "backends.cuda.adapter",
    "triton": "backends.triton.adapter",
    "sim": "backends.sim.adapter",
}

# "auto" picks the first available backend in this order.
AUTO_ORDER = ("cuda", "triton", "sim")


def register(backend: DeviceBackend) -> None:
    _REGISTRY[backend.name] = backend


def get(name: str) -> DeviceBackend:
    if name not in _REGISTRY:
        mod = _LAZY.get(name)
        if mod:
            try:
                importlib.import_module(mod)
            except Exception:
                # Missing or broken optional deps (torch/triton, CUDA libs): report as unregistered below.
                pass
    if name not in _REGISTRY:
        raise KeyError(f"device backend not registered: {name} (known: {', '.join(sorted(_LAZY))})")
    return _REGISTRY[name]


def available() -> List[str]:
    out: List[str] = []
    for name in AUTO_ORDER:
        try:
            be = get(name)
        except KeyError:
            continue
        if be.is_available():
            out.append(name)
    return out


def resolve(name: str) -> DeviceBackend:
    if str(name) != "auto":
        return get(str(name))
    names = available()
    if not names:
        raise KeyError("no device backend available")
    return get(names[0])


__all__ = ["AUTO_ORDER", "register", "get", "available", "resolve"]
