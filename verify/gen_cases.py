"""
Deterministic host-vector generation for dot-product runs.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple

import numpy as np

from dot_offload.config import RunConfig
from dot_offload.dtypes import np_dtype
from dot_offload.launch import DEFAULT_MAX_THREADS_PER_BLOCK


@dataclass
class DotCase:
    n: int
    seed: int = 0
    dtype: str = "i32"
    a: Optional[np.ndarray] = None
    b: Optional[np.ndarray] = None
    __test__ = False  # prevent pytest from treating this as a test container


# Sizes around warp/block boundaries plus the reference size.
EDGE_VALUES = [1, 2, 3, 7, 8, 15, 16, 17, 31, 32, 33, 255, 256, 257, 1000, 1023, 1024]

# Element range for random vectors; small enough that i32 products rarely wrap.
DEFAULT_VALUE_RANGE: Tuple[int, int] = (-1000, 1000)


def filled_vectors(n: int, a_fill: int, b_fill: int, *, dtype: str = "i32") -> Tuple[np.ndarray, np.ndarray]:
    npdt = np_dtype(dtype)
    return np.full((int(n),), a_fill, dtype=npdt), np.full((int(n),), b_fill, dtype=npdt)


def random_vectors(
    n: int,
    *,
    dtype: str = "i32",
    seed: int = 0,
    value_range: Tuple[int, int] = DEFAULT_VALUE_RANGE,
) -> Tuple[np.ndarray, np.ndarray]:
    npdt = np_dtype(dtype)
    lo, hi = (int(value_range[0]), int(value_range[1]))
    rng = np.random.default_rng(int(seed))
    a = rng.integers(lo, hi, size=(int(n),), endpoint=True, dtype=npdt)
    b = rng.integers(lo, hi, size=(int(n),), endpoint=True, dtype=npdt)
    return a, b


def host_vectors(cfg: RunConfig) -> Tuple[np.ndarray, np.ndarray]:
    """Host-side A and B for a run: explicit, random, or constant-filled."""
    npdt = np_dtype(cfg.dtype)
    if cfg.a is not None and cfg.b is not None:
        return np.ascontiguousarray(np.asarray(cfg.a, dtype=npdt)), np.ascontiguousarray(np.asarray(cfg.b, dtype=npdt))
    if cfg.random:
        return random_vectors(cfg.n, dtype=cfg.dtype, seed=cfg.seed)
    return filled_vectors(cfg.n, cfg.a_fill, cfg.b_fill, dtype=cfg.dtype)


def generate_cases(
    *,
    limit: int = 10,
    seed: int = 0,
    dtype: str = "i32",
    max_n: int = DEFAULT_MAX_THREADS_PER_BLOCK,
    extra_sizes: Sequence[int] | None = None,
) -> List[DotCase]:
    """
    Edge sizes first (those <= max_n), then extra sizes, each with seeded random vectors.
    """
    sizes: List[int] = []
    for v in [*EDGE_VALUES, *(extra_sizes or [])]:
        v = int(v)
        if 1 <= v <= int(max_n) and v not in sizes:
            sizes.append(v)
    out: List[DotCase] = []
    for i, n in enumerate(sizes[: max(0, int(limit))]):
        case_seed = int(seed) + i
        a, b = random_vectors(n, dtype=dtype, seed=case_seed)
        out.append(DotCase(n=n, seed=case_seed, dtype=dtype, a=a, b=b))
    return out


__all__ = [
    "DotCase",
    "EDGE_VALUES",
    "DEFAULT_VALUE_RANGE",
    "filled_vectors",
    "random_vectors",
    "host_vectors",
    "generate_cases",
]
