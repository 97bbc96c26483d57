"""
Run configuration for one host/device dot-product run.

Environment variables (all optional, CLI flags win):
  DOT_OFFLOAD_BACKEND                 backend name or "auto" (default: auto)
  DOT_OFFLOAD_MAX_THREADS_PER_BLOCK   clamp the queried per-group thread limit
  DOT_OFFLOAD_SIM_MEM_BYTES           simulated device memory capacity
  DOT_OFFLOAD_TORCH_EXT_DIR           build root for the Torch CUDA extension
  DOT_OFFLOAD_CUDA_MIN_FREE_MB        refuse to allocate below this much free memory
"""

from __future__ import annotations

import os
from dataclasses import asdict, dataclass
from typing import Any, Dict, Optional

import numpy as np

from dot_offload.dtypes import SUPPORTED_DTYPES, np_dtype
from dot_offload.launch import STRATEGIES, DeviceLimits, LaunchConfig


ENV_PREFIX = "DOT_OFFLOAD_"

# Reference run: N=1024, A[i]=1, B[i]=2, 1024 threads in one block.
DEFAULT_N = 1024
DEFAULT_A_FILL = 1
DEFAULT_B_FILL = 2


def env_str(name: str, default: str) -> str:
    raw = os.getenv(ENV_PREFIX + name)
    if raw is None or not str(raw).strip():
        return default
    return str(raw).strip()


def env_int(name: str, default: Optional[int] = None, *, minimum: int = 0) -> Optional[int]:
    raw = os.getenv(ENV_PREFIX + name)
    if raw is None or not str(raw).strip():
        return default
    try:
        v = int(str(raw).strip())
    except ValueError:
        return default
    return max(int(minimum), v)


def apply_env_limits(limits: DeviceLimits) -> DeviceLimits:
    """Clamp queried device limits with DOT_OFFLOAD_MAX_THREADS_PER_BLOCK."""
    cap = env_int("MAX_THREADS_PER_BLOCK", None, minimum=1)
    if cap is None or cap >= int(limits.max_threads_per_block):
        return limits
    return DeviceLimits(
        max_threads_per_block=int(cap),
        max_shared_mem_per_block=int(limits.max_shared_mem_per_block),
        name=limits.name,
    )


def _check_elements(name: str, v: np.ndarray, dtype: str) -> None:
    # Explicit vectors must already be integers that fit the element type; no silent casts.
    if not np.issubdtype(v.dtype, np.integer):
        raise ValueError(f"vector {name} must hold integers, got dtype {v.dtype}")
    info = np.iinfo(np_dtype(dtype))
    lo, hi = int(v.min()), int(v.max())
    if lo < info.min or hi > info.max:
        raise ValueError(f"vector {name} has values in [{lo}, {hi}] outside the {dtype} range [{info.min}, {info.max}]")


@dataclass
class RunConfig:
    n: int = DEFAULT_N
    a_fill: int = DEFAULT_A_FILL
    b_fill: int = DEFAULT_B_FILL
    dtype: str = "i32"
    threads_per_block: Optional[int] = None
    blocks: int = 1
    strategy: str = "serial"
    backend: str = "auto"
    random: bool = False
    seed: int = 0
    # Raise ResultMismatchError on a wrong result instead of only reporting it.
    strict: bool = True
    # Explicit host vectors; override n/fill/random when given.
    a: Optional[np.ndarray] = None
    b: Optional[np.ndarray] = None

    def __post_init__(self) -> None:
        if self.dtype not in SUPPORTED_DTYPES:
            raise ValueError(f"unsupported dtype {self.dtype!r}; expected one of {SUPPORTED_DTYPES}")
        if self.strategy not in STRATEGIES:
            raise ValueError(f"unsupported strategy {self.strategy!r}; expected one of {STRATEGIES}")
        if (self.a is None) != (self.b is None):
            raise ValueError("explicit vectors must be given as a pair (a and b)")
        if self.a is not None:
            a = np.asarray(self.a)
            b = np.asarray(self.b)
            if a.ndim != 1 or b.ndim != 1:
                raise ValueError(f"vectors must be 1-D, got shapes {a.shape} and {b.shape}")
            if a.shape != b.shape:
                raise ValueError(f"vector lengths differ: len(a)={a.shape[0]} len(b)={b.shape[0]}")
            self.n = int(a.shape[0])
            if self.n >= 1:
                for name, v in (("a", a), ("b", b)):
                    _check_elements(name, v, self.dtype)
        if int(self.n) < 1:
            raise ValueError(f"vector length must be >= 1, got n={self.n}")
        if self.a is None and not self.random:
            info = np.iinfo(np_dtype(self.dtype))
            for name, fill in (("a_fill", self.a_fill), ("b_fill", self.b_fill)):
                if not info.min <= int(fill) <= info.max:
                    raise ValueError(f"{name}={fill} does not fit {self.dtype}")

    def launch_config(self) -> LaunchConfig:
        return LaunchConfig.for_length(self.n, strategy=self.strategy, threads_per_block=self.threads_per_block)

    def to_json_dict(self) -> Dict[str, Any]:
        d = asdict(self)
        d.pop("a", None)
        d.pop("b", None)
        d["explicit_vectors"] = self.a is not None
        return d

    @classmethod
    def from_env(cls, **overrides: Any) -> "RunConfig":
        kwargs: Dict[str, Any] = {"backend": env_str("BACKEND", "auto")}
        kwargs.update({k: v for k, v in overrides.items() if v is not None})
        return cls(**kwargs)


__all__ = ["ENV_PREFIX", "DEFAULT_N", "DEFAULT_A_FILL", "DEFAULT_B_FILL", "env_str", "env_int", "apply_env_limits", "RunConfig"]
