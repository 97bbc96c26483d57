"""
Launch configuration for the single-group dot-product reduction.

The reduction sums the whole shared scratch buffer inside one execution group,
so a launch is only valid when every index in [0, N) lands in block 0:
`blocks == 1` and `threads_per_block >= N`. Anything else is rejected here
rather than silently truncated.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Tuple

from dot_offload.diagnostics import LaunchConfigError
from dot_offload.dtypes import itemsize


STRATEGIES: tuple[str, ...] = ("serial", "tree")

# Limits shared by every CUDA device since compute capability 2.0.
DEFAULT_MAX_THREADS_PER_BLOCK = 1024
DEFAULT_MAX_SHARED_MEM_PER_BLOCK = 48 * 1024


def pow2_ceil(x: int) -> int:
    if x <= 1:
        return 1
    return 1 << (int(x) - 1).bit_length()


def is_pow2(x: int) -> bool:
    return int(x) > 0 and (int(x) & (int(x) - 1)) == 0


@dataclass(frozen=True)
class DeviceLimits:
    max_threads_per_block: int = DEFAULT_MAX_THREADS_PER_BLOCK
    max_shared_mem_per_block: int = DEFAULT_MAX_SHARED_MEM_PER_BLOCK
    name: str = "generic"

    def to_json_dict(self) -> dict:
        return {
            "name": self.name,
            "max_threads_per_block": int(self.max_threads_per_block),
            "max_shared_mem_per_block": int(self.max_shared_mem_per_block),
        }


@dataclass(frozen=True)
class LaunchConfig:
    threads_per_block: int
    blocks: int = 1

    @property
    def grid(self) -> Tuple[int, int, int]:
        return (int(self.blocks), 1, 1)

    @property
    def block(self) -> Tuple[int, int, int]:
        return (int(self.threads_per_block), 1, 1)

    @property
    def total_threads(self) -> int:
        return int(self.threads_per_block) * int(self.blocks)

    def shared_mem_bytes(self, dtype: str) -> int:
        """Dynamic shared memory for the per-element product buffer."""
        return int(self.threads_per_block) * itemsize(dtype)

    @classmethod
    def for_length(cls, n: int, *, strategy: str = "serial", threads_per_block: Optional[int] = None) -> "LaunchConfig":
        """One thread per element, padded to a power of two for the tree reduction."""
        if threads_per_block is not None:
            return cls(threads_per_block=int(threads_per_block), blocks=1)
        threads = pow2_ceil(n) if strategy == "tree" else max(1, int(n))
        return cls(threads_per_block=threads, blocks=1)


def check_device_limits(launch: LaunchConfig, *, dtype: str = "i32", limits: Optional[DeviceLimits] = None) -> None:
    """
    Hardware-level launch checks only (what a device rejects on its own).
    """
    limits = limits or DeviceLimits()
    threads = int(launch.threads_per_block)
    blocks = int(launch.blocks)
    if threads < 1 or blocks < 1:
        raise LaunchConfigError(f"launch dims must be positive, got threads_per_block={threads} blocks={blocks}")
    if threads > int(limits.max_threads_per_block):
        raise LaunchConfigError(
            f"threads_per_block={threads} exceeds device limit {limits.max_threads_per_block} ({limits.name})",
            hint=f"use threads_per_block <= {limits.max_threads_per_block}",
        )
    smem = launch.shared_mem_bytes(dtype)
    if smem > int(limits.max_shared_mem_per_block):
        raise LaunchConfigError(
            f"shared buffer of {smem} bytes exceeds device limit {limits.max_shared_mem_per_block} bytes"
        )


def validate_launch(
    launch: LaunchConfig,
    n: int,
    *,
    dtype: str = "i32",
    strategy: str = "serial",
    limits: Optional[DeviceLimits] = None,
) -> None:
    """
    Raise `LaunchConfigError` unless `launch` can run the single-group reduction.
    """
    limits = limits or DeviceLimits()
    threads = int(launch.threads_per_block)
    blocks = int(launch.blocks)
    if strategy not in STRATEGIES:
        raise LaunchConfigError(
            f"unknown reduction strategy {strategy!r}",
            hint=f"use one of: {', '.join(STRATEGIES)}",
        )
    if int(n) < 1:
        raise LaunchConfigError(f"vector length must be >= 1, got N={n}")
    if int(n) > int(limits.max_threads_per_block):
        raise LaunchConfigError(
            f"N={n} exceeds the per-group thread limit {limits.max_threads_per_block}; "
            "the single-group design cannot cover it"
        )
    check_device_limits(launch, dtype=dtype, limits=limits)
    if blocks != 1:
        raise LaunchConfigError(
            f"single-group reduction requires blocks == 1, got blocks={blocks}",
            hint="the final sum scans one block's shared buffer; multi-block reduction is not supported",
        )
    if launch.total_threads < int(n):
        raise LaunchConfigError(
            f"launch covers {launch.total_threads} threads but N={n}",
            hint=f"use threads_per_block >= {n}",
        )
    if strategy == "tree" and not is_pow2(threads):
        raise LaunchConfigError(
            f"tree reduction needs a power-of-two threads_per_block, got {threads}",
            hint=f"use threads_per_block={pow2_ceil(threads)}",
        )


__all__ = [
    "STRATEGIES",
    "DEFAULT_MAX_THREADS_PER_BLOCK",
    "DEFAULT_MAX_SHARED_MEM_PER_BLOCK",
    "pow2_ceil",
    "is_pow2",
    "DeviceLimits",
    "LaunchConfig",
    "check_device_limits",
    "validate_launch",
]
