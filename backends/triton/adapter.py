"""
Triton device backend.

Device memory is torch CUDA tensors like the CUDA backend. The reduction is
`tl.sum` over the program's lanes, which is a tree reduction, so only the
`tree` strategy is offered. Launch limits are not enforced by Triton itself
(BLOCK is a compile-time lane count), so they are checked here against the
queried device limits before the kernel is queued.
"""

from __future__ import annotations

from typing import Any, Optional, Tuple

import numpy as np

from backends.cuda.device import query_cuda_limits
from backends.cuda.runtime import cuda_available, dtype_to_torch
from dot_offload.diagnostics import LaunchConfigError, TransferError
from dot_offload.launch import DeviceLimits, LaunchConfig, check_device_limits
from pipeline import registry


def _torch() -> Any:
    import torch  # noqa: PLC0415

    return torch


def triton_available() -> bool:
    try:
        import triton  # noqa: F401, PLC0415
    except (ImportError, OSError):
        return False
    return cuda_available()


class TritonBackend:
    name = "triton"
    strategies: Tuple[str, ...] = ("tree",)

    def __init__(self, *, device: str = "cuda") -> None:
        self.device = str(device)
        self._limits: Optional[DeviceLimits] = None

    def is_available(self) -> bool:
        return triton_available()

    def limits(self) -> DeviceLimits:
        if self._limits is None:
            self._limits = query_cuda_limits()
        return self._limits

    def alloc(self, n: int, dtype: str) -> Any:
        return _torch().empty((int(n),), device=self.device, dtype=dtype_to_torch(dtype))

    def free(self, buf: Any) -> None:
        return None

    def copy_to_device(self, buf: Any, host: np.ndarray) -> None:
        src = _torch().from_numpy(np.ascontiguousarray(host))
        if tuple(src.shape) != tuple(buf.shape) or src.dtype != buf.dtype:
            raise TransferError(
                f"host {tuple(src.shape)}/{src.dtype} does not match device {tuple(buf.shape)}/{buf.dtype}"
            )
        buf.copy_(src)

    def copy_to_host(self, buf: Any) -> np.ndarray:
        return buf.detach().cpu().numpy()

    def launch(self, strategy: str, launch: LaunchConfig, a: Any, b: Any, res: Any, n: int) -> None:
        if str(strategy) not in self.strategies:
            raise LaunchConfigError(f"triton backend supports strategies {self.strategies}, got {strategy!r}")
        dtype = "i32" if a.dtype == _torch().int32 else "i64"
        check_device_limits(launch, dtype=dtype, limits=self.limits())
        if int(launch.blocks) != 1:
            raise LaunchConfigError(f"triton dot_product runs one program, got blocks={launch.blocks}")
        from kernels.triton.ops.dot_product import dot_product  # noqa: PLC0415

        try:
            dot_product(a[: int(n)], b[: int(n)], res, block=int(launch.threads_per_block))
        except ValueError as e:
            raise LaunchConfigError(str(e)) from e

    def synchronize(self) -> None:
        _torch().cuda.synchronize()


registry.register(TritonBackend())


__all__ = ["triton_available", "TritonBackend"]
