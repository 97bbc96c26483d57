"""
CUDA device backend: torch CUDA tensors for device memory, the
`dot_product.cu` kernels launched through a Torch extension.
"""

from __future__ import annotations

from typing import Any, Optional, Tuple

import numpy as np

from backends.cuda.device import query_cuda_limits
from backends.cuda.runtime import (
    CudaLaunch,
    CudaRuntimeError,
    compile_cuda_extension,
    cuda_available,
    cuda_free_mem_mb,
    dtype_to_torch,
    launch_args,
    min_free_mem_mb,
)
from dot_offload.diagnostics import AllocationError, LaunchConfigError, TransferError
from dot_offload.launch import DeviceLimits, LaunchConfig
from kernels.cuda.ops.dot_product import DOT_PRODUCT_CU_PATH, DOT_PRODUCT_KERNELS, dot_product_io
from pipeline import registry


def _torch() -> Any:
    import torch  # noqa: PLC0415

    return torch


def _dtype_name(t: Any) -> str:
    torch = _torch()
    if t.dtype == torch.int32:
        return "i32"
    if t.dtype == torch.int64:
        return "i64"
    raise CudaRuntimeError(f"unsupported tensor dtype for dot_product: {t.dtype}")


class CudaBackend:
    name = "cuda"
    strategies: Tuple[str, ...] = ("serial", "tree")

    def __init__(self, *, device: str = "cuda") -> None:
        self.device = str(device)
        self._limits: Optional[DeviceLimits] = None

    def is_available(self) -> bool:
        return cuda_available()

    def limits(self) -> DeviceLimits:
        if self._limits is None:
            self._limits = query_cuda_limits()
        return self._limits

    def alloc(self, n: int, dtype: str) -> Any:
        torch = _torch()
        min_free = min_free_mem_mb()
        if min_free > 0:
            free_mb = cuda_free_mem_mb()
            if free_mb < min_free:
                raise AllocationError(
                    f"CUDA free memory too low ({free_mb} MiB < {min_free} MiB)",
                    hint="free GPU memory or set DOT_OFFLOAD_CUDA_MIN_FREE_MB=0 to bypass",
                )
        return torch.empty((int(n),), device=self.device, dtype=dtype_to_torch(dtype))

    def free(self, buf: Any) -> None:
        # Memory returns to torch's caching allocator once the last reference drops.
        return None

    def copy_to_device(self, buf: Any, host: np.ndarray) -> None:
        torch = _torch()
        src = torch.from_numpy(np.ascontiguousarray(host))
        if tuple(src.shape) != tuple(buf.shape):
            raise TransferError(f"size mismatch: host {tuple(src.shape)} vs device {tuple(buf.shape)}")
        if src.dtype != buf.dtype:
            raise TransferError(f"dtype mismatch: host {src.dtype} vs device {buf.dtype}")
        buf.copy_(src)

    def copy_to_host(self, buf: Any) -> np.ndarray:
        return buf.detach().cpu().numpy()

    def launch(self, strategy: str, launch: LaunchConfig, a: Any, b: Any, res: Any, n: int) -> None:
        kernel_name = DOT_PRODUCT_KERNELS.get(str(strategy))
        if kernel_name is None:
            raise LaunchConfigError(f"no CUDA kernel for strategy {strategy!r}")
        dtype = _dtype_name(a)
        try:
            mod = compile_cuda_extension(
                kernel_name=kernel_name,
                cuda_src=DOT_PRODUCT_CU_PATH.read_text(encoding="utf-8"),
                io_spec=dot_product_io(dtype),
            )
        except (OSError, RuntimeError, ImportError) as e:
            raise CudaRuntimeError(f"kernel build failed: {type(e).__name__}: {e}") from e
        cl = CudaLaunch(grid=launch.grid, block=launch.block, shared_mem=launch.shared_mem_bytes(dtype))
        mod.launch(a, b, res, int(n), *launch_args(cl))

    def synchronize(self) -> None:
        _torch().cuda.synchronize()


registry.register(CudaBackend())


__all__ = ["CudaBackend"]
