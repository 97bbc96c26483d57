"""
Simulated device backend: numpy device memory + the SIMT executor.

Mirrors the CUDA runtime's observable behaviour:
- allocation fails once the simulated capacity is exhausted
- copies check size and dtype
- launch is asynchronous: a bad configuration or a kernel fault is recorded
  and only raised by the next `synchronize`
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Tuple

import numpy as np

from dot_offload.config import apply_env_limits, env_int
from dot_offload.diagnostics import AllocationError, DeviceOpError, ExecutionFaultError, LaunchConfigError, TransferError
from dot_offload.dtypes import itemsize, np_dtype
from dot_offload.launch import DeviceLimits, LaunchConfig, check_device_limits
from kernels.sim.ops.dot_product import SIM_KERNELS
from pipeline import registry
from verify.simt import BoundedArray, SimFault, launch_kernel


DEFAULT_SIM_MEM_BYTES = 64 * 1024 * 1024


@dataclass
class SimBuffer:
    array: BoundedArray
    nbytes: int
    freed: bool = False


class SimBackend:
    name = "sim"
    strategies: Tuple[str, ...] = ("serial", "tree")

    def __init__(self, *, limits: Optional[DeviceLimits] = None, mem_bytes: Optional[int] = None, seed: int = 0) -> None:
        self._limits = limits
        self._mem_bytes = mem_bytes
        self.seed = int(seed)
        self.used_bytes = 0
        self.launches = 0
        self.last_phases = 0
        self._pending: Optional[DeviceOpError] = None

    @property
    def mem_bytes(self) -> int:
        if self._mem_bytes is not None:
            return int(self._mem_bytes)
        return int(env_int("SIM_MEM_BYTES", DEFAULT_SIM_MEM_BYTES, minimum=0))

    def is_available(self) -> bool:
        return True

    def limits(self) -> DeviceLimits:
        return apply_env_limits(self._limits or DeviceLimits(name="simt-sim"))

    def alloc(self, n: int, dtype: str) -> SimBuffer:
        n = int(n)
        if n < 1:
            raise AllocationError(f"invalid allocation size: {n} elements")
        nbytes = n * itemsize(dtype)
        if self.used_bytes + nbytes > self.mem_bytes:
            raise AllocationError(
                f"out of device memory: requested {nbytes} bytes, {self.used_bytes} of {self.mem_bytes} in use"
            )
        self.used_bytes += nbytes
        arr = np.zeros((n,), dtype=np_dtype(dtype))
        return SimBuffer(array=BoundedArray(arr, dtype=dtype), nbytes=nbytes)

    def free(self, buf: SimBuffer) -> None:
        if buf.freed:
            return
        buf.freed = True
        self.used_bytes -= int(buf.nbytes)

    def _live(self, buf: SimBuffer, what: str) -> BoundedArray:
        if buf.freed:
            raise TransferError(f"{what} of a freed device buffer")
        return buf.array

    def copy_to_device(self, buf: SimBuffer, host: np.ndarray) -> None:
        dev = self._live(buf, "copy")
        src = np.asarray(host)
        dst = dev.numpy()
        if src.shape != dst.shape:
            raise TransferError(f"size mismatch: host {src.shape} vs device {dst.shape}")
        if src.dtype != dst.dtype:
            raise TransferError(f"dtype mismatch: host {src.dtype} vs device {dst.dtype}")
        dst[...] = src

    def copy_to_host(self, buf: SimBuffer) -> np.ndarray:
        return self._live(buf, "copy").numpy().copy()

    def launch(self, strategy: str, launch: LaunchConfig, a: SimBuffer, b: SimBuffer, res: SimBuffer, n: int) -> None:
        if self._pending is not None:
            # First unreported error wins; later launches do not run.
            return
        self.launches += 1
        kernel = SIM_KERNELS.get(str(strategy))
        if kernel is None:
            self._pending = LaunchConfigError(f"no kernel for strategy {strategy!r}")
            return
        dtype = a.array.dtype
        try:
            check_device_limits(launch, dtype=dtype, limits=self.limits())
        except LaunchConfigError as e:
            self._pending = e
            return
        try:
            self.last_phases = launch_kernel(
                kernel,
                grid=launch.blocks,
                block=launch.threads_per_block,
                shared_mem=launch.shared_mem_bytes(dtype),
                shared_dtype=dtype,
                args=[a.array, b.array, res.array, int(n)],
                seed=self.seed + self.launches,
            )
        except SimFault as e:
            self._pending = ExecutionFaultError(f"kernel fault: {e}")

    def synchronize(self) -> None:
        err, self._pending = self._pending, None
        if err is not None:
            raise err


registry.register(SimBackend())


__all__ = ["DEFAULT_SIM_MEM_BYTES", "SimBuffer", "SimBackend"]
