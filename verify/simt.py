"""
Numpy-based SIMT executor for block/thread kernels.

Kernels are generator functions `kernel(t, *args)`; `t` is the thread's
`ThreadContext` and `yield SYNC` is the block barrier (`__syncthreads`).

Execution per block proceeds in barrier phases. Inside a phase the order in
which threads run is shuffled with a seeded RNG: writes from different threads
are unordered until the barrier, so a kernel that reads a sibling's slot
before syncing gets caught by a seed that runs the reader first.

Faults (out-of-range shared/global access, barrier divergence, yielding
anything but SYNC) raise `SimFault`.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Generator, Iterable, List, Optional, Sequence

import numpy as np

from dot_offload.dtypes import np_dtype, wrap_int


class SimFault(RuntimeError):
    pass


class _SyncThreads:
    __slots__ = ()

    def __repr__(self) -> str:
        return "SYNC"


SYNC = _SyncThreads()

Kernel = Callable[..., Generator[Any, None, None]]


class BoundedArray:
    """
    1-D device array with bounds-checked element access and wrapping stores.

    Reads return Python ints; stores wrap into the element type like device
    integer arithmetic does.
    """

    def __init__(self, data: np.ndarray, *, dtype: str, space: str = "global", name: str = "") -> None:
        arr = np.asarray(data)
        if arr.ndim != 1:
            raise ValueError(f"BoundedArray expects 1-D data, got shape {arr.shape}")
        self._data = arr
        self.dtype = str(dtype)
        self.space = str(space)
        self.name = str(name)

    def __len__(self) -> int:
        return int(self._data.shape[0])

    def _check(self, idx: int) -> int:
        i = int(idx)
        if i < 0 or i >= len(self):
            label = f"{self.space} {self.name}".strip()
            raise SimFault(f"out-of-bounds {label} access at index {i} (size {len(self)})")
        return i

    def __getitem__(self, idx: int) -> int:
        return int(self._data[self._check(idx)])

    def __setitem__(self, idx: int, value: int) -> None:
        self._data[self._check(idx)] = wrap_int(int(value), self.dtype)

    def numpy(self) -> np.ndarray:
        return self._data


@dataclass
class ThreadContext:
    thread_idx: int
    block_idx: int
    block_dim: int
    grid_dim: int
    shared: BoundedArray

    @property
    def global_id(self) -> int:
        return self.block_idx * self.block_dim + self.thread_idx


def shared_buffer(nbytes: int, dtype: str) -> BoundedArray:
    npdt = np_dtype(dtype)
    itemsize = int(np.dtype(npdt).itemsize)
    # Uninitialized on real hardware; a sentinel makes unwritten reads visible.
    data = np.full((int(nbytes) // itemsize,), np.iinfo(npdt).min, dtype=npdt)
    return BoundedArray(data, dtype=dtype, space="shared", name="smem")


def _run_block(
    kernel: Kernel,
    *,
    block_idx: int,
    block_dim: int,
    grid_dim: int,
    shared: BoundedArray,
    args: Sequence[Any],
    rng: np.random.Generator,
) -> int:
    threads: List[Generator[Any, None, None]] = []
    for tid in range(block_dim):
        ctx = ThreadContext(thread_idx=tid, block_idx=block_idx, block_dim=block_dim, grid_dim=grid_dim, shared=shared)
        threads.append(kernel(ctx, *args))

    live = list(range(block_dim))
    phases = 0
    while live:
        waiting: List[int] = []
        finished: List[int] = []
        for tid in rng.permutation(live).tolist():
            try:
                yielded = next(threads[tid])
            except StopIteration:
                finished.append(tid)
                continue
            if yielded is not SYNC:
                raise SimFault(f"thread {tid} of block {block_idx} yielded {yielded!r}; kernels may only yield SYNC")
            waiting.append(tid)
        if waiting and finished:
            raise SimFault(
                f"barrier divergence in block {block_idx} at phase {phases}: "
                f"{len(waiting)} thread(s) wait at the barrier, {len(finished)} exited"
            )
        live = sorted(waiting)
        phases += 1
    return phases


def launch_kernel(
    kernel: Kernel,
    *,
    grid: int,
    block: int,
    shared_mem: int,
    shared_dtype: str,
    args: Iterable[Any],
    seed: int = 0,
) -> int:
    """
    Run `kernel` over `grid` blocks of `block` threads; return barrier phases
    executed by the last block.

    Blocks run one after another in index order; the kernel must not depend on
    that (cross-block order is unspecified on hardware).
    """
    args = list(args)
    rng = np.random.default_rng(int(seed))
    phases = 0
    for block_idx in range(int(grid)):
        shared = shared_buffer(int(shared_mem), shared_dtype)
        phases = _run_block(
            kernel,
            block_idx=block_idx,
            block_dim=int(block),
            grid_dim=int(grid),
            shared=shared,
            args=args,
            rng=rng,
        )
    return phases


__all__ = ["SimFault", "SYNC", "BoundedArray", "ThreadContext", "shared_buffer", "launch_kernel"]
