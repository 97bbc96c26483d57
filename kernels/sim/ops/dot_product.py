"""
Python renditions of `kernels/cuda/ops/dot_product.cu` for the SIMT executor.

Same structure line for line: multiply into the shared product buffer (with
the bounds check), barrier, then reduce. `serial` has thread 0 scan the
buffer; `tree` halves the live range each step with a barrier in between.
"""

from __future__ import annotations

from verify.simt import SYNC, BoundedArray, ThreadContext


def dot_product_serial(t: ThreadContext, a: BoundedArray, b: BoundedArray, res: BoundedArray, n: int):
    tid = t.thread_idx
    gid = t.global_id
    t.shared[tid] = a[gid] * b[gid] if gid < n else 0
    yield SYNC
    if gid == 0:
        acc = 0
        for i in range(n):
            acc += t.shared[i]
        res[0] = acc


def dot_product_tree(t: ThreadContext, a: BoundedArray, b: BoundedArray, res: BoundedArray, n: int):
    tid = t.thread_idx
    gid = t.global_id
    t.shared[tid] = a[gid] * b[gid] if gid < n else 0
    yield SYNC
    stride = t.block_dim // 2
    while stride > 0:
        if tid < stride:
            t.shared[tid] = t.shared[tid] + t.shared[tid + stride]
        yield SYNC
        stride //= 2
    if gid == 0:
        res[0] = t.shared[0]


SIM_KERNELS = {
    "serial": dot_product_serial,
    "tree": dot_product_tree,
}


__all__ = ["dot_product_serial", "dot_product_tree", "SIM_KERNELS"]
