"""
CUDA device limit query.

torch exposes most device properties but not every field on every version;
missing fields fall back to the limits shared by all devices since sm_20.
"""

from __future__ import annotations

from typing import Any, Optional

from dot_offload.config import apply_env_limits
from dot_offload.launch import DEFAULT_MAX_SHARED_MEM_PER_BLOCK, DEFAULT_MAX_THREADS_PER_BLOCK, DeviceLimits


def limits_from_properties(props: Any) -> DeviceLimits:
    max_threads = getattr(props, "max_threads_per_block", None) or DEFAULT_MAX_THREADS_PER_BLOCK
    smem = getattr(props, "shared_memory_per_block", None) or DEFAULT_MAX_SHARED_MEM_PER_BLOCK
    name = str(getattr(props, "name", "") or "cuda")
    return DeviceLimits(max_threads_per_block=int(max_threads), max_shared_mem_per_block=int(smem), name=name)


def query_cuda_limits(device_index: Optional[int] = None) -> DeviceLimits:
    import torch  # noqa: PLC0415

    idx = torch.cuda.current_device() if device_index is None else int(device_index)
    props = torch.cuda.get_device_properties(idx)
    return apply_env_limits(limits_from_properties(props))


__all__ = ["limits_from_properties", "query_cuda_limits"]
