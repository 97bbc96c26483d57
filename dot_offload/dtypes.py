"""
Fixed-width integer element types shared by host, kernels and reference.

Device integers wrap modulo 2**bits; `wrap_int` reproduces that on Python ints
so the simulator and the reference agree with the GPU bit-for-bit.
"""

from __future__ import annotations

from typing import Any, Literal

import numpy as np


IntDType = Literal["i32", "i64"]

SUPPORTED_DTYPES: tuple[str, ...] = ("i32", "i64")


def np_dtype(dtype: str) -> Any:
    dt = str(dtype)
    if dt == "i32":
        return np.int32
    if dt == "i64":
        return np.int64
    raise ValueError(f"unsupported dtype: {dtype} (expected one of {', '.join(SUPPORTED_DTYPES)})")


def c_type(dtype: str) -> str:
    dt = str(dtype)
    if dt == "i32":
        return "int32_t"
    if dt == "i64":
        return "int64_t"
    raise ValueError(f"unsupported dtype for CUDA: {dtype}")


def itemsize(dtype: str) -> int:
    return int(np.dtype(np_dtype(dtype)).itemsize)


def bits(dtype: str) -> int:
    return itemsize(dtype) * 8


def wrap_int(value: int, dtype: str) -> int:
    """Two's-complement wrap of an arbitrary Python int into `dtype`."""
    nbits = bits(dtype)
    half = 1 << (nbits - 1)
    return ((int(value) + half) % (1 << nbits)) - half


__all__ = ["IntDType", "SUPPORTED_DTYPES", "np_dtype", "c_type", "itemsize", "bits", "wrap_int"]
