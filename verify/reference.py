"""
Independent sequential reference for the dot product.

Python ints are exact, so the sum is computed exactly and wrapped once at the
end; modular arithmetic makes that equal to wrapping every product and every
partial sum the way the device does.
"""

from __future__ import annotations

from typing import Sequence

import numpy as np

from dot_offload.diagnostics import ResultMismatchError
from dot_offload.dtypes import wrap_int


def reference_dot(a: Sequence[int] | np.ndarray, b: Sequence[int] | np.ndarray, *, dtype: str = "i32") -> int:
    xs = np.asarray(a).tolist()
    ys = np.asarray(b).tolist()
    if len(xs) != len(ys):
        raise ValueError(f"length mismatch: len(a)={len(xs)} len(b)={len(ys)}")
    acc = 0
    for x, y in zip(xs, ys):
        acc += int(x) * int(y)
    return wrap_int(acc, dtype)


def expected_filled(n: int, a_fill: int, b_fill: int, *, dtype: str = "i32") -> int:
    """Closed form for constant vectors: N * a * b."""
    return wrap_int(int(n) * int(a_fill) * int(b_fill), dtype)


def check_result(got: int, expected: int) -> None:
    if int(got) != int(expected):
        raise ResultMismatchError(int(got), int(expected), op="validate")


__all__ = ["reference_dot", "expected_filled", "check_result"]
