"""
Metamorphic + bounded exhaustive checks for the dot-product offload.

These run the full host program on a backend, so they exercise the device
path (alloc/copy/launch/sync) and not only the kernel:

- Metamorphic: relations between runs that must hold whatever the inputs are
  (same inputs twice, different launch shape, operands swapped, joint
  permutation, negated operand).
- Bounded exhaustive: every vector pair of tiny length over a tiny value
  domain, compared against the sequential reference.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from itertools import product
from typing import Callable, List, Optional, Sequence, Tuple

import numpy as np

from dot_offload.config import RunConfig
from dot_offload.dtypes import np_dtype, wrap_int
from dot_offload.launch import pow2_ceil
from pipeline.interfaces import DeviceBackend
from pipeline.run import run_dot_product
from verify.gen_cases import host_vectors
from verify.reference import reference_dot


@dataclass
class MetamorphicResult:
    relation: str
    ok: bool
    detail: str


@dataclass
class MetamorphicSuiteReport:
    ok: bool
    results: List[MetamorphicResult]


@dataclass
class BoundedExhaustiveReport:
    ok: bool
    checked: int
    total: int
    detail: str
    first_failure: Optional[Tuple[List[int], List[int]]] = None


def _run(cfg: RunConfig, backend: DeviceBackend, a: np.ndarray, b: np.ndarray, **overrides) -> int:
    c = replace(cfg, a=a, b=b, strict=False, **overrides)
    return run_dot_product(c, backend=backend).got


def _alt_threads(n: int, strategy: str, limit: int) -> List[int]:
    """Other valid threads_per_block values for the same N."""
    base = pow2_ceil(n) if strategy == "tree" else int(n)
    out: List[int] = []
    for t in (pow2_ceil(n), pow2_ceil(n) * 2, int(limit)):
        t = int(t)
        if t == base or t < n or t > limit or t in out:
            continue
        if strategy == "tree" and (t & (t - 1)):
            continue
        out.append(t)
    return out


def run_metamorphic_suite(cfg: RunConfig, backend: DeviceBackend, *, rng_seed: int = 0) -> MetamorphicSuiteReport:
    rng = np.random.default_rng(int(rng_seed))
    a, b = host_vectors(cfg)
    n = int(a.shape[0])
    base = _run(cfg, backend, a, b)
    results: List[MetamorphicResult] = []

    def check(relation: str, got: int, want: int) -> None:
        ok = int(got) == int(want)
        results.append(MetamorphicResult(relation=relation, ok=ok, detail=f"got={got} want={want}"))

    check("idempotent", _run(cfg, backend, a, b), base)

    limit = int(backend.limits().max_threads_per_block)
    for t in _alt_threads(n, cfg.strategy, limit):
        check(f"launch_invariant(threads={t})", _run(cfg, backend, a, b, threads_per_block=t), base)

    for other in backend.strategies:
        if other != cfg.strategy:
            check(f"strategy_agrees({other})", _run(cfg, backend, a, b, strategy=other, threads_per_block=None), base)

    check("swap_operands", _run(cfg, backend, b.copy(), a.copy()), base)

    perm = rng.permutation(n)
    check("joint_permutation", _run(cfg, backend, a[perm].copy(), b[perm].copy()), base)

    neg = (-a.astype(np.int64)).astype(np_dtype(cfg.dtype))
    check("negate_operand", _run(cfg, backend, neg, b), wrap_int(-base, cfg.dtype))

    return MetamorphicSuiteReport(ok=all(r.ok for r in results), results=results)


def run_bounded_exhaustive(
    backend: DeviceBackend,
    *,
    max_n: int = 2,
    values: Sequence[int] = (-2, -1, 0, 1, 2),
    dtype: str = "i32",
    strategy: str = "serial",
    max_cases: Optional[int] = None,
    on_case: Optional[Callable[[int, int], None]] = None,
) -> BoundedExhaustiveReport:
    npdt = np_dtype(dtype)
    pairs: List[Tuple[Tuple[int, ...], Tuple[int, ...]]] = []
    for n in range(1, int(max_n) + 1):
        for xs in product(values, repeat=n):
            for ys in product(values, repeat=n):
                pairs.append((xs, ys))
    total = len(pairs)
    if max_cases is not None:
        pairs = pairs[: int(max_cases)]

    checked = 0
    for xs, ys in pairs:
        a = np.asarray(xs, dtype=npdt)
        b = np.asarray(ys, dtype=npdt)
        cfg = RunConfig(a=a, b=b, dtype=dtype, strategy=strategy, strict=False)
        got = run_dot_product(cfg, backend=backend).got
        want = reference_dot(a, b, dtype=dtype)
        checked += 1
        if on_case is not None:
            on_case(checked, total)
        if got != want:
            return BoundedExhaustiveReport(
                ok=False,
                checked=checked,
                total=total,
                detail=f"a={list(xs)} b={list(ys)}: got={got} want={want}",
                first_failure=(list(xs), list(ys)),
            )
    return BoundedExhaustiveReport(ok=True, checked=checked, total=total, detail=f"{checked}/{total} cases match")


__all__ = [
    "MetamorphicResult",
    "MetamorphicSuiteReport",
    "BoundedExhaustiveReport",
    "run_metamorphic_suite",
    "run_bounded_exhaustive",
]
