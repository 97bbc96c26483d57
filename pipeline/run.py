"""
Host program for the dot-product offload.

One run: build host vectors -> validate the launch -> alloc a/b/res on the
device -> copy a/b over -> launch -> synchronize -> copy res back -> compare
against the expected value (closed form N*a*b for constant fills, otherwise the
sequential reference). Every device call goes through
`checked_device_op`; any failure is fatal for the run.

CLI:
  python -m pipeline.run --backend sim --n 1024 --a-fill 1 --b-fill 2
"""

from __future__ import annotations

import argparse
import json
import sys
import time
from typing import Any, List, Optional

from dot_offload.config import RunConfig, env_str
from dot_offload.diagnostics import DeviceOpError, LaunchConfigError, checked_device_op, format_rich
from dot_offload.dtypes import SUPPORTED_DTYPES
from dot_offload.launch import STRATEGIES, validate_launch
from pipeline import registry
from pipeline.interfaces import DeviceBackend, DotRunResult
from verify.gen_cases import host_vectors
from verify.reference import check_result, expected_filled, reference_dot


def run_dot_product(cfg: RunConfig, *, backend: Optional[DeviceBackend] = None, prevalidate: bool = True) -> DotRunResult:
    """
    Run one dot product on `backend` (default: resolved from `cfg.backend`).

    With `prevalidate=False` the launch goes to the device unchecked and any
    configuration error is whatever the device reports after the launch.
    """
    be = backend if backend is not None else registry.resolve(cfg.backend)
    if not be.is_available():
        raise DeviceOpError(f"backend {be.name!r} is not available on this host", op="init")
    a_host, b_host = host_vectors(cfg)
    n = int(a_host.shape[0])
    launch = cfg.launch_config()
    limits = be.limits()

    if cfg.strategy not in be.strategies:
        raise LaunchConfigError(
            f"backend {be.name!r} does not support strategy {cfg.strategy!r}",
            op="launch",
            hint=f"use one of: {', '.join(be.strategies)}",
        )
    if prevalidate:
        checked_device_op("launch(validate)", validate_launch, launch, n, dtype=cfg.dtype, strategy=cfg.strategy, limits=limits)

    bufs: List[Any] = []
    t0 = time.perf_counter()
    try:
        a_dev = checked_device_op("alloc(a)", be.alloc, n, cfg.dtype)
        bufs.append(a_dev)
        b_dev = checked_device_op("alloc(b)", be.alloc, n, cfg.dtype)
        bufs.append(b_dev)
        res_dev = checked_device_op("alloc(res)", be.alloc, 1, cfg.dtype)
        bufs.append(res_dev)

        checked_device_op("memcpy_h2d(a)", be.copy_to_device, a_dev, a_host)
        checked_device_op("memcpy_h2d(b)", be.copy_to_device, b_dev, b_host)

        checked_device_op("launch", be.launch, cfg.strategy, launch, a_dev, b_dev, res_dev, n)
        checked_device_op("synchronize", be.synchronize)

        res_host = checked_device_op("memcpy_d2h(res)", be.copy_to_host, res_dev)
    finally:
        for buf in reversed(bufs):
            be.free(buf)
    elapsed_ms = (time.perf_counter() - t0) * 1000.0

    got = int(res_host[0])
    if cfg.a is None and not cfg.random:
        expected = expected_filled(n, cfg.a_fill, cfg.b_fill, dtype=cfg.dtype)
    else:
        expected = reference_dot(a_host, b_host, dtype=cfg.dtype)
    result = DotRunResult(
        got=got,
        expected=expected,
        ok=(got == expected),
        n=n,
        dtype=cfg.dtype,
        strategy=cfg.strategy,
        backend=be.name,
        launch={"threads_per_block": int(launch.threads_per_block), "blocks": int(launch.blocks)},
        limits=limits.to_json_dict(),
        elapsed_ms=float(elapsed_ms),
    )
    if cfg.strict:
        checked_device_op("validate", check_result, got, expected)
    return result


def _parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    ap = argparse.ArgumentParser(description="Dot product of two integer vectors on a parallel device.")
    ap.add_argument("--backend", default=env_str("BACKEND", "auto"), help="cuda | triton | sim | auto")
    ap.add_argument("--n", type=int, default=None, help="vector length (default 1024)")
    ap.add_argument("--a-fill", type=int, default=None, help="value of every A[i] (default 1)")
    ap.add_argument("--b-fill", type=int, default=None, help="value of every B[i] (default 2)")
    ap.add_argument("--random", action="store_true", help="seeded random vectors instead of constant fills")
    ap.add_argument("--seed", type=int, default=0)
    ap.add_argument("--dtype", default="i32", choices=list(SUPPORTED_DTYPES))
    ap.add_argument("--threads", type=int, default=None, help="threads per block (default: N, or next pow2 for tree)")
    ap.add_argument("--blocks", type=int, default=1, help="blocks in the grid (must be 1)")
    ap.add_argument("--strategy", default="serial", choices=list(STRATEGIES))
    ap.add_argument("--repeat", type=int, default=1, help="run this many times; results must agree")
    ap.add_argument("--no-prevalidate", action="store_true", help="let the device reject bad launch configs")
    ap.add_argument("--json", action="store_true", help="print a JSON summary instead of status lines")
    return ap.parse_args(argv)


def main(argv: Optional[List[str]] = None) -> int:
    args = _parse_args(argv)
    try:
        cfg = RunConfig.from_env(
            backend=args.backend,
            n=args.n,
            a_fill=args.a_fill,
            b_fill=args.b_fill,
            random=bool(args.random),
            seed=int(args.seed),
            dtype=args.dtype,
            threads_per_block=args.threads,
            blocks=int(args.blocks),
            strategy=args.strategy,
        )
        backend = registry.resolve(cfg.backend)
    except (ValueError, KeyError) as e:
        print(f"error: {e}", file=sys.stderr)
        return 1

    results: List[DotRunResult] = []
    try:
        for _ in range(max(1, int(args.repeat))):
            results.append(run_dot_product(cfg, backend=backend, prevalidate=not args.no_prevalidate))
            if not args.json:
                r = results[-1]
                print(
                    f"[OK] dot_product backend={r.backend} strategy={r.strategy} n={r.n} dtype={r.dtype} "
                    f"threads={r.launch['threads_per_block']} blocks={r.launch['blocks']} "
                    f"result={r.got} expected={r.expected} ({r.elapsed_ms:.3f} ms)",
                    flush=True,
                )
    except DeviceOpError as e:
        print(format_rich(e.to_diagnostic()), file=sys.stderr, flush=True)
        if args.json:
            print(json.dumps({"ok": False, "error": str(e), "kind": e.kind}, indent=2))
        return 1

    distinct = {r.got for r in results}
    if len(distinct) > 1:
        print(f"[FAIL] repeated runs disagree: {sorted(distinct)}", file=sys.stderr, flush=True)
        return 1
    if args.json:
        summary = {
            "ok": all(r.ok for r in results),
            "config": cfg.to_json_dict(),
            "runs": [r.to_json_dict() for r in results],
        }
        print(json.dumps(summary, indent=2))
    return 0


__all__ = ["run_dot_product", "main"]


if __name__ == "__main__":
    raise SystemExit(main())
