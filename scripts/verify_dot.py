"""
Verification driver for the dot-product offload on one or more backends.

Steps per backend:
1) Differential runs over generated cases (edge sizes + random vectors).
2) Metamorphic suite on the reference configuration.
3) Bounded exhaustive sweep over tiny vectors (optional).
"""

from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path
from typing import Any, Dict, List

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from dot_offload.config import RunConfig  # noqa: E402
from dot_offload.diagnostics import DeviceOpError  # noqa: E402
from pipeline import registry  # noqa: E402
from pipeline.run import run_dot_product  # noqa: E402
from verify.gen_cases import generate_cases  # noqa: E402
from verify.metamorphic import run_bounded_exhaustive, run_metamorphic_suite  # noqa: E402


def verify_backend(name: str, *, cases: int, seed: int, exhaustive: bool, strategy: str) -> Dict[str, Any]:
    backend = registry.get(name)
    if not backend.is_available():
        return {"backend": name, "skipped": True, "reason": "not available"}
    if strategy not in backend.strategies:
        strategy = backend.strategies[0]
    limit = int(backend.limits().max_threads_per_block)

    diffs: List[Dict[str, Any]] = []
    for case in generate_cases(limit=cases, seed=seed, max_n=limit):
        cfg = RunConfig(a=case.a, b=case.b, dtype=case.dtype, strategy=strategy, strict=False)
        try:
            r = run_dot_product(cfg, backend=backend)
            diffs.append({"n": case.n, "ok": r.ok, "got": r.got, "expected": r.expected})
        except DeviceOpError as e:
            diffs.append({"n": case.n, "ok": False, "error": str(e)})
        status = "OK" if diffs[-1]["ok"] else "FAIL"
        print(f"[{status}] {name} n={case.n} {diffs[-1].get('error') or ''}".rstrip(), flush=True)

    meta = run_metamorphic_suite(RunConfig(strategy=strategy, random=True, seed=seed), backend, rng_seed=seed)
    for m in meta.results:
        print(f"[{'OK' if m.ok else 'FAIL'}] {name} metamorphic {m.relation}: {m.detail}", flush=True)

    out: Dict[str, Any] = {
        "backend": name,
        "strategy": strategy,
        "diff": diffs,
        "metamorphic": [m.__dict__ for m in meta.results],
    }
    ok = all(d["ok"] for d in diffs) and meta.ok
    if exhaustive:
        ex = run_bounded_exhaustive(backend, strategy=strategy)
        print(f"[{'OK' if ex.ok else 'FAIL'}] {name} exhaustive: {ex.detail}", flush=True)
        out["exhaustive"] = {"ok": ex.ok, "checked": ex.checked, "total": ex.total, "detail": ex.detail}
        ok = ok and ex.ok
    out["ok"] = ok
    return out


def main() -> None:
    ap = argparse.ArgumentParser()
    ap.add_argument("--backend", action="append", default=None, help="repeatable; default: all available")
    ap.add_argument("--cases", type=int, default=10)
    ap.add_argument("--seed", type=int, default=0)
    ap.add_argument("--strategy", default="serial")
    ap.add_argument("--exhaustive", action="store_true")
    ap.add_argument("--out", default=None, help="write the JSON report here")
    args = ap.parse_args()

    names = args.backend or registry.available()
    reports = [
        verify_backend(n, cases=int(args.cases), seed=int(args.seed), exhaustive=bool(args.exhaustive), strategy=args.strategy)
        for n in names
    ]
    ok_all = all(r.get("ok", True) for r in reports)
    if args.out:
        Path(args.out).write_text(json.dumps(reports, indent=2) + "\n", encoding="utf-8")
        print(f"wrote {args.out}")
    raise SystemExit(0 if ok_all else 1)


if __name__ == "__main__":
    main()
