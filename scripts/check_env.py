"""
Which device backends can run here?

Probes the pieces each backend needs (numpy for `sim`; torch with a CUDA
device plus nvcc for `cuda`; triton plus a CUDA device for `triton`), prints
one status line per probe and the backend `auto` would pick.

Exit status is 1 when a core piece is missing, or with `--require BACKEND`
when that backend cannot run.
"""

from __future__ import annotations

import argparse
import importlib
import json
import shutil
import subprocess
import sys
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Dict, List, Tuple

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from pipeline import registry  # noqa: E402

# backend -> probes it depends on
BACKEND_NEEDS: Dict[str, Tuple[str, ...]] = {
    "sim": ("numpy",),
    "cuda": ("numpy", "torch", "nvcc", "cuda_device"),
    "triton": ("numpy", "torch", "triton", "cuda_device"),
}
CORE = ("python", "numpy")


@dataclass(frozen=True)
class Probe:
    name: str
    ok: bool
    detail: str = ""


def probe_python() -> Probe:
    v = sys.version_info
    return Probe("python", (v.major, v.minor) >= (3, 10), f"{v.major}.{v.minor}.{v.micro}")


def probe_module(mod: str) -> Probe:
    try:
        m = importlib.import_module(mod)
    except (ImportError, OSError) as e:
        return Probe(mod, False, f"{type(e).__name__}: {e}")
    return Probe(mod, True, str(getattr(m, "__version__", "")))


def probe_nvcc() -> Probe:
    exe = shutil.which("nvcc")
    if exe is None:
        return Probe("nvcc", False, "not on PATH")
    proc = subprocess.run([exe, "--version"], capture_output=True, text=True, check=False)
    lines = (proc.stdout or proc.stderr).strip().splitlines()
    return Probe("nvcc", proc.returncode == 0, lines[-1] if lines else f"rc={proc.returncode}")


def probe_cuda_device() -> Probe:
    from backends.cuda.runtime import cuda_available  # noqa: PLC0415

    if not cuda_available():
        return Probe("cuda_device", False, "torch.cuda not available")
    from backends.cuda.device import query_cuda_limits  # noqa: PLC0415

    lim = query_cuda_limits()
    return Probe("cuda_device", True, f"{lim.name} max_threads_per_block={lim.max_threads_per_block} smem={lim.max_shared_mem_per_block}")


def run_probes() -> List[Probe]:
    return [
        probe_python(),
        probe_module("numpy"),
        probe_module("torch"),
        probe_module("triton"),
        probe_nvcc(),
        probe_cuda_device(),
    ]


def usable_backends(probes: List[Probe]) -> List[str]:
    ok = {p.name for p in probes if p.ok}
    return [name for name, needs in BACKEND_NEEDS.items() if all(n in ok for n in needs)]


def main(argv: List[str] | None = None) -> int:
    ap = argparse.ArgumentParser()
    ap.add_argument("--require", action="append", default=[], choices=sorted(BACKEND_NEEDS), help="fail unless this backend can run")
    ap.add_argument("--json", action="store_true")
    args = ap.parse_args(argv)

    probes = run_probes()
    usable = usable_backends(probes)
    missing_core = [p.name for p in probes if p.name in CORE and not p.ok]
    missing_required = [b for b in args.require if b not in usable]
    ok = not missing_core and not missing_required

    if args.json:
        print(json.dumps({"ok": ok, "probes": [asdict(p) for p in probes], "usable": usable}, indent=2))
    else:
        for p in probes:
            status = "OK" if p.ok else ("FAIL" if p.name in CORE else "SKIP")
            print(f"[{status}] {p.name}: {p.detail}")
        print(f"usable backends: {', '.join(usable) or 'none'}")
        if usable:
            print(f"auto picks: {registry.resolve('auto').name}")
        for b in missing_required:
            print(f"[FAIL] required backend {b} cannot run (needs {', '.join(BACKEND_NEEDS[b])})")
    return 0 if ok else 1


if __name__ == "__main__":
    raise SystemExit(main())
