"""
CUDA runtime runner (MVP).

We launch kernels via a tiny Torch CUDA extension compiled at runtime
(torch.utils.cpp_extension.load_inline). This keeps dependencies to only
torch+nvcc (CuPy/cuda-python not required).
"""

from __future__ import annotations

import hashlib
import os
import sys
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, Iterable, Optional, Tuple

from dot_offload.config import env_int
from dot_offload.diagnostics import DeviceOpError
from dot_offload.dtypes import c_type


class CudaRuntimeError(DeviceOpError):
    kind = "cuda"


@dataclass(frozen=True)
class CudaLaunch:
    grid: Tuple[int, int, int]
    block: Tuple[int, int, int]
    shared_mem: int = 0


def _torch() -> Any:
    import torch  # noqa: PLC0415

    return torch


def cuda_available() -> bool:
    try:
        torch = _torch()
    except (ImportError, OSError):
        return False
    try:
        return bool(torch.cuda.is_available())
    except RuntimeError:
        return False


def cuda_free_mem_mb() -> int:
    """
    Best-effort free CUDA memory query.

    This can fail if the CUDA context cannot be created (e.g., GPU OOM); in that
    case we return 0 so callers can surface a clearer error early.
    """
    if not cuda_available():
        return 0
    torch = _torch()
    try:
        free, _total = torch.cuda.mem_get_info()
        return int(free // (1024 * 1024))
    except RuntimeError:
        return 0


def min_free_mem_mb() -> int:
    # Default to disabled; the dot product only needs a few KiB.
    return int(env_int("CUDA_MIN_FREE_MB", 0, minimum=0) or 0)


def dtype_to_torch(dt: str):
    torch = _torch()
    s = str(dt)
    if s == "i32":
        return torch.int32
    if s == "i64":
        return torch.int64
    raise CudaRuntimeError(f"unsupported dtype for CUDA runtime: {dt}")


def _hash_src(text: str) -> str:
    return hashlib.sha256(str(text).encode("utf-8")).hexdigest()[:16]


def _default_torch_ext_root() -> Path:
    """
    Default Torch extension build root under the repo.

    Some sandboxed environments forbid writing to `~/.cache/torch_extensions`.
    Keeping build outputs under `artifacts/` also makes runs reproducible.
    """
    root = Path(__file__).resolve().parents[2]
    py_tag = f"py{sys.version_info.major}{sys.version_info.minor}"
    return root / "artifacts" / "torch_extensions" / py_tag


def _torch_ext_build_dir(name: str) -> Path:
    base = os.getenv("DOT_OFFLOAD_TORCH_EXT_DIR")
    if base:
        return Path(base) / str(name)
    return _default_torch_ext_root() / str(name)


def build_extension_src(cuda_src: str, *, kernel_name: str, io_spec: Dict[str, Any]) -> str:
    """
    Wrap `cuda_src` with a `launch(...)` entry point taking tensors/scalars in
    kernel parameter order followed by grid/block dims and shared memory size.

    The launch reads `cudaGetLastError()` right after queuing the kernel so an
    invalid configuration is reported as soon as control is back on the host;
    faults during execution only show up on synchronize.
    """
    arg_names = [str(x) for x in (io_spec.get("arg_names") or [])]
    tensors = io_spec.get("tensors") if isinstance(io_spec.get("tensors"), dict) else {}
    scalars = io_spec.get("scalars") if isinstance(io_spec.get("scalars"), dict) else {}
    template_dtype = io_spec.get("template_dtype")
    kernel_ref = f"{kernel_name}<{c_type(template_dtype)}>" if template_dtype else kernel_name

    sig_args: list[str] = []
    call_args: list[str] = []
    checks: list[str] = []
    ptr_decls: list[str] = []

    for name in arg_names:
        if name in tensors:
            spec = tensors[name] if isinstance(tensors.get(name), dict) else {}
            dt = str(spec.get("dtype") or "i32")
            sig_args.append(f"torch::Tensor {name}")
            checks += [
                f"TORCH_CHECK({name}.is_cuda(), \"{name} must be CUDA tensor\");",
                f"TORCH_CHECK({name}.is_contiguous(), \"{name} must be contiguous\");",
            ]
            if dt == "i32":
                checks.append(f"TORCH_CHECK({name}.scalar_type() == at::kInt, \"{name} must be int32\");")
            elif dt == "i64":
                checks.append(f"TORCH_CHECK({name}.scalar_type() == at::kLong, \"{name} must be int64\");")
            cty = c_type(dt)
            ptr_decls.append(f"auto {name}_ptr = ({cty}*){name}.data_ptr();")
            call_args.append(f"{name}_ptr")
        elif name in scalars:
            sig_args.append(f"int64_t {name}")
            call_args.append(f"({c_type(str(scalars[name]))}){name}")
        else:
            # Unknown arg: treat as int64 scalar.
            sig_args.append(f"int64_t {name}")
            call_args.append(f"(int64_t){name}")

    sig_args += [
        "int64_t grid_x",
        "int64_t grid_y",
        "int64_t grid_z",
        "int64_t block_x",
        "int64_t block_y",
        "int64_t block_z",
        "int64_t shared_mem",
    ]
    dim = "dim3((unsigned)grid_x,(unsigned)grid_y,(unsigned)grid_z)"
    bdim = "dim3((unsigned)block_x,(unsigned)block_y,(unsigned)block_z)"

    src = f"""
#include <torch/extension.h>
#include <ATen/cuda/CUDAContext.h>
#include <cuda.h>
#include <cuda_runtime.h>
#include <stdint.h>

{cuda_src}

static void launch({", ".join(sig_args)}) {{
  {" ".join(checks)}
  {" ".join(ptr_decls)}
  // Respect the current PyTorch CUDA stream.
  cudaStream_t stream = at::cuda::getCurrentCUDAStream().stream();
  {kernel_ref}<<<{dim}, {bdim}, (size_t)shared_mem, stream>>>({", ".join(call_args)});
  cudaError_t err = cudaGetLastError();
  TORCH_CHECK(err == cudaSuccess, "kernel launch failed: ", cudaGetErrorString(err));
}}

PYBIND11_MODULE(TORCH_EXTENSION_NAME, m) {{
  m.def("launch", &launch, "Launch CUDA kernel");
}}
""".lstrip()
    return src


@lru_cache(maxsize=32)
def _load_ext_cached(name: str, cuda_src: str, extra_cuda_cflags: Tuple[str, ...]) -> Any:
    torch = _torch()
    from torch.utils.cpp_extension import load_inline  # noqa: PLC0415

    # Avoid compiling fatbins for unrelated GPU architectures by default.
    if not os.getenv("TORCH_CUDA_ARCH_LIST"):
        try:
            major, minor = torch.cuda.get_device_capability()
            os.environ["TORCH_CUDA_ARCH_LIST"] = f"{major}.{minor}"
        except RuntimeError:
            pass

    build_dir = _torch_ext_build_dir(name)
    build_dir.mkdir(parents=True, exist_ok=True)
    return load_inline(
        name=name,
        cpp_sources="",
        cuda_sources=cuda_src,
        functions=None,
        with_cuda=True,
        extra_cuda_cflags=["--std=c++17", *list(extra_cuda_cflags)],
        extra_cflags=["-std=c++17", "-O3"],
        build_directory=str(build_dir),
        verbose=False,
    )


def compile_cuda_extension(
    *,
    kernel_name: str,
    cuda_src: str,
    io_spec: Dict[str, Any],
    extra_cuda_cflags: Optional[Iterable[str]] = None,
) -> Any:
    """
    Compile (or load from cache) a tiny Torch extension that exposes `launch(...)`.
    """
    flags_list = ["-O3"]
    for x in (extra_cuda_cflags or []):
        s = str(x).strip()
        if s:
            flags_list.append(s)
    # De-duplicate while preserving order.
    seen: set[str] = set()
    flags: tuple[str, ...] = tuple(s for s in flags_list if not (s in seen or seen.add(s)))
    full_src = build_extension_src(cuda_src, kernel_name=kernel_name, io_spec=io_spec)
    h = _hash_src(full_src + "\nFLAGS:" + " ".join(flags))
    mod_name = f"dot_offload_cuda_{kernel_name}_{h}"
    return _load_ext_cached(mod_name, full_src, flags)


def launch_args(launch: CudaLaunch) -> list[int]:
    gx, gy, gz = (int(x) for x in launch.grid)
    bx, by, bz = (int(x) for x in launch.block)
    return [gx, gy, gz, bx, by, bz, int(launch.shared_mem)]


__all__ = [
    "CudaLaunch",
    "CudaRuntimeError",
    "cuda_available",
    "cuda_free_mem_mb",
    "min_free_mem_mb",
    "dtype_to_torch",
    "build_extension_src",
    "compile_cuda_extension",
    "launch_args",
]
