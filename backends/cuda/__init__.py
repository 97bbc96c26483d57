"""
CUDA device backend.

Runs `kernels/cuda/ops/dot_product.cu` on an NVIDIA GPU through a Torch CUDA
extension; device memory is torch CUDA tensors.
"""

from .runtime import CudaLaunch, CudaRuntimeError, compile_cuda_extension  # noqa: F401

__all__ = [
    "CudaLaunch",
    "CudaRuntimeError",
    "compile_cuda_extension",
]
