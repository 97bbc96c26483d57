"""
CUDA kernel library (source-only).

Kernel sources live as real `.cu` files in `kernels/cuda/ops/`, each with a
tiny Python module holding its IO spec and path.
"""
