import torch
import triton
import triton.language as tl


@triton.jit
def dot_product_kernel(
    a_ptr,
    b_ptr,
    res_ptr,
    N,
    BLOCK: tl.constexpr,
):
    # One program plays the single execution group; its BLOCK lanes are the threads.
    offs = tl.arange(0, BLOCK)
    mask = offs < N
    a = tl.load(a_ptr + offs, mask=mask, other=0)
    b = tl.load(b_ptr + offs, mask=mask, other=0)
    prod = a * b
    s = tl.sum(prod, axis=0)
    tl.store(res_ptr, s)


def dot_product(a: torch.Tensor, b: torch.Tensor, res: torch.Tensor, *, block: int) -> torch.Tensor:
    if a.dtype not in (torch.int32, torch.int64):
        raise TypeError(f"dot_product expects int32/int64 tensors, got {a.dtype}")
    if a.ndim != 1 or a.shape != b.shape:
        raise ValueError(f"dot_product expects equal-length 1-D tensors, got {tuple(a.shape)} and {tuple(b.shape)}")
    n = int(a.shape[0])
    if block < n:
        raise ValueError(f"dot_product needs BLOCK >= N, got BLOCK={block} N={n}")
    if block & (block - 1):
        raise ValueError(f"dot_product needs a power-of-two BLOCK, got {block}")
    grid = (1,)
    dot_product_kernel[grid](a, b, res, n, BLOCK=block)
    return res


__all__ = ["dot_product_kernel", "dot_product"]
