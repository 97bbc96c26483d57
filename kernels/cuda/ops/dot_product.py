from __future__ import annotations

from pathlib import Path


DOT_PRODUCT_CU_PATH = Path(__file__).with_name("dot_product.cu")


def dot_product_io(dtype: str = "i32") -> dict:
    return {
        # Matches kernel parameter order.
        "arg_names": ["a", "b", "res", "n"],
        # Pointer args (tensor name -> dtype, logical rank)
        "tensors": {
            "a": {"dtype": dtype, "rank": 1, "shape": ["n"]},
            "b": {"dtype": dtype, "rank": 1, "shape": ["n"]},
            "res": {"dtype": dtype, "rank": 1, "shape": [1]},
        },
        # Scalar args (name -> dtype)
        "scalars": {"n": "i32"},
        # Template parameter of the kernel.
        "template_dtype": dtype,
    }


# strategy -> kernel template name in dot_product.cu
DOT_PRODUCT_KERNELS = {
    "serial": "dot_product_serial",
    "tree": "dot_product_tree",
}


__all__ = ["DOT_PRODUCT_CU_PATH", "DOT_PRODUCT_KERNELS", "dot_product_io"]
