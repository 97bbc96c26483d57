from __future__ import annotations

import pytest

from backends.triton.adapter import triton_available
from dot_offload.config import RunConfig
from dot_offload.diagnostics import LaunchConfigError
from pipeline.run import run_dot_product
from verify.gen_cases import random_vectors
from verify.reference import reference_dot

pytestmark = pytest.mark.skipif(not triton_available(), reason="Triton with a CUDA device not available")


def _backend():
    from backends.triton.adapter import TritonBackend

    return TritonBackend()


def test_triton_reference_run():
    r = run_dot_product(RunConfig(n=1024, a_fill=1, b_fill=2, strategy="tree"), backend=_backend())
    assert r.got == 2048


@pytest.mark.parametrize("n", [1, 17, 1000])
def test_triton_random_matches_reference(n):
    a, b = random_vectors(n, seed=n)
    r = run_dot_product(RunConfig(a=a, b=b, strategy="tree"), backend=_backend())
    assert r.got == reference_dot(a, b)


def test_triton_has_no_serial_strategy():
    with pytest.raises(LaunchConfigError, match="does not support strategy"):
        run_dot_product(RunConfig(n=8, strategy="serial"), backend=_backend())
