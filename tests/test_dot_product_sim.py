import numpy as np
import pytest

from backends.sim.adapter import SimBackend
from dot_offload.config import RunConfig
from dot_offload.diagnostics import (
    AllocationError,
    DeviceOpError,
    ExecutionFaultError,
    LaunchConfigError,
    ResultMismatchError,
    TransferError,
)
from dot_offload.launch import DeviceLimits
from pipeline.run import run_dot_product
from verify.gen_cases import random_vectors
from verify.reference import reference_dot


def _vec(values, dtype=np.int32):
    return np.asarray(values, dtype=dtype)


def test_reference_run_all_ones_times_twos():
    r = run_dot_product(RunConfig(n=1024, a_fill=1, b_fill=2, threads_per_block=1024, blocks=1), backend=SimBackend())
    assert r.got == 2048
    assert r.expected == 2048
    assert r.ok
    assert r.launch == {"threads_per_block": 1024, "blocks": 1}


@pytest.mark.parametrize("strategy", ["serial", "tree"])
def test_small_example(strategy):
    cfg = RunConfig(a=_vec([1, 2, 3, 4]), b=_vec([4, 3, 2, 1]), strategy=strategy)
    assert run_dot_product(cfg, backend=SimBackend()).got == 20


@pytest.mark.parametrize("strategy", ["serial", "tree"])
def test_single_element(strategy):
    cfg = RunConfig(a=_vec([7]), b=_vec([-6]), strategy=strategy)
    r = run_dot_product(cfg, backend=SimBackend())
    assert r.got == -42
    assert r.launch["threads_per_block"] == 1


@pytest.mark.parametrize("strategy", ["serial", "tree"])
@pytest.mark.parametrize("n", [2, 3, 17, 100, 257])
def test_random_vectors_match_reference(n, strategy):
    a, b = random_vectors(n, seed=n)
    r = run_dot_product(RunConfig(a=a, b=b, strategy=strategy), backend=SimBackend(seed=n))
    assert r.got == reference_dot(a, b)


def test_max_threads_per_block_boundary():
    a, b = random_vectors(1024, seed=3)
    r = run_dot_product(RunConfig(a=a, b=b, threads_per_block=1024), backend=SimBackend())
    assert r.got == reference_dot(a, b)


def test_length_beyond_one_group_is_rejected():
    a, b = random_vectors(1025, seed=3)
    with pytest.raises(LaunchConfigError, match="single-group"):
        run_dot_product(RunConfig(a=a, b=b), backend=SimBackend())


def test_repeated_runs_are_identical():
    be = SimBackend()
    cfg = RunConfig(n=64, random=True, seed=5, strategy="tree")
    first = run_dot_product(cfg, backend=be).got
    for _ in range(3):
        assert run_dot_product(cfg, backend=be).got == first
    assert be.launches == 4
    assert be.used_bytes == 0


@pytest.mark.parametrize("strategy", ["serial", "tree"])
@pytest.mark.parametrize("threads", [4, 8, 1024])
def test_launch_shape_does_not_change_result(strategy, threads):
    cfg = RunConfig(a=_vec([1, 2, 3, 4]), b=_vec([4, 3, 2, 1]), strategy=strategy, threads_per_block=threads)
    assert run_dot_product(cfg, backend=SimBackend()).got == 20


def test_threads_above_device_limit_rejected_before_launch():
    be = SimBackend()
    with pytest.raises(LaunchConfigError, match="exceeds device limit 1024") as ei:
        run_dot_product(RunConfig(n=4, threads_per_block=2048), backend=be)
    assert ei.value.op == "launch(validate)"
    assert be.launches == 0


def test_threads_above_device_limit_reported_after_launch():
    be = SimBackend()
    with pytest.raises(LaunchConfigError, match="exceeds device limit") as ei:
        run_dot_product(RunConfig(n=4, threads_per_block=2048), backend=be, prevalidate=False)
    # Asynchronous launch: the error only surfaces at the device-wide wait.
    assert ei.value.op == "synchronize"
    assert be.used_bytes == 0


def test_custom_device_limit():
    be = SimBackend(limits=DeviceLimits(max_threads_per_block=256, name="small"))
    assert run_dot_product(RunConfig(n=256), backend=be).got == 512
    with pytest.raises(LaunchConfigError, match="256"):
        run_dot_product(RunConfig(n=257), backend=be)


def test_multi_block_rejected_before_launch():
    with pytest.raises(LaunchConfigError, match="blocks == 1"):
        run_dot_product(RunConfig(n=4, threads_per_block=2, blocks=2), backend=SimBackend())


def test_multi_block_without_validation_faults_on_device():
    with pytest.raises(ExecutionFaultError, match="out-of-bounds shared") as ei:
        run_dot_product(RunConfig(n=4, threads_per_block=2, blocks=2), backend=SimBackend(), prevalidate=False)
    assert ei.value.op == "synchronize"


def test_tree_needs_power_of_two_block():
    with pytest.raises(LaunchConfigError, match="power-of-two"):
        run_dot_product(RunConfig(n=5, threads_per_block=6, strategy="tree"), backend=SimBackend())


def test_allocation_failure_is_fatal_and_releases_buffers():
    be = SimBackend(mem_bytes=40)
    with pytest.raises(AllocationError, match="out of device memory") as ei:
        run_dot_product(RunConfig(n=8), backend=be)
    # a (32 bytes) fits, b does not
    assert ei.value.op == "alloc(b)"
    assert ei.value.location is not None
    assert ei.value.location.file.endswith("run.py")
    assert be.used_bytes == 0


def test_transfer_failure_is_wrapped():
    class BrokenCopy(SimBackend):
        def copy_to_device(self, buf, host):
            raise ValueError("invalid device pointer")

    with pytest.raises(TransferError, match="invalid device pointer") as ei:
        run_dot_product(RunConfig(n=4), backend=BrokenCopy())
    assert ei.value.op == "memcpy_h2d(a)"
    assert isinstance(ei.value.__cause__, ValueError)


def test_result_mismatch_is_reported():
    class OffByOne(SimBackend):
        def copy_to_host(self, buf):
            out = super().copy_to_host(buf)
            out[0] += 1
            return out

    with pytest.raises(ResultMismatchError) as ei:
        run_dot_product(RunConfig(n=4), backend=OffByOne())
    assert ei.value.got == 9
    assert ei.value.expected == 8

    r = run_dot_product(RunConfig(n=4, strict=False), backend=OffByOne())
    assert not r.ok


@pytest.mark.parametrize("strategy", ["serial", "tree"])
def test_i32_products_and_sums_wrap(strategy):
    a = _vec([46341, 65536, 2**31 - 1])
    b = _vec([46341, 65536, 2])
    r = run_dot_product(RunConfig(a=a, b=b, strategy=strategy), backend=SimBackend())
    assert r.got == reference_dot(a, b)
    assert r.got == ((46341 * 46341 + 2**32 + 2 * (2**31 - 1) + 2**31) % 2**32) - 2**31


def test_i64_vectors():
    a, b = random_vectors(37, dtype="i64", seed=11)
    r = run_dot_product(RunConfig(a=a, b=b, dtype="i64", strategy="tree"), backend=SimBackend())
    assert r.got == reference_dot(a, b, dtype="i64")


def test_unavailable_backend_is_reported():
    class Offline(SimBackend):
        def is_available(self):
            return False

    with pytest.raises(DeviceOpError, match="not available") as ei:
        run_dot_product(RunConfig(n=4), backend=Offline())
    assert ei.value.op == "init"


def test_unsupported_strategy_is_a_launch_error():
    class TreeOnly(SimBackend):
        strategies = ("tree",)

    with pytest.raises(LaunchConfigError, match="does not support strategy"):
        run_dot_product(RunConfig(n=4, strategy="serial"), backend=TreeOnly())


def test_constant_fill_checked_against_closed_form(monkeypatch):
    import pipeline.run as run_mod

    def no_reference(*args, **kwargs):
        raise AssertionError("constant fills use the closed form")

    monkeypatch.setattr(run_mod, "reference_dot", no_reference)
    r = run_dot_product(RunConfig(n=1000, a_fill=3, b_fill=-7), backend=SimBackend())
    assert r.expected == -21000
    assert r.got == -21000


def test_closed_form_wraps_like_the_device():
    r = run_dot_product(RunConfig(n=1024, a_fill=2**16, b_fill=2**16), backend=SimBackend())
    assert r.expected == r.got == 0
