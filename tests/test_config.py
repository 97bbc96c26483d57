import numpy as np
import pytest

from backends.sim.adapter import SimBackend
from dot_offload.config import RunConfig, apply_env_limits, env_int
from dot_offload.launch import DeviceLimits, LaunchConfig
from pipeline import registry


def test_defaults_are_the_reference_run():
    cfg = RunConfig()
    assert (cfg.n, cfg.a_fill, cfg.b_fill) == (1024, 1, 2)
    assert cfg.launch_config() == LaunchConfig(threads_per_block=1024, blocks=1)


def test_explicit_vectors_set_length():
    cfg = RunConfig(a=np.arange(5), b=np.arange(5))
    assert cfg.n == 5
    assert cfg.to_json_dict()["explicit_vectors"] is True
    assert "a" not in cfg.to_json_dict()


@pytest.mark.parametrize(
    "kwargs,match",
    [
        ({"dtype": "f32"}, "unsupported dtype"),
        ({"strategy": "warp"}, "unsupported strategy"),
        ({"a": [1, 2]}, "given as a pair"),
        ({"a": [1, 2], "b": [1]}, "lengths differ"),
        ({"a": [[1]], "b": [[1]]}, "1-D"),
    ],
)
def test_invalid_config(kwargs, match):
    with pytest.raises(ValueError, match=match):
        RunConfig(**kwargs)


def test_from_env(monkeypatch):
    monkeypatch.setenv("DOT_OFFLOAD_BACKEND", "sim")
    assert RunConfig.from_env().backend == "sim"
    assert RunConfig.from_env(backend="cuda", n=None).backend == "cuda"
    monkeypatch.delenv("DOT_OFFLOAD_BACKEND")
    assert RunConfig.from_env().backend == "auto"


def test_env_int_parsing(monkeypatch):
    monkeypatch.setenv("DOT_OFFLOAD_SIM_MEM_BYTES", "not-a-number")
    assert env_int("SIM_MEM_BYTES", 7) == 7
    monkeypatch.setenv("DOT_OFFLOAD_SIM_MEM_BYTES", "-5")
    assert env_int("SIM_MEM_BYTES", 7) == 0


def test_env_thread_cap(monkeypatch):
    base = DeviceLimits(max_threads_per_block=1024, name="gpu")
    assert apply_env_limits(base) is base
    monkeypatch.setenv("DOT_OFFLOAD_MAX_THREADS_PER_BLOCK", "128")
    capped = apply_env_limits(base)
    assert capped.max_threads_per_block == 128 and capped.name == "gpu"
    monkeypatch.setenv("DOT_OFFLOAD_MAX_THREADS_PER_BLOCK", "4096")
    assert apply_env_limits(base).max_threads_per_block == 1024
    assert SimBackend().limits().max_threads_per_block == 1024


def test_registry_lookup():
    assert registry.get("sim").name == "sim"
    assert "sim" in registry.available()
    assert registry.resolve("sim").name == "sim"
    assert registry.resolve("auto").name in registry.available()
    with pytest.raises(KeyError, match="not registered"):
        registry.get("opencl")


@pytest.mark.parametrize("n", [0, -1])
def test_non_positive_length_rejected(n):
    with pytest.raises(ValueError, match="vector length must be >= 1"):
        RunConfig(n=n)
    with pytest.raises(ValueError, match="vector length must be >= 1"):
        RunConfig(n=n, random=True)


def test_empty_explicit_vectors_rejected():
    with pytest.raises(ValueError, match="vector length must be >= 1"):
        RunConfig(a=np.array([], dtype=np.int32), b=np.array([], dtype=np.int32))


def test_float_vectors_rejected_not_truncated():
    with pytest.raises(ValueError, match="must hold integers"):
        RunConfig(a=np.array([1.5, 2.7]), b=np.array([2, 2]))
    with pytest.raises(ValueError, match="vector b must hold integers"):
        RunConfig(a=[1, 2], b=[2.0, 2.0])


def test_out_of_range_values_rejected():
    with pytest.raises(ValueError, match="outside the i32 range"):
        RunConfig(a=np.array([2**31], dtype=np.int64), b=np.array([1], dtype=np.int64))
    cfg = RunConfig(a=np.array([2**31], dtype=np.int64), b=np.array([1], dtype=np.int64), dtype="i64")
    assert cfg.n == 1
    with pytest.raises(ValueError, match="outside the i64 range"):
        RunConfig(a=[2**63], b=[1], dtype="i64")


def test_fill_must_fit_dtype():
    with pytest.raises(ValueError, match="a_fill=2147483648 does not fit i32"):
        RunConfig(n=4, a_fill=2**31)
    assert RunConfig(n=4, a_fill=2**31, dtype="i64").a_fill == 2**31


def test_broken_optional_backend_is_skipped(monkeypatch):
    real_import = registry.importlib.import_module

    def fake_import(name, *args, **kwargs):
        if name == "broken_gpu.adapter":
            raise OSError("libcudart.so.12: cannot open shared object file")
        return real_import(name, *args, **kwargs)

    monkeypatch.setattr(registry.importlib, "import_module", fake_import)
    monkeypatch.setitem(registry._LAZY, "broken", "broken_gpu.adapter")
    monkeypatch.setattr(registry, "AUTO_ORDER", ("broken", "sim"))
    with pytest.raises(KeyError, match="not registered"):
        registry.get("broken")
    assert registry.available() == ["sim"]
    assert registry.resolve("auto").name == "sim"
