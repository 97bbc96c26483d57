from backends.sim.adapter import SimBackend
from dot_offload.config import RunConfig
from verify.gen_cases import random_vectors
from verify.metamorphic import run_bounded_exhaustive, run_metamorphic_suite


class _OffByOneBackend(SimBackend):
    def copy_to_host(self, buf):
        out = super().copy_to_host(buf)
        out[0] += 1
        return out


def test_metamorphic_suite_on_simulator():
    a, b = random_vectors(16, seed=5)
    report = run_metamorphic_suite(RunConfig(a=a, b=b), SimBackend(), rng_seed=1)
    assert report.ok, [r for r in report.results if not r.ok]
    relations = [r.relation for r in report.results]
    assert "idempotent" in relations
    assert "strategy_agrees(tree)" in relations
    assert "joint_permutation" in relations
    assert any(r.startswith("launch_invariant(threads=") for r in relations)


def test_metamorphic_suite_tree_strategy():
    report = run_metamorphic_suite(RunConfig(n=5, random=True, seed=3, strategy="tree"), SimBackend())
    assert report.ok
    assert "strategy_agrees(serial)" in [r.relation for r in report.results]


def test_bounded_exhaustive_on_simulator():
    seen = []
    report = run_bounded_exhaustive(SimBackend(), max_n=2, values=(-1, 0, 1), on_case=lambda i, total: seen.append(i))
    assert report.ok
    assert report.checked == report.total == 90
    assert seen[-1] == 90


def test_bounded_exhaustive_finds_wrong_backend():
    report = run_bounded_exhaustive(_OffByOneBackend(), max_n=1, values=(-1, 0, 1), strategy="tree")
    assert not report.ok
    assert report.checked == 1
    assert report.first_failure == ([-1], [-1])


def test_bounded_exhaustive_case_cap():
    report = run_bounded_exhaustive(SimBackend(), max_n=2, values=(0, 1), max_cases=3)
    assert report.ok
    assert (report.checked, report.total) == (3, 20)
