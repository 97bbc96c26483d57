import json

from pipeline.run import main


def test_reference_run_prints_result(capsys):
    assert main(["--backend", "sim"]) == 0
    out = capsys.readouterr().out
    assert "[OK] dot_product backend=sim strategy=serial n=1024" in out
    assert "result=2048 expected=2048" in out


def test_tree_strategy_and_repeat(capsys):
    assert main(["--backend", "sim", "--n", "100", "--strategy", "tree", "--repeat", "3"]) == 0
    lines = [ln for ln in capsys.readouterr().out.splitlines() if ln.startswith("[OK]")]
    assert len(lines) == 3
    assert all("threads=128" in ln and "result=200" in ln for ln in lines)


def test_json_summary(capsys):
    assert main(["--backend", "sim", "--n", "8", "--random", "--seed", "4", "--json"]) == 0
    summary = json.loads(capsys.readouterr().out)
    assert summary["ok"] is True
    assert summary["config"]["random"] is True
    run = summary["runs"][0]
    assert run["got"] == run["expected"]
    assert run["limits"]["max_threads_per_block"] == 1024


def test_oversized_block_fails_with_diagnostic(capsys):
    assert main(["--backend", "sim", "--n", "4", "--threads", "2048"]) == 1
    err = capsys.readouterr().err
    assert err.startswith("ERROR: launch(validate) failed at ")
    assert "exceeds device limit 1024" in err
    assert "Hint: use threads_per_block <= 1024" in err


def test_oversized_block_without_prevalidation_is_caught_at_sync(capsys):
    assert main(["--backend", "sim", "--n", "4", "--threads", "2048", "--no-prevalidate"]) == 1
    err = capsys.readouterr().err
    assert "synchronize failed" in err


def test_json_failure(capsys):
    assert main(["--backend", "sim", "--n", "4", "--blocks", "2", "--json"]) == 1
    captured = capsys.readouterr()
    payload = json.loads(captured.out)
    assert payload["ok"] is False
    assert payload["kind"] == "launch"


def test_unknown_backend(capsys):
    assert main(["--backend", "opencl"]) == 1
    assert "not registered" in capsys.readouterr().err


def test_negative_length_is_a_diagnostic(capsys):
    assert main(["--backend", "sim", "--n", "-1"]) == 1
    assert "vector length must be >= 1" in capsys.readouterr().err
    assert main(["--backend", "sim", "--n", "-1", "--random"]) == 1


def test_fill_overflow_is_a_diagnostic(capsys):
    assert main(["--backend", "sim", "--n", "4", "--a-fill", str(2**31)]) == 1
    assert "does not fit i32" in capsys.readouterr().err
