# Author      : Tyson Limato
# Date        : 2025-7-06
# File Name   : test_main.py
import io
import os
import shutil
import subprocess
import sys
import threading
from pathlib import Path

import numpy as np
import pytest

import matmul_main
from conftest import make_world
from matmul_main import load_operands, parse_args, run
from matrices import load_matrix_csv, save_matrix_csv
from roles import Worker

ROOT = Path(__file__).resolve().parent.parent


def run_all_ranks(run_ranks, argv, size=4):
    args = parse_args(argv)
    sink = io.StringIO()
    result, _ = run_ranks(size, lambda mgr: run(args, mgr, sink=sink), lambda mgr: run(args, mgr))
    return result, sink.getvalue()


def test_defaults():
    args = parse_args([])
    assert (args.rows, args.inner) == (20, 32)
    assert args.kernel == "loop"
    assert args.gather_order == "rank"
    assert not args.skip_empty


@pytest.mark.parametrize("argv", [
    ["--matrix-a", "a.csv"],
    ["--rounds", "0"],
    ["--rows", "-1"],
    ["--kernel", "blas"],
])
def test_rejects_bad_arguments(argv):
    with pytest.raises(SystemExit):
        parse_args(argv)


def test_reference_run_prints_report(run_ranks):
    result, text = run_all_ranks(run_ranks, ["--rows", "4", "--inner", "2", "--verify"])
    assert result.product.tolist() == [[3, 6, 9, 12]] * 4
    assert "The Resultant Matrix is ::" in text
    assert "Result check passed" in text


def test_run_with_files_and_outputs(run_ranks, tmp_path):
    rng = np.random.default_rng(0)
    a = rng.integers(-5, 5, size=(5, 3))
    b = rng.integers(-5, 5, size=(3, 5))
    save_matrix_csv(a, tmp_path / "a.csv")
    save_matrix_csv(b, tmp_path / "b.csv")

    argv = [
        "--matrix-a", str(tmp_path / "a.csv"), "--matrix-b", str(tmp_path / "b.csv"),
        "--gather-order", "arrival", "--kernel", "numpy", "--rounds", "3", "--quiet",
        "--output", str(tmp_path / "c.csv"), "--stats", str(tmp_path / "stats.csv"),
        "--plot", str(tmp_path / "rounds.png"),
    ]
    _, text = run_all_ranks(run_ranks, argv, size=3)

    np.testing.assert_array_equal(load_matrix_csv(tmp_path / "c.csv"), a @ b)
    assert "Matrix A:" not in text
    assert "Round time metrics" in text
    assert (tmp_path / "stats.csv").exists()
    assert (tmp_path / "rounds.png").exists()


def test_load_operands_rejects_mismatched_files(tmp_path):
    save_matrix_csv(np.ones((2, 3), dtype=np.int64), tmp_path / "a.csv")
    save_matrix_csv(np.ones((2, 2), dtype=np.int64), tmp_path / "b.csv")
    args = parse_args(["--matrix-a", str(tmp_path / "a.csv"), "--matrix-b", str(tmp_path / "b.csv")])
    with pytest.raises(ValueError, match="shape"):
        load_operands(args)


def test_random_fill_is_seeded():
    args = parse_args(["--fill", "random", "--seed", "4", "--rows", "3", "--inner", "2", "--dtype", "int32"])
    a1, b1 = load_operands(args)
    a2, b2 = load_operands(args)
    assert a1.dtype == np.int32
    np.testing.assert_array_equal(a1, a2)
    np.testing.assert_array_equal(b1, b2)


@pytest.mark.skipif(shutil.which("mpiexec") is None, reason="mpiexec not available")
def test_mpiexec_end_to_end(tmp_path):
    env = dict(os.environ,
               OMPI_ALLOW_RUN_AS_ROOT="1",
               OMPI_ALLOW_RUN_AS_ROOT_CONFIRM="1",
               OMPI_MCA_rmaps_base_oversubscribe="1",
               PRTE_MCA_rmaps_default_mapping_policy=":oversubscribe")
    out = tmp_path / "c.csv"
    proc = subprocess.run(
        ["mpiexec", "-n", "3", sys.executable, str(ROOT / "matmul_main.py"),
         "--rows", "4", "--inner", "2", "--quiet", "--verify", "--output", str(out)],
        cwd=ROOT, env=env, capture_output=True, text=True, timeout=120,
    )
    assert proc.returncode == 0, proc.stderr
    assert "Result check passed" in proc.stdout
    assert load_matrix_csv(out).tolist() == [[3, 6, 9, 12]] * 4


def use_world(monkeypatch, size):
    """Make matmul_main.main() run as rank 0 of an in-process world."""
    mailbox, managers = make_world(size)
    monkeypatch.setattr(matmul_main, "MPIManager", lambda: managers[0])
    return mailbox, managers


def test_main_aborts_without_workers(monkeypatch, capsys, caplog):
    mailbox, _ = use_world(monkeypatch, 1)
    matmul_main.main(["--rows", "4", "--inner", "2"])

    assert mailbox.aborted == 1
    assert mailbox.log == []  # nothing sent before the abort
    assert "Resultant Matrix" not in capsys.readouterr().out
    assert "TopologyError" in caplog.text


def misplaced_reply(worker, offset, row_count, a_block, b):
    worker.reply(offset + 1, row_count, worker.compute(a_block, b, row_count))


def wrong_values_reply(worker, offset, row_count, a_block, b):
    worker.reply(offset, row_count, np.zeros((row_count, b.shape[1]), dtype=a_block.dtype))


@pytest.mark.parametrize("reply, argv, error", [
    (misplaced_reply,    [],           "TransportError"),
    (wrong_values_reply, ["--verify"], "Result check FAILED"),
])
def test_main_aborts_without_report_on_failed_round(monkeypatch, capsys, caplog, tmp_path, reply, argv, error):
    mailbox, managers = use_world(monkeypatch, 2)

    def bad_worker():
        worker = Worker(managers[1])
        reply(worker, *worker.receive())

    thread = threading.Thread(target=bad_worker, daemon=True)
    thread.start()
    out = tmp_path / "c.csv"
    matmul_main.main(["--rows", "4", "--inner", "2", "--output", str(out)] + argv)
    thread.join(10)

    assert mailbox.aborted == 1
    assert error in caplog.text
    assert "Resultant Matrix" not in capsys.readouterr().out
    assert not out.exists()
