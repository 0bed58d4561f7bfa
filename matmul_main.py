# ------------------------------------------------------------
# Author      : Tyson Limato
# Date        : 2025-7-05
# File Name   : matmul_main.py
# Description : Distributed dense integer matrix multiplication. Rank 0
#               splits the rows of A among the worker ranks, sends each
#               worker its rows plus a full copy of B, and assembles the
#               row-blocks the workers send back into C.
#
# Usage       : mpiexec -n <P> python matmul_main.py --rows 20 --inner 32
#               P must be at least 2 (1 coordinator + 1 worker).
#
# Dependencies:
#       - mpi4py
#       - numpy
#       - pandas
#       - matplotlib
#       - cupy (only for --kernel gpu)
# ------------------------------------------------------------
import argparse
import logging

import numpy as np

from matrices import DTYPES, check_operands, load_matrix_csv, pattern_matrices, random_matrices, save_matrix_csv
from mpiMGR import MPIManager, TopologyError, TransportError
from matmul_report import plot_round_stats, print_round, round_stats, write_stats_csv
from roles import GATHER_ORDERS, Coordinator, Worker
from matmul_kernels import KERNELS

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Row-block distributed matrix multiplication with mpi4py (coordinator + workers)"
    )
    parser.add_argument("--rows", "-n", type=int, default=20,
                        help="N: rows of A, columns of B, order of the result")
    parser.add_argument("--inner", "-m", type=int, default=32,
                        help="M: columns of A and rows of B")
    parser.add_argument("--dtype", type=str, choices=sorted(DTYPES), default="int64",
                        help="Fixed-width integer type of the matrices")
    parser.add_argument("--fill", type=str, choices=["pattern", "random"], default="pattern",
                        help="pattern: A[i][j] = B[i][j] = j+1; random: uniform integers")
    parser.add_argument("--seed", type=int, default=None,
                        help="Seed for --fill random")
    parser.add_argument("--low", type=int, default=-10,
                        help="Smallest value for --fill random")
    parser.add_argument("--high", type=int, default=10,
                        help="Largest value for --fill random")
    parser.add_argument("--matrix-a", type=str, default=None,
                        help="Headerless CSV to load A from (requires --matrix-b)")
    parser.add_argument("--matrix-b", type=str, default=None,
                        help="Headerless CSV to load B from (requires --matrix-a)")
    parser.add_argument("--kernel", type=str, choices=sorted(KERNELS), default="loop",
                        help="Row-block multiply used by the workers")
    parser.add_argument("--gather-order", type=str, choices=GATHER_ORDERS, default="rank",
                        help="Receive replies in rank order or as they arrive")
    parser.add_argument("--skip-empty", action="store_true",
                        help="Do not send B to workers that were assigned zero rows")
    parser.add_argument("--rounds", type=int, default=1,
                        help="Number of rounds to run back to back")
    parser.add_argument("--verify", action="store_true",
                        help="Check the result against a single-process numpy product")
    parser.add_argument("--quiet", "-q", action="store_true",
                        help="Only report timings, not the matrices")
    parser.add_argument("--output", type=str, default=None,
                        help="CSV file to write the result matrix to")
    parser.add_argument("--stats", type=str, default=None,
                        help="CSV file to write round timing statistics to")
    parser.add_argument("--plot", type=str, default=None,
                        help="PNG file for the partition / round time chart")
    parser.add_argument("--log-level", type=str, default="WARNING",
                        choices=["DEBUG", "INFO", "WARNING", "ERROR"])
    return parser


def parse_args(argv=None):
    parser = build_parser()
    args = parser.parse_args(argv)
    if (args.matrix_a is None) != (args.matrix_b is None):
        parser.error("--matrix-a and --matrix-b must be given together")
    if args.rows < 0 or args.inner < 0:
        parser.error("--rows and --inner must be non-negative")
    if args.rounds < 1:
        parser.error("--rounds must be at least 1")
    return args


def configure_logging(rank: int, level: str = "WARNING"):
    logging.basicConfig(
        level=getattr(logging, level),
        format=f"[Rank {rank}] %(levelname)s %(name)s: %(message)s",
    )


def load_operands(args):
    """Produce A and B on the coordinator from files or the chosen fill."""
    dtype = DTYPES[args.dtype]
    if args.matrix_a:
        a = load_matrix_csv(args.matrix_a, dtype)
        b = load_matrix_csv(args.matrix_b, dtype)
    elif args.fill == "random":
        a, b = random_matrices(args.rows, args.inner, dtype, args.low, args.high, args.seed)
    else:
        a, b = pattern_matrices(args.rows, args.inner, dtype)
    check_operands(a, b)
    return a, b


def run(args, mpi_mgr: MPIManager, sink=None):
    """
    Run the configured number of rounds on this rank.

    Returns:
    --------
    RoundResult or None
        The last round's result on the coordinator, None on workers.
    """
    mpi_mgr.require_workers()

    if not mpi_mgr.is_coordinator:
        worker = Worker(mpi_mgr, kernel=args.kernel, skip_empty=args.skip_empty)
        for _ in range(args.rounds):
            worker.run_round()
        return None

    a, b = load_operands(args)
    coordinator = Coordinator(mpi_mgr, gather_order=args.gather_order, skip_empty=args.skip_empty)

    result = None
    times = []
    for r in range(args.rounds):
        result = coordinator.run_round(a, b)
        times.append(result.elapsed)
        logger.info("round %d: %.6fs", r + 1, result.elapsed)

    if args.verify:
        expected = a @ b
        if not np.array_equal(result.product, expected):
            raise ValueError("Result check FAILED: distributed result does not match single-process product!")

    print_round(a, b, result.product, result.elapsed, sink=sink, show_matrices=not args.quiet)
    if args.verify:
        print("Result check passed: distributed result matches single-process product.", file=sink)
    if args.rounds > 1:
        stats = round_stats(times)
        print(f"Round time metrics: min={stats['t_min']:.6f}s, max={stats['t_max']:.6f}s, "
              f"avg={stats['t_avg']:.6f}s, stddev={stats['stddev']:.2f}%", file=sink)

    if args.output:
        save_matrix_csv(result.product, args.output)
    if args.stats:
        write_stats_csv(args.stats, a.shape[0], a.shape[1], mpi_mgr.num_workers, times)
    if args.plot:
        plot_round_stats(result.assignments, times, args.plot)
    return result


def main(argv=None):
    args = parse_args(argv)
    mpi_mgr = MPIManager()
    configure_logging(mpi_mgr.rank, args.log_level)
    try:
        run(args, mpi_mgr)
    except (TopologyError, TransportError, ValueError, OSError) as exc:
        logger.error("%s: %s", type(exc).__name__, exc)
        mpi_mgr.abort(1)


if __name__ == "__main__":
    main()
