# Author      : Tyson Limato
# Date        : 2025-7-04
# File Name   : matmul_report.py
import math
import sys

import matplotlib
matplotlib.use("Agg")
import matplotlib.pyplot as plt
import pandas as pd


def format_matrix(matrix) -> str:
    """Tab separated rows, one matrix row per line."""
    return "\n".join("\t".join(str(v) for v in row) for row in matrix)


def print_round(a, b, product, elapsed: float, sink=None, show_matrices: bool = True):
    """
    Render the inputs, the assembled result and the round time as text.

    Parameters:
    -----------
    a, b : np.ndarray
        The input matrices.
    product : np.ndarray
        The assembled result matrix C.
    elapsed : float
        Wall-clock seconds for partition, scatter, compute and gather.
    sink : text stream
        Where to write (default: sys.stdout).
    show_matrices : bool
        If False, only the timing line is written.
    """
    sink = sink if sink is not None else sys.stdout
    if show_matrices:
        print("Matrix A:", file=sink)
        print(format_matrix(a), file=sink)
        print("Matrix B:", file=sink)
        print(format_matrix(b), file=sink)
        print("\nThe Resultant Matrix is ::", file=sink)
        print(format_matrix(product), file=sink)
    print(f"Total time elapsed :: {elapsed:.6f}", file=sink)


def round_stats(times) -> dict:
    """min / max / avg seconds and the stddev as a percent of the average."""
    if not times:
        raise ValueError("No round times recorded")
    t_avg = sum(times) / len(times)
    var = sum((t - t_avg) ** 2 for t in times) / len(times)
    stddev = math.sqrt(var) / t_avg * 100 if t_avg != 0 else 0
    return {"t_min": min(times), "t_max": max(times), "t_avg": t_avg, "stddev": stddev}


def write_stats_csv(csv_path: str, rows: int, cols: int, n_workers: int, times):
    """Write a one-row table of timing statistics for the run."""
    stats = round_stats(times)
    df = pd.DataFrame([{
        "Workers":     n_workers,
        "Rows":        rows,
        "Inner":       cols,
        "Rounds":      len(times),
        "Total_t_min(s)": f"{stats['t_min']:.6f}",
        "Total_t_max(s)": f"{stats['t_max']:.6f}",
        "Total_t_avg(s)": f"{stats['t_avg']:.6f}",
        "Total_stddev(%)": f"{stats['stddev']:.2f}",
    }])
    df.to_csv(csv_path, index=False)
    return df


def plot_round_stats(assignments, times, filename: str = "round_stats.png"):
    """
    Uses matplotlib to plot the rows given to each worker (bars) and the
    time of each round (line), and saves to `filename`.
    """
    fig, (ax1, ax2) = plt.subplots(1, 2, figsize=(10, 4))

    workers = [a.worker for a in assignments]
    ax1.bar([str(w) for w in workers], [a.row_count for a in assignments])
    ax1.set_xlabel('Worker rank')
    ax1.set_ylabel('Rows assigned')
    ax1.set_title('Row Partition')

    rounds = list(range(1, len(times) + 1))
    ax2.plot(rounds, times, linestyle='-', marker='o', label='Time (s)')
    ax2.set_xlabel('Round')
    ax2.set_ylabel('Round Time (s)')
    ax2.set_title('Time per Round')
    ax2.legend(loc='upper right', fontsize='small')

    fig.tight_layout()
    fig.savefig(filename)
    plt.close(fig)
