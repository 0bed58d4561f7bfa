# Author      : Tyson Limato
# Date        : 2025-7-04
# File Name   : matrices.py
import numpy as np
import pandas as pd

DTYPES = {"int32": np.int32, "int64": np.int64}


def pattern_matrices(n: int, m: int, dtype=np.int64):
    """
    Build the reference inputs: every row of A is [1, 2, ..., M] and every
    row of B is [1, 2, ..., N].

    Returns:
    --------
    tuple (A, B)
        A has shape (n, m), B has shape (m, n).
    """
    a = np.tile(np.arange(1, m + 1, dtype=dtype), (n, 1))
    b = np.tile(np.arange(1, n + 1, dtype=dtype), (m, 1))
    return a, b


def random_matrices(n: int, m: int, dtype=np.int64, low: int = -10, high: int = 10, seed=None):
    """Random integer inputs in [low, high], reproducible when `seed` is given."""
    if low > high:
        raise ValueError(f"--low ({low}) must not exceed --high ({high})")
    rng = np.random.default_rng(seed)
    a = rng.integers(low, high, size=(n, m), endpoint=True, dtype=dtype)
    b = rng.integers(low, high, size=(m, n), endpoint=True, dtype=dtype)
    return a, b


def load_matrix_csv(csv_path: str, dtype=np.int64) -> np.ndarray:
    """
    Load an integer matrix from a headerless CSV file.

    Parameters:
    -----------
    csv_path : str
        Path to the CSV file, one matrix row per line.
    dtype : numpy dtype
        Fixed-width integer type to store the values in.

    Returns:
    --------
    np.ndarray
        2-D array of shape (rows, cols).
    """
    df = pd.read_csv(csv_path, header=None)
    if df.isna().any().any():
        raise ValueError(f"{csv_path}: matrix has missing entries")
    values = df.to_numpy()
    if values.dtype.kind not in "iu":
        raise ValueError(f"{csv_path}: matrix entries must be integers, found {values.dtype}")
    limits = np.iinfo(dtype)
    if values.size and (values.min() < limits.min or values.max() > limits.max):
        raise ValueError(
            f"{csv_path}: entries in [{values.min()}, {values.max()}] do not fit "
            f"{np.dtype(dtype).name} [{limits.min}, {limits.max}]"
        )
    return values.astype(dtype)


def save_matrix_csv(matrix: np.ndarray, csv_path: str):
    """Write a matrix as headerless CSV (the format load_matrix_csv reads)."""
    pd.DataFrame(matrix).to_csv(csv_path, header=False, index=False)


def check_operands(a: np.ndarray, b: np.ndarray):
    """
    Check A (N x M) and B (M x N) can be multiplied into an N x N result.

    Returns:
    --------
    tuple (N, M)
    """
    if a.ndim != 2 or b.ndim != 2:
        raise ValueError(f"Matrices must be 2-D, got A{a.shape} and B{b.shape}")
    if a.dtype.kind not in "iu" or b.dtype.kind not in "iu":
        raise ValueError(f"Matrices must hold integers, got {a.dtype} and {b.dtype}")
    n, m = a.shape
    if b.shape != (m, n):
        raise ValueError(f"B must have shape {(m, n)} to multiply A{a.shape}, got B{b.shape}")
    return n, m
