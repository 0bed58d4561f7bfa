# Author      : Tyson Limato
# Date        : 2025-7-03
# File Name   : matmul_kernels.py
import numpy as np


# ------------------ Row-Block Kernel (CPU, loops) ------------------
def multiply_rows_loop(a_block: np.ndarray, b: np.ndarray) -> np.ndarray:
    """
    Multiply a row-block of A by the full B with the plain triple loop.

    C_local[i][k] = sum over j of a_block[i][j] * b[j][k]

    Parameters:
    -----------
    a_block : np.ndarray
        Rows of A assigned to this worker, shape (row_count, M).
    b : np.ndarray
        The full right-hand matrix, shape (M, N).

    Returns:
    --------
    np.ndarray
        The matching rows of the product, shape (row_count, N), same dtype as a_block.
    """
    rows, inner = a_block.shape
    cols = b.shape[1]
    c_block = np.zeros((rows, cols), dtype=a_block.dtype)
    for i in range(rows):
        for k in range(cols):
            acc = c_block.dtype.type(0)  # reset per output cell
            for j in range(inner):
                acc += a_block[i, j] * b[j, k]
            c_block[i, k] = acc
    return c_block


# ------------------ Row-Block Kernel (CPU, vectorized) ------------------
def multiply_rows_numpy(a_block: np.ndarray, b: np.ndarray) -> np.ndarray:
    """Same product as multiply_rows_loop, using numpy's matmul."""
    return (a_block @ b).astype(a_block.dtype, copy=False)


# ------------------ Row-Block Kernel (GPU) ------------------
def multiply_rows_gpu(a_block: np.ndarray, b: np.ndarray) -> np.ndarray:
    """
    Same product computed on the current CUDA device with CuPy.
    The result is copied back to host memory so it can be sent over MPI.
    """
    import cupy as cp

    c_gpu = cp.asarray(a_block) @ cp.asarray(b)
    return cp.asnumpy(c_gpu).astype(a_block.dtype, copy=False)


KERNELS = {
    "loop":  multiply_rows_loop,
    "numpy": multiply_rows_numpy,
    "gpu":   multiply_rows_gpu,
}


def get_kernel(name: str):
    try:
        return KERNELS[name]
    except KeyError:
        raise ValueError(f"Unknown kernel '{name}', choose from {sorted(KERNELS)}") from None
