# Author      : Tyson Limato
# Date        : 2025-7-02
# File Name   : row_partition.py
from typing import List, NamedTuple


class RowAssignment(NamedTuple):
    """Contiguous rows [offset, offset + row_count) owned by one worker rank."""
    worker: int
    offset: int
    row_count: int

    @property
    def stop(self) -> int:
        return self.offset + self.row_count


def partition_rows(n_rows: int, n_workers: int) -> List[RowAssignment]:
    """
    Divide `n_rows` rows among worker ranks 1..n_workers as evenly as possible.

    The first `n_rows % n_workers` workers get one extra row, so counts never
    differ by more than one. Workers past the last row get a zero-row assignment.

    Parameters:
    -----------
    n_rows : int
        Number of rows to distribute (N).
    n_workers : int
        Number of worker ranks (P - 1), at least 1.

    Returns:
    --------
    list of RowAssignment
        One entry per worker, in rank order, with running-sum offsets.
    """
    if n_workers < 1:
        raise ValueError(f"Cannot partition across {n_workers} workers: need at least 1.")
    if n_rows < 0:
        raise ValueError(f"Row count must be non-negative, got {n_rows}.")

    base, extra = divmod(n_rows, n_workers)
    assignments = []
    offset = 0
    for worker in range(1, n_workers + 1):
        count = base + 1 if worker <= extra else base
        assignments.append(RowAssignment(worker, offset, count))
        offset += count
    return assignments


def check_partition(assignments: List[RowAssignment], n_rows: int):
    """Raise ValueError unless the assignments tile [0, n_rows) evenly and in order."""
    if not assignments:
        raise ValueError("Partition has no workers.")
    offset = 0
    for a in assignments:
        if a.offset != offset:
            raise ValueError(f"Worker {a.worker} starts at row {a.offset}, expected {offset}.")
        if a.row_count < 0:
            raise ValueError(f"Worker {a.worker} has a negative row count.")
        offset = a.stop
    if offset != n_rows:
        raise ValueError(f"Partition covers {offset} rows, expected {n_rows}.")
    counts = [a.row_count for a in assignments]
    if max(counts) - min(counts) > 1:
        raise ValueError(f"Partition is unbalanced: {counts}.")
