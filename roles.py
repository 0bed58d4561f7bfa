# Author      : Tyson Limato
# Date        : 2025-7-03
# File Name   : roles.py
import logging
from dataclasses import dataclass
from typing import List

import numpy as np

from matmul_kernels import get_kernel
from mpiMGR import COORDINATOR, Channel, MPIManager, TransportError, check_int
from row_partition import RowAssignment, check_partition, partition_rows

logger = logging.getLogger(__name__)

GATHER_ORDERS = ("rank", "arrival")


@dataclass
class RoundResult:
    product: np.ndarray
    assignments: List[RowAssignment]
    elapsed: float


class Coordinator:
    """
    Rank 0 side of a matmul round: partition, scatter, gather, assemble.

    Parameters:
    -----------
    manager : MPIManager
        Wraps the communicator; must be rank 0 with at least one worker.
    gather_order : str
        "rank" receives replies from ranks 1..W in order, "arrival" takes
        whichever worker replies first.
    skip_empty : bool
        If True, zero-row workers are not sent a copy of B.

    Methods:
    --------
    run_round(a, b)     -- One full round, returns a RoundResult.
    scatter(a, b, assignments)  -- Send every worker its rows of A and all of B.
    gather(assignments, n_cols, dtype)  -- Receive every reply and assemble C.
    """

    def __init__(self, manager: MPIManager, gather_order: str = "rank", skip_empty: bool = False):
        if not manager.is_coordinator:
            raise ValueError(f"Coordinator must run on rank {COORDINATOR}, not rank {manager.rank}")
        if gather_order not in GATHER_ORDERS:
            raise ValueError(f"Unknown gather order '{gather_order}', choose from {GATHER_ORDERS}")
        manager.require_workers()
        self.manager = manager
        self.gather_order = gather_order
        self.skip_empty = skip_empty

    def run_round(self, a: np.ndarray, b: np.ndarray) -> RoundResult:
        n_rows = a.shape[0]
        start = self.manager.wtime()

        assignments = partition_rows(n_rows, self.manager.num_workers)
        check_partition(assignments, n_rows)
        self.scatter(a, b, assignments)
        product = self.gather(assignments, b.shape[1], a.dtype)

        elapsed = self.manager.wtime() - start
        logger.info("round finished in %.6fs over %d workers", elapsed, len(assignments))
        return RoundResult(product, assignments, elapsed)

    def scatter(self, a: np.ndarray, b: np.ndarray, assignments: List[RowAssignment]):
        """
        Send each worker, in rank order: offset, row_count, its A row-block, then all of B.
        No reply is awaited here; every send completes before gathering starts.
        """
        mgr = self.manager
        for asg in assignments:
            mgr.send(asg.offset,    asg.worker, Channel.WORK)
            mgr.send(asg.row_count, asg.worker, Channel.WORK)
            mgr.send(a[asg.offset:asg.stop, :], asg.worker, Channel.WORK)
            if asg.row_count == 0 and self.skip_empty:
                continue
            mgr.send(b, asg.worker, Channel.WORK)
        logger.info("scatter complete: %s", [(s.offset, s.row_count) for s in assignments])

    def gather(self, assignments: List[RowAssignment], n_cols: int, dtype) -> np.ndarray:
        """
        Receive one reply per worker and copy each block to its offset in C.

        C is only returned once every worker has replied; any malformed or
        unexpected reply raises TransportError.
        """
        n_rows = assignments[-1].stop if assignments else 0
        product = np.zeros((n_rows, n_cols), dtype=dtype)
        expected = {asg.worker: asg for asg in assignments}
        pending = set(expected)

        for asg in assignments:
            if self.gather_order == "rank":
                worker = asg.worker
                offset = self.manager.recv_int(worker, Channel.RESULT)
            else:
                worker, offset = self.manager.recv_any(Channel.RESULT)
                offset = check_int(offset, worker)
            if worker not in pending:
                raise TransportError(f"unexpected reply from rank {worker}")
            pending.discard(worker)

            self._check_field(worker, "offset", offset, expected[worker].offset)
            row_count = self.manager.recv_int(worker, Channel.RESULT)
            self._check_field(worker, "row_count", row_count, expected[worker].row_count)

            cols = None if (row_count == 0 and self.skip_empty) else n_cols
            block = self.manager.recv_block(worker, Channel.RESULT, row_count, cols)
            if row_count:
                product[offset:offset + row_count, :] = block
            logger.debug("placed rows [%d, %d) from rank %d", offset, offset + row_count, worker)

        logger.info("gather complete")
        return product

    @staticmethod
    def _check_field(worker, name, value, want):
        if value != want:
            raise TransportError(f"rank {worker} replied with {name}={value}, it was assigned {want}")


class Worker:
    """
    Worker side of a matmul round: receive an assignment, compute, reply.
    Holds no state between rounds.
    """

    def __init__(self, manager: MPIManager, kernel: str = "loop", skip_empty: bool = False):
        if manager.is_coordinator:
            raise ValueError("Worker cannot run on the coordinator rank")
        self.manager = manager
        self.kernel = get_kernel(kernel)
        self.skip_empty = skip_empty

    def run_round(self):
        offset, row_count, a_block, b = self.receive()
        c_block = self.compute(a_block, b, row_count)
        self.reply(offset, row_count, c_block)

    def receive(self):
        """Receive offset, row_count, the A row-block and B, in that order."""
        mgr = self.manager
        offset = mgr.recv_int(COORDINATOR, Channel.WORK)
        row_count = mgr.recv_int(COORDINATOR, Channel.WORK)
        a_block = mgr.recv_block(COORDINATOR, Channel.WORK, row_count)
        if row_count == 0 and self.skip_empty:
            return offset, row_count, a_block, None
        b = mgr.recv_block(COORDINATOR, Channel.WORK, a_block.shape[1])
        logger.info("assigned rows [%d, %d)", offset, offset + row_count)
        return offset, row_count, a_block, b

    def compute(self, a_block: np.ndarray, b, row_count: int) -> np.ndarray:
        if row_count == 0:
            cols = b.shape[1] if b is not None else 0
            return np.zeros((0, cols), dtype=a_block.dtype)
        return self.kernel(a_block, b)

    def reply(self, offset: int, row_count: int, c_block: np.ndarray):
        mgr = self.manager
        mgr.send(offset,    COORDINATOR, Channel.RESULT)
        mgr.send(row_count, COORDINATOR, Channel.RESULT)
        mgr.send(c_block,   COORDINATOR, Channel.RESULT)
