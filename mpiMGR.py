# Author      : Tyson Limato
# Date        : 2025-7-02
# File Name   : mpiMGR.py
import logging
from enum import IntEnum

import numpy as np
from mpi4py import MPI

logger = logging.getLogger(__name__)

COORDINATOR = 0


class Channel(IntEnum):
    """
    Direction of a message between the coordinator and a worker.

    The value doubles as the MPI tag, so the two legs of a round trip between
    the same pair of ranks never match each other's receives.
    """
    WORK   = 1  # coordinator -> worker
    RESULT = 2  # worker -> coordinator


class TopologyError(RuntimeError):
    """Raised when the communicator has no worker ranks."""


class TransportError(RuntimeError):
    """Raised when a send/receive fails or a payload breaks the protocol."""


class MPIManager:
    """
    A utility class to handle the point-to-point traffic of a matmul round using `mpi4py`.

    Parameters:
    -----------
    comm : MPI.Comm
        Communicator to use (default: MPI.COMM_WORLD).

    Methods:
    --------
    require_workers()
        Fails with TopologyError when there is no rank besides the coordinator.

    send(obj, dest, channel)
        Sends one protocol field to `dest` tagged with the channel.

    recv(source, channel)
        Receives one protocol field from `source` on the channel.

    recv_int / recv_block
        Receive a field and check it against what the protocol expects.

    abort(code)
        Terminates every rank of the communicator.
    """

    def __init__(self, comm=None):
        # Initialize the MPI communicator
        self.comm = comm if comm is not None else MPI.COMM_WORLD
        # Get the rank (ID) of the current process
        self.rank = self.comm.Get_rank()
        # Get the total number of processes
        self.size = self.comm.Get_size()

    @property
    def is_coordinator(self) -> bool:
        return self.rank == COORDINATOR

    @property
    def num_workers(self) -> int:
        return self.size - 1

    def require_workers(self):
        """Raise TopologyError unless at least one worker rank exists."""
        if self.size < 2:
            raise TopologyError(
                f"Need at least 2 processes (1 coordinator + 1 worker), got {self.size}"
            )

    def wtime(self) -> float:
        return MPI.Wtime()

    def send(self, obj, dest: int, channel: Channel):
        """
        Send a single protocol field to another rank.

        Parameters:
        -----------
        obj : int or np.ndarray
            The field to send. Arrays are sent contiguous.
        dest : int
            Destination rank.
        channel : Channel
            Direction of the message, used as the MPI tag.
        """
        if isinstance(obj, np.ndarray):
            obj = np.ascontiguousarray(obj)
        try:
            self.comm.send(obj, dest=dest, tag=int(channel))
        except MPI.Exception as exc:
            raise TransportError(f"send to rank {dest} on {channel.name} failed: {exc}") from exc
        logger.debug("sent %s to rank %d on %s", _describe(obj), dest, channel.name)

    def recv(self, source: int, channel: Channel, status=None):
        """
        Receive a single protocol field.

        Parameters:
        -----------
        source : int
            Source rank, or MPI.ANY_SOURCE.
        channel : Channel
            Direction of the message, used as the MPI tag.
        status : MPI.Status
            Optional status filled in with the actual source.
        """
        try:
            obj = self.comm.recv(source=source, tag=int(channel), status=status)
        except MPI.Exception as exc:
            raise TransportError(f"receive from rank {source} on {channel.name} failed: {exc}") from exc
        logger.debug("received %s from rank %s on %s", _describe(obj), source, channel.name)
        return obj

    def recv_any(self, channel: Channel):
        """Receive from whichever rank is ready first. Returns (source, obj)."""
        status = MPI.Status()
        obj = self.recv(MPI.ANY_SOURCE, channel, status=status)
        return status.Get_source(), obj

    def recv_int(self, source: int, channel: Channel) -> int:
        return check_int(self.recv(source, channel), source)

    def recv_block(self, source: int, channel: Channel, rows: int, cols=None) -> np.ndarray:
        """
        Receive a row-block and check it has `rows` rows (and `cols` columns when given).
        """
        return check_block(self.recv(source, channel), source, rows, cols)

    def abort(self, code: int = 1):
        """Abort every process in the communicator."""
        logger.error("aborting job with code %d", code)
        self.comm.Abort(code)


def check_int(value, source) -> int:
    """Validate a scalar protocol field (offset or row count)."""
    if isinstance(value, (bool, np.bool_)) or not isinstance(value, (int, np.integer)):
        raise TransportError(f"expected an integer from rank {source}, got {type(value).__name__}")
    if value < 0:
        raise TransportError(f"rank {source} sent a negative value {value}")
    return int(value)


def check_block(block, source, rows: int, cols=None) -> np.ndarray:
    """Validate a matrix protocol field."""
    if not isinstance(block, np.ndarray) or block.ndim != 2:
        raise TransportError(f"expected a 2-D array from rank {source}, got {_describe(block)}")
    if block.dtype.kind not in "iu":
        raise TransportError(f"rank {source} sent a non-integer block ({block.dtype})")
    if block.shape[0] != rows or (cols is not None and block.shape[1] != cols):
        expected = (rows, cols if cols is not None else block.shape[1])
        raise TransportError(f"rank {source} sent a block of shape {block.shape}, expected {expected}")
    return block


def _describe(obj) -> str:
    if isinstance(obj, np.ndarray):
        return f"array{obj.shape}:{obj.dtype}"
    return repr(obj)
