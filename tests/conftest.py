# Author      : Tyson Limato
# Date        : 2025-7-06
# File Name   : conftest.py
import pickle
import threading
import time

import pytest
from mpi4py import MPI

from mpiMGR import MPIManager

RECV_TIMEOUT = 10.0


class Mailbox:
    """Shared message store for a set of in-process ranks."""

    def __init__(self, size):
        self.size = size
        self.cond = threading.Condition()
        self.pending = []   # (src, dst, tag, payload) in send order
        self.log = []       # (src, dst, tag) of every send
        self.aborted = None


class LocalComm:
    """
    Thread-backed stand-in for an mpi4py communicator.

    Implements the calls MPIManager uses (Get_rank, Get_size, send, recv,
    Abort). Messages are pickled on send so each receiver gets its own copy,
    and messages from one source with one tag are received in send order.
    """

    def __init__(self, mailbox, rank):
        self.mailbox = mailbox
        self.rank = rank

    def Get_rank(self):
        return self.rank

    def Get_size(self):
        return self.mailbox.size

    def send(self, obj, dest, tag=0):
        payload = pickle.dumps(obj)
        with self.mailbox.cond:
            self.mailbox.pending.append((self.rank, dest, tag, payload))
            self.mailbox.log.append((self.rank, dest, tag))
            self.mailbox.cond.notify_all()

    def recv(self, buf=None, source=MPI.ANY_SOURCE, tag=MPI.ANY_TAG, status=None):
        deadline = time.monotonic() + RECV_TIMEOUT
        with self.mailbox.cond:
            while True:
                for idx, (src, dst, t, payload) in enumerate(self.mailbox.pending):
                    if dst != self.rank:
                        continue
                    if source != MPI.ANY_SOURCE and src != source:
                        continue
                    if tag != MPI.ANY_TAG and t != tag:
                        continue
                    del self.mailbox.pending[idx]
                    if status is not None:
                        status.Set_source(src)
                        status.Set_tag(t)
                    return pickle.loads(payload)
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    raise TimeoutError(f"rank {self.rank} timed out waiting for rank {source} tag {tag}")
                self.mailbox.cond.wait(remaining)

    def Abort(self, errorcode=0):
        self.mailbox.aborted = errorcode


def make_world(size):
    """Return a mailbox and one MPIManager per rank."""
    mailbox = Mailbox(size)
    return mailbox, [MPIManager(LocalComm(mailbox, r)) for r in range(size)]


@pytest.fixture
def run_ranks():
    """
    Run `coordinator_fn(manager)` on rank 0 in this thread and
    `worker_fn(manager)` on ranks 1..size-1 in background threads.
    Returns (coordinator result, mailbox). Worker exceptions are re-raised.
    """
    def _run(size, coordinator_fn, worker_fn):
        mailbox, managers = make_world(size)
        errors = []

        def _worker(mgr):
            try:
                worker_fn(mgr)
            except Exception as exc:  # surfaced in the test thread below
                errors.append(exc)

        threads = [threading.Thread(target=_worker, args=(m,), daemon=True) for m in managers[1:]]
        for t in threads:
            t.start()
        result = coordinator_fn(managers[0])
        for t in threads:
            t.join(RECV_TIMEOUT)
        if errors:
            raise errors[0]
        return result, mailbox

    return _run
