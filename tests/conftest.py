"""
Shared fixtures: a non-interactive matplotlib backend and a thread-backed
communicator that runs SPMD code with several "processes" in one test.
"""

import threading

import matplotlib
import numpy as np
import pytest

matplotlib.use("Agg")


class ThreadGroup:
    def __init__(self, size: int):
        self.size = size
        self.barrier = threading.Barrier(size)
        self.slots = [None] * size


class ThreadContext:
    """Collective operations between threads sharing a :class:`ThreadGroup`."""

    def __init__(self, group: ThreadGroup, rank: int):
        self.group = group
        self.rank = rank
        self.size = group.size

    def _exchange(self, obj) -> list:
        self.group.slots[self.rank] = obj
        self.group.barrier.wait()
        values = list(self.group.slots)
        self.group.barrier.wait()
        return values

    def allreduce(self, value):
        values = self._exchange(np.array(value, dtype=float, copy=True))
        total = values[0].copy()
        for v in values[1:]:
            total = total + v
        return total

    def allgather(self, obj) -> list:
        return self._exchange(obj)

    def row_offsets(self, local_rows: int) -> list:
        from incsvd.parallel import row_offsets
        return row_offsets(self, local_rows)


def run_spmd(size, fn):
    """Run ``fn(context)`` on ``size`` threads and return the per-rank results."""
    group = ThreadGroup(size)
    results = [None] * size
    errors = []

    def target(rank):
        try:
            results[rank] = fn(ThreadContext(group, rank))
        except BaseException as e:  # re-raised in the main thread
            errors.append(e)
            group.barrier.abort()

    threads = [threading.Thread(target=target, args=(r,)) for r in range(size)]
    for th in threads:
        th.start()
    for th in threads:
        th.join()
    if errors:
        raise errors[0]
    return results


@pytest.fixture
def rng():
    return np.random.default_rng(1234)


@pytest.fixture
def spmd():
    return run_spmd
