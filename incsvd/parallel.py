"""Process contexts for row-distributed linear algebra.

Every distributed vector or matrix in :mod:`incsvd` owns a contiguous block of
rows on each cooperating process.  Reductions across those blocks go through a
context object that is passed explicitly instead of being held as global
state.  Two contexts are provided:

* :class:`SerialContext` – a degenerate single-process context whose
  collectives are identities.  This is the default everywhere.
* :class:`MPIContext` – a thin wrapper around an ``mpi4py`` communicator.

Any object exposing ``rank``, ``size``, ``allreduce`` and ``allgather`` with
the same semantics can be used in their place.
"""

from __future__ import annotations

import numpy as np


class SerialContext:
    """Single-process context."""

    rank = 0
    size = 1

    def allreduce(self, value: np.ndarray) -> np.ndarray:
        """Sum ``value`` over all processes (a copy, here)."""
        return np.array(value, dtype=float, copy=True)

    def allgather(self, obj) -> list:
        return [obj]

    def row_offsets(self, local_rows: int) -> list[int]:
        """Return the first global row owned by each process."""
        return row_offsets(self, local_rows)


class MPIContext:
    """Context backed by an MPI communicator.

    Parameters
    ----------
    comm : mpi4py.MPI.Comm, optional
        Communicator to use.  Defaults to ``MPI.COMM_WORLD``.
    """

    def __init__(self, comm=None) -> None:
        from mpi4py import MPI

        self._MPI = MPI
        self.comm = MPI.COMM_WORLD if comm is None else comm
        self.rank = self.comm.Get_rank()
        self.size = self.comm.Get_size()

    def allreduce(self, value: np.ndarray) -> np.ndarray:
        # Contiguous buffers are required for the uppercase interface
        send_buf = np.ascontiguousarray(value, dtype=float)
        recv_buf = np.empty_like(send_buf)
        self.comm.Allreduce(send_buf, recv_buf, op=self._MPI.SUM)
        return recv_buf

    def allgather(self, obj) -> list:
        return self.comm.allgather(obj)

    def row_offsets(self, local_rows: int) -> list[int]:
        return row_offsets(self, local_rows)


def row_offsets(context, local_rows: int) -> list[int]:
    """Compute the global starting row of every process' block.

    Parameters
    ----------
    context : SerialContext or MPIContext
        Process context.
    local_rows : int
        Number of rows owned by the calling process.

    Returns
    -------
    offsets : list of int
        ``offsets[p]`` is the first global row of process ``p``; a final
        entry holds the total number of rows.
    """
    counts = context.allgather(int(local_rows))
    offsets = [0]
    for count in counts:
        offsets.append(offsets[-1] + count)
    return offsets
