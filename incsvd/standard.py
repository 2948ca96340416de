"""Standard incremental SVD update.

The basis ``U`` is rotated explicitly after every sample, which costs
``O(dim k^2)`` per sample but keeps ``U`` materialised at all times.  This is
mainly useful as a reference for :mod:`incsvd.fast_update`.
"""

from __future__ import annotations

import numpy as np

from .incremental_svd import IncrementalSVD
from .matrix import Matrix, Vector
from .options import IncrementalSVDOptions


class IncrementalSVDStandard(IncrementalSVD):
    """Incremental SVD that rotates the full basis on every update."""

    state_keys = ("U",)

    def __init__(self, options: IncrementalSVDOptions, context=None) -> None:
        self.U: Matrix | None = None
        super().__init__(options, context)

    def build_initial_svd(self, u: np.ndarray, time: float) -> None:
        j, _ = self._begin_initial_svd(u, time)
        self.U = Matrix(j.data, distributed=True, context=self.context)

    def _project(self, u: Vector) -> tuple[Vector, Vector]:
        l = self.U.transpose_mult(u)
        return l, u.minus(self.U.mult(l))

    def add_linearly_dependent_sample(self, A: Matrix, sigma: Matrix) -> None:
        assert A is not None and sigma is not None
        self.U = self.U.mult(A)
        self.S = sigma

    def add_new_sample(self, j: Vector, A: Matrix, sigma: Matrix) -> None:
        assert j is not None and A is not None and sigma is not None
        j = self.U.orthogonalize_vector(j, passes=1)
        j = j.scaled(1.0 / j.norm())
        self.U = self.U.append_column(j).mult(A)
        self.S = sigma
        self.num_samples += 1

    def compute_basis(self) -> Matrix:
        return self.U

    def _reset_decomposition(self) -> None:
        self.U = None

    def _state_arrays(self) -> dict[str, np.ndarray]:
        return {"U": self.U.data}

    def _load_state_arrays(self, arrays: dict[str, np.ndarray]) -> None:
        self.U = Matrix(arrays["U"], distributed=True, context=self.context)
