"""Brand's fast update of the incremental SVD.

The basis is kept in factored form

    U = U_raw @ U_p,

where ``U_raw`` (``dim × k``, distributed) collects the normalised residual
directions in the order they were discovered and ``U_p`` (``k × k``, replicated
on every process) accumulates the rotations produced by the small SVDs.
Folding a sample into the decomposition then only touches ``U_p``:

* linearly dependent sample:  ``U_p <- U_p @ A``;
* new direction ``j``:        ``U_raw <- [U_raw, j]`` and
  ``U_p <- diag(U_p, 1) @ A``.

The only ``dim``-sized work per sample is the projection and the residual,
``O(dim k)``, instead of the ``O(dim k^2)`` rotation of the standard update.
``U_raw @ U_p`` is formed lazily by :meth:`IncrementalSVDFastUpdate.compute_basis`.

See M. Brand, "Fast low-rank modifications of the thin singular value
decomposition", Linear Algebra Appl. 415 (2006).
"""

from __future__ import annotations

import numpy as np

from .incremental_svd import IncrementalSVD
from .matrix import Matrix, Vector
from .metrics import orth_error
from .options import IncrementalSVDOptions


class IncrementalSVDFastUpdate(IncrementalSVD):
    """Incremental SVD using Brand's fast update.

    Parameters
    ----------
    options : IncrementalSVDOptions
        Algorithm parameters.
    context : SerialContext or MPIContext, optional
        Process context for the row-distributed basis.

    Notes
    -----
    ``U_p`` is private to this class; other code sees the basis only through
    :meth:`compute_basis`.
    """

    state_keys = ("U", "Up")

    def __init__(self, options: IncrementalSVDOptions, context=None) -> None:
        self.U: Matrix | None = None
        self.Up: Matrix | None = None
        self._up_is_identity = True
        super().__init__(options, context)

    def build_initial_svd(self, u: np.ndarray, time: float) -> None:
        """Construct the first SVD of a time interval from the state ``u``."""
        j, _ = self._begin_initial_svd(u, time)
        self.U = Matrix(j.data, distributed=True, context=self.context)
        self.Up = Matrix.identity(1, context=self.context)
        self._up_is_identity = True

    def _project(self, u: Vector) -> tuple[Vector, Vector]:
        # span(U_raw) == span(U), so the residual does not need the rotation
        coeffs = self.U.transpose_mult(u)
        return self.Up.transpose_mult(coeffs), u.minus(self.U.mult(coeffs))

    def add_linearly_dependent_sample(self, A: Matrix, sigma: Matrix) -> None:
        """Fold a sample lying in the span of the basis into ``S`` and ``U_p``.

        Parameters
        ----------
        A : Matrix of shape (k, k)
            Left singular vectors of the bordered system.
        sigma : Matrix of shape (k, k)
            Updated singular values.
        """
        assert A is not None and sigma is not None
        assert A.num_rows == self.num_samples and sigma.num_rows == self.num_samples
        self.Up = self.Up.mult(A)
        self.S = sigma
        self._up_is_identity = False
        self._reorthogonalize_rotation()

    def add_new_sample(self, j: Vector, A: Matrix, sigma: Matrix) -> None:
        """Append the direction ``j`` and grow the rotation by one.

        Parameters
        ----------
        j : Vector of shape (dim,)
            Normalised residual of the sample (distributed).
        A : Matrix of shape (k+1, k+1)
            Left singular vectors of the bordered system.
        sigma : Matrix of shape (k+1, k+1)
            Updated singular values.
        """
        assert j is not None and A is not None and sigma is not None
        k = self.num_samples
        assert A.num_rows == k + 1 and sigma.num_rows == k + 1

        # A second Gram-Schmidt pass keeps U_raw orthonormal
        j = self.U.orthogonalize_vector(j, passes=1)
        j = j.scaled(1.0 / j.norm())
        self.U = self.U.append_column(j)

        # diag(U_p, 1) @ A
        Up = np.zeros((k + 1, k + 1))
        Up[:k, :k] = self.Up.data
        Up[k, k] = 1.0
        self.Up = Matrix(Up, distributed=False, context=self.context).mult(A)
        self.S = sigma
        self.num_samples = k + 1
        self._up_is_identity = False
        self._reorthogonalize_rotation()

    def _reorthogonalize_rotation(self) -> None:
        """Restore the orthogonality of ``U_p`` lost to repeated products.

        ``U_p`` is replicated, so every process takes the same branch.
        """
        k = self.Up.num_columns
        if orth_error(self.Up) > k * np.finfo(float).eps:
            self.Up.orthogonalize()

    def compute_basis(self) -> Matrix:
        """Absorb ``U_p`` into ``U_raw`` and return the basis.

        Calling this again without an intervening sample returns the same
        basis.
        """
        if not self._up_is_identity:
            self.U = self.U.mult(self.Up)
            self.Up = Matrix.identity(self.num_samples, context=self.context)
            self._up_is_identity = True
        return self.U

    def _reset_decomposition(self) -> None:
        self.U = None
        self.Up = None
        self._up_is_identity = True

    def _state_arrays(self) -> dict[str, np.ndarray]:
        return {"U": self.U.data, "Up": self.Up.data}

    def _load_state_arrays(self, arrays: dict[str, np.ndarray]) -> None:
        self.U = Matrix(arrays["U"], distributed=True, context=self.context)
        self.Up = Matrix(arrays["Up"], distributed=False, context=self.context)
        self._up_is_identity = np.array_equal(self.Up.data, np.eye(self.Up.num_rows))
