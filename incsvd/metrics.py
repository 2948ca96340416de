"""Diagnostics for reduced bases.

The functions accept either plain NumPy arrays or :class:`~incsvd.matrix.Matrix`
objects; for distributed matrices all norms are global.
"""

from __future__ import annotations

import numpy as np
from numpy.linalg import norm

from .matrix import Matrix, Vector


def _as_matrix(U) -> Matrix:
    if isinstance(U, Matrix):
        return U
    return Matrix(U, distributed=True)


def orth_error(U) -> float:
    """Compute the orthogonality error ``||I - U^T U||_F``.

    Parameters
    ----------
    U : Matrix or ndarray of shape (m, r)
        Basis to check.

    Returns
    -------
    gamma : float
        Frobenius norm of the deviation of ``U`` from orthonormality.
    """
    U = _as_matrix(U)
    gram = U.transpose_mult(U).data
    return float(norm(np.eye(U.num_columns) - gram, 'fro'))


def projection_error(U, u) -> float:
    """Relative norm of the part of ``u`` outside the span of ``U``.

    Parameters
    ----------
    U : Matrix or ndarray of shape (m, r)
        Orthonormal basis.
    u : ndarray of shape (m,)
        Sample.

    Returns
    -------
    err : float
        ``||u - U U^T u|| / ||u||``, or 0.0 for a zero sample.
    """
    U = _as_matrix(U)
    sample = Vector(u, distributed=U.distributed, context=U.context)
    residual = sample.minus(U.mult(U.transpose_mult(sample)))
    norm_u = sample.norm()
    if norm_u == 0.0:
        return 0.0
    return residual.norm() / norm_u


def relative_error(X: np.ndarray, U) -> float:
    """Relative Frobenius error of projecting the snapshots ``X`` onto ``U``.

    Parameters
    ----------
    X : ndarray of shape (m, n)
        Snapshot matrix, one sample per column.
    U : Matrix or ndarray of shape (m, r)
        Orthonormal basis.

    Returns
    -------
    rel_err : float
        ``||X - U U^T X||_F / ||X||_F``.
    """
    U = _as_matrix(U)
    snapshots = Matrix(X, distributed=U.distributed, context=U.context)
    residual = snapshots.data - U.mult(U.transpose_mult(snapshots)).data
    total = Matrix(residual, U.distributed, U.context)
    err2 = np.trace(total.transpose_mult(total).data)
    ref2 = np.trace(snapshots.transpose_mult(snapshots).data)
    return float(np.sqrt(err2 / max(ref2, np.finfo(float).tiny)))
