"""Dense, optionally row-distributed vectors and matrices.

A *distributed* object holds only the calling process' block of rows; the
full object is the vertical concatenation of the blocks on all processes.
Non-distributed objects are small and replicated identically everywhere.

Inner products, norms and ``transpose_mult`` of two distributed operands are
global: the local partial result is summed over the process context, so every
process sees the same value.  All other products are purely local.

Example
-------

```python
import numpy as np
from incsvd.matrix import Matrix, Vector

U = Matrix(np.eye(4)[:, :2], distributed=True)
u = Vector(np.arange(4.0), distributed=True)
coeffs = U.transpose_mult(u)       # non-distributed, shape (2,)
residual = u.minus(U.mult(coeffs))
```
"""

from __future__ import annotations

import numpy as np

from .parallel import SerialContext


class Vector:
    """Dense vector.

    Parameters
    ----------
    data : array_like of shape (dim,)
        Local entries.  The array is copied.
    distributed : bool
        Whether ``data`` is this process' block of a longer vector.
    context : SerialContext or MPIContext, optional
        Process context used for global reductions.
    """

    def __init__(self, data, distributed: bool, context=None) -> None:
        self.data = np.array(data, dtype=float, copy=True).reshape(-1)
        self.distributed = bool(distributed)
        self.context = SerialContext() if context is None else context

    @property
    def dim(self) -> int:
        return self.data.shape[0]

    def item(self, i: int) -> float:
        return float(self.data[i])

    def inner_product(self, other: Vector) -> float:
        """Return the (global) inner product with ``other``."""
        assert other.dim == self.dim
        assert other.distributed == self.distributed
        local = np.dot(self.data, other.data)
        if self.distributed:
            return float(self.context.allreduce(np.array([local]))[0])
        return float(local)

    def norm(self) -> float:
        return float(np.sqrt(max(self.inner_product(self), 0.0)))

    def minus(self, other: Vector) -> Vector:
        assert other.dim == self.dim
        return Vector(self.data - other.data, self.distributed, self.context)

    def scaled(self, factor: float) -> Vector:
        return Vector(self.data * factor, self.distributed, self.context)

    def __repr__(self) -> str:
        kind = "distributed" if self.distributed else "local"
        return f"Vector(dim={self.dim}, {kind})"


class Matrix:
    """Dense matrix.

    Parameters
    ----------
    data : array_like of shape (num_rows, num_columns)
        Local entries.  The array is copied.
    distributed : bool
        Whether the rows are this process' block of a taller matrix.
    context : SerialContext or MPIContext, optional
        Process context used for global reductions.
    """

    def __init__(self, data, distributed: bool, context=None) -> None:
        data = np.array(data, dtype=float, copy=True)
        if data.ndim == 1:
            data = data[:, None]
        assert data.ndim == 2
        self.data = data
        self.distributed = bool(distributed)
        self.context = SerialContext() if context is None else context

    @classmethod
    def identity(cls, n: int, context=None) -> Matrix:
        return cls(np.eye(n), distributed=False, context=context)

    @property
    def num_rows(self) -> int:
        return self.data.shape[0]

    @property
    def num_columns(self) -> int:
        return self.data.shape[1]

    def item(self, row: int, col: int) -> float:
        return float(self.data[row, col])

    def get_column(self, col: int) -> Vector:
        return Vector(self.data[:, col], self.distributed, self.context)

    def append_column(self, column: Vector) -> Matrix:
        """Return a copy of this matrix with ``column`` appended on the right."""
        assert column.dim == self.num_rows
        assert column.distributed == self.distributed
        return Matrix(np.hstack((self.data, column.data[:, None])),
                      self.distributed, self.context)

    def transpose(self) -> Matrix:
        assert not self.distributed, "cannot transpose a distributed matrix"
        return Matrix(self.data.T, False, self.context)

    def mult(self, other: Matrix | Vector) -> Matrix | Vector:
        """Compute ``self @ other`` for a non-distributed right operand.

        The result is distributed if and only if ``self`` is.
        """
        assert not other.distributed
        if isinstance(other, Vector):
            assert other.dim == self.num_columns
            return Vector(self.data @ other.data, self.distributed, self.context)
        assert other.num_rows == self.num_columns
        return Matrix(self.data @ other.data, self.distributed, self.context)

    def transpose_mult(self, other: Matrix | Vector) -> Matrix | Vector:
        """Compute ``self.T @ other``.

        Two distributed operands yield a globally reduced, non-distributed
        result.  Two non-distributed operands yield a local product.
        """
        assert other.distributed == self.distributed
        if isinstance(other, Vector):
            assert other.dim == self.num_rows
            local = self.data.T @ other.data
            if self.distributed:
                local = self.context.allreduce(local)
            return Vector(local, False, self.context)
        assert other.num_rows == self.num_rows
        local = self.data.T @ other.data
        if self.distributed:
            local = self.context.allreduce(local)
        return Matrix(local, False, self.context)

    def orthogonalize(self) -> None:
        """Orthonormalise the columns in place with modified Gram-Schmidt.

        Inner products are global, so every process performs the same
        sequence of operations on its block.
        """
        for work in range(self.num_columns):
            column = self.get_column(work)
            for col in range(work):
                previous = self.get_column(col)
                column = column.minus(previous.scaled(column.inner_product(previous)))
            norm = column.norm()
            if norm > 0.0:
                column = column.scaled(1.0 / norm)
            self.data[:, work] = column.data

    def orthogonalize_vector(self, v: Vector, passes: int = 2) -> Vector:
        """Remove the components of ``v`` along the columns of this matrix.

        Classical Gram-Schmidt repeated ``passes`` times; two passes restore
        orthogonality to working precision.  The columns are assumed to be
        orthonormal.
        """
        assert v.distributed == self.distributed
        for _ in range(passes):
            v = v.minus(self.mult(self.transpose_mult(v)))
        return v

    def __repr__(self) -> str:
        kind = "distributed" if self.distributed else "local"
        return f"Matrix({self.num_rows}x{self.num_columns}, {kind})"
