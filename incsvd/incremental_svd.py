"""Incremental SVD of a column-wise growing snapshot matrix.

Snapshots ``u`` of a (possibly row-distributed) state arrive one at a time.
The class :class:`IncrementalSVD` maintains a truncated decomposition

    [u_1, ..., u_n] ≈ U @ S @ W.T,

keeping only the left singular vectors ``U`` (the reduced basis) and the small
matrix ``S``.  Each new sample is projected onto the current basis,

    l = U.T @ u,    j = u - U @ l,

and the ``(k+1) × (k+1)`` matrix

        | S   l   |
    Q = |         |
        | 0  ||j|| |

is diagonalised by a dense SVD ``Q = A @ sigma @ W.T``.  If ``||j|| / ||u||``
falls below ``linearity_tol`` the sample is linearly dependent: the rank is
unchanged and only the leading ``k × k`` blocks of ``A`` and ``sigma`` are
used.  Otherwise ``j / ||j||`` becomes a new direction and the rank grows by
one.  How ``A`` is applied to the basis is left to the concrete update
strategies (:mod:`incsvd.fast_update`, :mod:`incsvd.standard`).

Samples are grouped into time intervals.  An interval ends when the caller
starts a new one, or is signalled as ended when a new direction arrives after
``samples_per_time_interval`` directions have been collected.  The core never
rolls over by itself; see :class:`SampleResult`.

This follows [Brand, 2002] for the update of ``U`` and ``S``.
"""

from __future__ import annotations

import enum
import logging

import numpy as np
from numpy.linalg import svd

from .basis_io import create_database, process_file_name
from .matrix import Matrix, Vector
from .metrics import orth_error
from .options import IncrementalSVDOptions
from .parallel import SerialContext

logger = logging.getLogger(__name__)


class SampleResult(enum.Enum):
    """Outcome of :meth:`IncrementalSVD.take_sample`."""

    INITIAL = "initial"
    NEW_DIRECTION = "new_direction"
    LINEARLY_DEPENDENT = "linearly_dependent"
    SKIPPED = "skipped"
    INTERVAL_BOUNDARY = "interval_boundary"


class IncrementalSVD:
    """Abstract incremental SVD.

    Subclasses supply :meth:`build_initial_svd`, :meth:`compute_basis`,
    :meth:`add_linearly_dependent_sample`, :meth:`add_new_sample` and the
    projection helpers; this class owns classification, interval bookkeeping
    and state persistence.

    Parameters
    ----------
    options : IncrementalSVDOptions
        Algorithm parameters.
    context : SerialContext or MPIContext, optional
        Process context for the row-distributed basis.
    """

    def __init__(self, options: IncrementalSVDOptions, context=None) -> None:
        self.options = options
        self.context = SerialContext() if context is None else context
        self.dim = options.dim
        self.linearity_tol = options.linearity_tol
        self.skip_linearly_dependent = options.skip_linearly_dependent
        self.samples_per_time_interval = options.samples_per_time_interval
        self.debug_algorithm = options.debug_algorithm

        # Decomposition of the current time interval
        self.S: Matrix | None = None
        self.num_samples = 0

        self.time_interval_start_times: list[float] = []
        self._last_time: float | None = None
        self._boundary_pending = False

        if options.restore_state:
            self.restore_state()

    # ------------------------------------------------------------------
    # Strategy hooks
    # ------------------------------------------------------------------

    def build_initial_svd(self, u: np.ndarray, time: float) -> None:
        raise NotImplementedError

    def compute_basis(self) -> Matrix:
        """Materialise and return the distributed basis ``U``."""
        raise NotImplementedError

    def add_linearly_dependent_sample(self, A: Matrix, sigma: Matrix) -> None:
        raise NotImplementedError

    def add_new_sample(self, j: Vector, A: Matrix, sigma: Matrix) -> None:
        raise NotImplementedError

    def _project(self, u: Vector) -> tuple[Vector, Vector]:
        """Return the coefficients ``l = U.T @ u`` (non-distributed) and the
        residual ``u - U @ l`` (distributed)."""
        raise NotImplementedError

    # Datasets written by _state_arrays() in addition to S
    state_keys: tuple[str, ...] = ()

    def _state_arrays(self) -> dict[str, np.ndarray]:
        raise NotImplementedError

    def _load_state_arrays(self, arrays: dict[str, np.ndarray]) -> None:
        raise NotImplementedError

    # ------------------------------------------------------------------
    # Sampling
    # ------------------------------------------------------------------

    @property
    def rank(self) -> int:
        return self.num_samples

    def _begin_initial_svd(self, u: np.ndarray, time: float) -> tuple[Vector, float]:
        """Validate the first sample of an interval and register the interval."""
        assert u is not None
        assert time >= 0.0
        assert self.num_samples == 0, "initial SVD already built for this interval"
        assert self._last_time is None or time >= self._last_time
        self._last_time = float(time)
        sample = Vector(u, distributed=True, context=self.context)
        assert sample.dim == self.dim
        norm_u = sample.norm()
        assert norm_u > 0.0, "initial sample must be non-zero"
        self.time_interval_start_times.append(float(time))
        self._boundary_pending = False
        self.S = Matrix([[norm_u]], distributed=False, context=self.context)
        self.num_samples = 1
        logger.info("Starting time interval %d at t=%g",
                    len(self.time_interval_start_times) - 1, time)
        return sample.scaled(1.0 / norm_u), norm_u

    def take_sample(self, u: np.ndarray, time: float) -> SampleResult:
        """Add the state ``u`` observed at ``time`` to the decomposition.

        Parameters
        ----------
        u : ndarray of shape (dim,)
            This process' rows of the state.
        time : float
            Simulation time of the state; non-negative and non-decreasing.

        Returns
        -------
        result : SampleResult
            How the sample was used.  ``INTERVAL_BOUNDARY`` means the sample
            was *not* consumed: the caller must start a new time interval and
            submit it again.
        """
        assert u is not None
        assert time >= 0.0
        assert self._last_time is None or time >= self._last_time, \
            "samples must be taken in non-decreasing time order"
        self._last_time = float(time)

        sample = Vector(u, distributed=True, context=self.context)
        assert sample.dim == self.dim
        norm_u = sample.norm()
        if norm_u == 0.0:
            logger.debug("t=%g: zero sample skipped", time)
            return SampleResult.SKIPPED

        if self.num_samples == 0:
            self.build_initial_svd(sample.data, time)
            result = SampleResult.INITIAL
        else:
            result = self._build_incremental_svd(sample, norm_u, time)

        if self.debug_algorithm:
            self._dump(time, result)
        return result

    def _build_incremental_svd(self, u: Vector, norm_u: float, time: float) -> SampleResult:
        k = self.num_samples

        # l = U.T u and the part of u orthogonal to the basis
        l, j = self._project(u)
        norm_j = j.norm()
        ratio = norm_j / norm_u

        linearly_dependent = ratio < self.linearity_tol
        logger.debug("t=%g: residual ratio %.3e (%s)", time, ratio,
                     "dependent" if linearly_dependent else "independent")

        if linearly_dependent:
            if self.skip_linearly_dependent:
                return SampleResult.SKIPPED
            norm_j = 0.0
        elif k >= self.samples_per_time_interval:
            self._boundary_pending = True
            logger.info("t=%g: time interval %d is full (%d samples)", time,
                        len(self.time_interval_start_times) - 1, k)
            return SampleResult.INTERVAL_BOUNDARY

        # Bordered (k+1)x(k+1) system
        Q = np.zeros((k + 1, k + 1))
        Q[:k, :k] = self.S.data
        Q[:k, k] = l.data
        Q[k, k] = norm_j
        A_q, sigma_q, _ = svd(Q)

        if linearly_dependent:
            A = Matrix(A_q[:k, :k], distributed=False, context=self.context)
            sigma = Matrix(np.diag(sigma_q[:k]), distributed=False, context=self.context)
            self.add_linearly_dependent_sample(A, sigma)
            return SampleResult.LINEARLY_DEPENDENT

        A = Matrix(A_q, distributed=False, context=self.context)
        sigma = Matrix(np.diag(sigma_q), distributed=False, context=self.context)
        self.add_new_sample(j.scaled(1.0 / norm_j), A, sigma)
        return SampleResult.NEW_DIRECTION

    def _dump(self, time: float, result: SampleResult) -> None:
        basis = self.compute_basis()
        logger.info("t=%g: %s, rank %d, singular values %s, orthogonality error %.3e",
                    time, result.value, self.num_samples,
                    np.array2string(self.get_singular_values(), precision=6),
                    orth_error(basis))

    # ------------------------------------------------------------------
    # Time intervals
    # ------------------------------------------------------------------

    def is_new_time_interval(self) -> bool:
        """Return ``True`` if the next sample starts a new time interval."""
        return self.num_samples == 0 or self._boundary_pending

    def start_new_time_interval(self) -> None:
        """Close the current time interval.

        The caller is responsible for persisting the current basis first.
        The next sample taken builds a new initial SVD.
        """
        if self.num_samples == 0:
            return
        logger.info("Closing time interval %d with rank %d",
                    len(self.time_interval_start_times) - 1, self.num_samples)
        self._reset_decomposition()
        self.S = None
        self.num_samples = 0
        self._boundary_pending = False

    def _reset_decomposition(self) -> None:
        raise NotImplementedError

    def get_num_basis_time_intervals(self) -> int:
        return len(self.time_interval_start_times)

    def get_basis_interval_start_time(self, which_interval: int) -> float:
        assert 0 <= which_interval < self.get_num_basis_time_intervals()
        return self.time_interval_start_times[which_interval]

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_basis(self) -> Matrix:
        """Return the basis of the current time interval."""
        assert self.num_samples > 0, "no sample taken in this time interval"
        return self.compute_basis()

    def get_singular_values(self) -> np.ndarray:
        assert self.S is not None
        return np.diag(self.S.data).copy()

    # ------------------------------------------------------------------
    # State persistence
    # ------------------------------------------------------------------

    @property
    def state_file_name(self) -> str:
        return process_file_name(self.options.state_file_name, self.context.rank)

    def save_state(self) -> bool:
        """Write the decomposition of the current interval to the state file.

        Returns ``False`` without writing when nothing can be restored from
        the state, i.e. when no sample was taken or the run spans more than
        one time interval.
        """
        if self.get_num_basis_time_intervals() != 1 or self.num_samples == 0:
            logger.warning("Not saving SVD state: %d time intervals, %d samples",
                           self.get_num_basis_time_intervals(), self.num_samples)
            return False
        database = create_database(self.options.state_file_format)
        database.create(self.state_file_name)
        with database:
            database.put_int("num_samples", self.num_samples)
            database.put_double("time_interval_start", self.time_interval_start_times[0])
            database.put_double("last_sample_time", self._last_time)
            database.put_array("S", self.S.data)
            for key, data in self._state_arrays().items():
                database.put_array(key, data)
        logger.info("Saved SVD state (rank %d) to %s", self.num_samples, self.state_file_name)
        return True

    def restore_state(self) -> None:
        """Read the decomposition written by :meth:`save_state`."""
        database = create_database(self.options.state_file_format)
        database.open(self.state_file_name, "r")
        with database:
            self.num_samples = database.get_int("num_samples")
            self.time_interval_start_times = [database.get_double("time_interval_start")]
            self._last_time = database.get_double("last_sample_time")
            self.S = Matrix(database.get_array("S"), distributed=False, context=self.context)
            arrays = {key: database.get_array(key) for key in self.state_keys}
        self._load_state_arrays(arrays)
        logger.info("Restored SVD state (rank %d) from %s", self.num_samples,
                    self.state_file_name)

    def close(self) -> None:
        """Finish the run, saving the state if requested."""
        if self.options.save_state:
            self.save_state()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()


def create_incremental_svd(options: IncrementalSVDOptions, context=None) -> IncrementalSVD:
    """Build the update strategy selected by ``options.fast_update``."""
    if options.fast_update:
        from .fast_update import IncrementalSVDFastUpdate
        return IncrementalSVDFastUpdate(options, context)
    from .standard import IncrementalSVDStandard
    return IncrementalSVDStandard(options, context)
