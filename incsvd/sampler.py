"""Sampling-time control for the incremental SVD.

:class:`IncrementalSVDSampler` decides *when* the state should be sampled and
forwards samples to an incremental SVD.  The next sample time is chosen from
an estimate of how fast the state leaves the span of the current basis.  With

    eta     = u   - U U^T u,
    eta_dot = rhs - U U^T rhs,

the error committed by extrapolating one step is ``e = ||eta - dt eta_dot||``
and the step is rescaled by ``scale * sqrt(sampling_tol / e)``, clamped to
``[min_scale, max_scale]`` and bounded by ``max_time_between_samples``.
"""

from __future__ import annotations

import logging

import numpy as np

from .incremental_svd import SampleResult, create_incremental_svd
from .matrix import Matrix, Vector
from .options import IncrementalSVDOptions, SamplerOptions

logger = logging.getLogger(__name__)


class IncrementalSVDSampler:
    """Adaptive sampler driving an incremental SVD.

    Parameters
    ----------
    svd_options : IncrementalSVDOptions
        Parameters of the incremental SVD.
    sampler_options : SamplerOptions, optional
        Parameters of the sampling-time control.
    context : SerialContext or MPIContext, optional
        Process context.
    """

    def __init__(self,
                 svd_options: IncrementalSVDOptions,
                 sampler_options: SamplerOptions | None = None,
                 context=None) -> None:
        self.options = SamplerOptions() if sampler_options is None else sampler_options
        self.svd = create_incremental_svd(svd_options, context)
        self.context = self.svd.context
        self.dt: float | None = None
        self.next_sample_time = 0.0

    def is_next_sample(self, time: float) -> bool:
        """Return ``True`` if a sample is due at ``time``."""
        assert time >= 0.0
        return time >= self.next_sample_time

    def take_sample(self, u: np.ndarray, time: float, dt: float | None = None) -> SampleResult:
        """Forward the state ``u`` at ``time`` to the incremental SVD."""
        assert u is not None
        assert time >= 0.0
        if self.dt is None and dt is not None:
            self.dt = float(dt)
        return self.svd.take_sample(u, time)

    def compute_next_sample_time(self, u: np.ndarray, rhs: np.ndarray, time: float) -> float:
        """Return the time at which the next sample should be taken.

        Parameters
        ----------
        u : ndarray of shape (dim,)
            State at ``time``.
        rhs : ndarray of shape (dim,)
            Time derivative of the state at ``time``.
        time : float
            Current simulation time.
        """
        assert u is not None
        assert rhs is not None
        assert time >= 0.0

        state = Vector(u, distributed=True, context=self.context)
        if state.norm() == 0.0 or self.svd.num_samples == 0:
            return self.next_sample_time

        basis = self.get_basis()
        eta = self._residual(basis, state)
        eta_dot = self._residual(basis, Vector(rhs, distributed=True, context=self.context))

        dt = self.options.max_time_between_samples if self.dt is None else self.dt
        error = eta.minus(eta_dot.scaled(dt)).norm()

        opts = self.options
        if error == 0.0:
            factor = opts.max_sampling_time_step_scale
        else:
            factor = opts.sampling_time_step_scale * np.sqrt(opts.sampling_tol / error)
            factor = min(max(factor, opts.min_sampling_time_step_scale),
                         opts.max_sampling_time_step_scale)
        dt = min(max(dt * factor, 0.0), opts.max_time_between_samples)

        self.dt = dt
        self.next_sample_time = time + dt
        logger.debug("t=%g: extrapolation error %.3e, next sample at t=%g",
                     time, error, self.next_sample_time)
        return self.next_sample_time

    @staticmethod
    def _residual(basis: Matrix, v: Vector) -> Vector:
        return v.minus(basis.mult(basis.transpose_mult(v)))

    def reset_dt(self, dt: float) -> None:
        """Restart the step control from ``dt`` (used at interval changes)."""
        assert dt >= 0.0
        self.dt = float(dt)

    def is_new_time_interval(self) -> bool:
        return self.svd.is_new_time_interval()

    def start_new_time_interval(self) -> None:
        self.svd.start_new_time_interval()

    def get_basis(self) -> Matrix:
        return self.svd.get_basis()

    def get_singular_values(self) -> np.ndarray:
        return self.svd.get_singular_values()

    def get_num_basis_time_intervals(self) -> int:
        return self.svd.get_num_basis_time_intervals()

    def get_basis_interval_start_time(self, which_interval: int) -> float:
        return self.svd.get_basis_interval_start_time(which_interval)

    def close(self) -> None:
        self.svd.close()
