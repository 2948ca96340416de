"""Basis generation facade.

:class:`IncrementalSVDBasisGenerator` wires an :class:`IncrementalSVDSampler`
and an optional :class:`BasisWriter` together so that a simulation only has
to call :meth:`~IncrementalSVDBasisGenerator.is_next_sample`,
:meth:`~IncrementalSVDBasisGenerator.take_sample` and
:meth:`~IncrementalSVDBasisGenerator.end_samples`.

Example
-------

```python
from incsvd import GeneratorConfig, IncrementalSVDBasisGenerator

generator = IncrementalSVDBasisGenerator(GeneratorConfig.from_yaml("rom.yaml"))
for time, dt, u, rhs in simulation:
    if generator.is_next_sample(time):
        generator.take_sample(u, time, dt)
        generator.compute_next_sample_time(u, rhs, time)
generator.end_samples()
```
"""

from __future__ import annotations

import logging

import numpy as np

from .basis_io import BasisWriter
from .incremental_svd import SampleResult
from .matrix import Matrix
from .options import GeneratorConfig
from .sampler import IncrementalSVDSampler

logger = logging.getLogger(__name__)


class IncrementalSVDBasisGenerator:
    """Generate reduced bases from sampled states.

    Parameters
    ----------
    config : GeneratorConfig
        SVD, sampler and basis-file options.  No basis file is written when
        ``config.basis_file_name`` is empty.
    context : SerialContext or MPIContext, optional
        Process context.
    """

    def __init__(self, config: GeneratorConfig, context=None) -> None:
        self.config = config
        self.sampler = IncrementalSVDSampler(config.svd, config.sampler, context)
        self.basis_writer: BasisWriter | None = None
        if config.basis_file_name:
            self.basis_writer = BasisWriter(self.sampler, config.basis_file_name,
                                            config.file_format)

    def is_next_sample(self, time: float) -> bool:
        assert time >= 0.0
        return self.sampler.is_next_sample(time)

    def take_sample(self, u: np.ndarray, time: float, dt: float) -> SampleResult:
        """Sample the state ``u`` at ``time``.

        When the current time interval is full the finished basis is written,
        a new interval is started and ``u`` becomes its first sample.
        """
        assert u is not None
        assert time >= 0.0

        result = self.sampler.take_sample(u, time, dt)
        if result is SampleResult.INTERVAL_BOUNDARY:
            self.sampler.reset_dt(dt)
            if self.basis_writer is not None:
                self.basis_writer.write_basis()
            self.sampler.start_new_time_interval()
            result = self.sampler.take_sample(u, time, dt)
        return result

    def end_samples(self) -> None:
        """Signal that the final sample has been taken."""
        if self.basis_writer is not None and self.sampler.svd.num_samples > 0:
            self.basis_writer.write_basis()
        self.sampler.close()

    def compute_next_sample_time(self, u: np.ndarray, rhs: np.ndarray, time: float) -> float:
        assert u is not None
        assert rhs is not None
        assert time >= 0.0
        return self.sampler.compute_next_sample_time(u, rhs, time)

    def get_basis(self) -> Matrix:
        """Return the basis of the current time interval."""
        return self.sampler.get_basis()

    def get_singular_values(self) -> np.ndarray:
        return self.sampler.get_singular_values()

    def get_num_basis_time_intervals(self) -> int:
        return self.sampler.get_num_basis_time_intervals()

    def get_basis_interval_start_time(self, which_interval: int) -> float:
        assert 0 <= which_interval < self.get_num_basis_time_intervals()
        return self.sampler.get_basis_interval_start_time(which_interval)
