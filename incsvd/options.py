"""Configuration of the incremental SVD, the sampler and the basis files.

All options are plain dataclasses validated on construction.  A complete
configuration can be read from a YAML file with three sections:

```yaml
svd:
  dim: 1000
  linearity_tol: 1.0e-7
  skip_linearly_dependent: false
  samples_per_time_interval: 50
sampler:
  sampling_tol: 1.0e-3
  max_time_between_samples: 0.1
basis:
  basis_file_name: basis
  file_format: hdf5
```
"""

from __future__ import annotations

from dataclasses import dataclass, field

from .utils import load_config

FILE_FORMATS = ("hdf5", "text")


@dataclass
class IncrementalSVDOptions:
    """Parameters of an incremental SVD.

    Parameters
    ----------
    dim : int
        Number of rows of the state owned by this process.
    linearity_tol : float
        A sample whose residual norm relative to its own norm falls below
        this value is linearly dependent on the current basis.
    skip_linearly_dependent : bool
        Drop linearly dependent samples instead of folding them into the
        singular values.
    samples_per_time_interval : int
        Maximum rank of the basis within one time interval.
    save_state, restore_state : bool
        Write the decomposition to ``state_file_name`` on close, or read it
        back on construction.
    debug_algorithm : bool
        Log the decomposition after every update.
    fast_update : bool
        Use Brand's fast update (``True``) or the always-materialised
        standard update.
    state_file_name : str
        Base name of the per-process state file.
    state_file_format : {'hdf5', 'text'}
        Format of the state file.
    """

    dim: int
    linearity_tol: float
    skip_linearly_dependent: bool = False
    samples_per_time_interval: int = 1
    save_state: bool = False
    restore_state: bool = False
    debug_algorithm: bool = False
    fast_update: bool = True
    state_file_name: str = "svd_state"
    state_file_format: str = "hdf5"

    def __post_init__(self) -> None:
        if int(self.dim) <= 0:
            raise ValueError(f"dim must be positive, got {self.dim}")
        if float(self.linearity_tol) <= 0.0:
            raise ValueError(f"linearity_tol must be positive, got {self.linearity_tol}")
        if int(self.samples_per_time_interval) <= 0:
            raise ValueError("samples_per_time_interval must be positive, "
                             f"got {self.samples_per_time_interval}")
        if self.state_file_format not in FILE_FORMATS:
            raise ValueError(f"unknown state_file_format {self.state_file_format!r}")
        self.dim = int(self.dim)
        self.linearity_tol = float(self.linearity_tol)
        self.samples_per_time_interval = int(self.samples_per_time_interval)


@dataclass
class SamplerOptions:
    """Parameters of the adaptive sampling-time control.

    Parameters
    ----------
    sampling_tol : float
        Target error of the projected state between two samples.
    max_time_between_samples : float
        Upper bound on the time step between samples.
    min_sampling_time_step_scale, sampling_time_step_scale, max_sampling_time_step_scale : float
        Safety factor applied to the error estimate and the range the
        resulting step scale is clamped to.
    """

    sampling_tol: float = 1.0e-3
    max_time_between_samples: float = 1.0
    min_sampling_time_step_scale: float = 0.1
    sampling_time_step_scale: float = 0.8
    max_sampling_time_step_scale: float = 5.0

    def __post_init__(self) -> None:
        if self.sampling_tol <= 0.0:
            raise ValueError(f"sampling_tol must be positive, got {self.sampling_tol}")
        if self.max_time_between_samples <= 0.0:
            raise ValueError("max_time_between_samples must be positive, "
                             f"got {self.max_time_between_samples}")
        if not 0.0 <= self.min_sampling_time_step_scale <= self.max_sampling_time_step_scale:
            raise ValueError("need 0 <= min_sampling_time_step_scale "
                             "<= max_sampling_time_step_scale")
        if self.sampling_time_step_scale < 0.0:
            raise ValueError("sampling_time_step_scale must be non-negative")


@dataclass
class GeneratorConfig:
    """Everything needed to build an :class:`IncrementalSVDBasisGenerator`."""

    svd: IncrementalSVDOptions
    sampler: SamplerOptions = field(default_factory=SamplerOptions)
    basis_file_name: str = ""
    file_format: str = "hdf5"

    def __post_init__(self) -> None:
        if self.file_format not in FILE_FORMATS:
            raise ValueError(f"unknown file_format {self.file_format!r}")

    @classmethod
    def from_dict(cls, cfg: dict) -> GeneratorConfig:
        basis = cfg.get("basis") or {}
        return cls(svd=IncrementalSVDOptions(**cfg["svd"]),
                   sampler=SamplerOptions(**(cfg.get("sampler") or {})),
                   basis_file_name=basis.get("basis_file_name", ""),
                   file_format=basis.get("file_format", "hdf5"))

    @classmethod
    def from_yaml(cls, config_path: str) -> GeneratorConfig:
        return cls.from_dict(load_config(config_path))
