"""Incremental SVD reduced-basis generation.

This package maintains a truncated SVD of a snapshot matrix whose columns
(simulated states) arrive one at a time, possibly with the rows distributed
over several processes.  The main components include:

* :mod:`matrix` – dense, optionally row-distributed vectors and matrices;
* :mod:`parallel` – process contexts (single process or MPI);
* :mod:`incremental_svd` – the abstract incremental SVD: linear-dependence
  detection, the bordered small SVD and time-interval bookkeeping;
* :mod:`fast_update` – Brand's fast update, deferring the rotation of the basis;
* :mod:`standard` – the always-materialised update, used as a reference;
* :mod:`sampler` – adaptive control of the sampling times;
* :mod:`basis_io` – HDF5 and text storage of bases and saved state;
* :mod:`generator` – the facade used by simulation codes;
* :mod:`metrics` and :mod:`plotting` – diagnostics;
* :mod:`options` and :mod:`utils` – configuration and helpers.

"""

from .basis_io import BasisReader, BasisWriter, FileFormat  # noqa: F401
from .fast_update import IncrementalSVDFastUpdate  # noqa: F401
from .generator import IncrementalSVDBasisGenerator  # noqa: F401
from .incremental_svd import IncrementalSVD, SampleResult, create_incremental_svd  # noqa: F401
from .options import GeneratorConfig, IncrementalSVDOptions, SamplerOptions  # noqa: F401
from .parallel import MPIContext, SerialContext  # noqa: F401
from .standard import IncrementalSVDStandard  # noqa: F401

__version__ = "0.1.0"

__all__ = [
    "BasisReader",
    "BasisWriter",
    "FileFormat",
    "GeneratorConfig",
    "IncrementalSVD",
    "IncrementalSVDBasisGenerator",
    "IncrementalSVDFastUpdate",
    "IncrementalSVDOptions",
    "IncrementalSVDStandard",
    "MPIContext",
    "SampleResult",
    "SamplerOptions",
    "SerialContext",
    "create_incremental_svd",
]
