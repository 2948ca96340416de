"""Persistence of basis vectors and decomposition state.

Every process writes its own file named ``"<base>.<rank:06d>"`` holding the
rows of the distributed basis it owns together with the replicated singular
values.  Two storage formats are supported:

* ``hdf5`` – one HDF5 file per process (via :mod:`h5py`);
* ``text`` – one directory per process containing a plain-text file per
  dataset (via :func:`numpy.savetxt`).

Basis files store, for the ``i``-th time interval, the datasets
``time_<i>``, ``spatial_basis_<i>`` and ``singular_values_<i>`` plus a
``num_time_intervals`` counter.
"""

from __future__ import annotations

import enum
import logging
import os

import h5py
import numpy as np

from .matrix import Matrix
from .parallel import SerialContext
from .utils import timer

logger = logging.getLogger(__name__)


class FileFormat(str, enum.Enum):
    HDF5 = "hdf5"
    TEXT = "text"


def process_file_name(base_file_name: str, rank: int) -> str:
    """Return the name of the file owned by process ``rank``."""
    return f"{base_file_name}.{rank:06d}"


class Database:
    """Minimal key/array store shared by all file formats."""

    def create(self, file_name: str) -> None:
        raise NotImplementedError

    def open(self, file_name: str, mode: str = "r") -> None:
        raise NotImplementedError

    def close(self) -> None:
        raise NotImplementedError

    def put_array(self, key: str, data: np.ndarray) -> None:
        raise NotImplementedError

    def get_array(self, key: str) -> np.ndarray:
        raise NotImplementedError

    def put_double(self, key: str, value: float) -> None:
        self.put_array(key, np.array([float(value)]))

    def get_double(self, key: str) -> float:
        return float(self.get_array(key).reshape(-1)[0])

    def put_int(self, key: str, value: int) -> None:
        self.put_array(key, np.array([int(value)]))

    def get_int(self, key: str) -> int:
        return int(round(self.get_double(key)))

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()


class HDF5Database(Database):
    """Database stored in a single HDF5 file."""

    def __init__(self) -> None:
        self._file: h5py.File | None = None

    def create(self, file_name: str) -> None:
        self._file = h5py.File(file_name, "w")

    def open(self, file_name: str, mode: str = "r") -> None:
        self._file = h5py.File(file_name, mode)

    def close(self) -> None:
        if self._file is not None:
            self._file.close()
            self._file = None

    def put_array(self, key: str, data: np.ndarray) -> None:
        assert self._file is not None, "database is not open"
        if key in self._file:
            del self._file[key]
        self._file.create_dataset(key, data=np.asarray(data))

    def get_array(self, key: str) -> np.ndarray:
        assert self._file is not None, "database is not open"
        return np.array(self._file[key])


class TextDatabase(Database):
    """Database stored as a directory of plain-text files.

    Arrays keep their dimensionality through a one-line header listing the
    shape, so empty and one-dimensional arrays read back unchanged.
    """

    def __init__(self) -> None:
        self._directory: str | None = None

    def create(self, file_name: str) -> None:
        os.makedirs(file_name, exist_ok=True)
        for entry in os.listdir(file_name):
            if entry.endswith(".txt"):
                os.remove(os.path.join(file_name, entry))
        self._directory = file_name

    def open(self, file_name: str, mode: str = "r") -> None:
        if not os.path.isdir(file_name):
            raise FileNotFoundError(file_name)
        self._directory = file_name

    def close(self) -> None:
        self._directory = None

    def _path(self, key: str) -> str:
        assert self._directory is not None, "database is not open"
        return os.path.join(self._directory, f"{key}.txt")

    def put_array(self, key: str, data: np.ndarray) -> None:
        data = np.asarray(data, dtype=float)
        header = "shape " + " ".join(str(n) for n in data.shape)
        np.savetxt(self._path(key), data.reshape(-1), header=header)

    def get_array(self, key: str) -> np.ndarray:
        path = self._path(key)
        with open(path, "r", encoding="utf-8") as f:
            header = f.readline()
        shape = tuple(int(n) for n in header.split()[2:])
        flat = np.loadtxt(path, ndmin=1)
        return flat.reshape(shape)


def create_database(file_format: str | FileFormat) -> Database:
    """Return an empty database for ``file_format``."""
    file_format = FileFormat(file_format)
    if file_format is FileFormat.HDF5:
        return HDF5Database()
    return TextDatabase()


class BasisWriter:
    """Write the basis of every finished time interval.

    Parameters
    ----------
    sampler : IncrementalSVDSampler
        Source of the basis, singular values and interval start times.
    base_file_name : str
        Base name of the per-process basis file.
    file_format : {'hdf5', 'text'}
        Storage format.
    """

    def __init__(self, sampler, base_file_name: str,
                 file_format: str | FileFormat = FileFormat.HDF5) -> None:
        assert base_file_name, "base_file_name must not be empty"
        self.sampler = sampler
        self.file_format = FileFormat(file_format)
        self.file_name = process_file_name(base_file_name, sampler.context.rank)
        self.num_intervals_written = 0

    def write_basis(self) -> None:
        """Append the current time interval to the basis file."""
        interval = self.sampler.get_num_basis_time_intervals() - 1
        assert interval >= 0, "no time interval to write"
        database = create_database(self.file_format)
        if self.num_intervals_written == 0:
            database.create(self.file_name)
        else:
            database.open(self.file_name, "a")
        with timer(f"Writing basis of time interval {interval}"), database:
            idx = self.num_intervals_written
            database.put_double(f"time_{idx:06d}",
                                self.sampler.get_basis_interval_start_time(interval))
            database.put_array(f"spatial_basis_{idx:06d}", self.sampler.get_basis().data)
            database.put_array(f"singular_values_{idx:06d}",
                               self.sampler.get_singular_values())
            self.num_intervals_written += 1
            database.put_int("num_time_intervals", self.num_intervals_written)
        logger.info("Wrote time interval %d to %s", interval, self.file_name)


class BasisReader:
    """Read the bases written by :class:`BasisWriter`.

    Parameters
    ----------
    base_file_name : str
        Base name of the per-process basis file.
    file_format : {'hdf5', 'text'}
        Storage format.
    context : SerialContext or MPIContext, optional
        Process context; selects which process' file is read.
    """

    def __init__(self, base_file_name: str,
                 file_format: str | FileFormat = FileFormat.HDF5,
                 context=None) -> None:
        self.context = SerialContext() if context is None else context
        self.file_name = process_file_name(base_file_name, self.context.rank)
        self._start_times: list[float] = []
        self._bases: list[np.ndarray] = []
        self._singular_values: list[np.ndarray] = []
        self._last_interval: int | None = None

        database = create_database(file_format)
        database.open(self.file_name, "r")
        with database:
            num_intervals = database.get_int("num_time_intervals")
            for i in range(num_intervals):
                self._start_times.append(database.get_double(f"time_{i:06d}"))
                self._bases.append(database.get_array(f"spatial_basis_{i:06d}"))
                self._singular_values.append(
                    database.get_array(f"singular_values_{i:06d}").reshape(-1))

    def get_num_time_intervals(self) -> int:
        return len(self._start_times)

    def get_time_interval_start_time(self, which_interval: int) -> float:
        assert 0 <= which_interval < self.get_num_time_intervals()
        return self._start_times[which_interval]

    def _interval_at(self, time: float) -> int:
        assert time >= 0.0
        assert self.get_num_time_intervals() > 0, "no basis in file"
        interval = 0
        for i, start in enumerate(self._start_times):
            if start <= time:
                interval = i
        return interval

    def is_new_basis(self, time: float) -> bool:
        """Return ``True`` if the basis valid at ``time`` differs from the
        one returned by the previous :meth:`get_spatial_basis` call."""
        return self._last_interval is None or self._interval_at(time) != self._last_interval

    def get_spatial_basis(self, time: float) -> Matrix:
        """Return the distributed basis valid at ``time``."""
        interval = self._interval_at(time)
        self._last_interval = interval
        return Matrix(self._bases[interval], distributed=True, context=self.context)

    def get_singular_values(self, time: float) -> np.ndarray:
        return self._singular_values[self._interval_at(time)].copy()
