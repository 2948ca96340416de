"""
Fast update specific tests: deferred rotation, agreement with the standard
update and consistency across distributed row blocks.
"""

import numpy as np
import pytest

from incsvd import (IncrementalSVDFastUpdate, IncrementalSVDOptions,
                    IncrementalSVDStandard, SampleResult)
from incsvd.metrics import orth_error


def options(dim, **kwargs):
    kwargs.setdefault("linearity_tol", 1e-6)
    kwargs.setdefault("samples_per_time_interval", 50)
    return IncrementalSVDOptions(dim=dim, **kwargs)


def align_signs(U, reference):
    signs = np.sign(np.sum(U * reference, axis=0))
    return U * signs


def test_initial_rotation_is_identity():
    svd = IncrementalSVDFastUpdate(options(3))
    svd.build_initial_svd(np.array([0.0, 0.0, 2.0]), 0.0)
    np.testing.assert_array_equal(svd.Up.data, [[1.0]])
    np.testing.assert_allclose(svd.U.data[:, 0], [0.0, 0.0, 1.0])


def test_rotation_grows_with_new_directions_only(rng):
    svd = IncrementalSVDFastUpdate(options(10))
    svd.take_sample(rng.standard_normal(10), 0.0)
    svd.take_sample(rng.standard_normal(10), 1.0)
    assert svd.Up.data.shape == (2, 2)
    assert svd.U.num_columns == 2
    svd.take_sample(svd.get_basis().data @ np.array([1.0, -2.0]), 2.0)
    assert svd.Up.data.shape == (2, 2)
    np.testing.assert_allclose(svd.Up.data.T @ svd.Up.data, np.eye(2), atol=1e-14)


def test_compute_basis_resets_rotation(rng):
    svd = IncrementalSVDFastUpdate(options(10))
    for t in range(4):
        svd.take_sample(rng.standard_normal(10), float(t))
    raw = svd.U.data.copy()
    rotation = svd.Up.data.copy()
    basis = svd.compute_basis()
    np.testing.assert_allclose(basis.data, raw @ rotation, atol=1e-14)
    np.testing.assert_array_equal(svd.Up.data, np.eye(4))


def test_rotation_is_reorthogonalized(rng):
    svd = IncrementalSVDFastUpdate(options(10))
    for t in range(3):
        svd.take_sample(rng.standard_normal(10), float(t))
    svd.Up.data[:, 0] *= 1.0 + 1e-8
    assert orth_error(svd.Up) > 1e-9

    in_span = svd.U.data @ rng.standard_normal(3)
    assert svd.take_sample(in_span, 3.0) is SampleResult.LINEARLY_DEPENDENT
    assert orth_error(svd.Up) < 1e-14


def test_rotation_stays_orthogonal_over_many_dependent_samples(rng):
    svd = IncrementalSVDFastUpdate(options(12))
    for t in range(5):
        svd.take_sample(rng.standard_normal(12), float(t))
    raw = svd.U.data.copy()
    for t in range(5, 2005):
        svd.take_sample(raw @ rng.standard_normal(5), float(t))
    assert svd.Up.data.shape == (5, 5)
    assert orth_error(svd.Up) < 5 * 5 * np.finfo(float).eps
    assert orth_error(svd.get_basis()) < 1e-13


def test_fast_and_standard_updates_agree(rng):
    X = rng.standard_normal((40, 5)) @ rng.standard_normal((5, 25))
    X += 1e-3 * rng.standard_normal(X.shape)
    fast = IncrementalSVDFastUpdate(options(40, linearity_tol=1e-2))
    standard = IncrementalSVDStandard(options(40, linearity_tol=1e-2))
    for t in range(X.shape[1]):
        assert fast.take_sample(X[:, t], float(t)) is standard.take_sample(X[:, t], float(t))
    np.testing.assert_allclose(fast.get_singular_values(), standard.get_singular_values(),
                               rtol=1e-10)
    U_fast = fast.get_basis().data
    U_standard = standard.get_basis().data
    np.testing.assert_allclose(align_signs(U_fast, U_standard), U_standard, atol=1e-8)


def test_distributed_run_matches_serial(spmd, rng):
    dim, n = 24, 12
    X = rng.standard_normal((dim, 4)) @ rng.standard_normal((4, n))
    X[:, 6:] += 1e-2 * rng.standard_normal((dim, n - 6))
    blocks = [(0, 7), (7, 16), (16, 24)]

    serial = IncrementalSVDFastUpdate(options(dim, linearity_tol=1e-3))
    serial_results = [serial.take_sample(X[:, t], float(t)) for t in range(n)]

    def run(context):
        lo, hi = blocks[context.rank]
        svd = IncrementalSVDFastUpdate(options(hi - lo, linearity_tol=1e-3), context)
        results = [svd.take_sample(X[lo:hi, t], float(t)) for t in range(n)]
        basis = svd.get_basis()
        return results, svd.get_singular_values(), basis.data, orth_error(basis)

    outputs = spmd(len(blocks), run)

    for results, _, _, gamma in outputs:
        assert results == serial_results
        assert gamma < 1e-10
    # Replicated state is identical on every process
    for _, s, _, _ in outputs[1:]:
        np.testing.assert_array_equal(s, outputs[0][1])
    np.testing.assert_allclose(outputs[0][1], serial.get_singular_values(), rtol=1e-10)

    stacked = np.vstack([out[2] for out in outputs])
    U_serial = serial.get_basis().data
    np.testing.assert_allclose(align_signs(stacked, U_serial), U_serial, atol=1e-8)


def test_distributed_interval_boundary_is_collective(spmd):
    e = np.eye(4)

    def run(context):
        lo, hi = (0, 2) if context.rank == 0 else (2, 4)
        svd = IncrementalSVDFastUpdate(options(2, samples_per_time_interval=2), context)
        return [svd.take_sample(e[lo:hi, t], float(t)) for t in range(3)]

    for results in spmd(2, run):
        assert results[-1] is SampleResult.INTERVAL_BOUNDARY


@pytest.mark.parametrize("fast", [True, False])
def test_new_sample_preconditions(fast):
    cls = IncrementalSVDFastUpdate if fast else IncrementalSVDStandard
    svd = cls(options(2))
    svd.take_sample(np.array([1.0, 0.0]), 0.0)
    with pytest.raises(AssertionError):
        svd.add_new_sample(None, None, None)
