"""
Incremental SVD tests, run against both update strategies.
"""

import numpy as np
import pytest

from incsvd import IncrementalSVDOptions, SampleResult, create_incremental_svd
from incsvd.metrics import orth_error, projection_error


@pytest.fixture(params=[True, False], ids=["fast", "standard"])
def fast_update(request):
    return request.param


def make_svd(dim, linearity_tol, fast_update=True, **kwargs):
    kwargs.setdefault("samples_per_time_interval", 100)
    options = IncrementalSVDOptions(dim=dim, linearity_tol=linearity_tol,
                                    fast_update=fast_update, **kwargs)
    return create_incremental_svd(options)


def low_noise_stream(rng, dim=50, n=30):
    """Three clean directions followed by samples with mixed noise levels."""
    base = np.eye(dim)[:, :3]
    samples = [3.0 * base[:, 0], 2.0 * base[:, 1], 1.5 * base[:, 2]]
    levels = [0.0, 1e-6, 1e-2]
    for i in range(n - 3):
        signal = base @ rng.standard_normal(3)
        samples.append(signal + levels[i % 3] * rng.standard_normal(dim))
    return samples


def test_identical_samples_keep_rank_one(fast_update):
    svd = make_svd(3, 0.5, fast_update)
    u = np.array([1.0, 2.0, 3.0])
    results = [svd.take_sample(u, t) for t in (0.0, 1.0, 2.0)]
    assert results == [SampleResult.INITIAL,
                       SampleResult.LINEARLY_DEPENDENT,
                       SampleResult.LINEARLY_DEPENDENT]
    assert svd.rank == 1
    assert svd.get_singular_values()[0] == pytest.approx(np.sqrt(3.0) * np.linalg.norm(u))
    basis = svd.get_basis().data[:, 0]
    assert abs(basis @ u) == pytest.approx(np.linalg.norm(u))


def test_orthogonal_samples_give_identity_basis(fast_update):
    svd = make_svd(2, 1e-6, fast_update)
    assert svd.take_sample(np.array([1.0, 0.0]), 0.0) is SampleResult.INITIAL
    assert svd.take_sample(np.array([0.0, 1.0]), 1.0) is SampleResult.NEW_DIRECTION
    assert svd.rank == 2
    U = svd.get_basis().data
    np.testing.assert_allclose(np.abs(U.T @ U), np.eye(2), atol=1e-12)
    np.testing.assert_allclose(U @ U.T, np.eye(2), atol=1e-12)
    np.testing.assert_allclose(svd.get_singular_values(), [1.0, 1.0])


def test_full_interval_signals_boundary(fast_update):
    svd = make_svd(3, 1e-6, fast_update, samples_per_time_interval=2)
    e = np.eye(3)
    assert svd.take_sample(e[0], 0.0) is SampleResult.INITIAL
    assert svd.take_sample(e[1], 1.0) is SampleResult.NEW_DIRECTION
    assert not svd.is_new_time_interval()
    assert svd.take_sample(e[2], 2.0) is SampleResult.INTERVAL_BOUNDARY
    assert svd.rank == 2
    assert svd.is_new_time_interval()
    assert svd.get_num_basis_time_intervals() == 1

    svd.start_new_time_interval()
    assert svd.take_sample(e[2], 2.0) is SampleResult.INITIAL
    assert svd.rank == 1
    assert svd.get_num_basis_time_intervals() == 2
    assert svd.get_basis_interval_start_time(0) == 0.0
    assert svd.get_basis_interval_start_time(1) == 2.0


def test_dependent_samples_fold_in_when_interval_is_full(fast_update):
    svd = make_svd(3, 1e-6, fast_update, samples_per_time_interval=1)
    u = np.array([1.0, 1.0, 0.0])
    svd.take_sample(u, 0.0)
    assert svd.take_sample(2.0 * u, 1.0) is SampleResult.LINEARLY_DEPENDENT
    assert not svd.is_new_time_interval()


def test_basis_is_orthonormal_after_every_sample(fast_update, rng):
    svd = make_svd(50, 1e-3, fast_update)
    for t, u in enumerate(low_noise_stream(rng)):
        svd.take_sample(u, float(t))
        assert orth_error(svd.get_basis()) < 1e-10


def test_basis_is_orthonormal_when_materialised_late(rng):
    svd = make_svd(50, 1e-8, True)
    for t, u in enumerate(low_noise_stream(rng, n=40)):
        svd.take_sample(u, float(t))
    assert orth_error(svd.get_basis()) < 1e-10


def test_compute_basis_is_idempotent(fast_update, rng):
    svd = make_svd(20, 1e-8, fast_update)
    for t in range(6):
        svd.take_sample(rng.standard_normal(20), float(t))
    first = svd.compute_basis().data.copy()
    second = svd.compute_basis().data
    np.testing.assert_array_equal(first, second)


def test_dependent_count_is_monotone_in_tolerance(fast_update):
    counts = []
    for tol in (1e-9, 1e-4, 0.2):
        samples = low_noise_stream(np.random.default_rng(7))
        svd = make_svd(50, tol, fast_update)
        results = [svd.take_sample(u, float(t)) for t, u in enumerate(samples)]
        counts.append(results.count(SampleResult.LINEARLY_DEPENDENT))
    assert counts == sorted(counts)
    assert counts[0] < counts[-1]


def test_rank_is_bounded(fast_update, rng):
    cap = 4
    svd = make_svd(10, 1e-6, fast_update, samples_per_time_interval=cap)
    independent = 0
    for t in range(12):
        result = svd.take_sample(rng.standard_normal(10), float(t))
        if result is SampleResult.INTERVAL_BOUNDARY:
            svd.start_new_time_interval()
            independent = 0
            result = svd.take_sample(rng.standard_normal(10), float(t))
        if result in (SampleResult.INITIAL, SampleResult.NEW_DIRECTION):
            independent += 1
        assert svd.rank <= cap
        assert svd.rank <= independent


def test_classification_matches_projection_error(fast_update, rng):
    tol = 1e-3
    svd = make_svd(50, tol, fast_update)
    for t, u in enumerate(low_noise_stream(rng)):
        err = projection_error(svd.get_basis(), u) if svd.rank else None
        result = svd.take_sample(u, float(t))
        if result is SampleResult.LINEARLY_DEPENDENT:
            assert err < tol
        elif result is SampleResult.NEW_DIRECTION:
            assert err >= tol


def test_singular_values_match_dense_svd_for_low_rank_data(fast_update, rng):
    X = rng.standard_normal((30, 3)) @ rng.standard_normal((3, 10))
    svd = make_svd(30, 1e-8, fast_update)
    for t in range(X.shape[1]):
        svd.take_sample(X[:, t], float(t))
    assert svd.rank == 3
    expected = np.linalg.svd(X, compute_uv=False)[:3]
    np.testing.assert_allclose(svd.get_singular_values(), expected, rtol=1e-8)


def test_skip_linearly_dependent(fast_update):
    svd = make_svd(2, 0.1, fast_update, skip_linearly_dependent=True)
    svd.take_sample(np.array([1.0, 0.0]), 0.0)
    assert svd.take_sample(np.array([5.0, 0.0]), 1.0) is SampleResult.SKIPPED
    np.testing.assert_allclose(svd.get_singular_values(), [1.0])


def test_zero_sample_is_skipped(fast_update):
    svd = make_svd(2, 0.1, fast_update)
    assert svd.take_sample(np.zeros(2), 0.0) is SampleResult.SKIPPED
    assert svd.get_num_basis_time_intervals() == 0
    assert svd.is_new_time_interval()
    assert svd.take_sample(np.array([0.0, 2.0]), 0.5) is SampleResult.INITIAL
    assert svd.take_sample(np.zeros(2), 1.0) is SampleResult.SKIPPED
    assert svd.rank == 1


def test_build_initial_svd_directly(fast_update):
    svd = make_svd(2, 0.1, fast_update)
    svd.build_initial_svd(np.array([0.0, 3.0]), 0.0)
    assert svd.rank == 1
    np.testing.assert_allclose(svd.get_singular_values(), [3.0])
    with pytest.raises(AssertionError):
        svd.build_initial_svd(np.array([1.0, 0.0]), 1.0)


@pytest.mark.parametrize("u, time", [
    (None, 0.0),
    (np.ones(2), -1.0),
    (np.ones(3), 0.0),
])
def test_contract_violations(u, time):
    svd = make_svd(2, 0.1)
    with pytest.raises(AssertionError):
        svd.take_sample(u, time)


def test_time_must_not_decrease():
    svd = make_svd(2, 0.1)
    svd.take_sample(np.array([1.0, 0.0]), 1.0)
    with pytest.raises(AssertionError):
        svd.take_sample(np.array([0.0, 1.0]), 0.5)


def test_interval_start_time_index_is_checked():
    svd = make_svd(2, 0.1)
    svd.take_sample(np.array([1.0, 0.0]), 0.0)
    with pytest.raises(AssertionError):
        svd.get_basis_interval_start_time(1)


def test_debug_algorithm_logs_each_update(caplog):
    svd = make_svd(2, 1e-6, debug_algorithm=True)
    with caplog.at_level("INFO", logger="incsvd"):
        svd.take_sample(np.array([1.0, 0.0]), 0.0)
        svd.take_sample(np.array([0.0, 1.0]), 1.0)
    messages = [r.getMessage() for r in caplog.records]
    assert any("new_direction, rank 2" in m for m in messages)
