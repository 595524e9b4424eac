import warnings

import numpy as np
import pytest

from gamlr.context import PathContext
from gamlr.design import SparseColumnAccessor, precompute_sufficient_statistics
from gamlr.families import Gaussian
from gamlr.gradient import CovarianceGradient, SparseGradient


def make_context(X, y, prior):
    acc = SparseColumnAccessor(X)
    n, p = X.shape
    return PathContext(
        acc, Gaussian(), y, prior, np.zeros(n), np.ones(p), np.zeros(p)
    )


@pytest.fixture
def problem():
    np.random.seed(7)
    n, p = 40, 5
    X = np.random.randn(n, p)
    X[np.random.rand(n, p) < 0.3] = 0.0
    y = X @ np.array([1.0, 0.0, -2.0, 0.5, 0.0]) + 0.1 * np.random.randn(n)
    prior = np.random.rand(n) + 0.5
    beta = np.array([0.8, 0.0, -1.5, 0.2, 0.1])
    return X, y, prior, beta


def test_sparse_curvature_is_weighted_variance(problem):
    """Test that the curvature equals the weighted spread about the column mean."""
    X, y, prior, _ = problem
    ctx = make_context(X, y, prior)
    SparseGradient(ctx.X).initialize(ctx, standardize=True)
    xbar = X.mean(axis=0)
    expected = np.sum(prior[:, None] * (X - xbar) ** 2, axis=0)
    np.testing.assert_allclose(ctx.H, expected)


def test_sparse_gradient_matches_dense(problem):
    """Test the sparse gradient against the dense weighted residual product."""
    X, y, prior, beta = problem
    ctx = make_context(X, y, prior)
    backend = SparseGradient(ctx.X)
    backend.initialize(ctx, standardize=True)
    ctx.B[:] = beta
    ctx.E[:] = X @ beta
    ctx.A = 0.3

    expected = -X.T @ (prior * (y - 0.3 - X @ beta))
    got = np.array([backend.gradient(ctx, j) for j in range(5)])
    np.testing.assert_allclose(got, expected, atol=1e-10)


def test_backends_agree(problem):
    """Test that covariance updates reproduce the sparse gradients and curvature."""
    X, y, prior, beta = problem

    sparse_ctx = make_context(X, y, prior)
    sparse = SparseGradient(sparse_ctx.X)
    sparse.initialize(sparse_ctx, standardize=True)

    cov_ctx = make_context(X, y, prior)
    cov = CovarianceGradient(cov_ctx.X, precompute_sufficient_statistics(X, y, prior))
    cov.initialize(cov_ctx, standardize=True)

    np.testing.assert_allclose(cov_ctx.H, sparse_ctx.H, rtol=1e-10)

    for ctx in (sparse_ctx, cov_ctx):
        ctx.B[:] = beta
        ctx.A = -0.4
    sparse_ctx.E[:] = X @ beta

    for j in range(5):
        assert np.isclose(
            cov.gradient(cov_ctx, j), sparse.gradient(sparse_ctx, j), atol=1e-10
        )


def test_covariance_finalize_rebuilds_predictor(problem):
    """Test that the linear predictor is rebuilt from the coefficients."""
    X, y, prior, beta = problem
    ctx = make_context(X, y, prior)
    cov = CovarianceGradient(ctx.X, precompute_sufficient_statistics(X, y, prior))
    ctx.B[:] = beta
    assert not cov.updates_predictor
    cov.finalize(ctx)
    np.testing.assert_allclose(ctx.E, X @ beta)


def test_module_source_compiles_cleanly():
    """Test that the module source compiles without escape warnings."""
    import gamlr.gradient as gradient_module

    with open(gradient_module.__file__) as f:
        source = f.read()
    with warnings.catch_warnings():
        warnings.simplefilter("error")
        compile(source, gradient_module.__file__, "exec")


if __name__ == "__main__":
    pytest.main()
