import numpy as np
import pytest

from gamlr.context import PathContext
from gamlr.coordinate_descent import (
    EXIT_OK,
    EXIT_STOP,
    EXIT_WARNING,
    cd_solve,
    coordinate_move,
)
from gamlr.design import SparseColumnAccessor
from gamlr.exceptions import GamlrWarning
from gamlr.families import Binomial, Gaussian
from gamlr.gradient import SparseGradient


def make_context(X, y, family=None, varweight=None):
    acc = SparseColumnAccessor(X)
    n, p = acc.n, acc.p
    W = np.ones(p) if varweight is None else varweight
    return PathContext(
        acc,
        Gaussian() if family is None else family,
        y,
        np.ones(n),
        np.zeros(n),
        W,
        np.zeros(p),
    )


@pytest.fixture
def regression():
    np.random.seed(11)
    n, p = 60, 4
    X = np.random.randn(n, p)
    y = 1.5 + X @ np.array([2.0, -1.0, 0.0, 0.5]) + 0.2 * np.random.randn(n)
    return X, y


@pytest.fixture
def single():
    ctx = make_context(np.ones((2, 1)), np.zeros(2))
    ctx.l1pen = 1.0
    return ctx


def test_move_without_curvature(single):
    """Test that a variable without curvature is sent back to zero."""
    single.B[0], single.G[0], single.H[0] = 0.7, 3.0, 0.0
    assert coordinate_move(single, 0) == -0.7


def test_move_unpenalized(single):
    """Test the plain Newton step of an unpenalized variable."""
    single.W[0] = 0.0
    single.B[0], single.G[0], single.H[0] = 0.5, 2.0, 4.0
    assert np.isclose(coordinate_move(single, 0), -0.5)


def test_move_thresholded_to_zero(single):
    """Test that a small gradient moves the coefficient to zero."""
    single.B[0], single.G[0], single.H[0] = 0.1, 0.0, 2.0
    # ghb = -0.2, below the penalty of 1
    assert np.isclose(coordinate_move(single, 0), -0.1)


def test_move_soft_thresholded(single):
    """Test the shrunken Newton step when the gradient exceeds the penalty."""
    single.omega[0] = 0.5
    single.B[0], single.G[0], single.H[0] = 0.0, -3.0, 2.0
    # pen = 0.5, ghb = -3
    assert np.isclose(coordinate_move(single, 0), -(-3.0 + 0.5) / 2.0)


def test_unpenalized_solve_is_least_squares(regression):
    """Test that a zero penalty recovers ordinary least squares."""
    X, y = regression
    ctx = make_context(X, y)
    backend = SparseGradient(ctx.X)
    backend.initialize(ctx, standardize=False)
    ctx.A = Gaussian().null_intercept(y, ctx.prior, ctx.E)
    ctx.l1pen = 0.0

    result = cd_solve(ctx, backend, tol=1e-14, max_iter=10000)

    assert result.exit_code == EXIT_OK
    design = np.column_stack([np.ones(X.shape[0]), X])
    ols = np.linalg.lstsq(design, y, rcond=None)[0]
    np.testing.assert_allclose(ctx.A, ols[0], atol=1e-5)
    np.testing.assert_allclose(ctx.B, ols[1:], atol=1e-5)
    # the predictor tracks the coefficients
    np.testing.assert_allclose(ctx.E, X @ ctx.B, atol=1e-10)


def test_null_model_only_fits_unpenalized(regression):
    """Test that an infinite penalty leaves penalized variables at zero."""
    X, y = regression
    W = np.array([0.0, 1.0, 1.0, 1.0])
    ctx = make_context(X, y, varweight=W)
    backend = SparseGradient(ctx.X)
    backend.initialize(ctx, standardize=False)
    ctx.A = Gaussian().null_intercept(y, ctx.prior, ctx.E)

    cd_solve(ctx, backend, tol=1e-12, max_iter=1000)

    assert ctx.B[0] != 0.0
    np.testing.assert_array_equal(ctx.B[1:], 0.0)
    # every admissible gradient is recorded
    assert np.all(ctx.G[1:] != 0.0)


def test_excluded_variable_never_moves(regression):
    """Test that an infinite prior weight keeps a variable at zero."""
    X, y = regression
    W = np.array([1.0, np.inf, 1.0, 1.0])
    ctx = make_context(X, y, varweight=W)
    backend = SparseGradient(ctx.X)
    backend.initialize(ctx, standardize=False)
    ctx.A = Gaussian().null_intercept(y, ctx.prior, ctx.E)
    ctx.l1pen = 0.0
    cd_solve(ctx, backend, tol=1e-12, max_iter=1000)
    assert ctx.B[1] == 0.0
    assert ctx.G[1] == 0.0


def test_iteration_cap_keeps_iterate(regression):
    """Test that hitting the sweep cap warns and keeps the current iterate."""
    X, y = regression
    ctx = make_context(X, y)
    backend = SparseGradient(ctx.X)
    backend.initialize(ctx, standardize=False)
    ctx.A = Gaussian().null_intercept(y, ctx.prior, ctx.E)
    ctx.l1pen = 0.0

    with pytest.warns(GamlrWarning):
        result = cd_solve(ctx, backend, tol=1e-14, max_iter=1)

    assert result.exit_code == EXIT_WARNING
    assert result.npass == 1
    assert np.any(ctx.B != 0.0)


def test_infinite_likelihood_stops(regression):
    """Test that a zero reweighting sum ends the solve with a hard stop."""
    X, _ = regression
    y = (X[:, 0] > 0).astype(float)
    ctx = make_context(X, y, family=Binomial())
    backend = SparseGradient(ctx.X)
    backend.initialize(ctx, standardize=False)
    ctx.A = 1000.0
    ctx.l1pen = 1.0

    with pytest.warns(GamlrWarning):
        result = cd_solve(ctx, backend, tol=1e-8, max_iter=100)

    assert result.exit_code == EXIT_STOP
    assert result.nreweight == 1


def test_reweight_cap_truncates_silently(regression):
    """Test that the reweighting cap ends the solve without an error code."""
    X, _ = regression
    y = (X[:, 0] + 0.5 * np.random.randn(X.shape[0]) > 0).astype(float)
    ctx = make_context(X, y, family=Binomial())
    backend = SparseGradient(ctx.X)
    backend.initialize(ctx, standardize=False)
    ctx.A = Binomial().null_intercept(y, ctx.prior, ctx.E)
    ctx.l1pen = 0.5

    result = cd_solve(ctx, backend, tol=1e-12, max_iter=1000, max_reweight=1)

    assert result.exit_code == EXIT_OK
    assert result.nreweight == 1
    assert result.npass == 1


if __name__ == "__main__":
    pytest.main()
