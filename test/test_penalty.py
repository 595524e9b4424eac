import numpy as np
import pytest

from gamlr.penalty import update_adaptive_weights


def test_concave_weights():
    """Test the gamma lasso multiplier for finite exponents."""
    omega = np.ones(3)
    beta = np.array([0.0, 2.0, -0.5])
    gam = np.array([1.0, 1.0, 4.0])
    update_adaptive_weights(omega, beta, gam, np.ones(3))
    np.testing.assert_allclose(omega, [1.0, 1.0 / 3.0, 1.0 / 3.0])


def test_lasso_weights_untouched():
    """Test that a zero exponent keeps the multiplier fixed."""
    omega = np.full(2, 0.7)
    update_adaptive_weights(omega, np.array([1.0, 3.0]), np.zeros(2), np.ones(2))
    np.testing.assert_allclose(omega, 0.7)


def test_unpenalized_and_excluded_untouched():
    """Test that unpenalized and excluded variables are not adapted."""
    omega = np.ones(2)
    W = np.array([0.0, np.inf])
    update_adaptive_weights(omega, np.array([1.0, 0.0]), np.full(2, 2.0), W)
    np.testing.assert_allclose(omega, 1.0)


def test_infinite_exponent_ratchet():
    """Test that an infinite exponent frees a variable once it is selected."""
    omega = np.ones(2)
    gam = np.full(2, np.inf)
    W = np.ones(2)
    update_adaptive_weights(omega, np.array([0.0, 0.3]), gam, W)
    np.testing.assert_allclose(omega, [1.0, 0.0])

    # stays free after shrinking back to zero
    update_adaptive_weights(omega, np.array([0.0, 0.0]), gam, W)
    np.testing.assert_allclose(omega, [1.0, 0.0])


if __name__ == "__main__":
    pytest.main()
