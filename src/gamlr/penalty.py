"""Gamma lasso adaptation of the per-variable penalty weights."""

import numpy as np


def update_adaptive_weights(
    omega: np.ndarray, beta: np.ndarray, gam: np.ndarray, varweight: np.ndarray
) -> np.ndarray:
    r"""Update the adaptive penalty multipliers in place after a path point.

    For a finite positive exponent :math:`\gamma_j` on a penalized variable,

    .. math::
        \omega_j = \frac{1}{1 + \gamma_j |\beta_j|}.

    An infinite exponent sets :math:`\omega_j = 0` as soon as the variable has
    been nonzero, and it stays unpenalized for the rest of the path. Variables
    with :math:`\gamma_j = 0` keep their weight.

    Parameters
    ----------
    omega : ndarray of shape (p,)
        Current multipliers, overwritten.
    beta : ndarray of shape (p,)
        Coefficients at the path point just computed.
    gam : ndarray of shape (p,)
        Gamma lasso exponents.
    varweight : ndarray of shape (p,)
        Prior penalty weights.

    Returns
    -------
    ndarray of shape (p,)
        `omega`, for chaining.
    """
    penalized = (varweight > 0.0) & np.isfinite(varweight)

    concave = np.isfinite(gam) & (gam > 0.0) & penalized
    omega[concave] = 1.0 / (1.0 + gam[concave] * np.abs(beta[concave]))

    # one-way: once selected, never penalized again
    omega[np.isinf(gam) & (beta != 0.0)] = 0.0
    return omega
