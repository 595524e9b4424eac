"""Effective degrees of freedom along a gamma lasso path."""

import numpy as np
from scipy.special import gammainc

from .context import PathContext


def degrees_of_freedom(
    ctx: PathContext, s: int, lambdas: np.ndarray, nll: float
) -> float:
    r"""Estimate the effective degrees of freedom at path point `s`.

    Variables sitting at zero record the standardized gradient magnitude
    :math:`a_j = |G_j| / w_j`. Lasso variables (:math:`\gamma_j = 0`) and
    unpenalized ones count one when nonzero. A gamma lasso variable contributes
    the probability

    .. math::
        P\left(a_j;\ \text{shape} = \frac{\lambda n}{\gamma_j \phi},\
        \text{scale} = \phi \gamma_j\right)

    under the gamma cumulative distribution function, with dispersion
    :math:`\phi = 2\,\text{nll}/n` for the Gaussian family and one otherwise.

    At ``s == 0`` a non-finite ``lambdas[0]`` is replaced by the smallest
    penalty that keeps every penalized variable at zero,
    :math:`\max_j a_j / n`.

    Parameters
    ----------
    ctx : PathContext
        Run state after the descent at point `s`.
    s : int
        Index of the path point.
    lambdas : ndarray
        Penalty levels; ``lambdas[0]`` may be filled in.
    nll : float
        Negative log likelihood at the current fit.

    Returns
    -------
    float
        Effective degrees of freedom, intercept included.
    """
    W, B = ctx.W, ctx.B
    finite = np.isfinite(W)

    at_zero = finite & (B == 0.0)
    with np.errstate(divide="ignore", invalid="ignore"):
        ctx.ag0[at_zero] = np.abs(ctx.G[at_zero]) / W[at_zero]

    if s == 0 and not np.isfinite(lambdas[0]):
        penalized = finite & (W > 0.0)
        lambdas[0] = ctx.ag0[penalized].max() / ctx.n if penalized.any() else 0.0

    if ctx.family.needs_reweight:
        phi = 1.0
    else:
        phi = 2.0 * nll / ctx.n

    binary = finite & ((ctx.gam == 0.0) | (W == 0.0) | np.isinf(ctx.gam))
    adaptive = finite & ~binary

    df = 1.0 + np.count_nonzero(binary & (B != 0.0))

    if not np.any(adaptive):
        return float(df)

    if phi > 0.0 and np.isfinite(phi) and lambdas[s] > 0.0:
        gam = ctx.gam[adaptive]
        shape = lambdas[s] * ctx.n / gam / phi
        scale = phi * gam
        df += float(np.sum(gammainc(shape, ctx.ag0[adaptive] / scale)))
    else:
        df += np.count_nonzero(adaptive & (B != 0.0))

    return float(df)
