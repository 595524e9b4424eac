"""Gamma lasso regularization paths for generalized linear models."""

import logging
import warnings
from dataclasses import dataclass
from typing import Callable, Optional, Union

import numpy as np
import scipy.sparse as sp

from .context import PathContext
from .coordinate_descent import EXIT_STOP, cd_solve
from .degrees_of_freedom import degrees_of_freedom
from .design import SparseColumnAccessor, SufficientStatistics
from .exceptions import GamlrWarning, InvalidInputError
from .families import Family, get_family
from .gradient import CovarianceGradient, SparseGradient
from .penalty import update_adaptive_weights

# Set up logging
logging.basicConfig(
    level=logging.INFO, format="%(asctime)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)


@dataclass
class PathResult:
    """Output of :func:`fit_path`.

    All per-point arrays hold the `nlambda` realized points. When the path
    stops early, `exits` carries one extra entry, the code ``2`` of the point
    that was discarded.

    Attributes
    ----------
    family : str
        Family name.
    lambdas : ndarray of shape (nlambda,)
        Realized penalty levels.
    deviance : ndarray of shape (nlambda,)
        Deviance at each point.
    df : ndarray of shape (nlambda,)
        Effective degrees of freedom.
    alpha : ndarray of shape (nlambda,)
        Intercepts.
    beta : ndarray of shape (nlambda, p)
        Coefficients.
    exits : ndarray of int
        Exit code per computed point: ``0`` normal, ``1`` iteration cap,
        ``2`` path stopped.
    npass : ndarray of shape (nlambda,)
        Coordinate sweeps per point.
    nreweight : ndarray of shape (nlambda,)
        IRLS reweights per point.
    nlambda : int
        Realized path length.
    varweight : ndarray of shape (p,)
        Penalty weights after standardization.
    """

    family: str
    lambdas: np.ndarray
    deviance: np.ndarray
    df: np.ndarray
    alpha: np.ndarray
    beta: np.ndarray
    exits: np.ndarray
    npass: np.ndarray
    nreweight: np.ndarray
    nlambda: int
    varweight: np.ndarray


def _as_vector(value, length: int, name: str, default: float) -> np.ndarray:
    if value is None:
        return np.full(length, default, dtype=float)
    arr = np.asarray(value, dtype=float)
    if arr.ndim == 0:
        return np.full(length, float(arr))
    if arr.shape != (length,):
        raise InvalidInputError(
            f"{name} must have length {length}, got shape {arr.shape}."
        )
    return arr.copy()


def _per_point(value, nlam: int, name: str) -> list:
    if value is None:
        return [None] * nlam
    arr = np.asarray(value)
    if arr.ndim == 0:
        return [int(arr)] * nlam
    if arr.shape != (nlam,):
        raise InvalidInputError(f"{name} must be a scalar or have length {nlam}.")
    return [int(a) for a in arr]


def fit_path(
    family: Union[str, Family],
    X: Union[np.ndarray, sp.spmatrix, SparseColumnAccessor],
    y: np.ndarray,
    *,
    nlam: int = 100,
    delta: float = 0.95,
    lambda_start: float = np.inf,
    gamma: Union[float, np.ndarray] = 0.0,
    varweight: Optional[np.ndarray] = None,
    obsweight: Optional[np.ndarray] = None,
    offset: Optional[np.ndarray] = None,
    standardize: bool = True,
    thresh: float = 1e-7,
    maxit: Union[int, np.ndarray] = 100000,
    maxrw: Optional[Union[int, np.ndarray]] = None,
    sufficient_stats: Optional[SufficientStatistics] = None,
    covariance_update: bool = False,
    verbose: bool = False,
    checkpoint: Optional[Callable[[], None]] = None,
) -> PathResult:
    r"""Compute a gamma lasso regularization path.

    Fits the penalized generalized linear model

    .. math::
        \min_{a, \boldsymbol{\beta}} \frac{1}{n} \ell(a, \boldsymbol{\beta})
        + \lambda \sum_j w_j \omega_j |\beta_j|

    at the decreasing sequence :math:`\lambda_s = \lambda_0 \delta^s`, warm
    starting each point from the previous one. After every point the adaptive
    multipliers are updated to :math:`\omega_j = 1/(1 + \gamma_j|\beta_j|)`.

    Parameters
    ----------
    family : str or Family
        ``"gaussian"``, ``"binomial"`` or ``"poisson"``.
    X : array-like, sparse matrix or SparseColumnAccessor of shape (n, p)
        Design matrix.
    y : ndarray of shape (n,)
        Response vector.
    nlam : int, default=100
        Requested path length.
    delta : float, default=0.95
        Multiplicative step between consecutive penalty levels, in (0, 1].
    lambda_start : float, default=inf
        First penalty level. A non-finite value is replaced by the smallest
        penalty that zeroes every penalized variable.
    gamma : float or ndarray of shape (p,), default=0.0
        Gamma lasso exponent. ``0`` is the lasso, ``inf`` keeps a variable
        unpenalized once selected.
    varweight : ndarray of shape (p,), optional
        Penalty weight per variable; ``0`` leaves it unpenalized, ``inf``
        excludes it. Defaults to ones.
    obsweight : ndarray of shape (n,), optional
        Observation weights. Defaults to ones.
    offset : ndarray of shape (n,), optional
        Fixed shifts of the linear predictor.
    standardize : bool, default=True
        Scale penalty weights by the weighted standard deviation of each
        column. Zero-variance columns are excluded.
    thresh : float, default=1e-7
        Convergence threshold, made relative to the deviance of the first fit.
    maxit : int or ndarray of shape (nlam,), default=100000
        Maximum coordinate sweeps per path point.
    maxrw : int or ndarray of shape (nlam,), optional
        Maximum IRLS reweights per path point. Unlimited when None.
    sufficient_stats : SufficientStatistics, optional
        Precomputed statistics for covariance updates.
    covariance_update : bool, default=False
        Compute gradients from `sufficient_stats` instead of the raw columns.
        Gaussian family without offset only.
    verbose : bool, default=False
        Log one line per path segment.
    checkpoint : callable, optional
        Called once after every path point; may raise to cancel the run.

    Returns
    -------
    PathResult

    Raises
    ------
    InvalidInputError
        If the inputs are inconsistent.
    """
    fam = get_family(family)
    if not isinstance(X, SparseColumnAccessor):
        X = SparseColumnAccessor(X)
    n, p = X.n, X.p

    y = np.asarray(y, dtype=float).ravel()
    if y.shape[0] != n:
        raise InvalidInputError(
            f"Incompatible shapes: X has {n} rows, y has {y.shape[0]} entries."
        )
    if not np.all(np.isfinite(y)):
        raise InvalidInputError("y contains NaN or infinity values.")
    if int(nlam) < 1:
        raise InvalidInputError("nlam must be a positive integer.")
    nlam = int(nlam)
    if not (0 < delta <= 1):
        raise InvalidInputError("delta must lie in (0, 1].")

    prior = _as_vector(obsweight, n, "obsweight", 1.0)
    if np.any(prior < 0) or prior.sum() <= 0:
        raise InvalidInputError("obsweight must be non-negative with a positive sum.")
    offset = _as_vector(offset, n, "offset", 0.0)
    W = _as_vector(varweight, p, "varweight", 1.0)
    if np.any(W < 0):
        raise InvalidInputError("varweight must be non-negative.")
    gam = _as_vector(gamma, p, "gamma", 0.0)
    if np.any(gam < 0):
        raise InvalidInputError("gamma must be non-negative.")
    maxit = _per_point(maxit, nlam, "maxit")
    maxrw = _per_point(maxrw, nlam, "maxrw")

    fam.validate_response(y, prior)

    ctx = PathContext(X, fam, y, prior, offset, W, gam)

    if covariance_update:
        if sufficient_stats is None:
            raise InvalidInputError("covariance_update requires sufficient_stats.")
        if fam.needs_reweight:
            raise InvalidInputError(
                "covariance_update is only available for the gaussian family."
            )
        if np.any(offset != 0):
            raise InvalidInputError("covariance_update does not support an offset.")
        if sufficient_stats.xbar.shape[0] != p:
            raise InvalidInputError(
                f"sufficient_stats describe {sufficient_stats.xbar.shape[0]} "
                f"variables, X has {p}."
            )
        backend = CovarianceGradient(X, sufficient_stats)
    else:
        backend = SparseGradient(X)

    backend.initialize(ctx, standardize)

    if standardize:
        flat = np.abs(ctx.H) < 1e-10
        ctx.H[flat] = 0.0
        ctx.W[flat] = np.inf
        ctx.W[~flat] *= np.sqrt(ctx.H[~flat] / ctx.vsum)

    ctx.A = fam.null_intercept(y, prior, ctx.E)
    nlsat = fam.saturated_nll(y, prior)
    if not fam.needs_reweight:
        for j in np.flatnonzero(np.isfinite(ctx.W)):
            ctx.G[j] = backend.gradient(ctx, j)

    nll = ctx.negative_log_likelihood()

    lambdas = np.zeros(nlam)
    lambdas[0] = lambda_start
    deviance = np.zeros(nlam)
    df = np.zeros(nlam)
    alpha = np.zeros(nlam)
    beta = np.zeros((nlam, p))
    exits = np.zeros(nlam, dtype=int)
    npass = np.zeros(nlam, dtype=int)
    nreweight = np.zeros(nlam, dtype=int)
    tol = thresh

    if verbose:
        logger.info(f"*** n={n} observations and p={p} covariates ***")

    nlambda = nlam
    for s in range(nlam):
        if s > 0:
            lambdas[s] = lambdas[s - 1] * delta
        ctx.l1pen = lambdas[s] * n

        result = cd_solve(ctx, backend, tol, maxit[s], maxrw[s])
        exits[s] = result.exit_code
        npass[s] = result.npass
        nreweight[s] = result.nreweight

        nll = ctx.negative_log_likelihood()
        deviance[s] = 2.0 * (nll - nlsat)
        df[s] = degrees_of_freedom(ctx, s, lambdas, nll)
        alpha[s] = ctx.A
        beta[s] = ctx.B

        if s == 0:
            tol *= deviance[0]

        update_adaptive_weights(ctx.omega, ctx.B, ctx.gam, ctx.W)

        if verbose:
            logger.info(
                f"segment {s + 1}: lambda = {lambdas[s]:.4g}, "
                f"dev = {deviance[s]:.4g}, npass = {npass[s]}"
            )

        if deviance[s] < 0.0:
            exits[s] = EXIT_STOP
            warnings.warn("Negative deviance.", GamlrWarning)
        if df[s] >= n:
            exits[s] = EXIT_STOP
            warnings.warn("Saturated model.", GamlrWarning)
        if exits[s] == EXIT_STOP:
            warnings.warn(
                f"Finishing path early after {s} of {nlam} points.", GamlrWarning
            )
            nlambda = s
            break

        if checkpoint is not None:
            checkpoint()

    computed = min(nlambda + 1, nlam)
    return PathResult(
        family=fam.name,
        lambdas=lambdas[:nlambda],
        deviance=deviance[:nlambda],
        df=df[:nlambda],
        alpha=alpha[:nlambda],
        beta=beta[:nlambda],
        exits=exits[:computed],
        npass=npass[:nlambda],
        nreweight=nreweight[:nlambda],
        nlambda=nlambda,
        varweight=ctx.W,
    )
