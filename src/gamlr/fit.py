"""User-facing gamma lasso fit with model selection helpers."""

from dataclasses import dataclass
from typing import Callable, Optional, Sequence, Union

import numpy as np

from .design import SparseColumnAccessor, precompute_sufficient_statistics
from .exceptions import InvalidInputError
from .families import get_family
from .path import PathResult, _as_vector, fit_path


@dataclass
class GamlrFit:
    r"""A fitted gamma lasso path.

    Attributes
    ----------
    path : PathResult
        Raw path output.
    nobs : int
        Number of observations.
    gamma : ndarray of shape (p,)
        Gamma lasso exponents used for the fit.
    free : ndarray of int
        Indices of unpenalized variables.
    """

    path: PathResult
    nobs: int
    gamma: np.ndarray
    free: np.ndarray

    @property
    def family(self) -> str:
        return self.path.family

    @property
    def lambdas(self) -> np.ndarray:
        return self.path.lambdas

    @property
    def deviance(self) -> np.ndarray:
        return self.path.deviance

    @property
    def df(self) -> np.ndarray:
        return self.path.df

    @property
    def alpha(self) -> np.ndarray:
        return self.path.alpha

    @property
    def beta(self) -> np.ndarray:
        return self.path.beta

    def __len__(self):
        return self.path.nlambda

    def _minus_two_loglik(self) -> np.ndarray:
        dev = self.deviance
        if self.family == "gaussian":
            # profile out the noise variance
            with np.errstate(divide="ignore"):
                return self.nobs * np.log(dev / self.nobs)
        return dev

    def aic(self) -> np.ndarray:
        r"""Akaike information criterion, :math:`-2\ell + 2\,\text{df}`."""
        return self._minus_two_loglik() + 2.0 * self.df

    def aicc(self) -> np.ndarray:
        r"""Corrected AIC, :math:`-2\ell + 2\,\text{df}\,\frac{n}{n - \text{df} - 1}`.

        Points with :math:`\text{df} \ge n - 1` get an infinite criterion.
        """
        n = self.nobs
        with np.errstate(divide="ignore"):
            penalty = np.where(
                self.df < n - 1, 2.0 * self.df * n / (n - self.df - 1.0), np.inf
            )
        return self._minus_two_loglik() + penalty

    def bic(self) -> np.ndarray:
        r"""Bayesian information criterion, :math:`-2\ell + \log(n)\,\text{df}`."""
        return self._minus_two_loglik() + np.log(self.nobs) * self.df

    def select(self, select: Union[None, int, str] = None) -> int:
        """Resolve a path point selector to an index.

        Parameters
        ----------
        select : int, {"aicc", "aic", "bic"} or None
            Path index or information criterion to minimize. None means
            ``"aicc"``.

        Returns
        -------
        int
        """
        if len(self) == 0:
            raise InvalidInputError("The fitted path is empty.")
        if select is None:
            select = "aicc"
        if isinstance(select, str):
            criteria = {"aicc": self.aicc, "aic": self.aic, "bic": self.bic}
            if select not in criteria:
                raise InvalidInputError(
                    f"Specified selection '{select}' not recognized. "
                    f"Choose from {sorted(criteria)} or a path index."
                )
            return int(np.argmin(criteria[select]()))
        index = int(select)
        if not -len(self) <= index < len(self):
            raise InvalidInputError(
                f"Path index {index} out of range for {len(self)} points."
            )
        return index % len(self)

    def coef(self, select: Union[None, int, str] = None) -> np.ndarray:
        """Intercept followed by the coefficients at the selected point."""
        s = self.select(select)
        return np.concatenate(([self.alpha[s]], self.beta[s]))

    def predict(
        self,
        X,
        select: Union[None, int, str] = None,
        type: str = "link",
        offset: Optional[np.ndarray] = None,
    ) -> np.ndarray:
        """Predict from new data at the selected point.

        Parameters
        ----------
        X : array-like or sparse matrix of shape (m, p)
            New design matrix.
        select : int, str or None
            See :meth:`select`.
        type : {"link", "response"}, default="link"
            Return the linear predictor or the mean.
        offset : ndarray of shape (m,), optional
            Fixed shift added to the linear predictor.

        Returns
        -------
        ndarray of shape (m,)
        """
        if not isinstance(X, SparseColumnAccessor):
            X = SparseColumnAccessor(X)
        if X.p != self.beta.shape[1]:
            raise InvalidInputError(
                f"X has {X.p} columns, the fit has {self.beta.shape[1]}."
            )
        s = self.select(select)
        eta = self.alpha[s] + X.dot(self.beta[s])
        if offset is not None:
            eta = eta + np.asarray(offset, dtype=float)
        if type == "link":
            return eta
        if type == "response":
            return get_family(self.family).mean(eta)
        raise InvalidInputError(f"Specified type '{type}' not recognized.")


def gamlr(
    X,
    y: np.ndarray,
    family: str = "gaussian",
    gamma: Union[float, np.ndarray] = 0.0,
    nlambda: int = 100,
    lambda_start: float = np.inf,
    lambda_min_ratio: float = 0.01,
    free: Optional[Sequence[int]] = None,
    standardize: bool = True,
    obsweight: Optional[np.ndarray] = None,
    varweight: Optional[np.ndarray] = None,
    offset: Optional[np.ndarray] = None,
    tol: float = 1e-7,
    maxit: int = 100000,
    maxrw: Optional[int] = None,
    precompute: Optional[bool] = None,
    verbose: bool = False,
    checkpoint: Optional[Callable[[], None]] = None,
) -> GamlrFit:
    r"""Fit a gamma lasso path over `nlambda` log-spaced penalty levels.

    The path runs from `lambda_start` (by default the smallest penalty that
    zeroes every penalized coefficient) down to ``lambda_min_ratio`` times it,
    i.e. with step :math:`\delta = r^{1/(\text{nlambda} - 1)}`.

    Parameters
    ----------
    X : array-like or sparse matrix of shape (n, p)
        Design matrix.
    y : ndarray of shape (n,)
        Response vector.
    family : {"gaussian", "binomial", "poisson"}, default="gaussian"
        Response family.
    gamma : float or ndarray of shape (p,), default=0.0
        Gamma lasso exponent.
    nlambda : int, default=100
        Number of path points.
    lambda_start : float, default=inf
        First penalty level; non-finite means automatic.
    lambda_min_ratio : float, default=0.01
        Ratio of the last to the first penalty level, in (0, 1].
    free : sequence of int, optional
        Indices of variables left unpenalized.
    standardize : bool, default=True
        Scale penalties by the column standard deviations.
    obsweight : ndarray of shape (n,), optional
        Observation weights.
    varweight : ndarray of shape (p,), optional
        Penalty weights.
    offset : ndarray of shape (n,), optional
        Fixed shifts of the linear predictor.
    tol : float, default=1e-7
        Relative convergence threshold.
    maxit : int, default=100000
        Maximum coordinate sweeps per point.
    maxrw : int, optional
        Maximum IRLS reweights per point.
    precompute : bool, optional
        Use covariance updates. By default on for the Gaussian family with more
        observations than variables and no offset.
    verbose : bool, default=False
        Log path progress.
    checkpoint : callable, optional
        Cancellation hook called after every path point.

    Returns
    -------
    GamlrFit
    """
    if not isinstance(X, SparseColumnAccessor):
        X = SparseColumnAccessor(X)
    n, p = X.n, X.p

    if int(nlambda) < 1:
        raise InvalidInputError("nlambda must be a positive integer.")
    if not (0 < lambda_min_ratio <= 1):
        raise InvalidInputError("lambda_min_ratio must lie in (0, 1].")
    delta = lambda_min_ratio ** (1.0 / (nlambda - 1)) if nlambda > 1 else 1.0

    W = np.ones(p) if varweight is None else np.asarray(varweight, dtype=float).copy()
    if W.shape != (p,):
        raise InvalidInputError(f"varweight must have length {p}.")
    free = np.unique(np.asarray([] if free is None else free, dtype=int))
    if free.size and (free.min() < 0 or free.max() >= p):
        raise InvalidInputError("free indices out of range.")
    W[free] = 0.0

    gam = _as_vector(gamma, p, "gamma", 0.0)

    fam = get_family(family)
    if precompute is None:
        precompute = fam.name == "gaussian" and n > p and offset is None
    stats = None
    if precompute:
        stats = precompute_sufficient_statistics(X, y, obsweight)

    path = fit_path(
        fam,
        X,
        y,
        nlam=nlambda,
        delta=delta,
        lambda_start=lambda_start,
        gamma=gam,
        varweight=W,
        obsweight=obsweight,
        offset=offset,
        standardize=standardize,
        thresh=tol,
        maxit=maxit,
        maxrw=maxrw,
        sufficient_stats=stats,
        covariance_update=bool(precompute),
        verbose=verbose,
        checkpoint=checkpoint,
    )
    return GamlrFit(path=path, nobs=n, gamma=gam, free=free)
