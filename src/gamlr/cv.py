"""K-fold cross-validation of gamma lasso paths."""

import logging
import warnings
from dataclasses import dataclass
from typing import Optional

import numpy as np
from joblib import Parallel, delayed

from .design import SparseColumnAccessor
from .exceptions import InvalidInputError
from .families import get_family
from .fit import GamlrFit, gamlr

logger = logging.getLogger(__name__)


@dataclass
class CVGamlrResult:
    """Result of K-fold cross-validation.

    Attributes
    ----------
    gamlr : GamlrFit
        Fit on the full data; its penalty levels are shared by every fold.
    foldid : ndarray of shape (n,)
        Fold label per observation.
    cvm : ndarray of shape (nlambda,)
        Mean out-of-sample deviance per observation at each penalty level.
    cvs : ndarray of shape (nlambda,)
        Standard error of `cvm`.
    seg_min : int
        Index minimizing `cvm`.
    seg_1se : int
        Largest-penalty index with `cvm` within one standard error of the
        minimum.
    """

    gamlr: GamlrFit
    foldid: np.ndarray
    cvm: np.ndarray
    cvs: np.ndarray
    seg_min: int
    seg_1se: int

    @property
    def lambda_min(self) -> float:
        return float(self.gamlr.lambdas[self.seg_min])

    @property
    def lambda_1se(self) -> float:
        return float(self.gamlr.lambdas[self.seg_1se])

    def _segment(self, select: str) -> int:
        if select == "min":
            return self.seg_min
        if select == "1se":
            return self.seg_1se
        raise InvalidInputError(
            f"Specified selection '{select}' not recognized. Choose 'min' or '1se'."
        )

    def coef(self, select: str = "1se") -> np.ndarray:
        return self.gamlr.coef(select=self._segment(select))

    def predict(self, X, select: str = "1se", **kwargs) -> np.ndarray:
        return self.gamlr.predict(X, select=self._segment(select), **kwargs)


def _take(value, rows):
    return None if value is None else np.asarray(value)[rows]


def _fold_deviance(
    X, y, foldid, k, family, lambdas, obsweight, offset, gamlr_kwargs
) -> np.ndarray:
    train = foldid != k
    test = ~train

    nlambda = lambdas.shape[0]
    # a path with no penalized variables sits at lambda = 0 throughout
    ratio = lambdas[-1] / lambdas[0] if nlambda > 1 and lambdas[0] > 0 else 1.0
    fit = gamlr(
        X.matrix[train],
        y[train],
        family=family,
        nlambda=nlambda,
        lambda_start=lambdas[0],
        lambda_min_ratio=ratio,
        obsweight=_take(obsweight, train),
        offset=_take(offset, train),
        **gamlr_kwargs,
    )

    fam = get_family(family)
    Xtest = X.matrix[test]
    ytest = y[test]
    wtest = _take(obsweight, test)
    if wtest is None:
        wtest = np.ones(ytest.shape[0])
    otest = _take(offset, test)

    oos = np.full(nlambda, np.nan)
    for s in range(len(fit)):
        eta = fit.predict(Xtest, select=s, offset=otest)
        oos[s] = fam.deviance(ytest, eta, wtest) / wtest.sum()
    logger.debug(f"fold {k + 1}: {len(fit)} of {nlambda} points fit")
    return oos


def cv_gamlr(
    X,
    y: np.ndarray,
    family: str = "gaussian",
    nfold: int = 5,
    foldid: Optional[np.ndarray] = None,
    n_jobs: Optional[int] = None,
    random_state: Optional[int] = None,
    obsweight: Optional[np.ndarray] = None,
    offset: Optional[np.ndarray] = None,
    verbose: bool = False,
    **gamlr_kwargs,
) -> CVGamlrResult:
    r"""Cross-validate a gamma lasso path.

    The full data are fit first; every fold then refits on its training part
    along the same penalty levels and is scored by out-of-sample deviance on
    the held-out part. Folds are independent runs and are fit in parallel
    with joblib.

    Parameters
    ----------
    X : array-like or sparse matrix of shape (n, p)
        Design matrix.
    y : ndarray of shape (n,)
        Response vector.
    family : str, default="gaussian"
        Response family.
    nfold : int, default=5
        Number of folds, ignored when `foldid` is given.
    foldid : ndarray of shape (n,), optional
        Fold label per observation, in ``0 .. nfold-1``.
    n_jobs : int, optional
        Number of joblib workers; None runs the folds sequentially.
    random_state : int, optional
        Seed for the random fold assignment.
    obsweight : ndarray of shape (n,), optional
        Observation weights.
    offset : ndarray of shape (n,), optional
        Fixed shifts of the linear predictor.
    verbose : bool, default=False
        Log progress of the full-data fit.
    **gamlr_kwargs : dict
        Further arguments passed to :func:`gamlr.fit.gamlr`.

    Returns
    -------
    CVGamlrResult

    Raises
    ------
    InvalidInputError
        If the fold specification is invalid.
    """
    if not isinstance(X, SparseColumnAccessor):
        X = SparseColumnAccessor(X)
    y = np.asarray(y, dtype=float).ravel()
    n = X.n

    if foldid is None:
        if nfold < 2 or nfold > n:
            raise InvalidInputError(f"nfold must lie in [2, {n}], got {nfold}.")
        rng = np.random.default_rng(random_state)
        foldid = rng.permutation(np.arange(n) % nfold)
    else:
        foldid = np.asarray(foldid, dtype=int)
        if foldid.shape != (n,):
            raise InvalidInputError(f"foldid must have length {n}.")
        _, foldid = np.unique(foldid, return_inverse=True)
        nfold = int(foldid.max()) + 1
        if nfold < 2:
            raise InvalidInputError("foldid must define at least two folds.")

    full = gamlr(
        X,
        y,
        family=family,
        obsweight=obsweight,
        offset=offset,
        verbose=verbose,
        **gamlr_kwargs,
    )
    if len(full) == 0:
        raise InvalidInputError("The full-data path is empty; nothing to validate.")

    lambdas = full.lambdas
    fold_kwargs = {
        key: value
        for key, value in gamlr_kwargs.items()
        if key not in ("nlambda", "lambda_start", "lambda_min_ratio")
    }
    oos = Parallel(n_jobs=n_jobs)(
        delayed(_fold_deviance)(
            X, y, foldid, k, family, lambdas, obsweight, offset, fold_kwargs
        )
        for k in range(nfold)
    )
    oos = np.vstack(oos)

    with warnings.catch_warnings():
        # folds whose path stopped early leave NaN columns
        warnings.simplefilter("ignore", RuntimeWarning)
        counts = np.sum(~np.isnan(oos), axis=0)
        cvm = np.nanmean(oos, axis=0)
        cvs = np.nanstd(oos, axis=0) / np.sqrt(np.maximum(counts - 1, 1))

    seg_min = int(np.nanargmin(cvm))
    within = np.flatnonzero(cvm <= cvm[seg_min] + cvs[seg_min])
    seg_1se = int(within.min())

    return CVGamlrResult(
        gamlr=full, foldid=foldid, cvm=cvm, cvs=cvs, seg_min=seg_min, seg_1se=seg_1se
    )
