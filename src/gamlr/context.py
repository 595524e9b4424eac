"""Working state owned by a single path run."""

import numpy as np

from .design import SparseColumnAccessor
from .families import Family


class PathContext:
    r"""All mutable buffers of one regularization path run.

    A context is created by :func:`gamlr.path.fit_path`, threaded through every
    solver component and dropped when the run returns. It is never shared
    between runs, so two paths can be fit concurrently as long as each owns
    its own context.

    Parameters
    ----------
    X : SparseColumnAccessor
        The design matrix.
    family : Family
        Response family.
    y : ndarray of shape (n,)
        Response vector.
    prior : ndarray of shape (n,)
        Observation weights.
    offset : ndarray of shape (n,)
        Fixed shifts of the linear predictor.
    varweight : ndarray of shape (p,)
        Prior penalty weight per variable; ``0`` is unpenalized and ``inf``
        excludes the variable.
    gam : ndarray of shape (p,)
        Gamma lasso exponent per variable.

    Attributes
    ----------
    V : ndarray of shape (n,)
        Current IRLS weights.
    Z : ndarray of shape (n,)
        Current working response.
    E : ndarray of shape (n,)
        Linear predictor excluding the intercept.
    A : float
        Intercept.
    B : ndarray of shape (p,)
        Coefficients.
    G, H : ndarray of shape (p,)
        Gradient and curvature per variable.
    omega : ndarray of shape (p,)
        Adaptive penalty multipliers.
    ag0 : ndarray of shape (p,)
        Standardized absolute gradients recorded while a variable sits at zero.
    xbar, vxsum, vxz : ndarray of shape (p,)
        Column means, weighted column sums and weighted cross terms with `Z`.
    vsum : float
        Sum of `V`.
    l1pen : float
        Current penalty level scaled by `n`.
    """

    def __init__(
        self,
        X: SparseColumnAccessor,
        family: Family,
        y: np.ndarray,
        prior: np.ndarray,
        offset: np.ndarray,
        varweight: np.ndarray,
        gam: np.ndarray,
    ):
        self.X = X
        self.family = family
        self.n, self.p = X.n, X.p

        self.y = y
        self.prior = prior
        self.offset = offset
        self.V = prior.copy()
        self.Z = y.copy()
        self.E = offset.copy()
        self.vsum = float(self.V.sum())

        self.W = varweight.copy()
        self.gam = gam
        self.omega = np.ones(self.p)

        self.A = 0.0
        self.B = np.zeros(self.p)
        self.G = np.zeros(self.p)
        self.H = np.zeros(self.p)
        self.ag0 = np.zeros(self.p)

        self.xbar = np.zeros(self.p)
        self.vxsum = np.zeros(self.p)
        self.vxz = np.zeros(self.p)

        self.l1pen = np.inf

    def negative_log_likelihood(self) -> float:
        return self.family.negative_log_likelihood(self.A, self.E, self.y, self.prior)

    def penalty(self, j: int) -> float:
        """Effective L1 penalty on variable `j`."""
        return self.l1pen * self.W[j] * self.omega[j]
