r"""Gradient and curvature backends for coordinate descent.

Two interchangeable strategies compute the per-variable first and second
derivatives of the weighted least squares surrogate:

1. SparseGradient: scans the nonzero entries of each sparse column against the
   current IRLS weights and linear predictor.
2. CovarianceGradient: reconstructs gradients from precomputed sufficient
   statistics (a packed upper-triangular :math:`X^T V X`), never touching the
   raw data during descent. Worth it when :math:`n \gg p`.

A backend is chosen once per run.
"""

from abc import ABC, abstractmethod

import numpy as np

from .context import PathContext
from .design import SufficientStatistics


class GradientCurvature(ABC):
    """Interface shared by the gradient backends."""

    # Whether the linear predictor is kept current during descent.
    updates_predictor = True

    @abstractmethod
    def initialize(self, ctx: PathContext, standardize: bool):
        """Fill `xbar`, `vxsum`, `vxz` and, where available, `H` on `ctx`."""
        pass

    @abstractmethod
    def refresh_curvature(self, ctx: PathContext):
        """Recompute weighted sums and curvature after a reweighting step."""
        pass

    @abstractmethod
    def gradient(self, ctx: PathContext, j: int) -> float:
        """Gradient of the surrogate loss for variable `j` at the current fit."""
        pass

    def finalize(self, ctx: PathContext):
        """Bring the linear predictor in line with the coefficients."""
        pass


class SparseGradient(GradientCurvature):
    r"""Gradients from raw sparse columns.

    The curvature of variable :math:`j` is its weighted variance about the
    unweighted column mean,

    .. math::
        H_j = \sum_i v_i x_{ij}^2 - 2 \bar{x}_j \sum_i v_i x_{ij}
              + \bar{x}_j^2 \sum_i v_i,

    and the gradient is

    .. math::
        G_j = \sum_i v_i x_{ij} (a + e_i - z_i).
    """

    def __init__(self, X):
        self.X = X
        self._Xsq = X.matrix.multiply(X.matrix).tocsc()

    def initialize(self, ctx, standardize):
        ctx.xbar = self.X.column_means()
        if standardize or not ctx.family.needs_reweight:
            self.refresh_curvature(ctx)

    def refresh_curvature(self, ctx):
        Xm = self.X.matrix
        ctx.vxsum = np.asarray(Xm.T @ ctx.V).ravel()
        ctx.vxz = np.asarray(Xm.T @ (ctx.V * ctx.Z)).ravel()
        vxx = np.asarray(self._Xsq.T @ ctx.V).ravel()
        ctx.H = vxx + ctx.xbar * (ctx.xbar * ctx.vsum - 2.0 * ctx.vxsum)

    def gradient(self, ctx, j):
        rows, vals = self.X.column(j)
        g = np.dot(ctx.V[rows] * vals, ctx.E[rows])
        return float(g - ctx.vxz[j] + ctx.A * ctx.vxsum[j])


class CovarianceGradient(GradientCurvature):
    r"""Gradients from precomputed sufficient statistics.

    .. math::
        G_j = -\sum_i v_i x_{ij} y_i + a \sum_i v_i x_{ij}
              + \sum_k (X^T V X)_{jk} \beta_k

    Only valid for a fixed weighting, i.e. the Gaussian family, with no
    offset. The linear predictor is rebuilt from the coefficients once the
    descent at a penalty level finishes.
    """

    updates_predictor = False

    def __init__(self, X, stats: SufficientStatistics):
        self.X = X
        self.stats = stats

    def initialize(self, ctx, standardize):
        stats = self.stats
        ctx.xbar = stats.xbar.copy()
        ctx.vxsum = stats.vxsum.copy()
        ctx.vxz = stats.vxy.copy()
        diag = stats.vxx[np.arange(ctx.p) * (np.arange(ctx.p) + 3) // 2]
        ctx.H = diag + ctx.xbar * (ctx.xbar * ctx.vsum - 2.0 * ctx.vxsum)

    def refresh_curvature(self, ctx):
        # weights never change for the families this backend serves
        pass

    def gradient(self, ctx, j):
        g = -ctx.vxz[j] + ctx.A * ctx.vxsum[j]
        return float(g + np.dot(self.stats.column_cross_products(j), ctx.B))

    def finalize(self, ctx):
        ctx.E = ctx.offset + self.X.dot(ctx.B)
