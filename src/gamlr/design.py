"""Column-compressed design matrices and covariance-update statistics."""

from dataclasses import dataclass
from typing import Optional, Union

import numpy as np
import scipy.sparse as sp

from .exceptions import InvalidInputError


class SparseColumnAccessor:
    r"""Read-only view over a column-compressed design matrix.

    For each variable :math:`j` the accessor exposes the row indices and values
    of its nonzero entries, i.e. the slice ``indptr[j]:indptr[j+1]`` of the
    underlying CSC storage.

    Parameters
    ----------
    X : ndarray or scipy.sparse matrix of shape (n_samples, n_features)
        The design matrix. Dense input is converted to CSC.

    Attributes
    ----------
    n : int
        Number of observations.
    p : int
        Number of variables.
    indices : ndarray of shape (nnz,)
        Row index of every stored entry.
    indptr : ndarray of shape (p + 1,)
        Offsets of each column in `indices` and `data`.
    data : ndarray of shape (nnz,)
        Stored values.

    Raises
    ------
    InvalidInputError
        If `X` is not two-dimensional or contains NaN or infinity values.
    """

    def __init__(self, X: Union[np.ndarray, sp.spmatrix]):
        if sp.issparse(X):
            csc = sp.csc_matrix(X, dtype=float)
        else:
            X = np.asarray(X, dtype=float)
            if X.ndim == 1:
                X = X[:, np.newaxis]
            if X.ndim != 2:
                raise InvalidInputError("X must be a 2D array.")
            csc = sp.csc_matrix(X)

        if not np.all(np.isfinite(csc.data)):
            raise InvalidInputError("X contains NaN or infinity values.")

        csc.sort_indices()
        self._matrix = csc
        self.n, self.p = csc.shape
        self.indices = csc.indices
        self.indptr = csc.indptr
        self.data = csc.data

    @classmethod
    def from_csc(
        cls, indices: np.ndarray, indptr: np.ndarray, data: np.ndarray, n: int
    ) -> "SparseColumnAccessor":
        """Build an accessor from raw CSC arrays.

        Parameters
        ----------
        indices : ndarray of shape (nnz,)
            Row indices of the nonzero entries.
        indptr : ndarray of shape (p + 1,)
            Column pointers.
        data : ndarray of shape (nnz,)
            Nonzero values.
        n : int
            Number of observations.

        Returns
        -------
        SparseColumnAccessor
        """
        indptr = np.asarray(indptr)
        if indptr.ndim != 1 or indptr.size < 1:
            raise InvalidInputError("indptr must be a non-empty 1D array.")
        if len(indices) != len(data) or indptr[-1] != len(data):
            raise InvalidInputError(
                f"Inconsistent CSC arrays: {len(indices)} indices, {len(data)} "
                f"values, final column pointer {indptr[-1]}."
            )
        p = indptr.size - 1
        return cls(sp.csc_matrix((data, indices, indptr), shape=(n, p)))

    @property
    def nnz(self) -> int:
        """Number of stored entries."""
        return int(self.indptr[-1])

    @property
    def matrix(self) -> sp.csc_matrix:
        return self._matrix

    def column(self, j: int):
        """Return ``(rows, values)`` for the nonzero entries of column `j`."""
        start, stop = self.indptr[j], self.indptr[j + 1]
        return self.indices[start:stop], self.data[start:stop]

    def column_means(self) -> np.ndarray:
        """Unweighted column means, :math:`\\bar{x}_j = \\frac{1}{n}\\sum_i x_{ij}`."""
        return np.asarray(self._matrix.sum(axis=0)).ravel() / self.n

    def dot(self, beta: np.ndarray) -> np.ndarray:
        """Compute :math:`X \\beta`."""
        return np.asarray(self._matrix @ beta).ravel()


@dataclass
class SufficientStatistics:
    r"""Precomputed statistics for covariance-update gradients.

    Attributes
    ----------
    xbar : ndarray of shape (p,)
        Unweighted column means.
    vxsum : ndarray of shape (p,)
        Weighted column sums, :math:`\sum_i v_i x_{ij}`.
    vxx : ndarray of shape (p * (p + 1) / 2,)
        Packed upper triangle of :math:`X^T V X`; entry :math:`(j, k)` with
        :math:`j \le k` is stored at ``k * (k + 1) // 2 + j``.
    vxy : ndarray of shape (p,)
        Weighted cross terms with the response, :math:`\sum_i v_i x_{ij} y_i`.
    """

    xbar: np.ndarray
    vxsum: np.ndarray
    vxx: np.ndarray
    vxy: np.ndarray

    def __post_init__(self):
        self.xbar = np.asarray(self.xbar, dtype=float)
        self.vxsum = np.asarray(self.vxsum, dtype=float)
        self.vxx = np.asarray(self.vxx, dtype=float)
        self.vxy = np.asarray(self.vxy, dtype=float)
        p = self.xbar.shape[0]
        if self.vxsum.shape != (p,) or self.vxy.shape != (p,):
            raise InvalidInputError("Sufficient statistics have mismatched lengths.")
        if self.vxx.shape != (p * (p + 1) // 2,):
            raise InvalidInputError(
                f"vxx must hold the packed upper triangle ({p * (p + 1) // 2} "
                f"entries), got {self.vxx.shape[0]}."
            )

    def cross_product(self, j: int, k: int) -> float:
        """Entry :math:`(j, k)` of :math:`X^T V X`."""
        if j > k:
            j, k = k, j
        return self.vxx[k * (k + 1) // 2 + j]

    def column_cross_products(self, j: int) -> np.ndarray:
        """Row `j` of :math:`X^T V X` unpacked to a dense vector."""
        p = self.xbar.shape[0]
        k = np.arange(p)
        idx = np.where(k < j, j * (j + 1) // 2 + k, k * (k + 1) // 2 + j)
        return self.vxx[idx]


def pack_upper(M: np.ndarray) -> np.ndarray:
    """Pack the upper triangle of a square matrix column by column."""
    p = M.shape[0]
    rows, cols = np.triu_indices(p)
    order = np.lexsort((rows, cols))
    return np.asarray(M[rows[order], cols[order]]).ravel()


def precompute_sufficient_statistics(
    X: Union[np.ndarray, sp.spmatrix, SparseColumnAccessor],
    y: np.ndarray,
    obs_weights: Optional[np.ndarray] = None,
) -> SufficientStatistics:
    r"""Compute the covariance-update statistics of a weighted design.

    Parameters
    ----------
    X : array-like, sparse matrix or SparseColumnAccessor of shape (n, p)
        Design matrix.
    y : ndarray of shape (n,)
        Response vector.
    obs_weights : ndarray of shape (n,), optional
        Observation weights :math:`v`. Defaults to ones.

    Returns
    -------
    SufficientStatistics
        The means, weighted sums, packed :math:`X^T V X` and :math:`X^T V y`.
    """
    if not isinstance(X, SparseColumnAccessor):
        X = SparseColumnAccessor(X)
    y = np.asarray(y, dtype=float)
    if y.shape != (X.n,):
        raise InvalidInputError(
            f"Incompatible shapes: X has {X.n} rows, y has {y.shape[0]} entries."
        )
    v = np.ones(X.n) if obs_weights is None else np.asarray(obs_weights, dtype=float)

    Xm = X.matrix
    VX = sp.diags(v) @ Xm
    vxx = (Xm.T @ VX).toarray()
    vxsum = np.asarray(VX.sum(axis=0)).ravel()
    vxy = np.asarray(VX.T @ y).ravel()

    return SufficientStatistics(
        xbar=X.column_means(), vxsum=vxsum, vxx=pack_upper(vxx), vxy=vxy
    )
