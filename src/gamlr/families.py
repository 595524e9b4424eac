"""Response families and their IRLS reweighting steps."""

from abc import ABC, abstractmethod

import numpy as np
from scipy.special import expit, xlogy

from .exceptions import InvalidInputError


def weighted_intercept(
    V: np.ndarray, Z: np.ndarray, E: np.ndarray, vsum: float
) -> float:
    r"""Weighted least squares intercept given the linear predictor.

    .. math::
        a = \frac{\sum_i v_i (z_i - e_i)}{\sum_i v_i}
    """
    return float(np.dot(V, Z - E) / vsum)


class Family(ABC):
    """Interface of a response family.

    A family supplies the negative log likelihood, the IRLS reweighting step,
    the intercept of the null model and the negative log likelihood of the
    saturated model. Observation weights enter every method as `prior`.
    """

    name = None
    needs_reweight = True

    def validate_response(self, y: np.ndarray, prior: np.ndarray):
        """Raise `InvalidInputError` if `y` is not a valid response."""
        pass

    @abstractmethod
    def negative_log_likelihood(
        self, A: float, E: np.ndarray, y: np.ndarray, prior: np.ndarray
    ) -> float:
        pass

    @abstractmethod
    def reweight(
        self,
        A: float,
        E: np.ndarray,
        y: np.ndarray,
        prior: np.ndarray,
        V: np.ndarray,
        Z: np.ndarray,
    ) -> float:
        """Update `V` and `Z` in place and return the new weight sum.

        A returned weight sum of zero signals an infinite likelihood.
        """
        pass

    @abstractmethod
    def null_intercept(
        self, y: np.ndarray, prior: np.ndarray, E: np.ndarray
    ) -> float:
        pass

    @abstractmethod
    def saturated_nll(self, y: np.ndarray, prior: np.ndarray) -> float:
        pass

    @abstractmethod
    def mean(self, eta: np.ndarray) -> np.ndarray:
        """Inverse link."""
        pass

    def deviance(
        self, y: np.ndarray, eta: np.ndarray, prior: np.ndarray = None
    ) -> float:
        """Deviance of the linear predictor `eta` on the response `y`."""
        y = np.asarray(y, dtype=float)
        if prior is None:
            prior = np.ones_like(y)
        nll = self.negative_log_likelihood(0.0, np.asarray(eta, dtype=float), y, prior)
        return 2.0 * (nll - self.saturated_nll(y, prior))

    def __repr__(self):
        return f"{type(self).__name__}()"


class Gaussian(Family):
    """Gaussian family; a single static weighted least squares problem."""

    name = "gaussian"
    needs_reweight = False

    def negative_log_likelihood(self, A, E, y, prior):
        r = y - A - E
        return 0.5 * float(np.dot(prior, r * r))

    def reweight(self, A, E, y, prior, V, Z):
        return float(V.sum())

    def null_intercept(self, y, prior, E):
        return weighted_intercept(prior, y, E, prior.sum())

    def saturated_nll(self, y, prior):
        return 0.0

    def mean(self, eta):
        return eta


class Binomial(Family):
    """Binomial family with logit link."""

    name = "binomial"

    def validate_response(self, y, prior):
        if np.any(y < 0) or np.any(y > 1):
            raise InvalidInputError("Binomial response must lie in [0, 1].")
        ybar = np.dot(prior, y) / prior.sum()
        if ybar <= 0 or ybar >= 1:
            raise InvalidInputError(
                "Binomial response must contain both zeros and ones."
            )

    def negative_log_likelihood(self, A, E, y, prior):
        eta = A + E
        return float(np.dot(prior, np.logaddexp(0.0, eta) - y * eta))

    def reweight(self, A, E, y, prior, V, Z):
        eta = A + E
        q = expit(eta)
        curv = q * (1.0 - q)
        np.multiply(prior, curv, out=V)
        with np.errstate(divide="ignore", invalid="ignore"):
            Z[:] = np.where(curv > 0, eta + (y - q) / curv, eta)
        vsum = float(V.sum())
        if not np.isfinite(vsum) or vsum <= 0:
            return 0.0
        return vsum

    def null_intercept(self, y, prior, E):
        ybar = np.dot(prior, y) / prior.sum()
        return float(np.log(ybar / (1.0 - ybar)))

    def saturated_nll(self, y, prior):
        # zero unless y holds proportions
        ent = xlogy(y, y) + xlogy(1.0 - y, 1.0 - y)
        return -float(np.dot(prior, ent))

    def mean(self, eta):
        return expit(eta)


class Poisson(Family):
    """Poisson family with log link."""

    name = "poisson"

    def validate_response(self, y, prior):
        if np.any(y < 0):
            raise InvalidInputError("Poisson response must be non-negative.")
        if np.dot(prior, y) <= 0:
            raise InvalidInputError("Poisson response must not be all zero.")

    def negative_log_likelihood(self, A, E, y, prior):
        eta = A + E
        return float(np.dot(prior, np.exp(eta) - y * eta))

    def reweight(self, A, E, y, prior, V, Z):
        eta = A + E
        with np.errstate(over="ignore", divide="ignore", invalid="ignore"):
            mu = np.exp(eta)
            np.multiply(prior, mu, out=V)
            Z[:] = np.where(mu > 0, eta + y / mu - 1.0, eta)
        vsum = float(V.sum())
        if not np.isfinite(vsum) or vsum <= 0:
            return 0.0
        return vsum

    def null_intercept(self, y, prior, E):
        return float(np.log(np.dot(prior, y) / prior.sum()))

    def saturated_nll(self, y, prior):
        return float(np.dot(prior, y - xlogy(y, y)))

    def mean(self, eta):
        return np.exp(eta)


_FAMILIES = {
    "gaussian": Gaussian,
    "binomial": Binomial,
    "poisson": Poisson,
}


def get_family(family) -> Family:
    """Resolve a family name or instance.

    Parameters
    ----------
    family : str or Family
        One of ``"gaussian"``, ``"binomial"``, ``"poisson"``, or a `Family`.

    Returns
    -------
    Family

    Raises
    ------
    InvalidInputError
        If the family is not recognized.
    """
    if isinstance(family, Family):
        return family
    try:
        return _FAMILIES[str(family).lower()]()
    except KeyError:
        raise InvalidInputError(
            f"Specified family '{family}' not recognized. "
            f"Choose from {sorted(_FAMILIES)}."
        )
