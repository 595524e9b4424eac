# gamlr/__init__.py
from .coordinate_descent import CDResult, cd_solve, coordinate_move
from .context import PathContext
from .cv import CVGamlrResult, cv_gamlr
from .degrees_of_freedom import degrees_of_freedom
from .design import (
    SparseColumnAccessor,
    SufficientStatistics,
    precompute_sufficient_statistics,
)
from .exceptions import GamlrError, GamlrWarning, InvalidInputError
from .families import Binomial, Family, Gaussian, Poisson, get_family
from .fit import GamlrFit, gamlr
from .gradient import CovarianceGradient, GradientCurvature, SparseGradient
from .path import PathResult, fit_path
from .penalty import update_adaptive_weights

__version__ = "0.1.0"
