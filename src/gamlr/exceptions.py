"""Exceptions and warnings raised by the gamma lasso solver."""


class GamlrError(Exception):
    """Base exception class for gamma lasso errors."""

    pass


class InvalidInputError(GamlrError, ValueError):
    """Exception raised for invalid input to the path solver."""

    pass


class GamlrWarning(UserWarning):
    """Warning issued for recoverable numerical conditions along the path."""

    pass
