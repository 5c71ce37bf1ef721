"""Exception taxonomy for fuzzylink.

Fatal conditions are raised; recoverable data-quality issues are reported
as warnings and the offending rows dropped.
"""

from __future__ import annotations

__all__ = [
    "FuzzyLinkError",
    "ConfigurationError",
    "ProviderError",
    "RateLimited",
    "ServerError",
    "Unauthorized",
    "BadRequest",
    "DataQualityWarning",
    "ModelFitError",
    "InsufficientLabels",
    "LabelConflictError",
]


class FuzzyLinkError(Exception):
    """Base class for all fuzzylink errors."""


class ConfigurationError(FuzzyLinkError):
    """Raised when the linkage is misconfigured.

    Always raised before any remote call is issued.
    """


class ProviderError(FuzzyLinkError):
    """Raised when an embedding or oracle call fails.

    Attributes
    ----------
    status_code : int | None
        HTTP status returned by the provider, if any.
    retryable : bool
        Whether a retry policy may re-issue the call.
    """

    retryable: bool = False

    def __init__(self, message: str, status_code: int | None = None) -> None:
        """Initialize provider error.

        Parameters
        ----------
        message : str
            Error message.
        status_code : int | None, optional
            HTTP status code.
        """
        super().__init__(message)
        self.status_code = status_code


class RateLimited(ProviderError):
    """HTTP 429 from the provider."""

    retryable = True


class ServerError(ProviderError):
    """HTTP 5xx from the provider."""

    retryable = True


class Unauthorized(ProviderError):
    """Missing, invalid, or under-privileged credentials."""


class BadRequest(ProviderError):
    """Malformed request or unknown model."""


class DataQualityWarning(UserWarning):
    """Rows were dropped because a join or blocking field was missing."""


class ModelFitError(FuzzyLinkError):
    """Raised when a classifier cannot be fitted."""


class InsufficientLabels(ModelFitError):
    """Training rows contain fewer than two distinct label classes."""


class LabelConflictError(FuzzyLinkError):
    """A confirmed label would be overwritten by a contradictory one."""
