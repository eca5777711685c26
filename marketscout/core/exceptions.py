"""
Custom exceptions for MarketScout.

Provides a hierarchy of exceptions for better error handling and debugging.
"""

from enum import Enum
from typing import Any, Dict, Optional


class ErrorType(str, Enum):
    """Classified failure kinds reported by the LLM gateway."""

    RATE_LIMIT_ERROR = "RATE_LIMIT_ERROR"
    AUTH_ERROR = "AUTH_ERROR"
    TIMEOUT_ERROR = "TIMEOUT_ERROR"
    NETWORK_ERROR = "NETWORK_ERROR"
    EXECUTION_ERROR = "EXECUTION_ERROR"


class MarketScoutError(Exception):
    """Base exception for all MarketScout errors."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class ConfigurationError(MarketScoutError):
    """Raised when there are configuration issues."""

    pass


class ValidationError(MarketScoutError):
    """Bad caller input. Never retried."""

    pass


class WorkflowError(MarketScoutError):
    """Workflow state errors, such as mutating a finalized job."""

    pass


class RegistryError(MarketScoutError):
    """The provider registry could not be initialized."""

    pass


class ProviderError(MarketScoutError):
    """Base class for failures raised by a research provider."""

    error_type: ErrorType = ErrorType.EXECUTION_ERROR

    def __init__(self, message: str, provider: Optional[str] = None, **kwargs):
        super().__init__(message, **kwargs)
        self.provider = provider


class AuthError(ProviderError):
    """Missing or malformed credential. Fatal, no retry."""

    error_type = ErrorType.AUTH_ERROR


class RateLimitError(ProviderError):
    """Rate limiting errors."""

    error_type = ErrorType.RATE_LIMIT_ERROR

    def __init__(self, message: str, retry_after: Optional[float] = None, **kwargs):
        super().__init__(message, **kwargs)
        self.retry_after = retry_after


class TimeoutError(ProviderError):
    """Operation timeout errors."""

    error_type = ErrorType.TIMEOUT_ERROR


class NetworkError(ProviderError):
    """Connection level failures."""

    error_type = ErrorType.NETWORK_ERROR


class ExecutionError(ProviderError):
    """Catch-all for provider-internal failures."""

    error_type = ErrorType.EXECUTION_ERROR


class ProviderNotFoundError(ProviderError):
    """The requested provider is not registered."""

    pass


class ProviderDisabledError(ProviderError):
    """The requested provider exists but is switched off."""

    pass


_ERRORS_BY_TYPE = {
    ErrorType.RATE_LIMIT_ERROR: RateLimitError,
    ErrorType.AUTH_ERROR: AuthError,
    ErrorType.TIMEOUT_ERROR: TimeoutError,
    ErrorType.NETWORK_ERROR: NetworkError,
    ErrorType.EXECUTION_ERROR: ExecutionError,
}


def error_for(
    error_type: Optional[ErrorType], message: str, provider: Optional[str] = None
) -> ProviderError:
    """Build the exception matching a classified gateway failure."""
    cls = _ERRORS_BY_TYPE.get(error_type, ExecutionError)
    return cls(message, provider=provider)
