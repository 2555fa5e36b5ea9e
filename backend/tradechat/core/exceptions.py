"""
Custom exception hierarchy for error categorization and HTTP status mapping.

Two families live here:
- Request errors (400/404/500) raised synchronously before any vendor call
- Provider errors (502) classified from vendor responses and transport failures

Provider errors carry a stable ``error_type`` (auth_error, rate_limit,
quota_exceeded, server_error, protocol_error, network_error, provider_error)
so callers can pick a retry policy without parsing vendor error bodies.

Usage:
    from tradechat.core.exceptions import RateLimitError, ValidationError

    raise ValidationError("Messages array is required", field="messages")
    raise RateLimitError("Too many requests", provider="deepseek", status=429)
"""

from typing import Any


class AppError(Exception):
    """
    Base application error with HTTP status mapping.

    All custom exceptions inherit from this to enable consistent error handling.
    """

    # Default status code (subclasses override)
    status_code: int = 500
    error_type: str = "internal_error"

    def __init__(self, message: str, **context: Any):
        """
        Initialize error with message and optional context.

        Args:
            message: Human-readable error description
            **context: Additional key-value pairs for logging (e.g., model, provider)
        """
        super().__init__(message)
        self.message = message
        self.context = context

    def to_dict(self) -> dict[str, Any]:
        """Convert to dict for JSON response and structured logging."""
        return {
            "error_type": self.error_type,
            "message": self.message,
            "status_code": self.status_code,
            **self.context,
        }


# ===== 400-level: Client Errors =====


class ValidationError(AppError):
    """Request unusable before any network call (missing model, messages, key)."""

    status_code = 400
    error_type = "validation_error"


class NotFoundError(AppError):
    """Requested resource does not exist (e.g., unknown model id)."""

    status_code = 404
    error_type = "not_found_error"


# ===== 500-level: Server Errors =====


class ConfigurationError(AppError):
    """
    Application misconfigured (e.g., missing env vars, invalid settings).

    Should be caught during startup, not during request handling.
    """

    status_code = 500
    error_type = "configuration_error"


# ===== 502: Provider Errors =====


class ProviderError(AppError):
    """
    LLM vendor call failed.

    The base class is used for statuses with no dedicated classification;
    the vendor HTTP status (if any) is kept on ``status``.
    """

    status_code = 502
    error_type = "provider_error"

    def __init__(
        self,
        message: str,
        provider: str | None = None,
        status: int | None = None,
        **context: Any,
    ):
        super().__init__(message, provider=provider, status=status, **context)
        self.provider = provider
        self.status = status


class AuthenticationError(ProviderError):
    """Vendor rejected the credentials (401/403)."""

    error_type = "auth_error"


class RateLimitError(ProviderError):
    """Vendor rate limit hit (429). Retry after backoff."""

    error_type = "rate_limit"


class QuotaExceededError(ProviderError):
    """Account balance or quota exhausted (402)."""

    error_type = "quota_exceeded"


class ServerError(ProviderError):
    """Vendor-side failure (5xx). Retry may help."""

    error_type = "server_error"


class ProtocolError(ProviderError):
    """Vendor sent a chunk that cannot be interpreted."""

    error_type = "protocol_error"


class NetworkError(ProviderError):
    """Transport failure or timeout talking to the vendor."""

    error_type = "network_error"


PROVIDER_ERRORS: dict[str, type[ProviderError]] = {
    cls.error_type: cls
    for cls in (
        ProviderError,
        AuthenticationError,
        RateLimitError,
        QuotaExceededError,
        ServerError,
        ProtocolError,
        NetworkError,
    )
}
