"""
Exception hierarchy for the ExplainIt dispatch core.

Two layers live here. The dispatcher raises raw failures (HttpError,
EmptyResponseError, RequestTimeoutError) that still carry the provider's
status code and message. The resilience controller converts every failure,
raw or network-level, into one of the user-facing kinds exactly once via
classify_failure; nothing above it looks at status codes again.

Key Features:
- Base ExplainItError with error codes, details and original exception chaining
- Retryable/fatal flag and a user action hint on every user-facing kind
- Credential detection from status codes and provider error messages
- Conversion to dictionaries for API responses and logging
"""
# src/explainit/exceptions.py
import re
from typing import Optional, Dict, Any
import logging

import requests

# The action a UI should offer for a failure kind
ACTION_FIX_CONFIGURATION = "fix_configuration"
ACTION_RETRY = "retry"

# Provider messages for rejected keys; Gemini answers 400 "API key not valid"
_CREDENTIAL_MESSAGE_RE = re.compile(
    r"api[ _-]?key|x-api-key|unauthori[sz]ed|authentication|invalid[ _]key|permission denied",
    re.IGNORECASE,
)


class ExplainItError(Exception):
    """Base exception for the dispatch core."""

    retryable = False
    user_action = ACTION_RETRY

    def __init__(
        self,
        message: str,
        error_code: str = "GENERIC_ERROR",
        details: Optional[Dict[str, Any]] = None,
        original_error: Optional[Exception] = None
    ):
        super().__init__(message)
        self.message = message
        self.error_code = error_code
        self.details = details or {}
        self.original_error = original_error

    def __str__(self):
        return f"[{self.error_code}] {self.message}"

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for logging/API responses."""
        return {
            "error_code": self.error_code,
            "message": self.message,
            "details": self.details,
            "original_error": str(self.original_error) if self.original_error else None
        }


class ValidationError(ExplainItError):
    """Exception for input validation errors."""

    user_action = ACTION_FIX_CONFIGURATION

    def __init__(self, field: str, value: Any, reason: str, **kwargs):
        super().__init__(
            message=f"Validation error for field '{field}': {reason}",
            error_code="VALIDATION_ERROR",
            details={
                "field": field,
                "value": value,
                "reason": reason
            },
            **kwargs
        )
        self.field = field
        self.value = value
        self.reason = reason


class StorageError(ExplainItError):
    """Exception for key-value store read/write failures."""

    def __init__(self, store: str, operation: str, reason: str, **kwargs):
        super().__init__(
            message=f"{store} store {operation} failed: {reason}",
            error_code="STORAGE_ERROR",
            details={"store": store, "operation": operation},
            **kwargs
        )
        self.store = store
        self.operation = operation


# --- Raw dispatcher failures ---

class ProviderError(ExplainItError):
    """Base for failures reported by or while talking to a provider."""

    def __init__(self, message: str, provider: str, error_code: str = "PROVIDER_ERROR", **kwargs):
        details = kwargs.pop("details", {})
        details.setdefault("provider", provider)
        super().__init__(message=message, error_code=error_code, details=details, **kwargs)
        self.provider = provider


class HttpError(ProviderError):
    """The provider answered with a non-success HTTP status."""

    def __init__(
        self,
        status_code: int,
        message: str,
        provider: str,
        retry_after: Optional[int] = None,
        **kwargs
    ):
        super().__init__(
            message=message,
            provider=provider,
            error_code="HTTP_ERROR",
            details={"status_code": status_code},
            **kwargs
        )
        self.status_code = status_code
        self.retry_after = retry_after


class EmptyResponseError(ProviderError):
    """The provider answered successfully but no text could be extracted."""

    def __init__(self, provider: str, **kwargs):
        super().__init__(
            message="Empty response from provider",
            provider=provider,
            error_code="EMPTY_RESPONSE",
            **kwargs
        )


class RequestTimeoutError(ProviderError):
    """A single provider call exceeded its time budget."""

    def __init__(self, provider: str, timeout: float, **kwargs):
        super().__init__(
            message="Request timeout",
            provider=provider,
            error_code="TIMEOUT",
            details={"timeout": timeout},
            **kwargs
        )
        self.timeout = timeout


# --- User-facing kinds produced by classify_failure ---

class CredentialError(ProviderError):
    """The provider rejected the API key."""

    user_action = ACTION_FIX_CONFIGURATION

    def __init__(self, provider: str, message: str, status_code: Optional[int] = None, **kwargs):
        super().__init__(
            message=message,
            provider=provider,
            error_code="CREDENTIAL_ERROR",
            details={"status_code": status_code},
            **kwargs
        )
        self.status_code = status_code


class RateLimitError(ProviderError):
    """Exception for rate limiting errors (HTTP 429)."""

    retryable = True

    def __init__(
        self,
        provider: str,
        message: Optional[str] = None,
        retry_after: Optional[int] = None,
        **kwargs
    ):
        super().__init__(
            message=message or f"Rate limit exceeded for provider: {provider}",
            provider=provider,
            error_code="RATE_LIMIT",
            details={"status_code": 429, "retry_after": retry_after},
            **kwargs
        )
        self.retry_after = retry_after


class TransientServerError(ProviderError):
    """Server error, timeout or network failure; worth another attempt."""

    retryable = True

    def __init__(self, provider: str, message: str, status_code: Optional[int] = None, **kwargs):
        super().__init__(
            message=message,
            provider=provider,
            error_code="TRANSIENT_ERROR",
            details={"status_code": status_code},
            **kwargs
        )
        self.status_code = status_code


class RequestRejectedError(ProviderError):
    """A 4xx the provider will keep rejecting, such as a malformed request."""

    user_action = ACTION_FIX_CONFIGURATION

    def __init__(self, provider: str, message: str, status_code: int, **kwargs):
        super().__init__(
            message=message,
            provider=provider,
            error_code="REQUEST_REJECTED",
            details={"status_code": status_code},
            **kwargs
        )
        self.status_code = status_code


USER_FACING_ERRORS = (
    ValidationError,
    CredentialError,
    RateLimitError,
    TransientServerError,
    EmptyResponseError,
    RequestRejectedError,
)


def is_credential_message(message: str) -> bool:
    return bool(message) and bool(_CREDENTIAL_MESSAGE_RE.search(message))


def classify_failure(
    error: Exception,
    provider: str,
    logger: Optional[logging.Logger] = None
) -> ExplainItError:
    """Convert any dispatch failure into one of the user-facing kinds."""

    if isinstance(error, USER_FACING_ERRORS):
        return error

    if isinstance(error, HttpError):
        status = error.status_code
        if status == 429:
            return RateLimitError(
                provider=provider,
                message=error.message,
                retry_after=error.retry_after,
                original_error=error
            )
        if status >= 500:
            return TransientServerError(
                provider=provider,
                message=error.message,
                status_code=status,
                original_error=error
            )
        if status in (401, 403) or is_credential_message(error.message):
            return CredentialError(
                provider=provider,
                message=error.message,
                status_code=status,
                original_error=error
            )
        return RequestRejectedError(
            provider=provider,
            message=error.message,
            status_code=status,
            original_error=error
        )

    if isinstance(error, (RequestTimeoutError, requests.Timeout, TimeoutError)):
        return TransientServerError(
            provider=provider,
            message="Request timeout",
            original_error=error
        )

    if isinstance(error, (requests.ConnectionError, ConnectionError)):
        return TransientServerError(
            provider=provider,
            message=f"Network error: {error}",
            original_error=error
        )

    if isinstance(error, requests.RequestException):
        return TransientServerError(
            provider=provider,
            message=f"Request failed: {error}",
            original_error=error
        )

    if logger:
        logger.error(f"Unexpected dispatch failure from {provider}: {error!r}")

    return ProviderError(
        message=f"Unexpected error: {error}",
        provider=provider,
        error_code="UNEXPECTED_ERROR",
        original_error=error
    )
