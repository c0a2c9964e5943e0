"""Error taxonomy and retry logic for provider and service failures."""

import asyncio
import random
import re
from typing import Optional, Type, Tuple, Callable, Any
from enum import Enum


class ErrorCategory(str, Enum):
    """Categories of errors for better handling."""
    NETWORK = "network"  # Connection issues, timeouts
    API_ERROR = "api_error"  # Provider returned an error response
    AUTH_ERROR = "auth_error"  # Credential rejected or missing
    RATE_LIMIT = "rate_limit"  # Rate limit exceeded
    VALIDATION = "validation"  # Input validation errors
    NOT_FOUND = "not_found"  # Missing or disabled records
    BUSINESS_LOGIC = "business_logic"  # Business rule violations
    UNKNOWN = "unknown"


class ServiceError(Exception):
    """Base exception carrying a category and whether a retry may succeed."""
    def __init__(
        self,
        message: str,
        category: ErrorCategory,
        retryable: bool = False,
        retry_after: Optional[float] = None,
    ):
        self.message = message
        self.category = category
        self.retryable = retryable
        self.retry_after = retry_after
        super().__init__(message)


class NetworkError(ServiceError):
    """Network-related errors (connection, timeout)."""
    def __init__(self, message: str, retry_after: Optional[float] = None):
        super().__init__(message, ErrorCategory.NETWORK, retryable=True, retry_after=retry_after)


class APIError(ServiceError):
    """Provider returned an error response."""
    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        retryable: bool = False,
        retry_after: Optional[float] = None,
        body: Any = None,
    ):
        self.status_code = status_code
        self.body = body
        super().__init__(message, ErrorCategory.API_ERROR, retryable=retryable, retry_after=retry_after)


class RateLimitError(ServiceError):
    """Rate limit exceeded."""
    def __init__(self, message: str, retry_after: Optional[float] = None):
        super().__init__(message, ErrorCategory.RATE_LIMIT, retryable=True, retry_after=retry_after)


class NotFoundOrInactive(ServiceError):
    """Agent or connection is missing or soft-deleted."""
    def __init__(self, message: str):
        super().__init__(message, ErrorCategory.NOT_FOUND, retryable=False)


class ReauthorizationRequired(ServiceError):
    """The stored credential can no longer be refreshed; the user must reconnect."""
    code = "reauthorization_required"

    def __init__(self, message: str, connection_id: Optional[str] = None, provider: Optional[str] = None):
        self.connection_id = connection_id
        self.provider = provider
        super().__init__(message, ErrorCategory.AUTH_ERROR, retryable=False)


class ValidationError(ServiceError):
    """Input validation errors."""
    def __init__(self, message: str, field: Optional[str] = None):
        self.field = field
        super().__init__(message, ErrorCategory.VALIDATION, retryable=False)


class ProviderOperationFailed(ServiceError):
    """A downstream provider call failed; keeps the provider's own message."""
    def __init__(
        self,
        provider: str,
        operation: str,
        provider_message: str,
        status_code: Optional[int] = None,
        category: ErrorCategory = ErrorCategory.API_ERROR,
        retryable: bool = False,
        message: Optional[str] = None,
    ):
        self.provider = provider
        self.operation = operation
        self.provider_message = provider_message
        self.status_code = status_code
        super().__init__(
            message or f"{provider} {operation} failed: {provider_message}",
            category,
            retryable=retryable,
        )


class ResourceNotFound(ServiceError):
    """Provider-side lookup miss (e.g. a CRM contact by email)."""
    def __init__(self, message: str):
        super().__init__(message, ErrorCategory.NOT_FOUND, retryable=False)


class UnsupportedProvider(ServiceError):
    """No tool factory is registered for a connection's provider."""
    def __init__(self, provider: str):
        self.provider = provider
        super().__init__(f"Unsupported provider: {provider}", ErrorCategory.BUSINESS_LOGIC, retryable=False)


def classify_error(error: Exception) -> Tuple[ErrorCategory, bool, Optional[float]]:
    """
    Classify an error into a category and determine if it's retryable.

    Args:
        error: The exception to classify

    Returns:
        Tuple of (category, retryable, retry_after_seconds)
    """
    if isinstance(error, ServiceError):
        return error.category, error.retryable, error.retry_after

    if isinstance(error, (ConnectionError, TimeoutError, asyncio.TimeoutError)):
        return ErrorCategory.NETWORK, True, None

    error_str = str(error).lower()

    if any(keyword in error_str for keyword in ["connection", "timeout", "network", "dns", "refused"]):
        return ErrorCategory.NETWORK, True, None

    if "rate limit" in error_str or "429" in error_str or "too many requests" in error_str:
        retry_after = None
        match = re.search(r"retry[_-]after[:\s]+(\d+)", error_str)
        if match:
            retry_after = float(match.group(1))
        return ErrorCategory.RATE_LIMIT, True, retry_after

    if any(keyword in error_str for keyword in ["unauthorized", "forbidden", "401", "403"]):
        return ErrorCategory.AUTH_ERROR, False, None

    return ErrorCategory.UNKNOWN, False, None


async def retry_with_backoff(
    func: Callable,
    max_retries: int = 3,
    initial_delay: float = 1.0,
    max_delay: float = 60.0,
    exponential_base: float = 2.0,
    on_retry: Optional[Callable[[Exception, int], Any]] = None,
) -> Any:
    """
    Retry an async callable with exponential backoff and jitter.

    Only errors that ``classify_error`` reports as retryable are retried;
    everything else propagates on the first failure.

    Args:
        func: Zero-argument async function to call
        max_retries: Maximum number of retry attempts
        initial_delay: Initial delay in seconds
        max_delay: Maximum delay in seconds
        exponential_base: Base for exponential backoff
        on_retry: Optional callback (sync or async) called with (exception, attempt_number)

    Returns:
        Result of the function call

    Raises:
        The last exception if all retries fail
    """
    attempt = 0
    while True:
        try:
            return await func()
        except Exception as e:
            _, retryable, retry_after = classify_error(e)
            if not retryable or attempt >= max_retries:
                raise

            if retry_after:
                delay = min(retry_after, max_delay)
            else:
                delay = min(initial_delay * (exponential_base ** attempt), max_delay)
            delay += random.uniform(0, delay * 0.1)

            attempt += 1
            if on_retry:
                result = on_retry(e, attempt)
                if asyncio.iscoroutine(result):
                    await result

            await asyncio.sleep(delay)


def error_payload(error: ServiceError, operation: str) -> dict:
    """Uniform failure content handed back to the model instead of raising."""
    provider_message = getattr(error, "provider_message", None) or error.message
    return {
        "success": False,
        "message": error.message,
        "error": {
            "operation": operation,
            "providerMessage": provider_message,
            "category": error.category.value,
        },
    }
