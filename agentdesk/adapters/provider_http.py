"""Shared HTTP plumbing for provider REST APIs."""

import logging
from typing import Any, Dict, Optional

import httpx

from agentdesk.infra.config import config
from agentdesk.infra.error_handler import (
    APIError,
    ErrorCategory,
    NetworkError,
    ProviderOperationFailed,
    RateLimitError,
    ServiceError,
    retry_with_backoff,
)

logger = logging.getLogger(__name__)

IDEMPOTENT_METHODS = frozenset({"GET", "HEAD", "PUT", "DELETE"})


def extract_error_message(response: httpx.Response) -> str:
    """Best-effort human message from a provider error response."""
    try:
        body = response.json()
    except ValueError:
        return response.text or f"HTTP {response.status_code}"

    if isinstance(body, dict):
        error = body.get("error")
        # Google: {"error": {"code": 400, "message": "..."}}
        if isinstance(error, dict) and error.get("message"):
            return error["message"]
        # HubSpot: {"status": "error", "message": "...", "category": "..."}
        if body.get("message"):
            return body["message"]
        if isinstance(error, str):
            return body.get("error_description") or error
    return f"HTTP {response.status_code}"


class ProviderHTTPClient:
    """Authenticated JSON requests against one provider's REST API.

    Transient failures (network errors, 429, 5xx) of idempotent requests are
    retried with backoff; whatever still fails is raised as
    ProviderOperationFailed. A request that creates something is sent once.
    """

    def __init__(
        self,
        provider: str,
        base_url: str,
        timeout: Optional[float] = None,
        max_retries: Optional[int] = None,
    ):
        self.provider = provider
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout if timeout is not None else config.PROVIDER_HTTP_TIMEOUT
        self.max_retries = max_retries if max_retries is not None else config.PROVIDER_MAX_RETRIES

    async def request(
        self,
        method: str,
        path: str,
        access_token: str,
        operation: str,
        params: Optional[Dict[str, Any]] = None,
        json: Optional[Dict[str, Any]] = None,
        retry: Optional[bool] = None,
    ) -> Dict[str, Any]:
        """
        Send a request and return the decoded JSON body.

        Args:
            method: HTTP method
            path: Path relative to the base URL
            access_token: Bearer token for the connection
            operation: Operation name used in errors and logs
            params: Query parameters
            json: JSON request body
            retry: Retry transient failures (defaults to True for idempotent
                methods only; read-only POSTs such as searches pass True)

        Returns:
            Decoded response body ({} for empty responses)

        Raises:
            ProviderOperationFailed: If the call fails after retries
        """
        url = f"{self.base_url}{path}"
        headers = {
            "Authorization": f"Bearer {access_token}",
            "Content-Type": "application/json",
        }

        async def _send() -> Dict[str, Any]:
            try:
                async with httpx.AsyncClient(timeout=self.timeout) as client:
                    response = await client.request(method, url, params=params, json=json, headers=headers)
            except httpx.TimeoutException as e:
                raise NetworkError(f"Request timed out: {e}")
            except httpx.TransportError as e:
                raise NetworkError(f"Connection error: {e}")
            except httpx.HTTPError as e:
                raise APIError(f"HTTP error from {self.provider}: {e}")

            if response.status_code == 429:
                retry_after = response.headers.get("Retry-After")
                raise RateLimitError(
                    extract_error_message(response),
                    retry_after=float(retry_after) if retry_after and retry_after.isdigit() else None,
                )
            if response.status_code >= 400:
                raise APIError(
                    extract_error_message(response),
                    status_code=response.status_code,
                    retryable=response.status_code >= 500,
                )
            if response.status_code == 204:
                return {}
            try:
                return response.json()
            except ValueError:
                raise APIError(f"Invalid JSON from {self.provider}", status_code=response.status_code)

        def _log_retry(error: Exception, attempt: int):
            logger.warning(
                f"Retrying {self.provider} {operation} (attempt {attempt}/{self.max_retries}): {error}"
            )

        if retry is None:
            retry = method.upper() in IDEMPOTENT_METHODS

        try:
            return await retry_with_backoff(
                _send,
                max_retries=self.max_retries if retry else 0,
                initial_delay=0.5,
                max_delay=10.0,
                on_retry=_log_retry,
            )
        except ServiceError as e:
            logger.error(f"{self.provider} {operation} failed: {e.message}")
            raise ProviderOperationFailed(
                provider=self.provider,
                operation=operation,
                provider_message=e.message,
                status_code=getattr(e, "status_code", None),
                category=e.category if e.category != ErrorCategory.UNKNOWN else ErrorCategory.API_ERROR,
                retryable=e.retryable,
            ) from e
