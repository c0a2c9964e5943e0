"""Refresh-token exchange against provider OAuth token endpoints."""

import logging
from typing import Awaitable, Callable, Dict, Optional

import httpx

from agentdesk.infra.config import config
from agentdesk.infra.error_handler import (
    ErrorCategory,
    ProviderOperationFailed,
    ReauthorizationRequired,
)
from agentdesk.models.connection import ConnectionProvider, TokenGrant

logger = logging.getLogger(__name__)

GOOGLE_TOKEN_URL = "https://oauth2.googleapis.com/token"
HUBSPOT_TOKEN_URL = "https://api.hubapi.com/oauth/v1/token"

DEFAULT_EXPIRES_IN = 3600

# Responses that mean the stored grant is dead and only a new consent helps
REAUTH_ERROR_CODES = {
    "invalid_grant",
    "invalid_client",
    "unauthorized_client",
    "access_denied",
    "BAD_REFRESH_TOKEN",
}


async def _exchange(
    provider: ConnectionProvider,
    token_url: str,
    client_id: Optional[str],
    client_secret: Optional[str],
    refresh_token: str,
) -> TokenGrant:
    if not client_id or not client_secret:
        raise ProviderOperationFailed(
            provider=provider.value,
            operation="token refresh",
            provider_message="OAuth client credentials are not configured",
            category=ErrorCategory.AUTH_ERROR,
        )

    data = {
        "grant_type": "refresh_token",
        "client_id": client_id,
        "client_secret": client_secret,
        "refresh_token": refresh_token,
    }

    try:
        async with httpx.AsyncClient(timeout=config.PROVIDER_HTTP_TIMEOUT) as client:
            response = await client.post(
                token_url,
                data=data,
                headers={"Content-Type": "application/x-www-form-urlencoded"},
            )
    except httpx.HTTPError as e:
        raise ProviderOperationFailed(
            provider=provider.value,
            operation="token refresh",
            provider_message=str(e) or type(e).__name__,
            category=ErrorCategory.NETWORK,
            retryable=True,
        ) from e

    try:
        body = response.json()
    except ValueError:
        body = {}

    if response.status_code != 200:
        error_code = body.get("error") or body.get("status") or ""
        message = (
            body.get("error_description")
            or body.get("message")
            or error_code
            or f"HTTP {response.status_code}"
        )
        if error_code in REAUTH_ERROR_CODES:
            raise ReauthorizationRequired(
                f"{provider.value} refresh token was rejected ({error_code}), please reconnect"
            )
        raise ProviderOperationFailed(
            provider=provider.value,
            operation="token refresh",
            provider_message=message,
            status_code=response.status_code,
            retryable=response.status_code >= 500,
        )

    access_token = body.get("access_token")
    if not access_token:
        raise ProviderOperationFailed(
            provider=provider.value,
            operation="token refresh",
            provider_message="Token endpoint returned no access_token",
            status_code=response.status_code,
        )

    return TokenGrant(
        access_token=access_token,
        expires_in=int(body.get("expires_in") or DEFAULT_EXPIRES_IN),
        # Google does not always rotate the refresh token
        refresh_token=body.get("refresh_token"),
    )


async def refresh_google_token(refresh_token: str) -> TokenGrant:
    """Exchange a Google refresh token for a new access token."""
    return await _exchange(
        ConnectionProvider.GOOGLE_CALENDAR,
        GOOGLE_TOKEN_URL,
        config.GOOGLE_CLIENT_ID,
        config.GOOGLE_CLIENT_SECRET,
        refresh_token,
    )


async def refresh_hubspot_token(refresh_token: str) -> TokenGrant:
    """Exchange a HubSpot refresh token for a new access token."""
    return await _exchange(
        ConnectionProvider.HUBSPOT,
        HUBSPOT_TOKEN_URL,
        config.HUBSPOT_CLIENT_ID,
        config.HUBSPOT_CLIENT_SECRET,
        refresh_token,
    )


TOKEN_REFRESHERS: Dict[ConnectionProvider, Callable[[str], Awaitable[TokenGrant]]] = {
    ConnectionProvider.GOOGLE_CALENDAR: refresh_google_token,
    ConnectionProvider.HUBSPOT: refresh_hubspot_token,
}
