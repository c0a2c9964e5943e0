"""API authentication and organization scoping."""

import logging
import os
from typing import Optional
from fastapi import Header, HTTPException, Security, status
from fastapi.security import APIKeyHeader

logger = logging.getLogger(__name__)

# API key header
api_key_header = APIKeyHeader(name="X-API-Key", auto_error=False)

MIN_API_KEY_LENGTH = 16


def _configured_keys() -> set:
    keys = set()
    master_key = os.getenv("MASTER_API_KEY")
    if master_key:
        keys.add(master_key)
    for key in os.getenv("API_KEYS", "").split(","):
        if key.strip():
            keys.add(key.strip())
    return keys


async def verify_api_key(api_key: Optional[str] = Security(api_key_header)) -> str:
    """
    Verify the X-API-Key header.

    User authentication lives in the front-end framework; this service only
    trusts callers holding a configured key (MASTER_API_KEY or API_KEYS).

    Returns:
        The accepted API key

    Raises:
        HTTPException: If the key is missing or unknown
    """
    if not api_key:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="API key required. Provide X-API-Key header.",
            headers={"WWW-Authenticate": "ApiKey"},
        )

    if len(api_key) < MIN_API_KEY_LENGTH or api_key not in _configured_keys():
        logger.warning("Rejected request with invalid API key")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid API key",
            headers={"WWW-Authenticate": "ApiKey"},
        )

    return api_key


async def get_organization_id(
    x_organization_id: Optional[str] = Header(None, alias="X-Organization-ID"),
) -> str:
    """Organization the request acts on, as resolved by the calling framework."""
    if not x_organization_id or not x_organization_id.strip():
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="X-Organization-ID header is required",
        )
    return x_organization_id.strip()


async def get_user_id(
    x_user_id: Optional[str] = Header(None, alias="X-User-ID"),
) -> Optional[str]:
    """Acting user, recorded as creator on agents, connections and documents."""
    return x_user_id
