"""Keeps bound OAuth credentials valid before they are used."""

import asyncio
import logging
import weakref
from datetime import datetime, timedelta, timezone
from typing import Awaitable, Callable, Dict, Optional

from agentdesk.adapters.oauth_refresh import TOKEN_REFRESHERS
from agentdesk.infra.config import config
from agentdesk.infra.error_handler import (
    NotFoundOrInactive,
    ProviderOperationFailed,
    ReauthorizationRequired,
    UnsupportedProvider,
)
from agentdesk.infra.metrics import token_refreshes_total
from agentdesk.models.connection import Connection, ConnectionProvider, TokenGrant
from agentdesk.services.store import agent_store

logger = logging.getLogger(__name__)


class TokenRefreshService:
    """
    Validates a connection's access token and refreshes it when stale.

    A token is stale when it expires within the refresh buffer (5 minutes
    by default). Refreshes of the same connection are single-flighted: a
    caller that waited on the lock re-reads the record and only refreshes
    if it is still stale.
    """

    def __init__(
        self,
        store=None,
        refreshers: Optional[Dict[ConnectionProvider, Callable[[str], Awaitable[TokenGrant]]]] = None,
        buffer_seconds: Optional[int] = None,
    ):
        self.store = store if store is not None else agent_store
        self.refreshers = refreshers if refreshers is not None else TOKEN_REFRESHERS
        self.buffer_seconds = (
            buffer_seconds if buffer_seconds is not None else config.TOKEN_REFRESH_BUFFER_SECONDS
        )
        # Entries disappear once no caller holds the lock
        self._locks: "weakref.WeakValueDictionary[str, asyncio.Lock]" = weakref.WeakValueDictionary()

    def _load_active(self, connection_id: str) -> Connection:
        connection = self.store.get_connection(connection_id)
        if connection is None or not connection.is_active:
            raise NotFoundOrInactive(f"Connection {connection_id} not found or inactive")
        return connection

    async def ensure_valid_token(self, connection_id: str, provider: Optional[str] = None) -> Connection:
        """
        Return the connection with an access token that is valid for use.

        Args:
            connection_id: Connection to validate
            provider: Provider whose token endpoint to use (defaults to the
                connection's own provider)

        Returns:
            The connection record, re-read after a refresh

        Raises:
            NotFoundOrInactive: Connection missing or soft-deleted
            ReauthorizationRequired: Refresh needed but impossible; nothing is written
            ProviderOperationFailed: Token endpoint failed for another reason
        """
        connection = self._load_active(connection_id)
        if not connection.needs_refresh(self.buffer_seconds):
            return connection

        lock = self._locks.get(connection_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[connection_id] = lock
        async with lock:
            connection = self._load_active(connection_id)
            if not connection.needs_refresh(self.buffer_seconds):
                logger.debug(f"Connection {connection_id} was refreshed by a concurrent caller")
                return connection
            return await self._refresh(connection, provider or connection.provider)

    async def _refresh(self, connection: Connection, provider: str) -> Connection:
        if not connection.refresh_token:
            token_refreshes_total.labels(provider=provider, status="reauth_required").inc()
            raise ReauthorizationRequired(
                f"Access token for {connection.display_name} expired and no refresh token "
                f"is available, please reconnect",
                connection_id=connection.id,
                provider=provider,
            )

        parsed = ConnectionProvider.parse(provider)
        refresher = self.refreshers.get(parsed) if parsed else None
        if refresher is None:
            raise UnsupportedProvider(provider)

        try:
            grant = await refresher(connection.refresh_token)
        except ReauthorizationRequired as e:
            token_refreshes_total.labels(provider=provider, status="reauth_required").inc()
            logger.warning(f"Refresh token rejected for connection {connection.id}: {e.message}")
            raise ReauthorizationRequired(e.message, connection_id=connection.id, provider=provider) from e
        except ProviderOperationFailed as e:
            token_refreshes_total.labels(provider=provider, status="failed").inc()
            logger.error(f"Token refresh failed for connection {connection.id}: {e.provider_message}")
            raise

        expires_at = datetime.now(timezone.utc) + timedelta(seconds=grant.expires_in)
        self.store.update_connection_tokens(
            connection.id,
            access_token=grant.access_token,
            refresh_token=grant.refresh_token or connection.refresh_token,
            expires_at=expires_at,
        )
        token_refreshes_total.labels(provider=provider, status="refreshed").inc()
        logger.info(f"Refreshed {provider} token for connection {connection.id}, expires at {expires_at.isoformat()}")

        return self._load_active(connection.id)


# Global instance
token_refresh_service = TokenRefreshService()


async def ensure_valid_token(connection_id: str, provider: Optional[str] = None) -> Connection:
    """Module-level shortcut for the process-wide service."""
    return await token_refresh_service.ensure_valid_token(connection_id, provider)
