"""Organization tool connections."""

import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional, Sequence

from agentdesk.infra.error_handler import NotFoundOrInactive, ValidationError
from agentdesk.infra.secrets import mask_token
from agentdesk.models.connection import Connection, ConnectionProvider
from agentdesk.services.agent_cache import agent_cache
from agentdesk.services.store import agent_store
from agentdesk.services.tool_aliases import create_tool_display_name, generate_tool_alias

logger = logging.getLogger(__name__)


class ConnectionService:
    """Records OAuth results and manages an organization's connections."""

    def __init__(self, store=None, cache=None):
        self.store = store if store is not None else agent_store
        self.cache = cache if cache is not None else agent_cache

    def _get_owned_connection(self, organization_id: str, connection_id: str) -> Connection:
        connection = self.store.get_connection(connection_id)
        if connection is None or connection.organization_id != organization_id or not connection.is_active:
            raise NotFoundOrInactive(f"Connection {connection_id} not found or inactive")
        return connection

    def _invalidate_linked_agents(self, connection_id: str):
        for agent_id in self.store.list_agents_for_connection(connection_id):
            self.cache.invalidate(agent_id)

    def connect_tool(
        self,
        organization_id: str,
        connected_by: Optional[str],
        provider: str,
        display_name: str,
        access_token: str,
        refresh_token: Optional[str] = None,
        expires_in: Optional[int] = None,
        scopes: Sequence[str] = (),
        account_email: Optional[str] = None,
        description: Optional[str] = None,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> Connection:
        """
        Store the result of a completed OAuth exchange.

        One active connection per provider per organization.

        Raises:
            ValidationError: Unknown provider, empty name or token, or the
                provider is already connected
        """
        parsed = ConnectionProvider.parse(provider)
        if parsed is None:
            raise ValidationError(f"Unsupported provider: {provider}", field="provider")
        if not display_name or not display_name.strip():
            raise ValidationError("Display name is required", field="display_name")
        if not access_token:
            raise ValidationError("Access token is required", field="access_token")

        if self.store.find_active_connection(organization_id, parsed.value):
            raise ValidationError(f"{parsed.value} is already connected for this organization")

        expires_at = None
        if expires_in:
            expires_at = datetime.now(timezone.utc) + timedelta(seconds=expires_in)

        connection = self.store.insert_connection(Connection(
            id="",
            organization_id=organization_id,
            provider=parsed.value,
            display_name=display_name.strip(),
            access_token=access_token,
            refresh_token=refresh_token,
            expires_at=expires_at,
            scopes=list(scopes),
            account_email=account_email,
            description=description,
            metadata=metadata or {},
            connected_by=connected_by,
        ))
        logger.info(
            f"Connected {parsed.value} for org {organization_id} "
            f"(connection {connection.id}, token {mask_token(access_token)})"
        )
        return connection

    def list_available_connections(self, organization_id: str) -> List[Dict[str, Any]]:
        """Active connections with the alias a new link would get right now."""
        return [
            {
                "id": c.id,
                "provider": c.provider,
                "displayName": c.display_name,
                "toolAlias": generate_tool_alias(c.display_name),
                "toolDisplayName": create_tool_display_name(c.provider, c.display_name),
                "description": c.description,
                "accountEmail": c.account_email,
                "expiresAt": c.expires_at.isoformat() if c.expires_at else None,
                "createdAt": c.created_at.isoformat() if c.created_at else None,
            }
            for c in self.store.list_active_connections(organization_id)
        ]

    def rename_connection(self, organization_id: str, connection_id: str, display_name: str) -> Connection:
        """
        Change a connection's display name.

        Existing agent links keep their alias. Linked agents are rebuilt so
        tool descriptions and messages show the new name.
        """
        if not display_name or not display_name.strip():
            raise ValidationError("Display name is required", field="display_name")
        self._get_owned_connection(organization_id, connection_id)

        self.store.rename_connection(organization_id, connection_id, display_name.strip())
        self._invalidate_linked_agents(connection_id)
        return self.store.get_connection(connection_id)

    def disconnect_connection(self, organization_id: str, connection_id: str) -> None:
        """Soft delete; every agent linked to the connection loses the tool."""
        self._get_owned_connection(organization_id, connection_id)
        self.store.deactivate_connection(organization_id, connection_id)
        self._invalidate_linked_agents(connection_id)
        logger.info(f"Disconnected connection {connection_id} for org {organization_id}")


# Global instance
connection_service = ConnectionService()
