"""Persistence for connections, agents, links and documents."""

import json
import logging
import uuid
from datetime import datetime, timezone
from typing import List, Optional, Sequence, Tuple

from sqlalchemy import text

from agentdesk.infra.database import get_db_session
from agentdesk.models.agent import AgentConfig, AgentConnectionLink, Document
from agentdesk.models.connection import Connection

logger = logging.getLogger(__name__)

_CONNECTION_COLUMNS = """
    id, organization_id, provider, display_name, description, account_email,
    access_token, refresh_token, expires_at, scopes, metadata, connected_by,
    is_active, created_at, updated_at
"""

_AGENT_COLUMNS = """
    id, organization_id, name, instructions, is_active, created_by,
    created_at, updated_at
"""


def _row_to_connection(row) -> Connection:
    return Connection(
        id=str(row.id),
        organization_id=str(row.organization_id),
        provider=row.provider,
        display_name=row.display_name,
        description=row.description,
        account_email=row.account_email,
        access_token=row.access_token,
        refresh_token=row.refresh_token,
        expires_at=row.expires_at,
        scopes=list(row.scopes or []),
        metadata=row.metadata or {},
        connected_by=row.connected_by,
        is_active=row.is_active,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


def _row_to_agent(row) -> AgentConfig:
    return AgentConfig(
        id=str(row.id),
        organization_id=str(row.organization_id),
        name=row.name,
        instructions=row.instructions,
        is_active=row.is_active,
        created_by=row.created_by,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


class AgentStore:
    """SQL-backed store. Every statement runs in its own session/transaction."""

    # Connections

    def get_connection(self, connection_id: str) -> Optional[Connection]:
        """Load a connection regardless of its active flag."""
        with get_db_session() as session:
            row = session.execute(
                text(f"SELECT {_CONNECTION_COLUMNS} FROM tool_connections WHERE id = :id"),
                {"id": connection_id},
            ).fetchone()
        return _row_to_connection(row) if row else None

    def insert_connection(self, connection: Connection) -> Connection:
        now = datetime.now(timezone.utc)
        connection.id = connection.id or str(uuid.uuid4())
        connection.created_at = connection.created_at or now
        connection.updated_at = now
        with get_db_session(connection.organization_id) as session:
            session.execute(
                text("""
                    INSERT INTO tool_connections (
                        id, organization_id, provider, display_name, description,
                        account_email, access_token, refresh_token, expires_at,
                        scopes, metadata, connected_by, is_active, created_at, updated_at
                    ) VALUES (
                        :id, :organization_id, :provider, :display_name, :description,
                        :account_email, :access_token, :refresh_token, :expires_at,
                        :scopes, CAST(:metadata AS jsonb), :connected_by, :is_active,
                        :created_at, :updated_at
                    )
                """),
                {
                    "id": connection.id,
                    "organization_id": connection.organization_id,
                    "provider": connection.provider,
                    "display_name": connection.display_name,
                    "description": connection.description,
                    "account_email": connection.account_email,
                    "access_token": connection.access_token,
                    "refresh_token": connection.refresh_token,
                    "expires_at": connection.expires_at,
                    "scopes": list(connection.scopes),
                    "metadata": json.dumps(connection.metadata or {}),
                    "connected_by": connection.connected_by,
                    "is_active": connection.is_active,
                    "created_at": connection.created_at,
                    "updated_at": connection.updated_at,
                },
            )
        return connection

    def update_connection_tokens(
        self,
        connection_id: str,
        access_token: str,
        refresh_token: Optional[str],
        expires_at: datetime,
    ) -> None:
        """Persist a refreshed credential triple in a single statement."""
        with get_db_session() as session:
            session.execute(
                text("""
                    UPDATE tool_connections
                    SET access_token = :access_token,
                        refresh_token = :refresh_token,
                        expires_at = :expires_at,
                        updated_at = NOW()
                    WHERE id = :id
                """),
                {
                    "id": connection_id,
                    "access_token": access_token,
                    "refresh_token": refresh_token,
                    "expires_at": expires_at,
                },
            )

    def rename_connection(self, organization_id: str, connection_id: str, display_name: str) -> bool:
        with get_db_session(organization_id) as session:
            result = session.execute(
                text("""
                    UPDATE tool_connections
                    SET display_name = :display_name, updated_at = NOW()
                    WHERE id = :id AND organization_id = :organization_id AND is_active = true
                """),
                {"id": connection_id, "organization_id": organization_id, "display_name": display_name},
            )
            return result.rowcount > 0

    def deactivate_connection(self, organization_id: str, connection_id: str) -> bool:
        with get_db_session(organization_id) as session:
            result = session.execute(
                text("""
                    UPDATE tool_connections
                    SET is_active = false, updated_at = NOW()
                    WHERE id = :id AND organization_id = :organization_id AND is_active = true
                """),
                {"id": connection_id, "organization_id": organization_id},
            )
            return result.rowcount > 0

    def list_active_connections(self, organization_id: str) -> List[Connection]:
        with get_db_session(organization_id) as session:
            rows = session.execute(
                text(f"""
                    SELECT {_CONNECTION_COLUMNS} FROM tool_connections
                    WHERE organization_id = :organization_id AND is_active = true
                    ORDER BY created_at DESC
                """),
                {"organization_id": organization_id},
            ).fetchall()
        return [_row_to_connection(row) for row in rows]

    def find_active_connection(self, organization_id: str, provider: str) -> Optional[Connection]:
        with get_db_session(organization_id) as session:
            row = session.execute(
                text(f"""
                    SELECT {_CONNECTION_COLUMNS} FROM tool_connections
                    WHERE organization_id = :organization_id
                      AND provider = :provider
                      AND is_active = true
                    LIMIT 1
                """),
                {"organization_id": organization_id, "provider": provider},
            ).fetchone()
        return _row_to_connection(row) if row else None

    def get_active_connections_by_ids(
        self, organization_id: str, connection_ids: Sequence[str]
    ) -> List[Connection]:
        """Active connections of the organization among ``connection_ids``."""
        if not connection_ids:
            return []
        with get_db_session(organization_id) as session:
            rows = session.execute(
                text(f"""
                    SELECT {_CONNECTION_COLUMNS} FROM tool_connections
                    WHERE organization_id = :organization_id
                      AND is_active = true
                      AND id = ANY(:ids)
                """),
                {"organization_id": organization_id, "ids": list(connection_ids)},
            ).fetchall()
        return [_row_to_connection(row) for row in rows]

    # Agents

    def get_agent(self, agent_id: str) -> Optional[AgentConfig]:
        with get_db_session() as session:
            row = session.execute(
                text(f"SELECT {_AGENT_COLUMNS} FROM agents WHERE id = :id"),
                {"id": agent_id},
            ).fetchone()
        return _row_to_agent(row) if row else None

    def insert_agent(self, agent: AgentConfig) -> AgentConfig:
        now = datetime.now(timezone.utc)
        agent.id = agent.id or str(uuid.uuid4())
        agent.created_at = agent.created_at or now
        agent.updated_at = now
        with get_db_session(agent.organization_id) as session:
            session.execute(
                text("""
                    INSERT INTO agents (
                        id, organization_id, name, instructions, is_active,
                        created_by, created_at, updated_at
                    ) VALUES (
                        :id, :organization_id, :name, :instructions, :is_active,
                        :created_by, :created_at, :updated_at
                    )
                """),
                {
                    "id": agent.id,
                    "organization_id": agent.organization_id,
                    "name": agent.name,
                    "instructions": agent.instructions,
                    "is_active": agent.is_active,
                    "created_by": agent.created_by,
                    "created_at": agent.created_at,
                    "updated_at": agent.updated_at,
                },
            )
        return agent

    def update_agent(
        self,
        agent_id: str,
        name: Optional[str] = None,
        instructions: Optional[str] = None,
        is_active: Optional[bool] = None,
    ) -> None:
        """Update the given fields; ``None`` leaves a field unchanged."""
        with get_db_session() as session:
            session.execute(
                text("""
                    UPDATE agents
                    SET name = COALESCE(:name, name),
                        instructions = COALESCE(:instructions, instructions),
                        is_active = COALESCE(:is_active, is_active),
                        updated_at = NOW()
                    WHERE id = :id
                """),
                {"id": agent_id, "name": name, "instructions": instructions, "is_active": is_active},
            )

    def list_agents(self, organization_id: str) -> List[AgentConfig]:
        with get_db_session(organization_id) as session:
            rows = session.execute(
                text(f"""
                    SELECT {_AGENT_COLUMNS} FROM agents
                    WHERE organization_id = :organization_id AND is_active = true
                    ORDER BY created_at DESC
                """),
                {"organization_id": organization_id},
            ).fetchall()
        return [_row_to_agent(row) for row in rows]

    # Agent links

    def replace_agent_connections(self, agent_id: str, links: Sequence[Tuple[str, str]]) -> None:
        """Replace an agent's connection links with ``(connection_id, tool_alias)`` pairs."""
        with get_db_session() as session:
            session.execute(
                text("DELETE FROM agent_connections WHERE agent_id = :agent_id"),
                {"agent_id": agent_id},
            )
            for connection_id, tool_alias in links:
                session.execute(
                    text("""
                        INSERT INTO agent_connections (id, agent_id, connection_id, tool_alias, created_at)
                        VALUES (:id, :agent_id, :connection_id, :tool_alias, NOW())
                    """),
                    {
                        "id": str(uuid.uuid4()),
                        "agent_id": agent_id,
                        "connection_id": connection_id,
                        "tool_alias": tool_alias,
                    },
                )

    def list_agent_connections(self, agent_id: str) -> List[AgentConnectionLink]:
        """Links of an agent joined with each connection's current provider, name and flag."""
        with get_db_session() as session:
            rows = session.execute(
                text("""
                    SELECT ac.id, ac.agent_id, ac.connection_id, ac.tool_alias, ac.created_at,
                           tc.provider, tc.display_name, tc.is_active
                    FROM agent_connections ac
                    JOIN tool_connections tc ON tc.id = ac.connection_id
                    WHERE ac.agent_id = :agent_id
                    ORDER BY ac.created_at, ac.id
                """),
                {"agent_id": agent_id},
            ).fetchall()
        return [
            AgentConnectionLink(
                id=str(row.id),
                agent_id=str(row.agent_id),
                connection_id=str(row.connection_id),
                tool_alias=row.tool_alias,
                provider=row.provider,
                display_name=row.display_name,
                connection_active=row.is_active,
                created_at=row.created_at,
            )
            for row in rows
        ]

    def list_agents_for_connection(self, connection_id: str) -> List[str]:
        with get_db_session() as session:
            rows = session.execute(
                text("SELECT DISTINCT agent_id FROM agent_connections WHERE connection_id = :connection_id"),
                {"connection_id": connection_id},
            ).fetchall()
        return [str(row.agent_id) for row in rows]

    def link_agent_document(self, agent_id: str, document_id: str) -> bool:
        """Link a document to an agent. Returns False if it was already linked."""
        with get_db_session() as session:
            result = session.execute(
                text("""
                    INSERT INTO agent_documents (id, agent_id, document_id, created_at)
                    VALUES (:id, :agent_id, :document_id, NOW())
                    ON CONFLICT (agent_id, document_id) DO NOTHING
                """),
                {"id": str(uuid.uuid4()), "agent_id": agent_id, "document_id": document_id},
            )
            return result.rowcount > 0

    def list_agent_document_ids(self, agent_id: str) -> List[str]:
        with get_db_session() as session:
            rows = session.execute(
                text("SELECT document_id FROM agent_documents WHERE agent_id = :agent_id"),
                {"agent_id": agent_id},
            ).fetchall()
        return [str(row.document_id) for row in rows]

    # Documents

    def insert_document(self, document: Document) -> Document:
        document.id = document.id or str(uuid.uuid4())
        document.created_at = document.created_at or datetime.now(timezone.utc)
        with get_db_session(document.organization_id) as session:
            session.execute(
                text("""
                    INSERT INTO documents (
                        id, organization_id, title, content_type, size_bytes,
                        storage_path, uploaded_by, created_at
                    ) VALUES (
                        :id, :organization_id, :title, :content_type, :size_bytes,
                        :storage_path, :uploaded_by, :created_at
                    )
                """),
                {
                    "id": document.id,
                    "organization_id": document.organization_id,
                    "title": document.title,
                    "content_type": document.content_type,
                    "size_bytes": document.size_bytes,
                    "storage_path": document.storage_path,
                    "uploaded_by": document.uploaded_by,
                    "created_at": document.created_at,
                },
            )
        return document

    def get_document(self, document_id: str) -> Optional[Document]:
        with get_db_session() as session:
            row = session.execute(
                text("""
                    SELECT id, organization_id, title, content_type, size_bytes,
                           storage_path, uploaded_by, created_at
                    FROM documents WHERE id = :id
                """),
                {"id": document_id},
            ).fetchone()
        if not row:
            return None
        return Document(
            id=str(row.id),
            organization_id=str(row.organization_id),
            title=row.title,
            content_type=row.content_type,
            size_bytes=row.size_bytes,
            storage_path=row.storage_path,
            uploaded_by=row.uploaded_by,
            created_at=row.created_at,
        )


# Global instance
agent_store = AgentStore()
