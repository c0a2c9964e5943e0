"""In-memory stand-ins for persistence, embeddings and the vector index."""

import uuid
from dataclasses import replace
from datetime import datetime, timezone
from typing import Dict, List, Optional, Sequence, Tuple

from agentdesk.models.agent import AgentConfig, AgentConnectionLink, Document
from agentdesk.models.connection import Connection


class InMemoryStore:
    """Same methods as AgentStore; returns copies like a database would."""

    def __init__(self):
        self.connections: Dict[str, Connection] = {}
        self.agents: Dict[str, AgentConfig] = {}
        self.documents: Dict[str, Document] = {}
        self.links: List[AgentConnectionLink] = []
        self.agent_documents: List[Tuple[str, str]] = []
        self.token_updates: List[dict] = []

    # Connections

    def add_connection(self, **kwargs) -> Connection:
        kwargs.setdefault("id", str(uuid.uuid4()))
        kwargs.setdefault("organization_id", "org-1")
        kwargs.setdefault("access_token", "access-token")
        connection = Connection(**kwargs)
        self.connections[connection.id] = connection
        return connection

    def get_connection(self, connection_id: str) -> Optional[Connection]:
        connection = self.connections.get(connection_id)
        return replace(connection) if connection else None

    def insert_connection(self, connection: Connection) -> Connection:
        connection.id = connection.id or str(uuid.uuid4())
        connection.created_at = connection.created_at or datetime.now(timezone.utc)
        self.connections[connection.id] = replace(connection)
        return connection

    def update_connection_tokens(self, connection_id, access_token, refresh_token, expires_at) -> None:
        self.token_updates.append({
            "connection_id": connection_id,
            "access_token": access_token,
            "refresh_token": refresh_token,
            "expires_at": expires_at,
        })
        connection = self.connections[connection_id]
        connection.access_token = access_token
        connection.refresh_token = refresh_token
        connection.expires_at = expires_at

    def rename_connection(self, organization_id: str, connection_id: str, display_name: str) -> bool:
        connection = self.connections.get(connection_id)
        if not connection or connection.organization_id != organization_id or not connection.is_active:
            return False
        connection.display_name = display_name
        return True

    def deactivate_connection(self, organization_id: str, connection_id: str) -> bool:
        connection = self.connections.get(connection_id)
        if not connection or connection.organization_id != organization_id or not connection.is_active:
            return False
        connection.is_active = False
        return True

    def list_active_connections(self, organization_id: str) -> List[Connection]:
        return [
            replace(c) for c in self.connections.values()
            if c.organization_id == organization_id and c.is_active
        ]

    def find_active_connection(self, organization_id: str, provider: str) -> Optional[Connection]:
        for c in self.list_active_connections(organization_id):
            if c.provider == provider:
                return c
        return None

    def get_active_connections_by_ids(self, organization_id: str, connection_ids: Sequence[str]) -> List[Connection]:
        return [c for c in self.list_active_connections(organization_id) if c.id in connection_ids]

    # Agents

    def add_agent(self, **kwargs) -> AgentConfig:
        kwargs.setdefault("id", str(uuid.uuid4()))
        kwargs.setdefault("organization_id", "org-1")
        kwargs.setdefault("name", "Sales Assistant")
        kwargs.setdefault("instructions", "You help the sales team book demos.")
        agent = AgentConfig(**kwargs)
        self.agents[agent.id] = agent
        return agent

    def get_agent(self, agent_id: str) -> Optional[AgentConfig]:
        agent = self.agents.get(agent_id)
        return replace(agent) if agent else None

    def insert_agent(self, agent: AgentConfig) -> AgentConfig:
        agent.id = agent.id or str(uuid.uuid4())
        self.agents[agent.id] = replace(agent)
        return agent

    def update_agent(self, agent_id, name=None, instructions=None, is_active=None) -> None:
        agent = self.agents[agent_id]
        if name is not None:
            agent.name = name
        if instructions is not None:
            agent.instructions = instructions
        if is_active is not None:
            agent.is_active = is_active

    def list_agents(self, organization_id: str) -> List[AgentConfig]:
        return [
            replace(a) for a in self.agents.values()
            if a.organization_id == organization_id and a.is_active
        ]

    # Links

    def replace_agent_connections(self, agent_id: str, links: Sequence[Tuple[str, str]]) -> None:
        self.links = [link for link in self.links if link.agent_id != agent_id]
        for connection_id, tool_alias in links:
            self.add_link(agent_id, connection_id, tool_alias)

    def add_link(self, agent_id: str, connection_id: str, tool_alias: str):
        self.links.append(AgentConnectionLink(
            id=str(uuid.uuid4()),
            agent_id=agent_id,
            connection_id=connection_id,
            tool_alias=tool_alias,
            provider="",
            display_name="",
        ))

    def list_agent_connections(self, agent_id: str) -> List[AgentConnectionLink]:
        joined = []
        for link in self.links:
            if link.agent_id != agent_id:
                continue
            connection = self.connections[link.connection_id]
            joined.append(replace(
                link,
                provider=connection.provider,
                display_name=connection.display_name,
                connection_active=connection.is_active,
            ))
        return joined

    def list_agents_for_connection(self, connection_id: str) -> List[str]:
        return sorted({link.agent_id for link in self.links if link.connection_id == connection_id})

    def link_agent_document(self, agent_id: str, document_id: str) -> bool:
        if (agent_id, document_id) in self.agent_documents:
            return False
        self.agent_documents.append((agent_id, document_id))
        return True

    def list_agent_document_ids(self, agent_id: str) -> List[str]:
        return [doc_id for a_id, doc_id in self.agent_documents if a_id == agent_id]

    # Documents

    def insert_document(self, document: Document) -> Document:
        document.id = document.id or str(uuid.uuid4())
        self.documents[document.id] = replace(document)
        return document

    def get_document(self, document_id: str) -> Optional[Document]:
        document = self.documents.get(document_id)
        return replace(document) if document else None


class FakeEmbeddingGenerator:
    """Deterministic vectors; records what was embedded."""

    def __init__(self, dim: int = 8):
        self.dim = dim
        self.queries: List[str] = []
        self.batches: List[List[str]] = []

    def _vector(self, text: str) -> List[float]:
        return [float((len(text) + i) % 7) for i in range(self.dim)]

    async def generate_embedding(self, text: str) -> List[float]:
        self.queries.append(text)
        return self._vector(text)

    async def generate_embeddings_batch(self, texts: List[str]) -> List[List[float]]:
        self.batches.append(list(texts))
        return [self._vector(t) for t in texts]


class FakeVectorIndex:
    """Returns canned matches for queries; keeps upserted records."""

    def __init__(self, matches: Optional[List[dict]] = None):
        self.matches = matches or []
        self.records: List[dict] = []
        self.queries: List[dict] = []

    async def upsert(self, records: List[dict]) -> int:
        self.records.extend(records)
        return len(records)

    async def query(self, vector, top_k: int) -> List[dict]:
        self.queries.append({"vector": vector, "top_k": top_k})
        return self.matches[:top_k]
