"""Agent configuration management."""

import logging
from typing import Any, Dict, List, Optional, Sequence, Tuple

from agentdesk.infra.error_handler import NotFoundOrInactive, ValidationError
from agentdesk.models.agent import AgentConfig
from agentdesk.services.agent_cache import agent_cache
from agentdesk.services.store import agent_store
from agentdesk.services.tool_aliases import unique_tool_alias, validate_tool_alias

logger = logging.getLogger(__name__)

MIN_INSTRUCTIONS_LENGTH = 10


def _validate_name(name: str) -> str:
    if not name or not name.strip():
        raise ValidationError("Agent name is required", field="name")
    return name.strip()


def _validate_instructions(instructions: str) -> str:
    if not instructions or len(instructions.strip()) < MIN_INSTRUCTIONS_LENGTH:
        raise ValidationError(
            f"Instructions must be at least {MIN_INSTRUCTIONS_LENGTH} characters",
            field="instructions",
        )
    return instructions


class AgentService:
    """Create, update and link agents; keeps the instance cache in step."""

    def __init__(self, store=None, cache=None):
        self.store = store if store is not None else agent_store
        self.cache = cache if cache is not None else agent_cache

    def _get_owned_agent(self, organization_id: str, agent_id: str, require_active: bool = True) -> AgentConfig:
        agent = self.store.get_agent(agent_id)
        if agent is None or agent.organization_id != organization_id:
            raise NotFoundOrInactive(f"Agent {agent_id} not found")
        if require_active and not agent.is_active:
            raise NotFoundOrInactive(f"Agent {agent_id} is inactive")
        return agent

    def _resolve_links(
        self,
        organization_id: str,
        connection_ids: Sequence[str],
        existing_aliases: Optional[Dict[str, str]] = None,
    ) -> List[Tuple[str, str]]:
        """
        Pair each usable connection with its tool alias.

        Connections already linked keep their alias; new links get one
        derived from the current display name, de-duplicated within the
        agent. Unknown, foreign or inactive connection ids are skipped.
        """
        existing_aliases = existing_aliases or {}
        ordered_ids = list(dict.fromkeys(connection_ids))
        connections = {
            c.id: c for c in self.store.get_active_connections_by_ids(organization_id, ordered_ids)
        }

        skipped = [cid for cid in ordered_ids if cid not in connections]
        if skipped:
            logger.warning(f"Ignoring unknown or inactive connections for org {organization_id}: {skipped}")

        taken: List[str] = []
        links: List[Tuple[str, str]] = []
        # Frozen aliases claim their names before new links are named
        for cid in ordered_ids:
            if cid in connections and cid in existing_aliases:
                taken.append(existing_aliases[cid])
        for cid in ordered_ids:
            connection = connections.get(cid)
            if connection is None:
                continue
            alias = existing_aliases.get(cid)
            if alias is None:
                alias = unique_tool_alias(connection.display_name, connection.provider, taken)
                if not validate_tool_alias(alias):
                    raise ValidationError(
                        f"Cannot derive a tool alias for connection {connection.display_name}",
                        field="connection_ids",
                    )
                taken.append(alias)
            links.append((cid, alias))
        return links

    def create_agent(
        self,
        organization_id: str,
        created_by: Optional[str],
        name: str,
        instructions: str,
        connection_ids: Sequence[str] = (),
        document_ids: Sequence[str] = (),
    ) -> AgentConfig:
        """
        Create an agent and link its connections and documents.

        Raises:
            ValidationError: Empty name or instructions shorter than 10 characters
                or a linked connection without a valid tool alias
        """
        name = _validate_name(name)
        instructions = _validate_instructions(instructions)
        links = self._resolve_links(organization_id, connection_ids)

        agent = self.store.insert_agent(AgentConfig(
            id="",
            organization_id=organization_id,
            name=name,
            instructions=instructions,
            created_by=created_by,
        ))
        if links:
            self.store.replace_agent_connections(agent.id, links)

        for document_id in dict.fromkeys(document_ids):
            self.link_document_to_agent(organization_id, agent.id, document_id)

        logger.info(f"Created agent {agent.id} for org {organization_id} with {len(links)} connections")
        return agent

    def update_agent(
        self,
        organization_id: str,
        agent_id: str,
        name: Optional[str] = None,
        instructions: Optional[str] = None,
        connection_ids: Optional[Sequence[str]] = None,
        is_active: Optional[bool] = None,
    ) -> AgentConfig:
        """
        Update an agent. ``connection_ids`` (when given) replaces the linked set.

        Any change invalidates the cached instance: name and instructions are
        part of the assembled prompt.
        """
        self._get_owned_agent(organization_id, agent_id, require_active=False)

        self.store.update_agent(
            agent_id,
            name=_validate_name(name) if name is not None else None,
            instructions=_validate_instructions(instructions) if instructions is not None else None,
            is_active=is_active,
        )

        if connection_ids is not None:
            existing = {
                link.connection_id: link.tool_alias
                for link in self.store.list_agent_connections(agent_id)
            }
            self.store.replace_agent_connections(
                agent_id, self._resolve_links(organization_id, connection_ids, existing)
            )

        self.cache.invalidate(agent_id)
        return self.store.get_agent(agent_id)

    def deactivate_agent(self, organization_id: str, agent_id: str) -> None:
        """Soft delete."""
        self._get_owned_agent(organization_id, agent_id)
        self.store.update_agent(agent_id, is_active=False)
        self.cache.invalidate(agent_id)
        logger.info(f"Deactivated agent {agent_id}")

    def link_document_to_agent(self, organization_id: str, agent_id: str, document_id: str) -> Dict[str, Any]:
        """
        Make a document searchable by an agent. Idempotent.

        The search tool reads links on every call, so the cache is left alone.
        """
        self._get_owned_agent(organization_id, agent_id)
        document = self.store.get_document(document_id)
        if document is None or document.organization_id != organization_id:
            raise NotFoundOrInactive(f"Document {document_id} not found")

        if not self.store.link_agent_document(agent_id, document_id):
            return {"success": True, "message": "Document already linked"}
        return {"success": True, "message": "Document linked to agent"}

    def get_agent_details(self, organization_id: str, agent_id: str) -> Dict[str, Any]:
        agent = self._get_owned_agent(organization_id, agent_id)
        return {
            "agent": agent,
            "documentIds": self.store.list_agent_document_ids(agent_id),
            "connections": self.store.list_agent_connections(agent_id),
        }

    def list_agents(self, organization_id: str) -> List[AgentConfig]:
        return self.store.list_agents(organization_id)


# Global instance
agent_service = AgentService()
