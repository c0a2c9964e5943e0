"""Builds runtime agents from persisted configuration."""

import logging
import time
from typing import Dict

from agentdesk.adapters.vector_index import vector_index
from agentdesk.infra.config import config
from agentdesk.infra.embeddings import embedding_generator
from agentdesk.infra.error_handler import (
    NotFoundOrInactive,
    ProviderOperationFailed,
    ReauthorizationRequired,
    UnsupportedProvider,
)
from agentdesk.infra.metrics import agent_builds_total, agent_build_duration
from agentdesk.models.agent import RuntimeAgent
from agentdesk.services.store import agent_store
from agentdesk.services.token_refresh import token_refresh_service
from agentdesk.services.tool_aliases import SEARCH_TOOL_ALIAS
from agentdesk.services.tool_registry import create_connection_tool
from agentdesk.tools.agent_search import create_agent_search_tool
from agentdesk.tools.base import AgentTool

logger = logging.getLogger(__name__)

GREETING_SENTINEL = "__INITIAL_GREETING__"

GREETING_INSTRUCTIONS = (
    f'\n\nIMPORTANT: If you receive the message "{GREETING_SENTINEL}", respond with a '
    "personalized greeting that introduces yourself based on your role and capabilities. "
    "Don't mention the special message, just provide a natural greeting that explains "
    "what you can help with."
)


class AgentAssembler:
    """
    Turns an agent configuration into a RuntimeAgent.

    The document search tool is always present under ``search_docs``. Each
    active linked connection adds one provider tool under the link's frozen
    alias; connections with an unknown provider are logged and left out.
    The assembler does not cache; see AgentInstanceCache.
    """

    def __init__(self, store=None, token_service=None, embedder=None, index=None, model: str = None):
        self.store = store if store is not None else agent_store
        self.token_service = token_service if token_service is not None else token_refresh_service
        self.embedder = embedder if embedder is not None else embedding_generator
        self.index = index if index is not None else vector_index
        self.model = model or config.AGENT_MODEL

    async def build(self, agent_id: str) -> RuntimeAgent:
        """
        Assemble the runtime agent for ``agent_id``.

        Raises:
            NotFoundOrInactive: Agent missing or deactivated
        """
        start_time = time.time()
        agent = self.store.get_agent(agent_id)
        if agent is None or not agent.is_active:
            agent_builds_total.labels(status="not_found").inc()
            raise NotFoundOrInactive(f"Agent {agent_id} not found or inactive")

        tools: Dict[str, AgentTool] = {
            SEARCH_TOOL_ALIAS: create_agent_search_tool(
                agent_id, store=self.store, embedder=self.embedder, index=self.index
            ),
        }

        for link in self.store.list_agent_connections(agent_id):
            if not link.connection_active:
                logger.info(f"Skipping inactive connection {link.connection_id} for agent {agent_id}")
                continue
            if link.tool_alias == SEARCH_TOOL_ALIAS:
                logger.warning(
                    f"Connection {link.connection_id} on agent {agent_id} uses reserved alias "
                    f"'{SEARCH_TOOL_ALIAS}', skipping"
                )
                continue

            try:
                tool = create_connection_tool(link, token_service=self.token_service)
            except UnsupportedProvider as e:
                logger.warning(f"{e.message} (connection {link.connection_id}, agent {agent_id})")
                continue

            try:
                await self.token_service.ensure_valid_token(link.connection_id, link.provider)
            except NotFoundOrInactive:
                logger.info(f"Connection {link.connection_id} disappeared while building agent {agent_id}")
                continue
            except (ReauthorizationRequired, ProviderOperationFailed) as e:
                # Tool stays bound; each call re-validates and reports the failure to the model
                logger.warning(f"Connection {link.connection_id} credential not usable yet: {e.message}")

            if link.tool_alias in tools:
                logger.warning(
                    f"Duplicate tool alias '{link.tool_alias}' on agent {agent_id}, "
                    f"connection {link.connection_id} replaces the earlier link"
                )
            tools[link.tool_alias] = tool

        runtime_agent = RuntimeAgent(
            agent_id=agent.id,
            organization_id=agent.organization_id,
            name=agent.name,
            model=self.model,
            instructions=agent.instructions + GREETING_INSTRUCTIONS,
            description=f"Custom agent: {agent.name}",
            tools=tools,
        )

        agent_builds_total.labels(status="success").inc()
        agent_build_duration.observe(time.time() - start_time)
        logger.info(f"Built agent {agent_id} with tools {runtime_agent.tool_names}")
        return runtime_agent


# Global instance
agent_assembler = AgentAssembler()
