"""Process-wide cache of assembled agents."""

import logging
from typing import Dict, Optional

from agentdesk.infra.metrics import agent_cache_requests_total, agent_cache_invalidations_total
from agentdesk.models.agent import RuntimeAgent
from agentdesk.services.agent_assembler import agent_assembler

logger = logging.getLogger(__name__)


class AgentInstanceCache:
    """
    agent id -> RuntimeAgent, built on first use.

    No TTL: entries live until invalidated by a configuration change.
    Two concurrent misses for the same agent may both build; the last one
    stored wins.
    """

    def __init__(self, assembler=None):
        self.assembler = assembler if assembler is not None else agent_assembler
        self._agents: Dict[str, RuntimeAgent] = {}

    async def get(self, agent_id: str) -> RuntimeAgent:
        cached = self._agents.get(agent_id)
        if cached is not None:
            agent_cache_requests_total.labels(result="hit").inc()
            return cached

        agent_cache_requests_total.labels(result="miss").inc()
        runtime_agent = await self.assembler.build(agent_id)
        self._agents[agent_id] = runtime_agent
        return runtime_agent

    def peek(self, agent_id: str) -> Optional[RuntimeAgent]:
        return self._agents.get(agent_id)

    def invalidate(self, agent_id: str) -> bool:
        """Drop one agent. Returns True if it was cached."""
        removed = self._agents.pop(agent_id, None) is not None
        agent_cache_invalidations_total.inc()
        if removed:
            logger.info(f"Invalidated cached agent {agent_id}")
        return removed

    def clear(self):
        self._agents.clear()

    def __len__(self) -> int:
        return len(self._agents)

    def __contains__(self, agent_id: str) -> bool:
        return agent_id in self._agents


# Global instance
agent_cache = AgentInstanceCache()
