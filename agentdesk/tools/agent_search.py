"""Knowledge-base search restricted to one agent's linked documents."""

import logging
from typing import Any, Dict

from pydantic import BaseModel, Field, field_validator

from agentdesk.adapters.vector_index import vector_index
from agentdesk.infra.embeddings import embedding_generator
from agentdesk.services.store import agent_store
from agentdesk.services.tool_aliases import SEARCH_TOOL_ALIAS
from agentdesk.tools.base import AgentTool

logger = logging.getLogger(__name__)

SEARCH_TOOL_DESCRIPTION = "Search this agent's uploaded documents and knowledge base"


class AgentSearchInput(BaseModel):
    query: str = Field(..., description="Search query to find relevant information")
    limit: int = Field(5, ge=1, le=20, description="Maximum number of results to return")

    @field_validator("query")
    @classmethod
    def _non_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("query must not be empty")
        return value


class AgentSearchTool(AgentTool):
    """
    Semantic search over the documents linked to one agent.

    Linked document ids are read on every call, so linking a document takes
    effect without rebuilding the agent. The index itself is shared across
    agents: it is over-fetched (2x limit) and filtered down to the linked set.
    """

    provider = "agent_search"
    input_model = AgentSearchInput
    default_operation = "search"

    def __init__(self, agent_id: str, store=None, embedder=None, index=None):
        super().__init__(
            alias=SEARCH_TOOL_ALIAS,
            tool_id=f"agent-search-{agent_id}",
            description=SEARCH_TOOL_DESCRIPTION,
        )
        self.agent_id = agent_id
        self.store = store if store is not None else agent_store
        self.embedder = embedder if embedder is not None else embedding_generator
        self.index = index if index is not None else vector_index

    async def invoke(self, args: Dict[str, Any]) -> Dict[str, Any]:
        params = self.parse_input(args)

        document_ids = set(self.store.list_agent_document_ids(self.agent_id))
        if not document_ids:
            return {"results": [], "totalResults": 0}

        query_embedding = await self.embedder.generate_embedding(params.query)
        candidates = await self.index.query(query_embedding, top_k=params.limit * 2)

        results = []
        for match in candidates:
            metadata = match.get("metadata") or {}
            if metadata.get("documentId") not in document_ids:
                continue
            results.append({
                "content": metadata.get("chunkText") or "",
                "title": metadata.get("title") or "Unknown",
                "source": metadata.get("documentId"),
                "score": match.get("score") or 0,
            })
            if len(results) >= params.limit:
                break

        logger.debug(
            f"Agent {self.agent_id} search returned {len(results)} of {len(candidates)} candidates"
        )
        return {"results": results, "totalResults": len(results)}


def create_agent_search_tool(agent_id: str, **kwargs) -> AgentSearchTool:
    return AgentSearchTool(agent_id, **kwargs)
