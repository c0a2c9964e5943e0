"""Tests for the per-agent document search tool."""

import pytest

from agentdesk.infra.error_handler import ValidationError
from agentdesk.tools.agent_search import AgentSearchTool
from tests.fakes import FakeVectorIndex


def _match(document_id, text, score=0.9, title="Pricing Guide"):
    return {
        "id": f"{document_id}_0",
        "score": score,
        "metadata": {"documentId": document_id, "title": title, "chunkText": text, "chunkIndex": 0},
    }


class TestAgentSearchTool:
    """Test AgentSearchTool."""

    @pytest.fixture
    def tool(self, store, embedder, index):
        return AgentSearchTool("agent-1", store=store, embedder=embedder, index=index)

    def test_definition(self, tool):
        definition = tool.definition

        assert definition.name == "search_docs"
        assert definition.id == "agent-search-agent-1"
        assert definition.description == "Search this agent's uploaded documents and knowledge base"
        assert definition.parameters_schema["required"] == ["query"]

    @pytest.mark.asyncio
    async def test_no_linked_documents(self, tool, embedder, index):
        result = await tool.invoke({"query": "pricing"})

        assert result == {"results": [], "totalResults": 0}
        assert embedder.queries == []
        assert index.queries == []

    @pytest.mark.asyncio
    async def test_results_limited_to_linked_documents(self, store, embedder):
        store.link_agent_document("agent-1", "doc-a")
        index = FakeVectorIndex([
            _match("doc-a", "Enterprise plan costs $99", score=0.95),
            _match("doc-other", "Another tenant's secret", score=0.94),
            _match("doc-a", "Starter plan is free", score=0.80),
        ])
        tool = AgentSearchTool("agent-1", store=store, embedder=embedder, index=index)

        result = await tool.invoke({"query": "pricing", "limit": 5})

        assert result["totalResults"] == 2
        assert [r["source"] for r in result["results"]] == ["doc-a", "doc-a"]
        assert result["results"][0] == {
            "content": "Enterprise plan costs $99",
            "title": "Pricing Guide",
            "source": "doc-a",
            "score": 0.95,
        }
        assert embedder.queries == ["pricing"]
        assert index.queries[0]["top_k"] == 10

    @pytest.mark.asyncio
    async def test_truncated_to_limit(self, store, embedder):
        store.link_agent_document("agent-1", "doc-a")
        index = FakeVectorIndex([_match("doc-a", f"chunk {i}") for i in range(6)])
        tool = AgentSearchTool("agent-1", store=store, embedder=embedder, index=index)

        result = await tool.invoke({"query": "pricing", "limit": 2})

        assert result["totalResults"] == 2
        assert index.queries[0]["top_k"] == 4

    @pytest.mark.asyncio
    async def test_missing_metadata_defaults(self, store, embedder):
        store.link_agent_document("agent-1", "doc-a")
        index = FakeVectorIndex([{"id": "doc-a_0", "score": None, "metadata": {"documentId": "doc-a"}}])
        tool = AgentSearchTool("agent-1", store=store, embedder=embedder, index=index)

        result = await tool.invoke({"query": "pricing"})

        assert result["results"][0] == {"content": "", "title": "Unknown", "source": "doc-a", "score": 0}

    @pytest.mark.asyncio
    async def test_linking_takes_effect_without_rebuild(self, tool, store, index):
        index.matches = [_match("doc-b", "Refunds within 30 days")]

        assert (await tool.invoke({"query": "refunds"}))["totalResults"] == 0
        store.link_agent_document("agent-1", "doc-b")
        assert (await tool.invoke({"query": "refunds"}))["totalResults"] == 1

    @pytest.mark.asyncio
    async def test_invalid_input(self, tool):
        with pytest.raises(ValidationError):
            await tool.invoke({"query": "   "})
        with pytest.raises(ValidationError):
            await tool.invoke({"query": "pricing", "limit": 21})
        with pytest.raises(ValidationError):
            await tool.invoke({})
