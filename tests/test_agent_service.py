"""Tests for agent and connection management."""

from unittest.mock import MagicMock, patch

import pytest

from agentdesk.infra.error_handler import NotFoundOrInactive, ValidationError
from agentdesk.models.agent import Document
from agentdesk.services.agent_assembler import AgentAssembler
from agentdesk.services.agent_cache import AgentInstanceCache
from agentdesk.services.agent_service import AgentService
from agentdesk.services.connection_service import ConnectionService

INSTRUCTIONS = "You schedule demos for the sales team."


def _add_document(store, document_id="doc-1", organization_id="org-1"):
    return store.insert_document(Document(
        id=document_id,
        organization_id=organization_id,
        title="Pricing Guide",
        content_type="text/plain",
        size_bytes=120,
    ))


class TestAgentService:
    """Test AgentService."""

    @pytest.fixture
    def cache(self):
        return MagicMock()

    @pytest.fixture
    def service(self, store, cache):
        return AgentService(store=store, cache=cache)

    def test_create_agent_links_connections(self, service, store):
        calendar = store.add_connection(provider="google_calendar", display_name="CEO Calendar")
        crm = store.add_connection(provider="hubspot", display_name="Sales Team's HubSpot!")

        agent = service.create_agent("org-1", "user-1", "Demo Booker", INSTRUCTIONS, [calendar.id, crm.id])

        links = {link.connection_id: link.tool_alias for link in store.list_agent_connections(agent.id)}
        assert links == {calendar.id: "ceo_calendar", crm.id: "sales_teams_hubspot"}
        assert store.get_agent(agent.id).created_by == "user-1"

    def test_create_agent_skips_foreign_and_inactive_connections(self, service, store):
        foreign = store.add_connection(organization_id="org-2", provider="hubspot", display_name="CRM")
        inactive = store.add_connection(provider="hubspot", display_name="Old CRM", is_active=False)

        agent = service.create_agent("org-1", None, "Demo Booker", INSTRUCTIONS, [foreign.id, inactive.id, "nope"])

        assert store.list_agent_connections(agent.id) == []

    def test_create_agent_validation(self, service):
        with pytest.raises(ValidationError) as exc_info:
            service.create_agent("org-1", None, "  ", INSTRUCTIONS)
        assert exc_info.value.field == "name"

        with pytest.raises(ValidationError) as exc_info:
            service.create_agent("org-1", None, "Demo Booker", "Too short")
        assert exc_info.value.field == "instructions"

    def test_aliases_unique_within_agent(self, service, store):
        first = store.add_connection(provider="google_calendar", display_name="Calendar")
        second = store.add_connection(organization_id="org-1", provider="hubspot", display_name="Calendar")

        agent = service.create_agent("org-1", None, "Demo Booker", INSTRUCTIONS, [first.id, second.id])

        aliases = [link.tool_alias for link in store.list_agent_connections(agent.id)]
        assert aliases == ["calendar", "calendar_2"]

    def test_invalid_alias_blocks_linking(self, service, store):
        calendar = store.add_connection(provider="google_calendar", display_name="CEO Calendar")

        with patch("agentdesk.services.agent_service.unique_tool_alias", return_value="CEO-Calendar"):
            with pytest.raises(ValidationError) as exc_info:
                service.create_agent("org-1", None, "Demo Booker", INSTRUCTIONS, [calendar.id])

        assert exc_info.value.field == "connection_ids"
        assert service.list_agents("org-1") == []
        assert store.links == []

    def test_create_agent_links_documents(self, service, store):
        _add_document(store)

        agent = service.create_agent("org-1", None, "Demo Booker", INSTRUCTIONS, document_ids=["doc-1", "doc-1"])

        assert store.list_agent_document_ids(agent.id) == ["doc-1"]

    def test_update_keeps_existing_aliases(self, service, store, cache):
        calendar = store.add_connection(provider="google_calendar", display_name="CEO Calendar")
        agent = service.create_agent("org-1", None, "Demo Booker", INSTRUCTIONS, [calendar.id])
        store.connections[calendar.id].display_name = "Executive Calendar"
        crm = store.add_connection(provider="hubspot", display_name="Sales CRM")

        service.update_agent("org-1", agent.id, connection_ids=[calendar.id, crm.id])

        links = {link.connection_id: link.tool_alias for link in store.list_agent_connections(agent.id)}
        assert links == {calendar.id: "ceo_calendar", crm.id: "sales_crm"}
        cache.invalidate.assert_called_with(agent.id)

    def test_update_name_invalidates_cache(self, service, store, cache):
        agent = store.add_agent()

        updated = service.update_agent("org-1", agent.id, name="Renamed Bot")

        assert updated.name == "Renamed Bot"
        cache.invalidate.assert_called_once_with(agent.id)

    def test_update_other_organization_agent(self, service, store):
        agent = store.add_agent(organization_id="org-2")

        with pytest.raises(NotFoundOrInactive):
            service.update_agent("org-1", agent.id, name="Mine now")

    def test_deactivate_agent(self, service, store, cache):
        agent = store.add_agent()

        service.deactivate_agent("org-1", agent.id)

        assert store.get_agent(agent.id).is_active is False
        cache.invalidate.assert_called_once_with(agent.id)
        assert service.list_agents("org-1") == []

    def test_link_document_is_idempotent(self, service, store, cache):
        agent = store.add_agent()
        _add_document(store)

        first = service.link_document_to_agent("org-1", agent.id, "doc-1")
        second = service.link_document_to_agent("org-1", agent.id, "doc-1")

        assert first == {"success": True, "message": "Document linked to agent"}
        assert second == {"success": True, "message": "Document already linked"}
        assert store.list_agent_document_ids(agent.id) == ["doc-1"]
        cache.invalidate.assert_not_called()

    def test_link_document_from_other_organization(self, service, store):
        agent = store.add_agent()
        _add_document(store, organization_id="org-2")

        with pytest.raises(NotFoundOrInactive):
            service.link_document_to_agent("org-1", agent.id, "doc-1")

    def test_get_agent_details(self, service, store):
        calendar = store.add_connection(provider="google_calendar", display_name="CEO Calendar")
        _add_document(store)
        agent = service.create_agent("org-1", None, "Demo Booker", INSTRUCTIONS, [calendar.id], ["doc-1"])

        details = service.get_agent_details("org-1", agent.id)

        assert details["agent"].name == "Demo Booker"
        assert details["documentIds"] == ["doc-1"]
        assert details["connections"][0].tool_alias == "ceo_calendar"


class TestConnectionService:
    """Test ConnectionService."""

    @pytest.fixture
    def cache(self):
        return MagicMock()

    @pytest.fixture
    def service(self, store, cache):
        return ConnectionService(store=store, cache=cache)

    def test_connect_tool(self, service, store):
        connection = service.connect_tool(
            "org-1", "user-1", "google_calendar", " CEO Calendar ", "ya29.token",
            refresh_token="rt", expires_in=3600, scopes=["calendar"],
        )

        stored = store.get_connection(connection.id)
        assert stored.display_name == "CEO Calendar"
        assert stored.refresh_token == "rt"
        assert stored.expires_at is not None
        assert stored.scopes == ["calendar"]

    def test_connect_tool_validation(self, service):
        with pytest.raises(ValidationError):
            service.connect_tool("org-1", None, "salesforce", "CRM", "token")
        with pytest.raises(ValidationError):
            service.connect_tool("org-1", None, "hubspot", "", "token")
        with pytest.raises(ValidationError):
            service.connect_tool("org-1", None, "hubspot", "CRM", "")

    def test_one_active_connection_per_provider(self, service):
        service.connect_tool("org-1", None, "hubspot", "Sales CRM", "token")

        with pytest.raises(ValidationError) as exc_info:
            service.connect_tool("org-1", None, "hubspot", "Support CRM", "token")

        assert exc_info.value.message == "hubspot is already connected for this organization"
        # Other organizations are unaffected
        service.connect_tool("org-2", None, "hubspot", "Sales CRM", "token")

    def test_list_available_connections(self, service, store):
        store.add_connection(provider="google_calendar", display_name="CEO Calendar", account_email="ceo@acme.com")
        store.add_connection(provider="hubspot", display_name="Old CRM", is_active=False)
        store.add_connection(organization_id="org-2", provider="hubspot", display_name="Their CRM")

        available = service.list_available_connections("org-1")

        assert len(available) == 1
        assert available[0]["toolAlias"] == "ceo_calendar"
        assert available[0]["toolDisplayName"] == "CEO Calendar (Google Calendar)"
        assert available[0]["accountEmail"] == "ceo@acme.com"

    def test_rename_invalidates_linked_agents(self, service, store, cache):
        calendar = store.add_connection(provider="google_calendar", display_name="CEO Calendar")
        store.add_link("agent-1", calendar.id, "ceo_calendar")
        store.add_link("agent-2", calendar.id, "ceo_calendar")

        renamed = service.rename_connection("org-1", calendar.id, "Executive Calendar")

        assert renamed.display_name == "Executive Calendar"
        assert {c.args[0] for c in cache.invalidate.call_args_list} == {"agent-1", "agent-2"}

    def test_disconnect(self, service, store, cache):
        calendar = store.add_connection(provider="google_calendar", display_name="CEO Calendar")
        store.add_link("agent-1", calendar.id, "ceo_calendar")

        service.disconnect_connection("org-1", calendar.id)

        assert store.get_connection(calendar.id).is_active is False
        cache.invalidate.assert_called_once_with("agent-1")
        with pytest.raises(NotFoundOrInactive):
            service.disconnect_connection("org-1", calendar.id)

    def test_other_organization_connection(self, service, store):
        calendar = store.add_connection(organization_id="org-2", provider="google_calendar", display_name="Cal")

        with pytest.raises(NotFoundOrInactive):
            service.rename_connection("org-1", calendar.id, "Mine")


class TestAliasStability:
    """Renaming a connection keeps the tool name agents already use."""

    @pytest.mark.asyncio
    async def test_alias_survives_rename(self, store, token_service, embedder, index):
        cache = AgentInstanceCache(AgentAssembler(
            store=store, token_service=token_service, embedder=embedder, index=index,
        ))
        agents = AgentService(store=store, cache=cache)
        connections = ConnectionService(store=store, cache=cache)
        calendar = store.add_connection(provider="google_calendar", display_name="CEO Calendar")
        agent = agents.create_agent("org-1", None, "Demo Booker", INSTRUCTIONS, [calendar.id])

        before = await cache.get(agent.id)
        connections.rename_connection("org-1", calendar.id, "Executive Calendar")
        after = await cache.get(agent.id)

        assert before.tool_names == after.tool_names == ["ceo_calendar", "search_docs"]
        assert after is not before
        assert after.tools["ceo_calendar"].display_name == "Executive Calendar"
        assert connections.list_available_connections("org-1")[0]["toolAlias"] == "executive_calendar"
