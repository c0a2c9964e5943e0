"""Tests for the HubSpot CRM tool."""

import pytest

from agentdesk.infra.error_handler import ProviderOperationFailed, ResourceNotFound, ValidationError
from agentdesk.tools.hubspot_crm import create_hubspot_tool


class TestHubSpotCRMTool:
    """Test HubSpotCRMTool."""

    @pytest.fixture
    def tool(self, token_service, http):
        return create_hubspot_tool(
            connection_id="conn-2",
            display_name="Sales CRM",
            alias="sales_crm",
            description="Manage contacts, leads, and CRM operations for Sales CRM",
            token_service=token_service,
            http=http,
        )

    def test_definition(self, tool):
        definition = tool.definition

        assert definition.id == "hubspot-crm-conn-2"
        assert definition.provider == "hubspot"
        assert set(definition.parameters_schema["required"]) == {"action", "email"}

    @pytest.mark.asyncio
    async def test_create_contact(self, tool, http):
        http.request.return_value = {"id": "501"}

        result = await tool.invoke({
            "action": "create_contact",
            "email": "jane@acme.com",
            "firstName": "Jane",
            "lastName": "Doe",
            "company": "Acme",
        })

        assert result["success"] is True
        assert result["contactId"] == "501"
        assert result["hubspotUrl"] == "https://app.hubspot.com/contacts/contact/501"
        assert result["message"] == "Created contact for Jane Doe in Sales CRM"
        args, kwargs = http.request.call_args
        assert args[:2] == ("POST", "/crm/v3/objects/contacts")
        properties = kwargs["json"]["properties"]
        assert properties["email"] == "jane@acme.com"
        assert properties["firstname"] == "Jane"
        assert properties["lifecyclestage"] == "lead"
        assert kwargs["retry"] is False

    @pytest.mark.asyncio
    async def test_create_contact_requires_first_name(self, tool, token_service, http):
        with pytest.raises(ValidationError) as exc_info:
            await tool.invoke({"action": "create_contact", "email": "jane@acme.com"})

        assert "First name is required" in exc_info.value.message
        token_service.ensure_valid_token.assert_not_awaited()
        http.request.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_invalid_email(self, tool):
        with pytest.raises(ValidationError):
            await tool.invoke({"action": "search_contacts", "email": "jane at acme"})

    @pytest.mark.asyncio
    async def test_unknown_action(self, tool):
        with pytest.raises(ValidationError):
            await tool.invoke({"action": "delete_contact", "email": "jane@acme.com"})

    @pytest.mark.asyncio
    async def test_duplicate_contact(self, tool, http):
        http.request.side_effect = ProviderOperationFailed(
            provider="hubspot",
            operation="create_contact",
            provider_message="Contact already exists. Existing ID: 501",
            status_code=409,
        )

        result = await tool.execute({"action": "create_contact", "email": "jane@acme.com", "firstName": "Jane"})

        assert result["success"] is False
        assert result["message"] == "Contact with email jane@acme.com already exists in Sales CRM"
        assert result["error"]["category"] == "business_logic"
        assert result["error"]["providerMessage"] == "Contact already exists. Existing ID: 501"

    @pytest.mark.asyncio
    async def test_other_provider_failure(self, tool, http):
        http.request.side_effect = ProviderOperationFailed(
            provider="hubspot",
            operation="create_contact",
            provider_message="Property values were not valid",
            status_code=400,
        )

        result = await tool.execute({"action": "create_contact", "email": "jane@acme.com", "firstName": "Jane"})

        assert result["message"] == "HubSpot operation failed: Property values were not valid"
        assert result["error"]["category"] == "api_error"

    @pytest.mark.asyncio
    async def test_update_lead(self, tool, http):
        http.request.side_effect = [{"results": [{"id": 501}]}, {"id": "501"}]

        result = await tool.invoke({"action": "update_lead", "email": "jane@acme.com", "status": "opportunity"})

        assert result["contactId"] == "501"
        assert result["message"] == "Updated jane@acme.com status to opportunity in Sales CRM"
        search_call, patch_call = http.request.call_args_list
        assert search_call.kwargs["json"]["filterGroups"][0]["filters"][0]["operator"] == "EQ"
        assert patch_call.args[:2] == ("PATCH", "/crm/v3/objects/contacts/501")
        assert patch_call.kwargs["json"] == {"properties": {"lifecyclestage": "opportunity"}}

    @pytest.mark.asyncio
    async def test_update_lead_contact_not_found(self, tool, http):
        http.request.return_value = {"results": []}

        with pytest.raises(ResourceNotFound):
            await tool.invoke({"action": "update_lead", "email": "ghost@acme.com", "status": "customer"})

        result = await tool.execute({"action": "update_lead", "email": "ghost@acme.com", "status": "customer"})
        assert result["message"] == "Contact with email ghost@acme.com not found in Sales CRM"
        assert result["error"]["category"] == "not_found"

    @pytest.mark.asyncio
    async def test_update_lead_requires_status(self, tool):
        with pytest.raises(ValidationError):
            await tool.invoke({"action": "update_lead", "email": "jane@acme.com"})

    @pytest.mark.asyncio
    async def test_search_contacts(self, tool, http):
        http.request.return_value = {
            "results": [
                {"id": 501, "properties": {
                    "firstname": "Jane", "lastname": "Doe", "email": "jane@acme.com",
                    "company": "Acme", "lifecyclestage": "lead",
                }},
                {"id": 502, "properties": {"firstname": "Joe", "email": "joe@acme.com"}},
            ]
        }

        result = await tool.invoke({"action": "search_contacts", "email": "jane@acme.com"})

        assert result["message"] == "Found 2 contacts in Sales CRM"
        assert result["data"][0] == {
            "id": "501", "email": "jane@acme.com", "name": "Jane Doe", "company": "Acme", "status": "lead",
        }
        assert result["data"][1]["name"] == "Joe"
        _, kwargs = http.request.call_args
        assert kwargs["json"]["limit"] == 10
        assert kwargs["json"]["filterGroups"][0]["filters"][0]["operator"] == "CONTAINS_TOKEN"
