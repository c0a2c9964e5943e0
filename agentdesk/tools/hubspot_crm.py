"""HubSpot CRM tool bound to one connection."""

import logging
from typing import Any, Dict, Literal, Optional

from pydantic import BaseModel, Field, field_validator, model_validator

from agentdesk.adapters.provider_http import ProviderHTTPClient
from agentdesk.infra.error_handler import ErrorCategory, ProviderOperationFailed, ResourceNotFound
from agentdesk.models.connection import ConnectionProvider
from agentdesk.services.token_refresh import token_refresh_service
from agentdesk.tools.base import AgentTool, validate_email

logger = logging.getLogger(__name__)

HUBSPOT_API_BASE = "https://api.hubapi.com"
CONTACTS_PATH = "/crm/v3/objects/contacts"
SEARCH_RESULTS_LIMIT = 10

LeadStatus = Literal["lead", "marketingqualifiedlead", "salesqualifiedlead", "opportunity", "customer"]


def contact_url(contact_id: str) -> str:
    return f"https://app.hubspot.com/contacts/contact/{contact_id}"


class HubSpotToolInput(BaseModel):
    """Arguments the model passes to a CRM tool."""
    model_config = {"populate_by_name": True}

    action: Literal["create_contact", "update_lead", "search_contacts"] = Field(
        ..., description="CRM action to perform"
    )
    email: str = Field(..., description="Contact email address")
    first_name: Optional[str] = Field(None, alias="firstName", description="Contact first name")
    last_name: Optional[str] = Field(None, alias="lastName", description="Contact last name")
    company: Optional[str] = Field(None, description="Company name")
    phone: Optional[str] = Field(None, description="Phone number")
    status: Optional[LeadStatus] = Field(None, description="Lifecycle stage")

    @field_validator("email")
    @classmethod
    def _check_email(cls, value):
        return validate_email(value)

    @model_validator(mode="after")
    def _check_action_fields(self):
        if self.action == "create_contact" and not self.first_name:
            raise ValueError("First name is required for creating contacts")
        if self.action == "update_lead" and not self.status:
            raise ValueError("Status is required for updating leads")
        return self


class HubSpotCRMTool(AgentTool):
    """Creates, updates and searches contacts in one HubSpot portal."""

    provider = ConnectionProvider.HUBSPOT.value
    input_model = HubSpotToolInput

    def __init__(
        self,
        connection_id: str,
        display_name: str,
        alias: str,
        description: str,
        token_service=None,
        http: Optional[ProviderHTTPClient] = None,
    ):
        super().__init__(
            alias=alias,
            tool_id=f"hubspot-crm-{connection_id}",
            description=description,
            connection_id=connection_id,
        )
        self.display_name = display_name
        self.token_service = token_service if token_service is not None else token_refresh_service
        self.http = http or ProviderHTTPClient(self.provider, HUBSPOT_API_BASE)

    async def invoke(self, args: Dict[str, Any]) -> Dict[str, Any]:
        params = self.parse_input(args)
        connection = await self.token_service.ensure_valid_token(self.connection_id, self.provider)

        handlers = {
            "create_contact": self._create_contact,
            "update_lead": self._update_lead,
            "search_contacts": self._search_contacts,
        }
        try:
            return await handlers[params.action](params, connection.access_token)
        except ProviderOperationFailed as e:
            if e.status_code == 409 or "CONTACT_EXISTS" in e.provider_message or "already exists" in e.provider_message.lower():
                raise ProviderOperationFailed(
                    provider=self.provider,
                    operation=params.action,
                    provider_message=e.provider_message,
                    status_code=e.status_code,
                    category=ErrorCategory.BUSINESS_LOGIC,
                    message=f"Contact with email {params.email} already exists in {self.display_name}",
                ) from e
            raise ProviderOperationFailed(
                provider=self.provider,
                operation=params.action,
                provider_message=e.provider_message,
                status_code=e.status_code,
                category=e.category,
                retryable=e.retryable,
                message=f"HubSpot operation failed: {e.provider_message}",
            ) from e

    async def _find_contact_id(self, email: str, access_token: str) -> Optional[str]:
        response = await self.http.request(
            "POST",
            f"{CONTACTS_PATH}/search",
            access_token,
            operation="update_lead",
            json={
                "filterGroups": [{
                    "filters": [{"propertyName": "email", "operator": "EQ", "value": email}]
                }],
                "limit": 1,
            },
            retry=True,
        )
        results = response.get("results") or []
        return str(results[0]["id"]) if results else None

    async def _create_contact(self, params: HubSpotToolInput, access_token: str) -> Dict[str, Any]:
        created = await self.http.request(
            "POST",
            CONTACTS_PATH,
            access_token,
            operation="create_contact",
            json={
                "properties": {
                    "email": params.email,
                    "firstname": params.first_name,
                    "lastname": params.last_name or "",
                    "company": params.company or "",
                    "phone": params.phone or "",
                    "lifecyclestage": params.status or "lead",
                }
            },
            retry=False,
        )
        contact_id = str(created.get("id"))
        full_name = " ".join(part for part in (params.first_name, params.last_name) if part)

        logger.info(f"Created HubSpot contact {contact_id} on connection {self.connection_id}")
        return {
            "success": True,
            "contactId": contact_id,
            "hubspotUrl": contact_url(contact_id),
            "message": f"Created contact for {full_name} in {self.display_name}",
        }

    async def _update_lead(self, params: HubSpotToolInput, access_token: str) -> Dict[str, Any]:
        contact_id = await self._find_contact_id(params.email, access_token)
        if contact_id is None:
            raise ResourceNotFound(f"Contact with email {params.email} not found in {self.display_name}")

        await self.http.request(
            "PATCH",
            f"{CONTACTS_PATH}/{contact_id}",
            access_token,
            operation="update_lead",
            json={"properties": {"lifecyclestage": params.status}},
            retry=True,
        )

        return {
            "success": True,
            "contactId": contact_id,
            "hubspotUrl": contact_url(contact_id),
            "message": f"Updated {params.email} status to {params.status} in {self.display_name}",
        }

    async def _search_contacts(self, params: HubSpotToolInput, access_token: str) -> Dict[str, Any]:
        response = await self.http.request(
            "POST",
            f"{CONTACTS_PATH}/search",
            access_token,
            operation="search_contacts",
            json={
                "filterGroups": [{
                    "filters": [{"propertyName": "email", "operator": "CONTAINS_TOKEN", "value": params.email}]
                }],
                "properties": ["firstname", "lastname", "email", "company", "lifecyclestage"],
                "limit": SEARCH_RESULTS_LIMIT,
            },
            retry=True,
        )

        contacts = []
        for result in (response.get("results") or [])[:SEARCH_RESULTS_LIMIT]:
            properties = result.get("properties") or {}
            name = f"{properties.get('firstname') or ''} {properties.get('lastname') or ''}".strip()
            contacts.append({
                "id": str(result.get("id")),
                "email": properties.get("email"),
                "name": name,
                "company": properties.get("company"),
                "status": properties.get("lifecyclestage"),
            })

        return {
            "success": True,
            "message": f"Found {len(contacts)} contacts in {self.display_name}",
            "data": contacts,
        }


def create_hubspot_tool(connection_id: str, display_name: str, alias: str, description: str, **kwargs) -> HubSpotCRMTool:
    """Factory registered for the hubspot provider."""
    return HubSpotCRMTool(connection_id, display_name, alias, description, **kwargs)
