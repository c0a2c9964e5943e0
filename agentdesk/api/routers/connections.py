"""Tool connections API router."""

from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, Security

from agentdesk.api.models import (
    ConnectToolRequest,
    ConnectionListResponse,
    ConnectionResponse,
    OperationResponse,
    RenameConnectionRequest,
)
from agentdesk.infra.auth import get_organization_id, get_user_id, verify_api_key
from agentdesk.models.connection import Connection
from agentdesk.services.connection_service import connection_service
from agentdesk.services.tool_aliases import create_tool_display_name, generate_tool_alias

router = APIRouter(dependencies=[Security(verify_api_key)])


def _to_response(connection: Connection) -> ConnectionResponse:
    return ConnectionResponse(
        id=connection.id,
        provider=connection.provider,
        display_name=connection.display_name,
        tool_alias=generate_tool_alias(connection.display_name),
        tool_display_name=create_tool_display_name(connection.provider, connection.display_name),
        description=connection.description,
        account_email=connection.account_email,
        expires_at=connection.expires_at.isoformat() if connection.expires_at else None,
        created_at=connection.created_at.isoformat() if connection.created_at else None,
    )


def _listing_to_response(item: Dict[str, Any]) -> ConnectionResponse:
    return ConnectionResponse(
        id=item["id"],
        provider=item["provider"],
        display_name=item["displayName"],
        tool_alias=item["toolAlias"],
        tool_display_name=item["toolDisplayName"],
        description=item["description"],
        account_email=item["accountEmail"],
        expires_at=item["expiresAt"],
        created_at=item["createdAt"],
    )


@router.post("/connections", tags=["Connections"], response_model=ConnectionResponse, status_code=201)
async def connect_tool(
    request: ConnectToolRequest,
    organization_id: str = Depends(get_organization_id),
    user_id: Optional[str] = Depends(get_user_id),
):
    """Record a completed OAuth exchange as a connection."""
    connection = connection_service.connect_tool(
        organization_id,
        user_id,
        provider=request.provider,
        display_name=request.display_name,
        access_token=request.access_token,
        refresh_token=request.refresh_token,
        expires_in=request.expires_in,
        scopes=request.scopes,
        account_email=request.account_email,
        description=request.description,
        metadata=request.metadata,
    )
    return _to_response(connection)


@router.get("/connections", tags=["Connections"], response_model=ConnectionListResponse)
async def list_connections(organization_id: str = Depends(get_organization_id)):
    """Active connections, with the alias a new agent link would get."""
    items = connection_service.list_available_connections(organization_id)
    return ConnectionListResponse(items=[_listing_to_response(i) for i in items], count=len(items))


@router.patch("/connections/{connection_id}", tags=["Connections"], response_model=ConnectionResponse)
async def rename_connection(
    connection_id: str,
    request: RenameConnectionRequest,
    organization_id: str = Depends(get_organization_id),
):
    """Rename a connection. Agents already using it keep their tool alias."""
    connection = connection_service.rename_connection(organization_id, connection_id, request.display_name)
    return _to_response(connection)


@router.delete("/connections/{connection_id}", tags=["Connections"], response_model=OperationResponse)
async def disconnect(connection_id: str, organization_id: str = Depends(get_organization_id)):
    """Disconnect; linked agents drop the tool on their next build."""
    connection_service.disconnect_connection(organization_id, connection_id)
    return OperationResponse(message="Connection removed")
