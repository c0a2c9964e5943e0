"""Agents API router: configuration and chat."""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Security
from fastapi.responses import StreamingResponse

from agentdesk.adapters.vendor_adapter_openai import agent_runner
from agentdesk.api.models import (
    AgentConnectionResponse,
    AgentDetailResponse,
    AgentListResponse,
    AgentResponse,
    ChatRequest,
    ChatResponse,
    CreateAgentRequest,
    LinkDocumentRequest,
    OperationResponse,
    UpdateAgentRequest,
)
from agentdesk.infra.auth import get_organization_id, get_user_id, verify_api_key
from agentdesk.infra.error_handler import NotFoundOrInactive
from agentdesk.models.agent import AgentConfig
from agentdesk.services.agent_cache import agent_cache
from agentdesk.services.agent_service import agent_service

router = APIRouter(dependencies=[Security(verify_api_key)])

logger = logging.getLogger(__name__)


def _to_response(agent: AgentConfig) -> AgentResponse:
    return AgentResponse(
        id=agent.id,
        organization_id=agent.organization_id,
        name=agent.name,
        instructions=agent.instructions,
        is_active=agent.is_active,
        created_by=agent.created_by,
        created_at=agent.created_at.isoformat() if agent.created_at else None,
        updated_at=agent.updated_at.isoformat() if agent.updated_at else None,
    )


@router.post("/agents/{agent_id}/chat", tags=["Chat"], response_model=None)
async def chat_with_agent(
    agent_id: str,
    request: ChatRequest,
    organization_id: str = Depends(get_organization_id),
):
    """
    Chat with an agent.

    Streams the answer as plain text by default; set ``stream`` to false for
    a JSON response that also lists the tool calls made.
    """
    if not request.messages:
        raise HTTPException(status_code=400, detail="Messages are required")

    runtime_agent = await agent_cache.get(agent_id)
    if runtime_agent.organization_id != organization_id:
        raise NotFoundOrInactive(f"Agent {agent_id} not found or inactive")

    messages = [message.model_dump() for message in request.messages]

    if request.stream:
        return StreamingResponse(
            agent_runner.stream(runtime_agent, messages),
            media_type="text/plain; charset=utf-8",
        )

    result = await agent_runner.run(runtime_agent, messages)
    return ChatResponse(agent_id=agent_id, content=result["content"], tool_calls=result["toolCalls"])


@router.post("/agents", tags=["Agents"], response_model=AgentResponse, status_code=201)
async def create_agent(
    request: CreateAgentRequest,
    organization_id: str = Depends(get_organization_id),
    user_id: Optional[str] = Depends(get_user_id),
):
    """Create an agent bound to the given connections and documents."""
    agent = agent_service.create_agent(
        organization_id,
        user_id,
        name=request.name,
        instructions=request.instructions,
        connection_ids=request.connection_ids,
        document_ids=request.document_ids,
    )
    return _to_response(agent)


@router.get("/agents", tags=["Agents"], response_model=AgentListResponse)
async def list_agents(organization_id: str = Depends(get_organization_id)):
    """List active agents of the organization."""
    agents = agent_service.list_agents(organization_id)
    return AgentListResponse(items=[_to_response(a) for a in agents], count=len(agents))


@router.get("/agents/{agent_id}", tags=["Agents"], response_model=AgentDetailResponse)
async def get_agent(agent_id: str, organization_id: str = Depends(get_organization_id)):
    """Agent with its linked documents and connections (frozen aliases)."""
    details = agent_service.get_agent_details(organization_id, agent_id)
    base = _to_response(details["agent"])
    return AgentDetailResponse(
        **base.model_dump(),
        document_ids=details["documentIds"],
        connections=[
            AgentConnectionResponse(
                connection_id=link.connection_id,
                tool_alias=link.tool_alias,
                provider=link.provider,
                display_name=link.display_name,
                is_active=link.connection_active,
            )
            for link in details["connections"]
        ],
    )


@router.patch("/agents/{agent_id}", tags=["Agents"], response_model=AgentResponse)
async def update_agent(
    agent_id: str,
    request: UpdateAgentRequest,
    organization_id: str = Depends(get_organization_id),
):
    """Update an agent; the cached instance is rebuilt on next use."""
    agent = agent_service.update_agent(
        organization_id,
        agent_id,
        name=request.name,
        instructions=request.instructions,
        connection_ids=request.connection_ids,
        is_active=request.is_active,
    )
    return _to_response(agent)


@router.delete("/agents/{agent_id}", tags=["Agents"], response_model=OperationResponse)
async def delete_agent(agent_id: str, organization_id: str = Depends(get_organization_id)):
    """Deactivate an agent."""
    agent_service.deactivate_agent(organization_id, agent_id)
    return OperationResponse(message="Agent deleted")


@router.post("/agents/{agent_id}/documents", tags=["Agents"], response_model=OperationResponse)
async def link_document(
    agent_id: str,
    request: LinkDocumentRequest,
    organization_id: str = Depends(get_organization_id),
):
    """Make a document searchable by the agent."""
    result = agent_service.link_document_to_agent(organization_id, agent_id, request.document_id)
    return OperationResponse(**result)
