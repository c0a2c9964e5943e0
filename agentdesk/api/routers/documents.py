"""Documents API router."""

from typing import Optional

from fastapi import APIRouter, Depends, Security

from agentdesk.api.models import DocumentResponse, IngestDocumentRequest
from agentdesk.infra.auth import get_organization_id, get_user_id, verify_api_key
from agentdesk.services.agent_service import agent_service
from agentdesk.services.document_ingestion import document_ingestion_service

router = APIRouter(dependencies=[Security(verify_api_key)])


@router.post("/documents", tags=["Documents"], response_model=DocumentResponse, status_code=201)
async def ingest_document(
    request: IngestDocumentRequest,
    organization_id: str = Depends(get_organization_id),
    user_id: Optional[str] = Depends(get_user_id),
):
    """
    Index extracted document text for agent search.

    Text extraction and file storage happen upstream; this endpoint chunks,
    embeds and indexes the text, then links it to ``agent_ids``.
    """
    result = await document_ingestion_service.ingest_document(
        organization_id,
        user_id,
        title=request.title,
        text=request.text,
        content_type=request.content_type,
        size_bytes=request.size_bytes,
        storage_path=request.storage_path,
    )
    document = result["document"]

    for agent_id in request.agent_ids:
        agent_service.link_document_to_agent(organization_id, agent_id, document.id)

    return DocumentResponse(
        id=document.id,
        title=document.title,
        content_type=document.content_type,
        size_bytes=document.size_bytes,
        chunks=result["chunks"],
    )
