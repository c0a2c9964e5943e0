"""API request/response models."""

from typing import List, Optional, Dict, Any, Literal
from pydantic import BaseModel, Field


# ============================================================================
# Chat Models
# ============================================================================

class ChatMessage(BaseModel):
    """One turn of conversation history."""
    role: Literal["user", "assistant"]
    content: str = Field(..., example="Book a call with jane@example.com tomorrow at 10:00")


class ChatRequest(BaseModel):
    """Request model for chatting with an agent."""
    messages: List[ChatMessage] = Field(default_factory=list)
    stream: bool = Field(default=True, description="Stream the answer as plain text")


class ChatResponse(BaseModel):
    """Non-streaming chat answer."""
    agent_id: str
    content: str
    tool_calls: List[Dict[str, Any]] = Field(default_factory=list)


# ============================================================================
# Agent Models
# ============================================================================

class CreateAgentRequest(BaseModel):
    """Request model for creating an agent."""
    name: str = Field(..., min_length=1, max_length=100, example="Sales Assistant")
    instructions: str = Field(..., min_length=10, example="You qualify inbound leads and book demos.")
    connection_ids: List[str] = Field(default_factory=list, description="Connections to bind as tools")
    document_ids: List[str] = Field(default_factory=list, description="Documents the agent may search")


class UpdateAgentRequest(BaseModel):
    """Request model for updating an agent. Omitted fields are unchanged."""
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    instructions: Optional[str] = Field(None, min_length=10)
    connection_ids: Optional[List[str]] = Field(None, description="Replaces the bound connections when given")
    is_active: Optional[bool] = None


class AgentResponse(BaseModel):
    """Response model for an agent."""
    id: str
    organization_id: str
    name: str
    instructions: str
    is_active: bool
    created_by: Optional[str] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None


class AgentListResponse(BaseModel):
    items: List[AgentResponse]
    count: int


class AgentConnectionResponse(BaseModel):
    """A bound connection as the agent sees it."""
    connection_id: str
    tool_alias: str
    provider: str
    display_name: str
    is_active: bool


class AgentDetailResponse(AgentResponse):
    """Agent with its links."""
    document_ids: List[str] = Field(default_factory=list)
    connections: List[AgentConnectionResponse] = Field(default_factory=list)


class LinkDocumentRequest(BaseModel):
    document_id: str


class OperationResponse(BaseModel):
    success: bool = True
    message: str


# ============================================================================
# Connection Models
# ============================================================================

class ConnectToolRequest(BaseModel):
    """Result of a completed OAuth exchange, recorded as a connection."""
    provider: str = Field(..., example="google_calendar")
    display_name: str = Field(..., min_length=1, example="CEO Calendar")
    access_token: str = Field(..., min_length=1)
    refresh_token: Optional[str] = None
    expires_in: Optional[int] = Field(None, gt=0, description="Access token lifetime in seconds")
    scopes: List[str] = Field(default_factory=list)
    account_email: Optional[str] = None
    description: Optional[str] = None
    metadata: Dict[str, Any] = Field(default_factory=dict)


class RenameConnectionRequest(BaseModel):
    display_name: str = Field(..., min_length=1)


class ConnectionResponse(BaseModel):
    """Connection without credentials."""
    id: str
    provider: str
    display_name: str
    tool_alias: str
    tool_display_name: str
    description: Optional[str] = None
    account_email: Optional[str] = None
    expires_at: Optional[str] = None
    created_at: Optional[str] = None


class ConnectionListResponse(BaseModel):
    items: List[ConnectionResponse]
    count: int


# ============================================================================
# Document Models
# ============================================================================

class IngestDocumentRequest(BaseModel):
    """Extracted document text to index."""
    title: str = Field(..., min_length=1, example="Pricing FAQ")
    text: str = Field(..., min_length=1)
    content_type: str = Field("text/plain", example="text/markdown")
    size_bytes: Optional[int] = Field(None, ge=0, description="Original file size")
    storage_path: Optional[str] = None
    agent_ids: List[str] = Field(default_factory=list, description="Agents to link the document to")


class DocumentResponse(BaseModel):
    id: str
    title: str
    content_type: str
    size_bytes: int
    chunks: int
