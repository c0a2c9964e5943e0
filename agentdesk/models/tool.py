"""Tool definition model advertised to the LLM."""

from pydantic import BaseModel, Field
from typing import Dict, Any, Optional


class ToolDefinition(BaseModel):
    """Provider-neutral description of a bound tool."""
    id: str = Field(..., description="Stable tool id, e.g. 'google-calendar-<connection id>'")
    name: str = Field(..., description="Alias the model calls the tool by")
    description: str = Field(..., description="Tool description")
    parameters_schema: Dict[str, Any] = Field(..., description="JSON Schema for parameters")
    provider: str = Field(
        ...,
        description="Provider: 'google_calendar' | 'hubspot' | 'agent_search'"
    )
    connection_id: Optional[str] = Field(
        default=None,
        description="Bound connection, absent for the document search tool"
    )
