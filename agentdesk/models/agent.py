"""Agent configuration and runtime models."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional


@dataclass
class AgentConfig:
    """Persisted agent definition."""
    id: str
    organization_id: str
    name: str
    instructions: str
    is_active: bool = True
    created_by: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


@dataclass
class AgentConnectionLink:
    """Agent-to-connection binding, joined with the connection's current state.

    ``tool_alias`` is fixed when the link is created; renaming the
    connection afterwards does not change it.
    """
    id: str
    agent_id: str
    connection_id: str
    tool_alias: str
    provider: str
    display_name: str
    connection_active: bool = True
    created_at: Optional[datetime] = None


@dataclass
class Document:
    """Organization-owned uploaded file metadata."""
    id: str
    organization_id: str
    title: str
    content_type: str
    size_bytes: int
    storage_path: Optional[str] = None
    uploaded_by: Optional[str] = None
    created_at: Optional[datetime] = None


@dataclass
class RuntimeAgent:
    """An assembled agent ready to be invoked.

    ``tools`` maps tool alias to a bound tool object (see agentdesk.tools).
    """
    agent_id: str
    organization_id: str
    name: str
    model: str
    instructions: str
    description: str = ""
    tools: Dict[str, Any] = field(default_factory=dict)

    @property
    def tool_names(self) -> List[str]:
        return sorted(self.tools)
