from .agent import AgentConfig, AgentConnectionLink, Document, RuntimeAgent
from .connection import Connection, ConnectionProvider, TokenGrant
from .tool import ToolDefinition

__all__ = [
    "AgentConfig",
    "AgentConnectionLink",
    "Document",
    "RuntimeAgent",
    "Connection",
    "ConnectionProvider",
    "TokenGrant",
    "ToolDefinition",
]
