"""Provider to tool factory registry."""

from typing import Callable, Dict

from agentdesk.infra.error_handler import UnsupportedProvider
from agentdesk.models.agent import AgentConnectionLink
from agentdesk.models.connection import ConnectionProvider
from agentdesk.services.tool_aliases import get_tool_description
from agentdesk.tools.base import AgentTool
from agentdesk.tools.google_calendar import create_google_calendar_tool
from agentdesk.tools.hubspot_crm import create_hubspot_tool

ToolFactory = Callable[..., AgentTool]

TOOL_FACTORIES: Dict[ConnectionProvider, ToolFactory] = {
    ConnectionProvider.GOOGLE_CALENDAR: create_google_calendar_tool,
    ConnectionProvider.HUBSPOT: create_hubspot_tool,
}


def create_connection_tool(link: AgentConnectionLink, **kwargs) -> AgentTool:
    """
    Build the tool for one agent-connection link, named by the link's alias.

    Args:
        link: Link joined with the connection's provider and display name
        **kwargs: Collaborators forwarded to the factory (token_service, http)

    Returns:
        Tool bound to the link's connection

    Raises:
        UnsupportedProvider: No factory for the connection's provider
    """
    provider = ConnectionProvider.parse(link.provider)
    factory = TOOL_FACTORIES.get(provider) if provider else None
    if factory is None:
        raise UnsupportedProvider(link.provider)

    return factory(
        connection_id=link.connection_id,
        display_name=link.display_name,
        alias=link.tool_alias,
        description=get_tool_description(link.provider, link.display_name),
        **kwargs,
    )
