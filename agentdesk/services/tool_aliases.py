"""Display name to tool alias resolution."""

import re
from typing import Iterable

from agentdesk.models.connection import ConnectionProvider, PROVIDER_LABELS

MAX_ALIAS_LENGTH = 50
SEARCH_TOOL_ALIAS = "search_docs"
RESERVED_ALIASES = frozenset({SEARCH_TOOL_ALIAS})

_INVALID_CHARS = re.compile(r"[^a-z0-9\s]+")
_WHITESPACE = re.compile(r"\s+")
_EDGE_UNDERSCORE = re.compile(r"^_|_$")
_VALID_ALIAS = re.compile(r"^[a-z0-9_]+$")


def generate_tool_alias(display_name: str) -> str:
    """
    Derive the machine-safe alias for a connection display name.

    Lowercases, drops everything but ``a-z``, ``0-9`` and whitespace,
    turns whitespace runs into single underscores, trims one leading and one
    trailing underscore, then truncates to 50 characters.

    Examples:
        "CEO Calendar" -> "ceo_calendar"
        "Sales Team's HubSpot!" -> "sales_teams_hubspot"

    Returns:
        The alias, or "" when the name has no usable characters
    """
    alias = _INVALID_CHARS.sub("", display_name.lower())
    alias = _WHITESPACE.sub("_", alias)
    alias = _EDGE_UNDERSCORE.sub("", alias)
    return alias[:MAX_ALIAS_LENGTH]


def validate_tool_alias(alias: str) -> bool:
    """True for 1-50 characters of lowercase letters, digits and underscores."""
    return 0 < len(alias) <= MAX_ALIAS_LENGTH and bool(_VALID_ALIAS.match(alias))


def unique_tool_alias(display_name: str, provider: str, taken: Iterable[str]) -> str:
    """
    Alias for a new agent link that does not clash with the agent's other tools.

    An empty alias falls back to the provider name. Clashes with ``taken``
    or a reserved alias get a numeric suffix (``_2``, ``_3``, ...), cutting
    the base so the result stays within 50 characters.
    """
    base = generate_tool_alias(display_name) or generate_tool_alias(provider) or "tool"
    used = set(taken) | RESERVED_ALIASES
    if base not in used:
        return base

    n = 2
    while True:
        suffix = f"_{n}"
        candidate = base[:MAX_ALIAS_LENGTH - len(suffix)] + suffix
        if candidate not in used:
            return candidate
        n += 1


def create_tool_display_name(provider: str, display_name: str) -> str:
    """Human-facing tool name, e.g. "CEO Calendar (Google Calendar)"."""
    parsed = ConnectionProvider.parse(provider)
    label = PROVIDER_LABELS.get(parsed, provider)
    return f"{display_name} ({label})"


def get_tool_description(provider: str, display_name: str) -> str:
    """Description the model sees for a connection-backed tool."""
    parsed = ConnectionProvider.parse(provider)
    if parsed == ConnectionProvider.GOOGLE_CALENDAR:
        return f"Book meetings and manage calendar events for {display_name}"
    if parsed == ConnectionProvider.HUBSPOT:
        return f"Manage contacts, leads, and CRM operations for {display_name}"
    return f"Use {display_name} for {provider} operations"
