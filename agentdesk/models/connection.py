"""External-service connection model."""

from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any, Dict, List, Optional


class ConnectionProvider(str, Enum):
    """External services an agent can be bound to."""
    GOOGLE_CALENDAR = "google_calendar"
    HUBSPOT = "hubspot"

    @classmethod
    def parse(cls, value: str) -> Optional["ConnectionProvider"]:
        """Return the matching provider, or None for an unknown string."""
        try:
            return cls(value)
        except ValueError:
            return None


PROVIDER_LABELS = {
    ConnectionProvider.GOOGLE_CALENDAR: "Google Calendar",
    ConnectionProvider.HUBSPOT: "HubSpot CRM",
}


@dataclass
class Connection:
    """OAuth credential for one external account, owned by an organization.

    ``provider`` stays a plain string: rows written by other services may
    carry providers this process has no factory for.
    """
    id: str
    organization_id: str
    provider: str
    display_name: str
    access_token: str
    refresh_token: Optional[str] = None
    expires_at: Optional[datetime] = None  # None: valid until a call fails
    is_active: bool = True
    scopes: List[str] = field(default_factory=list)
    description: Optional[str] = None
    account_email: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)
    connected_by: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    def needs_refresh(self, buffer_seconds: int, now: Optional[datetime] = None) -> bool:
        """True when the access token expires within ``buffer_seconds``."""
        if self.expires_at is None:
            return False
        now = now or datetime.now(timezone.utc)
        expires_at = self.expires_at
        if expires_at.tzinfo is None:
            expires_at = expires_at.replace(tzinfo=timezone.utc)
        return expires_at < now + timedelta(seconds=buffer_seconds)


@dataclass
class TokenGrant:
    """Result of exchanging a refresh token at a provider token endpoint."""
    access_token: str
    expires_in: int
    refresh_token: Optional[str] = None
