"""Google Calendar tool bound to one connection."""

import logging
import time
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Literal, Optional

from pydantic import BaseModel, Field, field_validator, model_validator

from agentdesk.adapters.provider_http import ProviderHTTPClient
from agentdesk.infra.error_handler import ProviderOperationFailed
from agentdesk.models.connection import ConnectionProvider
from agentdesk.services.token_refresh import token_refresh_service
from agentdesk.tools.base import AgentTool, validate_email

logger = logging.getLogger(__name__)

CALENDAR_API_BASE = "https://www.googleapis.com/calendar/v3"
UPCOMING_EVENTS_LIMIT = 10


class CalendarToolInput(BaseModel):
    """Arguments the model passes to a calendar tool."""
    model_config = {"populate_by_name": True}

    action: Literal["book_meeting", "check_availability", "list_events"] = Field(
        "book_meeting", description="Calendar action to perform"
    )
    title: Optional[str] = Field(None, description="Meeting title")
    attendee_email: Optional[str] = Field(None, alias="attendeeEmail", description="Attendee email address")
    start_time: Optional[datetime] = Field(
        None, alias="startTime", description="Meeting start time (ISO 8601 format)"
    )
    duration: int = Field(30, ge=15, le=480, description="Meeting duration in minutes")
    description: Optional[str] = Field(None, description="Meeting description")
    meeting_link: bool = Field(True, alias="meetingLink", description="Include a Google Meet link")

    @field_validator("attendee_email")
    @classmethod
    def _check_email(cls, value):
        return validate_email(value)

    @field_validator("start_time")
    @classmethod
    def _assume_utc(cls, value):
        if value is not None and value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value

    @model_validator(mode="after")
    def _check_action_fields(self):
        if self.action == "book_meeting":
            missing = [
                name for name, value in (
                    ("title", self.title),
                    ("attendeeEmail", self.attendee_email),
                    ("startTime", self.start_time),
                )
                if not value
            ]
            if missing:
                raise ValueError(f"book_meeting requires {', '.join(missing)}")
        elif self.action == "check_availability" and self.start_time is None:
            raise ValueError("check_availability requires startTime")
        return self


def _format_time(value: datetime) -> str:
    return value.astimezone(timezone.utc).strftime("%Y-%m-%d %H:%M UTC")


class GoogleCalendarTool(AgentTool):
    """Books meetings, checks availability and lists events on one calendar."""

    provider = ConnectionProvider.GOOGLE_CALENDAR.value
    input_model = CalendarToolInput
    default_operation = "book_meeting"

    def __init__(
        self,
        connection_id: str,
        display_name: str,
        alias: str,
        description: str,
        token_service=None,
        http: Optional[ProviderHTTPClient] = None,
        calendar_id: str = "primary",
    ):
        super().__init__(
            alias=alias,
            tool_id=f"google-calendar-{connection_id}",
            description=description,
            connection_id=connection_id,
        )
        self.display_name = display_name
        self.calendar_id = calendar_id
        self.token_service = token_service if token_service is not None else token_refresh_service
        self.http = http or ProviderHTTPClient(self.provider, CALENDAR_API_BASE)

    async def invoke(self, args: Dict[str, Any]) -> Dict[str, Any]:
        params = self.parse_input(args)
        connection = await self.token_service.ensure_valid_token(self.connection_id, self.provider)

        handlers = {
            "book_meeting": self._book_meeting,
            "check_availability": self._check_availability,
            "list_events": self._list_events,
        }
        try:
            return await handlers[params.action](params, connection.access_token)
        except ProviderOperationFailed as e:
            raise ProviderOperationFailed(
                provider=self.provider,
                operation=params.action,
                provider_message=e.provider_message,
                status_code=e.status_code,
                category=e.category,
                retryable=e.retryable,
                message=f"Google Calendar {params.action} failed: {e.provider_message}",
            ) from e

    async def _book_meeting(self, params: CalendarToolInput, access_token: str) -> Dict[str, Any]:
        start = params.start_time.astimezone(timezone.utc)
        end = start + timedelta(minutes=params.duration)

        event = {
            "summary": params.title,
            "description": params.description or "",
            "start": {"dateTime": start.isoformat(), "timeZone": "UTC"},
            "end": {"dateTime": end.isoformat(), "timeZone": "UTC"},
            "attendees": [{"email": params.attendee_email}],
        }
        if params.meeting_link:
            event["conferenceData"] = {
                "createRequest": {
                    "requestId": f"meet-{int(time.time() * 1000)}",
                    "conferenceSolutionKey": {"type": "hangoutsMeet"},
                }
            }

        created = await self.http.request(
            "POST",
            f"/calendars/{self.calendar_id}/events",
            access_token,
            operation="book_meeting",
            params={"conferenceDataVersion": 1 if params.meeting_link else 0},
            json=event,
            retry=False,
        )

        meeting_link = None
        if params.meeting_link:
            entry_points = (created.get("conferenceData") or {}).get("entryPoints") or []
            if entry_points:
                meeting_link = entry_points[0].get("uri")

        logger.info(f"Booked event {created.get('id')} on connection {self.connection_id}")
        return {
            "success": True,
            "eventId": created.get("id"),
            "eventLink": created.get("htmlLink"),
            "meetingLink": meeting_link,
            "message": f'Meeting "{params.title}" booked on {self.display_name} for {_format_time(start)}',
        }

    async def _check_availability(self, params: CalendarToolInput, access_token: str) -> Dict[str, Any]:
        start = params.start_time.astimezone(timezone.utc)
        end = start + timedelta(minutes=params.duration)

        response = await self.http.request(
            "POST",
            "/freeBusy",
            access_token,
            operation="check_availability",
            json={
                "timeMin": start.isoformat(),
                "timeMax": end.isoformat(),
                "items": [{"id": self.calendar_id}],
            },
            retry=True,
        )
        busy = (response.get("calendars") or {}).get(self.calendar_id, {}).get("busy") or []
        available = len(busy) == 0

        return {
            "success": True,
            "message": f"{self.display_name} is {'available' if available else 'busy'} at {_format_time(start)}",
            "data": {"available": available, "busyTimes": busy},
        }

    async def _list_events(self, params: CalendarToolInput, access_token: str) -> Dict[str, Any]:
        response = await self.http.request(
            "GET",
            f"/calendars/{self.calendar_id}/events",
            access_token,
            operation="list_events",
            params={
                "timeMin": datetime.now(timezone.utc).isoformat(),
                "maxResults": UPCOMING_EVENTS_LIMIT,
                "singleEvents": "true",
                "orderBy": "startTime",
            },
        )

        events = []
        for item in response.get("items") or []:
            start = item.get("start") or {}
            end = item.get("end") or {}
            events.append({
                "id": item.get("id"),
                "title": item.get("summary"),
                "start": start.get("dateTime") or start.get("date"),
                "end": end.get("dateTime") or end.get("date"),
                "attendees": [a.get("email") for a in item.get("attendees") or []],
            })

        return {
            "success": True,
            "message": f"Found {len(events)} upcoming events on {self.display_name}",
            "data": events,
        }


def create_google_calendar_tool(connection_id: str, display_name: str, alias: str, description: str, **kwargs) -> GoogleCalendarTool:
    """Factory registered for the google_calendar provider."""
    return GoogleCalendarTool(connection_id, display_name, alias, description, **kwargs)
