"""Google account, Gmail and Calendar data models."""

from pydantic import BaseModel, ConfigDict, Field


class StoredTokenData(BaseModel):
    """OAuth token record for the connected Google account."""

    access_token: str
    refresh_token: str | None = None
    expires_at: int  # epoch milliseconds
    email: str | None = None
    name: str | None = None

    def is_expired(self, now_ms: int) -> bool:
        return now_ms >= self.expires_at


class OAuthStatus(BaseModel):
    connected: bool
    email: str | None = None
    name: str | None = None
    expired: bool | None = None


class EmailContent(BaseModel):
    """Flattened view of a Gmail message."""

    id: str
    subject: str = ""
    sender: str = Field(default="", serialization_alias="from")
    date: str = ""
    body: str = ""
    snippet: str = ""

    model_config = ConfigDict(populate_by_name=True)


class EventTime(BaseModel):
    date_time: str | None = Field(default=None, alias="dateTime")
    date: str | None = None
    time_zone: str | None = Field(default=None, alias="timeZone")

    model_config = ConfigDict(populate_by_name=True, extra="allow")


class EventPerson(BaseModel):
    email: str
    display_name: str | None = Field(default=None, alias="displayName")
    response_status: str | None = Field(default=None, alias="responseStatus")

    model_config = ConfigDict(populate_by_name=True, extra="allow")


class CalendarEvent(BaseModel):
    """Subset of the Google Calendar event resource used by the tools."""

    id: str = ""
    summary: str = "(No title)"
    description: str | None = None
    start: EventTime = Field(default_factory=EventTime)
    end: EventTime = Field(default_factory=EventTime)
    attendees: list[EventPerson] = Field(default_factory=list)
    location: str | None = None
    status: str | None = None
    html_link: str | None = Field(default=None, alias="htmlLink")
    creator: EventPerson | None = None
    organizer: EventPerson | None = None

    model_config = ConfigDict(populate_by_name=True, extra="allow")
