"""Structured ("generative UI") tool result payloads."""

from typing import Annotated, Any, Literal

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError


class _Payload(BaseModel):
    model_config = ConfigDict(extra="allow")


class EmailsPayload(_Payload):
    type: Literal["emails"] = "emails"
    emails: list[dict[str, Any]] = Field(default_factory=list)
    title: str
    subtitle: str | None = None
    count: int | None = None
    message: str | None = None


class EmailDetailPayload(_Payload):
    type: Literal["email_detail"] = "email_detail"
    email: dict[str, Any]
    title: str = "Email Details"


class EventsPayload(_Payload):
    type: Literal["events"] = "events"
    events: list[dict[str, Any]] = Field(default_factory=list)
    title: str
    subtitle: str | None = None
    group_by_date: bool = Field(default=False, alias="groupByDate")
    count: int | None = None

    model_config = ConfigDict(extra="allow", populate_by_name=True)


class EventDetailPayload(_Payload):
    type: Literal["event_detail"] = "event_detail"
    event: dict[str, Any]
    title: str = "Event Details"


class ErrorPayload(_Payload):
    type: Literal["error"] = "error"
    message: str


GenerativeUIPayload = Annotated[
    EmailsPayload | EmailDetailPayload | EventsPayload | EventDetailPayload | ErrorPayload,
    Field(discriminator="type"),
]

_payload_adapter: TypeAdapter[GenerativeUIPayload] = TypeAdapter(GenerativeUIPayload)


def parse_generative_ui(value: Any) -> GenerativeUIPayload | None:
    """Return the structured payload carried by a tool result, if any.

    Anything that is not a mapping with a recognised ``type`` tag (or whose
    fields do not match that tag's shape) yields None so callers fall back to
    generic rendering.
    """
    if not isinstance(value, dict):
        return None
    try:
        return _payload_adapter.validate_python(value)
    except ValidationError:
        return None


def dump_payload(payload: BaseModel) -> dict[str, Any]:
    return payload.model_dump(by_alias=True, exclude_none=True)
