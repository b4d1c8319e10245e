"""Request and response models for the HTTP API."""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

from orbit.models.chat import Message


class ChatRequest(BaseModel):
    """Request model for the chat endpoint.

    ``message`` may be omitted to resume a turn after confirmation decisions
    have been supplied through the tool-result endpoint.
    """

    message: str | None = Field(default=None, max_length=16000)


class ToolResultRequest(BaseModel):
    """Decision (or custom result) for a pending tool call."""

    tool_call_id: str
    result: Any


class SuccessResponse(BaseModel):
    success: bool


class StopResponse(BaseModel):
    stopped: bool


class MessagesResponse(BaseModel):
    messages: list[Message]


class OAuthCallbackResponse(BaseModel):
    success: bool
    email: str | None = None


class HealthResponse(BaseModel):
    """Response model for health check endpoint."""

    status: str
    timestamp: datetime
    version: str
