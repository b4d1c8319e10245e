"""Shared fixtures: a fake Google API, a scripted model, tool context and Gmail payload builders."""

import base64
from collections.abc import Callable
from datetime import UTC, datetime
from typing import Any

import httpx
import pytest

from orbit.clients.google import GoogleApiClient
from orbit.models.llm import StepFinished, TextDelta, ToolCallArgsDelta, ToolCallFinished, ToolCallStarted
from orbit.services.llm import to_llm_messages
from orbit.tools.base import ToolContext

FIXED_NOW = datetime(2025, 9, 15, 9, 30, tzinfo=UTC)

GMAIL = "/gmail/v1/users/me"
CALENDAR = "/calendar/v3/calendars/primary"


class StaticTokenProvider:
    """Token provider that always returns the same token."""

    def __init__(self, token: str = "test-token"):
        self.token = token
        self.calls = 0

    async def get_valid_access_token(self) -> str:
        self.calls += 1
        return self.token


class FakeGoogle:
    """Routes Google API requests to canned responses and records every request."""

    def __init__(self):
        self.routes: dict[tuple[str, str], tuple[int, Any]] = {}
        self.requests: list[httpx.Request] = []

    def add(self, method: str, path: str, payload: Any = None, status: int = 200) -> None:
        """Register a response; ``payload`` may be a callable taking the request."""
        self.routes[(method, path)] = (status, payload)

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        route = self.routes.get((request.method, request.url.path))
        if route is None:
            return httpx.Response(404, json={"error": {"code": 404, "message": "Requested entity was not found."}})
        status, payload = route
        if callable(payload):
            payload = payload(request)
        if payload is None:
            return httpx.Response(status)
        return httpx.Response(status, json=payload)

    def requests_to(self, method: str, path: str) -> list[httpx.Request]:
        return [r for r in self.requests if r.method == method and r.url.path == path]

    @property
    def mutating_requests(self) -> list[httpx.Request]:
        return [r for r in self.requests if r.method in ("POST", "PUT", "PATCH", "DELETE")]


def encode_body(text: str) -> str:
    return base64.urlsafe_b64encode(text.encode()).decode().rstrip("=")


def gmail_message(
    message_id: str,
    subject: str = "Quarterly report",
    sender: str = "Alice <alice@example.com>",
    body: str = "Please review the attached report.",
    thread_id: str = "thread-1",
    extra_headers: dict[str, str] | None = None,
) -> dict[str, Any]:
    """Gmail API message resource in ``format=full``."""
    headers = {
        "Subject": subject,
        "From": sender,
        "Date": "Mon, 15 Sep 2025 08:00:00 +0000",
        "Message-ID": f"<{message_id}@mail.example.com>",
        **(extra_headers or {}),
    }
    return {
        "id": message_id,
        "threadId": thread_id,
        "snippet": body[:40],
        "payload": {
            "mimeType": "text/plain",
            "headers": [{"name": name, "value": value} for name, value in headers.items()],
            "body": {"data": encode_body(body)},
        },
    }


@pytest.fixture
def fake_google() -> FakeGoogle:
    return FakeGoogle()


@pytest.fixture
def google_client(fake_google: FakeGoogle) -> GoogleApiClient:
    return GoogleApiClient(
        token_provider=StaticTokenProvider(),
        http_client=httpx.AsyncClient(transport=httpx.MockTransport(fake_google.handler)),
    )


@pytest.fixture
def clock() -> Callable[[], datetime]:
    return lambda: FIXED_NOW


@pytest.fixture
def tool_context(google_client: GoogleApiClient, clock) -> ToolContext:
    return ToolContext(google=google_client, clock=clock)


class FakeLLM:
    """Plays back scripted model steps and records what the model was shown.

    Callables inside a step are invoked instead of yielded, so tests can act
    in the middle of a stream.
    """

    def __init__(self, steps: list[list] | None = None, max_message_chars: int = 1000):
        self.steps = list(steps or [])
        self.max_message_chars = max_message_chars
        self.seen: list[list] = []
        self.system_prompts: list[str] = []

    async def stream_step(self, messages, system_prompt, tools, **kwargs):
        self.seen.append(to_llm_messages(messages))
        self.system_prompts.append(system_prompt)
        step = self.steps.pop(0) if self.steps else [TextDelta("Done."), StepFinished("end_turn")]
        for item in step:
            if callable(item):
                item()
                continue
            yield item

    def validate_user_message(self, message: str) -> None:
        if len(message) > self.max_message_chars:
            raise ValueError("Message too long")


def tool_step(tool_call_id: str, name: str, args: dict) -> list:
    return [
        ToolCallStarted(id=tool_call_id, name=name),
        ToolCallArgsDelta(id=tool_call_id, partial_json="{}"),
        ToolCallFinished(id=tool_call_id, name=name, input=args),
        StepFinished("tool_use"),
    ]

