"""Shared Gmail helpers: message fetching, body extraction and formatting."""

import base64
import html
import re
from email.message import EmailMessage
from typing import Any

from bs4 import BeautifulSoup
from dateutil import parser as date_parser

from orbit.clients.google import GoogleApiClient
from orbit.errors import ApiError, AuthError, InvalidMessageId, NoEmailsFound
from orbit.models.google import EmailContent
from orbit.utils.logging import get_logger

logger = get_logger(__name__)

_MESSAGE_ID_PATTERN = re.compile(r"^[A-Za-z0-9_-]+$")


def require_message_id(message_id: str) -> str:
    """Reject ids that cannot be Gmail message ids before any API call."""
    message_id = message_id.strip()
    if not message_id or not _MESSAGE_ID_PATTERN.match(message_id):
        raise InvalidMessageId()
    return message_id


def _decode_base64url(data: str) -> str:
    padded = data + "=" * (-len(data) % 4)
    return base64.urlsafe_b64decode(padded).decode("utf-8", errors="replace")


def html_to_text(markup: str) -> str:
    """Visible text of an HTML body; style, script and head contents are dropped."""
    soup = BeautifulSoup(markup, "html.parser")
    for element in soup(["head", "style", "script"]):
        element.decompose()
    return soup.get_text(separator="\n", strip=True)


def extract_text(part: dict[str, Any]) -> str:
    """Recursively pull readable text out of a Gmail message payload."""
    mime_type = part.get("mimeType", "")
    data = (part.get("body") or {}).get("data")

    if mime_type == "text/plain" and data:
        return _decode_base64url(data)
    if mime_type == "text/html" and data:
        return html_to_text(_decode_base64url(data))
    if part.get("parts"):
        return "\n".join(extract_text(child) for child in part["parts"])
    return ""


def header_map(message: dict[str, Any]) -> dict[str, str]:
    return {header["name"]: header["value"] for header in (message.get("payload") or {}).get("headers", [])}


def parse_email(message_id: str, message: dict[str, Any]) -> EmailContent:
    headers = header_map(message)
    body = extract_text(message["payload"]) if message.get("payload") else ""
    return EmailContent(
        id=message_id,
        subject=headers.get("Subject", ""),
        sender=headers.get("From", ""),
        date=headers.get("Date", ""),
        body=body.strip(),
        snippet=html.unescape(message.get("snippet", "")),
    )


async def get_email_content(google: GoogleApiClient, message_id: str) -> EmailContent:
    message = await google.gmail(f"users/me/messages/{message_id}", params={"format": "full"})
    return parse_email(message_id, message)


async def list_message_ids(google: GoogleApiClient, params: dict[str, Any]) -> list[str]:
    response = await google.gmail("users/me/messages", params=params)
    return [message["id"] for message in response.get("messages") or []]


async def fetch_emails(google: GoogleApiClient, message_ids: list[str]) -> list[EmailContent]:
    """Fetch messages one at a time, skipping ones that fail individually.

    Auth and permission failures apply to every message, so they propagate.
    """
    emails: list[EmailContent] = []
    for message_id in message_ids:
        try:
            emails.append(await get_email_content(google, message_id))
        except AuthError:
            raise
        except ApiError as e:
            if e.status in (401, 403):
                raise
            logger.warning(f"Skipping email {message_id}: {e}")
    return emails


async def latest_inbox_message_id(google: GoogleApiClient, purpose: str) -> str:
    """Id of the most recent inbox message.

    Raises:
        NoEmailsFound: The inbox is empty
    """
    message_ids = await list_message_ids(google, {"labelIds": "INBOX", "maxResults": 1})
    if not message_ids:
        raise NoEmailsFound(f"No emails found in inbox{purpose}.")
    return message_ids[0]


def encode_message(headers: dict[str, str], body: str) -> str:
    """Build an HTML email and return it base64url encoded for the ``raw`` field."""
    message = EmailMessage()
    for name, value in headers.items():
        if value:
            message[name] = value
    message.set_content(body, subtype="html")
    return base64.urlsafe_b64encode(message.as_bytes()).decode("ascii").rstrip("=")


def format_date(value: str) -> str:
    try:
        return date_parser.parse(value).strftime("%b %d, %Y")
    except (ValueError, OverflowError):
        return value


def format_email_for_list(email: EmailContent, index: int) -> str:
    return (
        f"{index + 1}. **{email.subject}**\n"
        f"   From: {email.sender}\n"
        f"   Date: {email.date}\n"
        f"   Preview: {email.snippet}\n"
        f"   ID: `{email.id}`\n"
    )


def format_email_for_summary(email: EmailContent, index: int) -> str:
    summary = email.snippet or f"{email.body[:100]}..."
    return (
        f"**{index + 1}. {email.subject}**\n"
        f"• From: {email.sender}\n"
        f"• Date: {format_date(email.date)}\n"
        f"• Summary: {summary}\n"
        f"• ID: `{email.id}`\n"
    )


def format_email_detail(email: EmailContent) -> str:
    return (
        "**Email Details:**\n\n"
        f"**Subject:** {email.subject}\n"
        f"**From:** {email.sender}\n"
        f"**Date:** {email.date}\n"
        f"**ID:** `{email.id}`\n\n"
        f"**Content:**\n{email.body or email.snippet}"
    )


def email_card(email: EmailContent) -> dict[str, Any]:
    return email.model_dump(by_alias=True)
