"""Gmail tools that compose, forward and reply to emails."""

from pydantic import Field

from orbit.constants import SUCCESS_MESSAGES
from orbit.tools.base import ToolContext, ToolDefinition, ToolInput
from orbit.tools.gmail.helpers import encode_message, get_email_content, header_map, require_message_id


class ComposeEmailInput(ToolInput):
    to: str = Field(..., min_length=3, description="Recipient email address (multiple separated by commas)")
    subject: str = Field(..., description="Email subject line")
    body: str = Field(..., description="Email body content (can include HTML)")
    cc: str | None = Field(default=None, description="CC recipients (optional, comma-separated)")
    bcc: str | None = Field(default=None, description="BCC recipients (optional, comma-separated)")


class ForwardEmailInput(ToolInput):
    message_id: str = Field(..., description="Gmail message ID of the email to forward")
    to: str = Field(..., min_length=3, description="Recipient email address (multiple separated by commas)")
    additional_message: str | None = Field(
        default=None, description="Additional message to add before the forwarded content"
    )
    cc: str | None = Field(default=None, description="CC recipients (optional, comma-separated)")
    bcc: str | None = Field(default=None, description="BCC recipients (optional, comma-separated)")


class ReplyEmailInput(ToolInput):
    message_id: str = Field(..., description="Gmail message ID of the email to reply to")
    body: str = Field(..., description="Reply message content")
    reply_all: bool = Field(
        default=False, description="If true, reply to all recipients; if false, reply only to the sender"
    )


def _recipient_lines(cc: str | None, bcc: str | None, bullet: str = "• ") -> str:
    lines = ""
    if cc:
        lines += f"{bullet}CC: {cc}\n"
    if bcc:
        lines += f"{bullet}BCC: {bcc}\n"
    return lines


async def compose_and_send_email(params: ComposeEmailInput, ctx: ToolContext) -> str:
    raw = encode_message(
        {"To": params.to, "Cc": params.cc, "Bcc": params.bcc, "Subject": params.subject},
        params.body,
    )
    response = await ctx.google.gmail("users/me/messages/send", method="POST", body={"raw": raw})

    return (
        f"{SUCCESS_MESSAGES.EMAIL_SENT}\n\n**Details:**\n"
        f"• To: {params.to}\n"
        f"• Subject: {params.subject}\n"
        f"{_recipient_lines(params.cc, params.bcc)}"
        f"• Message ID: {response.get('id')}"
    )


async def forward_email(params: ForwardEmailInput, ctx: ToolContext) -> str:
    original = await get_email_content(ctx.google, require_message_id(params.message_id))

    subject = original.subject if original.subject.startswith("Fwd:") else f"Fwd: {original.subject}"

    body = f"{params.additional_message}\n\n" if params.additional_message else ""
    body += (
        "---------- Forwarded message ---------\n"
        f"From: {original.sender}\n"
        f"Date: {original.date}\n"
        f"Subject: {original.subject}\n\n"
        f"{original.body}"
    )

    raw = encode_message({"To": params.to, "Cc": params.cc, "Bcc": params.bcc, "Subject": subject}, body)
    await ctx.google.gmail("users/me/messages/send", method="POST", body={"raw": raw})

    return (
        f"{SUCCESS_MESSAGES.EMAIL_FORWARDED}\n\n**Original Email:**\n"
        f"• Subject: {original.subject}\n"
        f"• From: {original.sender}\n\n"
        f"**Forwarded To:** {params.to}\n"
        f"{_recipient_lines(params.cc, params.bcc, bullet='')}"
    )


async def reply_to_email(params: ReplyEmailInput, ctx: ToolContext) -> str:
    message_id = require_message_id(params.message_id)
    message = await ctx.google.gmail(f"users/me/messages/{message_id}", params={"format": "full"})
    headers = header_map(message)
    subject = headers.get("Subject", "")
    sender = headers.get("From", "")

    reply_to = headers.get("Reply-To") or sender
    original_message_id = headers.get("Message-ID") or headers.get("Message-Id", "")
    references = " ".join(ref for ref in (headers.get("References"), original_message_id) if ref)

    cc = ""
    if params.reply_all:
        recipients = [addr.strip() for addr in headers.get("To", "").split(",") if addr.strip()]
        recipients = [addr for addr in recipients if reply_to not in addr]
        recipients += [addr.strip() for addr in headers.get("Cc", "").split(",") if addr.strip()]
        cc = ", ".join(recipients)

    cc_line = f"• CC: {cc}\n" if cc else ""
    reply_subject = subject if subject.startswith("Re:") else f"Re: {subject}"
    raw = encode_message(
        {
            "To": reply_to,
            "Cc": cc,
            "Subject": reply_subject,
            "In-Reply-To": original_message_id,
            "References": references,
        },
        params.body,
    )
    response = await ctx.google.gmail(
        "users/me/messages/send",
        method="POST",
        body={"raw": raw, "threadId": message.get("threadId")},
    )

    return (
        f"{SUCCESS_MESSAGES.REPLY_SENT}\n\n**Original Email:**\n"
        f"• Subject: {subject}\n"
        f"• From: {sender}\n\n"
        f"**Reply Details:**\n"
        f"• To: {reply_to}\n"
        f"{cc_line}"
        f"• Reply Type: {'Reply All' if params.reply_all else 'Reply'}\n"
        f"• Message ID: {response.get('id')}"
    )


def create_writing_tools() -> list[ToolDefinition]:
    return [
        ToolDefinition(
            name="composeAndSendEmail",
            description="Compose and send a new email",
            input_schema_class=ComposeEmailInput,
            handler=compose_and_send_email,
            action="sending email",
        ),
        ToolDefinition(
            name="forwardEmail",
            description="Forward an existing email to new recipients",
            input_schema_class=ForwardEmailInput,
            handler=forward_email,
            action="forwarding email",
        ),
        ToolDefinition(
            name="replyToEmail",
            description="Reply to an existing email, preserving the email thread",
            input_schema_class=ReplyEmailInput,
            handler=reply_to_email,
            action="replying to email",
        ),
    ]
