"""Tools that act on the most recent inbox email.

Each resolves the latest message id and then delegates to the id-based tool,
so an empty inbox fails before anything is sent, modified or deleted.
"""

from typing import Any

from pydantic import Field

from orbit.tools.base import ToolContext, ToolDefinition, ToolInput
from orbit.tools.gmail.helpers import latest_inbox_message_id
from orbit.tools.gmail.management import DeleteEmailInput, delete_email
from orbit.tools.gmail.reading import MessageIdInput, NoInput, get_email_details, get_email_details_ui
from orbit.tools.gmail.writing import ForwardEmailInput, ReplyEmailInput, forward_email, reply_to_email


class DeleteLatestInput(ToolInput):
    permanent: bool = Field(
        default=False,
        description="If true, permanently delete the email; if false, move it to trash (recoverable)",
    )


class ForwardLatestInput(ToolInput):
    to: str = Field(..., min_length=3, description="Recipient email address (multiple separated by commas)")
    additional_message: str | None = Field(
        default=None, description="Additional message to add before the forwarded content"
    )
    cc: str | None = Field(default=None, description="CC recipients (optional, comma-separated)")
    bcc: str | None = Field(default=None, description="BCC recipients (optional, comma-separated)")


class ReplyLatestInput(ToolInput):
    body: str = Field(..., description="Reply message content")
    reply_all: bool = Field(
        default=False, description="If true, reply to all recipients; if false, reply only to the sender"
    )


async def delete_latest_email(params: DeleteLatestInput, ctx: ToolContext) -> str:
    message_id = await latest_inbox_message_id(ctx.google, " to delete")
    return await delete_email(DeleteEmailInput(message_id=message_id, permanent=params.permanent), ctx)


async def get_latest_email_details(params: NoInput, ctx: ToolContext) -> str:
    message_id = await latest_inbox_message_id(ctx.google, "")
    return await get_email_details(MessageIdInput(message_id=message_id), ctx)


async def get_latest_email_details_ui(params: NoInput, ctx: ToolContext) -> dict[str, Any]:
    message_id = await latest_inbox_message_id(ctx.google, "")
    return await get_email_details_ui(MessageIdInput(message_id=message_id), ctx)


async def forward_latest_email(params: ForwardLatestInput, ctx: ToolContext) -> str:
    message_id = await latest_inbox_message_id(ctx.google, " to forward")
    return await forward_email(ForwardEmailInput(message_id=message_id, **params.model_dump()), ctx)


async def reply_to_latest_email(params: ReplyLatestInput, ctx: ToolContext) -> str:
    message_id = await latest_inbox_message_id(ctx.google, " to reply to")
    return await reply_to_email(ReplyEmailInput(message_id=message_id, **params.model_dump()), ctx)


def create_convenience_tools() -> list[ToolDefinition]:
    return [
        ToolDefinition(
            name="deleteLatestEmail",
            description="Delete the most recent email in the inbox (moves it to trash unless permanent is set)",
            input_schema_class=DeleteLatestInput,
            handler=delete_latest_email,
            action="deleting latest email",
        ),
        ToolDefinition(
            name="getLatestEmailDetails",
            description="Get full details of the most recent email in the inbox",
            input_schema_class=NoInput,
            handler=get_latest_email_details,
            structured_handler=get_latest_email_details_ui,
            action="getting latest email details",
        ),
        ToolDefinition(
            name="forwardLatestEmail",
            description="Forward the most recent email in the inbox to new recipients",
            input_schema_class=ForwardLatestInput,
            handler=forward_latest_email,
            action="forwarding latest email",
        ),
        ToolDefinition(
            name="replyToLatestEmail",
            description="Reply to the most recent email in the inbox",
            input_schema_class=ReplyLatestInput,
            handler=reply_to_latest_email,
            action="replying to latest email",
        ),
    ]
