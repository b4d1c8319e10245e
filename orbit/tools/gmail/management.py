"""Gmail tools that delete, mark and label emails."""

from typing import Literal

from pydantic import Field

from orbit.constants import ERROR_MESSAGES, SUCCESS_MESSAGES
from orbit.errors import ApiError
from orbit.tools.base import ToolContext, ToolDefinition, ToolInput
from orbit.tools.gmail.helpers import get_email_content, require_message_id


class DeleteEmailInput(ToolInput):
    message_id: str = Field(..., description="Gmail message ID of the email to delete")
    permanent: bool = Field(
        default=False,
        description="If true, permanently delete the email; if false, move it to trash (recoverable)",
    )


class MarkEmailInput(ToolInput):
    message_id: str = Field(..., description="Gmail message ID of the email")
    mark_as_read: bool = Field(..., description="True to mark the email as read, false to mark it as unread")


class ManageLabelsInput(ToolInput):
    message_id: str = Field(..., description="Gmail message ID of the email")
    action: Literal["add", "remove"] = Field(..., description="Whether to add or remove the labels")
    label_names: list[str] = Field(
        ..., min_length=1, description="Label names to add or remove (e.g. 'IMPORTANT', 'STARRED', 'Work')"
    )


class ListLabelsInput(ToolInput):
    message_id: str | None = Field(
        default=None, description="Optional message ID; when given, list only the labels on that email"
    )


async def delete_email(params: DeleteEmailInput, ctx: ToolContext) -> str:
    message_id = require_message_id(params.message_id)
    try:
        email = await get_email_content(ctx.google, message_id)
        if params.permanent:
            await ctx.google.gmail(f"users/me/messages/{message_id}", method="DELETE")
        else:
            await ctx.google.gmail(f"users/me/messages/{message_id}/trash", method="POST")
    except ApiError as e:
        if e.status == 404:
            return f"❌ {ERROR_MESSAGES.EMAIL_NOT_FOUND}"
        raise

    if params.permanent:
        headline, label = SUCCESS_MESSAGES.EMAIL_DELETED, "Deleted Email"
        recovery = "⚠️ This email cannot be recovered."
    else:
        headline, label = SUCCESS_MESSAGES.EMAIL_MOVED_TO_TRASH, "Moved Email"
        recovery = "💡 You can still recover this email from the trash folder."
    return (
        f"{headline}\n\n**{label}:**\n"
        f"• Subject: {email.subject}\n"
        f"• From: {email.sender}\n"
        f"• Date: {email.date}\n"
        f"• Message ID: {message_id}\n\n"
        f"{recovery}"
    )


async def mark_email_as_read_or_unread(params: MarkEmailInput, ctx: ToolContext) -> str:
    message_id = require_message_id(params.message_id)
    body = {"removeLabelIds": ["UNREAD"]} if params.mark_as_read else {"addLabelIds": ["UNREAD"]}
    await ctx.google.gmail(f"users/me/messages/{message_id}/modify", method="POST", body=body)

    email = await get_email_content(ctx.google, message_id)
    headline = SUCCESS_MESSAGES.EMAIL_MARKED_READ if params.mark_as_read else SUCCESS_MESSAGES.EMAIL_MARKED_UNREAD
    return (
        f"{headline}\n\n**Email Details:**\n"
        f"• Subject: {email.subject}\n"
        f"• From: {email.sender}\n"
        f"• Status: {'Read' if params.mark_as_read else 'Unread'}"
    )


async def _label_ids_by_name(ctx: ToolContext) -> dict[str, str]:
    response = await ctx.google.gmail("users/me/labels")
    return {label["name"].lower(): label["id"] for label in response.get("labels") or []}


async def manage_email_labels(params: ManageLabelsInput, ctx: ToolContext) -> str:
    message_id = require_message_id(params.message_id)
    labels = await _label_ids_by_name(ctx)

    label_ids: list[str] = []
    missing: list[str] = []
    for name in params.label_names:
        label_id = labels.get(name.lower())
        if label_id:
            label_ids.append(label_id)
        else:
            missing.append(name)

    if not label_ids:
        return f"❌ None of the labels were found: {', '.join(missing)}"

    key = "addLabelIds" if params.action == "add" else "removeLabelIds"
    await ctx.google.gmail(f"users/me/messages/{message_id}/modify", method="POST", body={key: label_ids})

    verb = "added to" if params.action == "add" else "removed from"
    applied = [name for name in params.label_names if name not in missing]
    result = f"✅ Labels {verb} email {message_id}: {', '.join(applied)}"
    if missing:
        result += f"\n⚠️ Labels not found: {', '.join(missing)}"
    return result


async def list_email_labels(params: ListLabelsInput, ctx: ToolContext) -> str:
    response = await ctx.google.gmail("users/me/labels")
    labels = response.get("labels") or []

    if params.message_id:
        message_id = require_message_id(params.message_id)
        message = await ctx.google.gmail(f"users/me/messages/{message_id}", params={"format": "minimal"})
        names = {label["id"]: label["name"] for label in labels}
        applied = [names.get(label_id, label_id) for label_id in message.get("labelIds") or []]
        if not applied:
            return f"Email {message_id} has no labels."
        return f"**Labels on email {message_id}:**\n" + "\n".join(f"• {name}" for name in applied)

    if not labels:
        return "No labels found."

    system = sorted(label["name"] for label in labels if label.get("type") == "system")
    user = sorted(label["name"] for label in labels if label.get("type") != "system")
    result = f"**Available Labels ({len(labels)}):**\n"
    if system:
        result += "\n**System labels:**\n" + "\n".join(f"• {name}" for name in system) + "\n"
    if user:
        result += "\n**Your labels:**\n" + "\n".join(f"• {name}" for name in user) + "\n"
    return result.rstrip()


def create_management_tools() -> list[ToolDefinition]:
    return [
        ToolDefinition(
            name="deleteEmail",
            description=(
                "Delete an email by message ID. Moves it to trash by default; "
                "only delete permanently when the user explicitly asks"
            ),
            input_schema_class=DeleteEmailInput,
            handler=delete_email,
            action="deleting email",
        ),
        ToolDefinition(
            name="markEmailAsReadOrUnread",
            description="Mark an email as read or unread",
            input_schema_class=MarkEmailInput,
            handler=mark_email_as_read_or_unread,
            action="updating email",
        ),
        ToolDefinition(
            name="manageEmailLabels",
            description="Add or remove labels on an email",
            input_schema_class=ManageLabelsInput,
            handler=manage_email_labels,
            action="managing labels",
        ),
        ToolDefinition(
            name="listEmailLabels",
            description="List the available Gmail labels, or the labels on a specific email",
            input_schema_class=ListLabelsInput,
            handler=list_email_labels,
            action="listing labels",
        ),
    ]
