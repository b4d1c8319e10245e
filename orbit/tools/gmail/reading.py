"""Gmail reading tools with plain-text and structured tiers."""

from typing import Any

from pydantic import Field

from orbit.constants import DEFAULTS
from orbit.models.ui import EmailDetailPayload, EmailsPayload, dump_payload
from orbit.tools.base import ToolContext, ToolDefinition, ToolInput
from orbit.tools.gmail.helpers import (
    email_card,
    fetch_emails,
    format_email_detail,
    format_email_for_list,
    format_email_for_summary,
    get_email_content,
    list_message_ids,
    require_message_id,
)

_COUNT_DESCRIPTION = f"Number of emails to retrieve ({DEFAULTS.MIN_EMAIL_COUNT}-{DEFAULTS.MAX_EMAIL_COUNT})"


class EmailCountInput(ToolInput):
    count: int = Field(
        default=DEFAULTS.EMAIL_COUNT,
        ge=DEFAULTS.MIN_EMAIL_COUNT,
        le=DEFAULTS.MAX_EMAIL_COUNT,
        description=_COUNT_DESCRIPTION,
    )


class SummarizeEmailsInput(ToolInput):
    count: int = Field(
        default=DEFAULTS.EMAIL_COUNT,
        ge=DEFAULTS.MIN_EMAIL_COUNT,
        le=DEFAULTS.MAX_SUMMARIZE_COUNT,
        description=f"Number of recent emails to summarize ({DEFAULTS.MIN_EMAIL_COUNT}-{DEFAULTS.MAX_SUMMARIZE_COUNT})",
    )


class SearchEmailsInput(ToolInput):
    query: str = Field(
        ...,
        min_length=1,
        description="Gmail search query (e.g. 'from:john@example.com', 'subject:meeting', 'after:2024/01/01')",
        examples=["from:john@example.com", "subject:invoice is:unread"],
    )
    count: int = Field(
        default=DEFAULTS.SEARCH_COUNT,
        ge=DEFAULTS.MIN_EMAIL_COUNT,
        le=DEFAULTS.MAX_EMAIL_COUNT,
        description=_COUNT_DESCRIPTION,
    )


class MessageIdInput(ToolInput):
    message_id: str = Field(..., description="Gmail message ID")


class NoInput(ToolInput):
    pass


async def get_latest_emails(params: EmailCountInput, ctx: ToolContext) -> str:
    message_ids = await list_message_ids(ctx.google, {"labelIds": "INBOX", "maxResults": params.count})
    if not message_ids:
        return "No emails found in inbox."

    emails = await fetch_emails(ctx.google, message_ids[: params.count])
    if not emails:
        return "No emails could be retrieved."

    return f"Found {len(emails)} recent emails:\n\n" + "\n".join(
        format_email_for_list(email, i) for i, email in enumerate(emails)
    )


async def get_latest_emails_ui(params: EmailCountInput, ctx: ToolContext) -> dict[str, Any]:
    message_ids = await list_message_ids(ctx.google, {"labelIds": "INBOX", "maxResults": params.count})
    if not message_ids:
        return dump_payload(EmailsPayload(title="Latest Emails", message="No emails found in inbox.", count=0))

    emails = await fetch_emails(ctx.google, message_ids[: params.count])
    return dump_payload(
        EmailsPayload(
            emails=[email_card(email) for email in emails],
            title="Latest Emails",
            subtitle=f"Found {len(emails)} recent emails from your inbox",
            count=len(emails),
        )
    )


async def get_all_emails(params: EmailCountInput, ctx: ToolContext) -> str:
    message_ids = await list_message_ids(ctx.google, {"maxResults": params.count})
    if not message_ids:
        return "No emails found."

    emails = await fetch_emails(ctx.google, message_ids[: params.count])
    if not emails:
        return "No emails could be retrieved."

    return f"Found {len(emails)} recent emails (including sent):\n\n" + "\n".join(
        format_email_for_list(email, i) for i, email in enumerate(emails)
    )


async def get_all_emails_ui(params: EmailCountInput, ctx: ToolContext) -> dict[str, Any]:
    message_ids = await list_message_ids(ctx.google, {"maxResults": params.count})
    if not message_ids:
        return dump_payload(EmailsPayload(title="All Recent Emails", message="No emails found.", count=0))

    emails = await fetch_emails(ctx.google, message_ids[: params.count])
    return dump_payload(
        EmailsPayload(
            emails=[email_card(email) for email in emails],
            title="All Recent Emails",
            subtitle=f"Found {len(emails)} recent emails (including sent)",
            count=len(emails),
        )
    )


async def search_emails(params: SearchEmailsInput, ctx: ToolContext) -> str:
    message_ids = await list_message_ids(ctx.google, {"q": params.query, "maxResults": params.count})
    if not message_ids:
        return f'No emails found matching query: "{params.query}"'

    emails = await fetch_emails(ctx.google, message_ids[: params.count])
    if not emails:
        return f'No emails could be retrieved for query: "{params.query}"'

    return f'Found {len(emails)} emails matching "{params.query}":\n\n' + "\n".join(
        format_email_for_list(email, i) for i, email in enumerate(emails)
    )


async def search_emails_ui(params: SearchEmailsInput, ctx: ToolContext) -> dict[str, Any]:
    message_ids = await list_message_ids(ctx.google, {"q": params.query, "maxResults": params.count})
    emails = await fetch_emails(ctx.google, message_ids[: params.count]) if message_ids else []

    subtitle = (
        f'Found {len(emails)} emails matching "{params.query}"'
        if emails
        else f'No emails found matching "{params.query}"'
    )
    return dump_payload(
        EmailsPayload(
            emails=[email_card(email) for email in emails],
            title="Search Results",
            subtitle=subtitle,
            count=len(emails),
            query=params.query,
        )
    )


async def get_email_details(params: MessageIdInput, ctx: ToolContext) -> str:
    email = await get_email_content(ctx.google, require_message_id(params.message_id))
    return format_email_detail(email)


async def get_email_details_ui(params: MessageIdInput, ctx: ToolContext) -> dict[str, Any]:
    email = await get_email_content(ctx.google, require_message_id(params.message_id))
    return dump_payload(EmailDetailPayload(email=email_card(email)))


async def summarize_emails(params: SummarizeEmailsInput, ctx: ToolContext) -> str:
    message_ids = await list_message_ids(ctx.google, {"labelIds": "INBOX", "maxResults": params.count})
    if not message_ids:
        return "No emails found to summarize."

    emails = await fetch_emails(ctx.google, message_ids[: params.count])
    if not emails:
        return "No emails could be retrieved for summarization."

    return f"**Summary of {len(emails)} Recent Emails:**\n\n" + "\n".join(
        format_email_for_summary(email, i) for i, email in enumerate(emails)
    )


async def summarize_emails_ui(params: SummarizeEmailsInput, ctx: ToolContext) -> dict[str, Any]:
    message_ids = await list_message_ids(ctx.google, {"labelIds": "INBOX", "maxResults": params.count})
    if not message_ids:
        return dump_payload(EmailsPayload(title="Email Summary", message="No emails found to summarize.", count=0))

    emails = await fetch_emails(ctx.google, message_ids[: params.count])
    return dump_payload(
        EmailsPayload(
            emails=[email_card(email) for email in emails],
            title="Email Summary",
            subtitle=f"Summary of {len(emails)} recent emails",
            count=len(emails),
            compact=True,
        )
    )


async def get_unread_email_count(params: NoInput, ctx: ToolContext) -> str:
    label = await ctx.google.gmail("users/me/labels/UNREAD")
    unread = label.get("messagesUnread") or 0
    if unread == 0:
        return "You have no unread emails."
    return f"You have {unread} unread email{'' if unread == 1 else 's'}."


def create_reading_tools() -> list[ToolDefinition]:
    return [
        ToolDefinition(
            name="getLatestEmails",
            description="Get the latest emails from the Gmail inbox",
            input_schema_class=EmailCountInput,
            handler=get_latest_emails,
            structured_handler=get_latest_emails_ui,
            action="fetching emails",
        ),
        ToolDefinition(
            name="getAllEmails",
            description="Get recent emails including both received and sent emails",
            input_schema_class=EmailCountInput,
            handler=get_all_emails,
            structured_handler=get_all_emails_ui,
            action="fetching emails",
        ),
        ToolDefinition(
            name="searchEmails",
            description="Search emails in Gmail by query (sender, subject, content, date, etc.)",
            input_schema_class=SearchEmailsInput,
            handler=search_emails,
            structured_handler=search_emails_ui,
            action="searching emails",
        ),
        ToolDefinition(
            name="getEmailDetails",
            description="Get full details of a specific email including its complete content",
            input_schema_class=MessageIdInput,
            handler=get_email_details,
            structured_handler=get_email_details_ui,
            action="fetching email details",
        ),
        ToolDefinition(
            name="summarizeEmails",
            description="Get a summary of recent inbox emails with key information (excludes sent emails)",
            input_schema_class=SummarizeEmailsInput,
            handler=summarize_emails,
            structured_handler=summarize_emails_ui,
            action="summarizing emails",
        ),
        ToolDefinition(
            name="getUnreadEmailCount",
            description="Get the count of unread emails in the Gmail inbox",
            input_schema_class=NoInput,
            handler=get_unread_email_count,
            action="fetching unread email count",
        ),
    ]
