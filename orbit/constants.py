"""Shared constants: endpoints, defaults, user-facing messages and prompts."""

GOOGLE_AUTH_URL = "https://accounts.google.com/o/oauth2/v2/auth"
GOOGLE_TOKEN_URL = "https://oauth2.googleapis.com/token"
GOOGLE_USERINFO_URL = "https://www.googleapis.com/oauth2/v2/userinfo"

GMAIL_API_BASE = "https://gmail.googleapis.com/gmail/v1/"
CALENDAR_API_BASE = "https://www.googleapis.com/calendar/v3/"

GOOGLE_SCOPES = [
    "https://www.googleapis.com/auth/gmail.readonly",
    "https://www.googleapis.com/auth/gmail.modify",
    "https://www.googleapis.com/auth/gmail.compose",
    "https://www.googleapis.com/auth/gmail.send",
    "https://www.googleapis.com/auth/calendar",
    "https://www.googleapis.com/auth/userinfo.email",
    "https://www.googleapis.com/auth/userinfo.profile",
]

# Single-tenant: one token record under a fixed key
TOKEN_STORAGE_KEY = "user_tokens"


class DEFAULTS:
    EMAIL_COUNT = 5
    SEARCH_COUNT = 10
    MIN_EMAIL_COUNT = 1
    MAX_EMAIL_COUNT = 20
    MAX_SUMMARIZE_COUNT = 10
    EVENT_COUNT = 10
    MAX_EVENT_COUNT = 50
    UPCOMING_DAYS = 7
    SEARCH_DAYS = 30
    MAX_DAYS = 365
    MEETING_MINUTES = 60
    MEETING_TIME = "10:00 AM"
    TIME_ZONE = "UTC"


class APPROVAL:
    """Decision values delivered through the tool-result side channel."""

    YES = "Yes, confirmed."
    NO = "No, denied."


class ERROR_MESSAGES:
    OAUTH_NOT_CONFIGURED = "Google OAuth not configured"
    NOT_CONNECTED = "Not connected to Gmail"
    TOKEN_EXPIRED = "Gmail token expired and no refresh token available"
    TOKEN_REFRESH_FAILED = "Failed to refresh Gmail token"
    INVALID_MESSAGE_ID = "Invalid message ID provided. Please specify a valid email message ID."
    NO_EMAILS_FOUND = "No emails found"
    EMAIL_NOT_FOUND = (
        "Email not found. The email may have already been deleted or the message ID is invalid. "
        "Please check the email list again and use the correct message ID."
    )
    INSUFFICIENT_PERMISSIONS = (
        "Insufficient permissions. Please disconnect and reconnect your Google account "
        "to grant additional permissions."
    )
    RECONNECT = (
        'You need to connect your Gmail account first using the "Connect Gmail" button. '
        "Once connected, I can help you with your emails!"
    )
    TOOL_DECLINED = "Error: User declined execution of this tool call."
    TOOL_CANCELLED = "Error: Tool call was cancelled before it could run."
    MAX_STEPS = "I stopped after reaching the maximum number of steps for a single request."


class SUCCESS_MESSAGES:
    EMAIL_SENT = "✅ Email sent successfully!"
    EMAIL_FORWARDED = "✅ Email forwarded successfully!"
    EMAIL_DELETED = "🗑️ Email permanently deleted!"
    EMAIL_MOVED_TO_TRASH = "🗑️ Email moved to trash!"
    EMAIL_MARKED_READ = "✅ Email marked as read!"
    EMAIL_MARKED_UNREAD = "✅ Email marked as unread!"
    REPLY_SENT = "✅ Reply sent successfully!"
    EVENT_CREATED = "✅ **Event Created Successfully!**"
    MEETING_SCHEDULED = "✅ **Meeting Scheduled Successfully!**"
    EVENT_UPDATED = "✅ **Event Updated Successfully!**"
    EVENT_DELETED = "✅ **Event deleted successfully!**"
    TASK_SCHEDULED = "Task scheduled successfully"


SYSTEM_PROMPT = """You are Orbit, an assistant that helps users manage their Gmail inbox and Google Calendar.

**Gmail reading:**
- Get latest emails from the inbox, or recent emails including sent mail
- Search emails by sender, subject, content or date
- Get the full content of an email
- Count unread emails
- Summarize recent emails

**Gmail writing and management:**
- Compose and send new emails (with CC and BCC)
- Reply to emails, preserving the thread, with an optional reply-all
- Forward emails to new recipients with an optional note
- Delete emails (move to trash, or permanently delete when explicitly asked)
- Mark emails as read or unread
- Add or remove labels and list available labels

**Google Calendar:**
- List upcoming and today's events, search events, show event details
- Create events, schedule quick meetings, update and delete events

**General:**
- Schedule tasks and reminders for later, list them, and cancel them

When the user refers to "that email" or "the latest one" right after a listing, use deleteLatestEmail,
forwardLatestEmail, replyToLatestEmail or getLatestEmailDetails. When they give a message ID, use the
ID-based tools. Always include message IDs in email listings so they can be referenced later.
Default to moving emails to trash unless the user explicitly asks for permanent deletion.
Ask for clarification when a recipient, subject or body is unclear before sending anything.

IMPORTANT: Only tell users to connect their account if a tool reports an authentication problem
(401, "Not connected to Gmail", or a failed token refresh). For permission errors (403), ask them
to disconnect and reconnect to grant additional permissions. For other errors, show the actual
error message."""


def schedule_prompt(now_iso: str) -> str:
    """Scheduling hint appended to the system prompt with the current date."""
    return f"""[Scheduling]
The current date and time is {now_iso}.
If the user asks to schedule a task or reminder, call scheduleTask with a description and a `when`
object whose `type` is one of:
- "scheduled": run once at `date` (ISO 8601)
- "delayed": run once after `delay_in_seconds` seconds
- "cron": run repeatedly on the five-field `cron` expression
If the user did not say when, do not call scheduleTask; ask them instead."""
