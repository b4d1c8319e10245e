"""Tests for the Gmail tools against a fake Gmail API."""

import base64
import json
from email import message_from_bytes, policy

import pytest

from orbit.constants import ERROR_MESSAGES, SUCCESS_MESSAGES
from orbit.tools.gmail.helpers import extract_text
from orbit.tools.registry import ToolsRegistry
from tests.conftest import GMAIL, gmail_message


@pytest.fixture
def registry() -> ToolsRegistry:
    return ToolsRegistry()


def decode_raw(request):
    raw = json.loads(request.content)["raw"]
    data = base64.urlsafe_b64decode(raw + "=" * (-len(raw) % 4))
    return message_from_bytes(data, policy=policy.default)


class TestDeleteEmail:
    """Test deleting emails by id."""

    @pytest.mark.asyncio
    async def test_moves_to_trash_by_default(self, registry, tool_context, fake_google):
        fake_google.add("GET", f"{GMAIL}/messages/abc", gmail_message("abc"))
        fake_google.add("POST", f"{GMAIL}/messages/abc/trash", {"id": "abc", "labelIds": ["TRASH"]})

        result = await registry.execute("deleteEmail", {"message_id": "abc"}, tool_context)

        assert not result.is_error
        assert result.text.startswith(SUCCESS_MESSAGES.EMAIL_MOVED_TO_TRASH)
        assert "You can still recover this email from the trash folder." in result.text
        assert "• Subject: Quarterly report" in result.text
        assert len(fake_google.requests_to("POST", f"{GMAIL}/messages/abc/trash")) == 1
        assert fake_google.requests_to("DELETE", f"{GMAIL}/messages/abc") == []

    @pytest.mark.asyncio
    async def test_permanent_delete(self, registry, tool_context, fake_google):
        fake_google.add("GET", f"{GMAIL}/messages/abc", gmail_message("abc"))
        fake_google.add("DELETE", f"{GMAIL}/messages/abc", status=204)

        result = await registry.execute("deleteEmail", {"message_id": "abc", "permanent": True}, tool_context)

        assert result.text.startswith(SUCCESS_MESSAGES.EMAIL_DELETED)
        assert "This email cannot be recovered." in result.text
        assert fake_google.requests_to("POST", f"{GMAIL}/messages/abc/trash") == []
        assert len(fake_google.requests_to("DELETE", f"{GMAIL}/messages/abc")) == 1

    @pytest.mark.asyncio
    async def test_missing_email(self, registry, tool_context, fake_google):
        result = await registry.execute("deleteEmail", {"message_id": "gone"}, tool_context)

        assert result.text == f"❌ {ERROR_MESSAGES.EMAIL_NOT_FOUND}"
        assert fake_google.mutating_requests == []

    @pytest.mark.asyncio
    async def test_invalid_message_id(self, registry, tool_context, fake_google):
        result = await registry.execute("deleteEmail", {"message_id": "not an id!"}, tool_context)

        assert result.is_error
        assert result.text == f"❌ {ERROR_MESSAGES.INVALID_MESSAGE_ID}"
        assert fake_google.requests == []


class TestLatestEmailTools:
    """Test the tools that act on the newest inbox message."""

    @pytest.mark.asyncio
    async def test_delete_latest_on_empty_inbox(self, registry, tool_context, fake_google):
        fake_google.add("GET", f"{GMAIL}/messages", {"resultSizeEstimate": 0})

        result = await registry.execute("deleteLatestEmail", {}, tool_context)

        assert result.is_error
        assert result.text == "❌ No emails found in inbox to delete."
        assert fake_google.mutating_requests == []

    @pytest.mark.asyncio
    async def test_delete_latest_trashes_newest(self, registry, tool_context, fake_google):
        fake_google.add("GET", f"{GMAIL}/messages", {"messages": [{"id": "newest", "threadId": "t"}]})
        fake_google.add("GET", f"{GMAIL}/messages/newest", gmail_message("newest", subject="Hello"))
        fake_google.add("POST", f"{GMAIL}/messages/newest/trash", {"id": "newest"})

        result = await registry.execute("deleteLatestEmail", {}, tool_context)

        assert "• Subject: Hello" in result.text
        list_request = fake_google.requests_to("GET", f"{GMAIL}/messages")[0]
        assert list_request.url.params["labelIds"] == "INBOX"
        assert list_request.url.params["maxResults"] == "1"

    @pytest.mark.asyncio
    async def test_reply_to_latest_on_empty_inbox(self, registry, tool_context, fake_google):
        fake_google.add("GET", f"{GMAIL}/messages", {})

        result = await registry.execute("replyToLatestEmail", {"body": "Thanks!"}, tool_context)

        assert result.text == "❌ No emails found in inbox to reply to."
        assert fake_google.mutating_requests == []

    @pytest.mark.asyncio
    async def test_latest_email_details(self, registry, tool_context, fake_google):
        fake_google.add("GET", f"{GMAIL}/messages", {"messages": [{"id": "newest"}]})
        fake_google.add("GET", f"{GMAIL}/messages/newest", gmail_message("newest"))

        result = await registry.execute("getLatestEmailDetails", {}, tool_context)

        assert result.payload["type"] == "email_detail"
        assert result.payload["email"]["id"] == "newest"


class TestSendingTools:
    """Test compose, reply and forward."""

    @pytest.mark.asyncio
    async def test_reply_preserves_thread(self, registry, tool_context, fake_google):
        fake_google.add(
            "GET",
            f"{GMAIL}/messages/abc",
            gmail_message("abc", subject="Budget", thread_id="thread-42", extra_headers={"References": "<root@x>"}),
        )
        fake_google.add("POST", f"{GMAIL}/messages/send", {"id": "sent-1"})

        result = await registry.execute("replyToEmail", {"message_id": "abc", "body": "Looks good"}, tool_context)

        assert result.text.startswith(SUCCESS_MESSAGES.REPLY_SENT)
        assert "• Message ID: sent-1" in result.text

        send = fake_google.requests_to("POST", f"{GMAIL}/messages/send")[0]
        assert json.loads(send.content)["threadId"] == "thread-42"
        sent = decode_raw(send)
        assert sent["Subject"] == "Re: Budget"
        assert sent["To"] == "Alice <alice@example.com>"
        assert sent["In-Reply-To"] == "<abc@mail.example.com>"
        assert sent["References"] == "<root@x> <abc@mail.example.com>"

    @pytest.mark.asyncio
    async def test_reply_all_copies_other_recipients(self, registry, tool_context, fake_google):
        fake_google.add(
            "GET",
            f"{GMAIL}/messages/abc",
            gmail_message(
                "abc",
                extra_headers={"To": "me@example.com, bob@example.com", "Cc": "carol@example.com"},
            ),
        )
        fake_google.add("POST", f"{GMAIL}/messages/send", {"id": "sent-2"})

        result = await registry.execute(
            "replyToEmail", {"message_id": "abc", "body": "Noted", "reply_all": True}, tool_context
        )

        assert "• Reply Type: Reply All" in result.text
        sent = decode_raw(fake_google.requests_to("POST", f"{GMAIL}/messages/send")[0])
        assert "bob@example.com" in sent["Cc"]
        assert "carol@example.com" in sent["Cc"]

    @pytest.mark.asyncio
    async def test_compose(self, registry, tool_context, fake_google):
        fake_google.add("POST", f"{GMAIL}/messages/send", {"id": "sent-3"})

        result = await registry.execute(
            "composeAndSendEmail",
            {"to": "bob@example.com", "subject": "Hi", "body": "<p>Hello</p>", "cc": "carol@example.com"},
            tool_context,
        )

        assert result.text.startswith(SUCCESS_MESSAGES.EMAIL_SENT)
        assert "• CC: carol@example.com" in result.text
        sent = decode_raw(fake_google.requests[0])
        assert sent["To"] == "bob@example.com"
        assert sent.get_content_type() == "text/html"

    @pytest.mark.asyncio
    async def test_forward(self, registry, tool_context, fake_google):
        fake_google.add("GET", f"{GMAIL}/messages/abc", gmail_message("abc", subject="Invoice"))
        fake_google.add("POST", f"{GMAIL}/messages/send", {"id": "sent-4"})

        result = await registry.execute(
            "forwardEmail", {"message_id": "abc", "to": "bob@example.com", "additional_message": "FYI"}, tool_context
        )

        assert result.text.startswith(SUCCESS_MESSAGES.EMAIL_FORWARDED)
        sent = decode_raw(fake_google.requests_to("POST", f"{GMAIL}/messages/send")[0])
        assert sent["Subject"] == "Fwd: Invoice"
        content = sent.get_content()
        assert content.startswith("FYI")
        assert "---------- Forwarded message ---------" in content


class TestReadingTools:
    """Test listing, searching and counting emails."""

    @pytest.mark.asyncio
    async def test_latest_emails_text(self, registry, tool_context, fake_google):
        fake_google.add("GET", f"{GMAIL}/messages", {"messages": [{"id": "m1"}, {"id": "m2"}]})
        fake_google.add("GET", f"{GMAIL}/messages/m1", gmail_message("m1", subject="First"))
        fake_google.add("GET", f"{GMAIL}/messages/m2", gmail_message("m2", subject="Second"))

        result = await registry.execute("getLatestEmails", {"count": 2}, tool_context, output="text")

        assert result.text.startswith("Found 2 recent emails:")
        assert "1. **First**" in result.text
        assert "ID: `m2`" in result.text

    @pytest.mark.asyncio
    async def test_unreadable_messages_are_skipped(self, registry, tool_context, fake_google):
        fake_google.add("GET", f"{GMAIL}/messages", {"messages": [{"id": "m1"}, {"id": "missing"}]})
        fake_google.add("GET", f"{GMAIL}/messages/m1", gmail_message("m1"))

        result = await registry.execute("getLatestEmails", {"count": 2}, tool_context)

        assert result.payload["count"] == 1
        assert [email["id"] for email in result.payload["emails"]] == ["m1"]

    @pytest.mark.asyncio
    async def test_search_without_results(self, registry, tool_context, fake_google):
        fake_google.add("GET", f"{GMAIL}/messages", {})

        result = await registry.execute("searchEmails", {"query": "from:nobody"}, tool_context)

        assert result.payload["subtitle"] == 'No emails found matching "from:nobody"'
        assert result.payload["query"] == "from:nobody"
        assert fake_google.requests[0].url.params["q"] == "from:nobody"

    @pytest.mark.asyncio
    async def test_unread_count(self, registry, tool_context, fake_google):
        fake_google.add("GET", f"{GMAIL}/labels/UNREAD", {"id": "UNREAD", "messagesUnread": 1})

        result = await registry.execute("getUnreadEmailCount", {}, tool_context)

        assert result.text == "You have 1 unread email."

    @pytest.mark.asyncio
    async def test_html_body_is_stripped(self, registry, tool_context, fake_google):
        message = gmail_message("abc")
        message["payload"] = {
            "mimeType": "multipart/alternative",
            "headers": message["payload"]["headers"],
            "parts": [
                {
                    "mimeType": "text/html",
                    "body": {"data": base64.urlsafe_b64encode(b"<p>Hi &amp; bye</p>").decode()},
                }
            ],
        }
        fake_google.add("GET", f"{GMAIL}/messages/abc", message)

        result = await registry.execute("getEmailDetails", {"message_id": "abc"}, tool_context, output="text")

        assert result.text.endswith("Hi & bye")

    def test_style_and_script_contents_are_dropped(self):
        markup = (
            "<html><head><style>.btn{color:red}</style></head>"
            "<body><p>Hello</p><script>track()</script><p>See you</p></body></html>"
        )
        part = {"mimeType": "text/html", "body": {"data": base64.urlsafe_b64encode(markup.encode()).decode()}}

        assert extract_text(part) == "Hello\nSee you"


class TestManagementTools:
    """Test marking and labelling."""

    @pytest.mark.asyncio
    async def test_mark_as_read(self, registry, tool_context, fake_google):
        fake_google.add("POST", f"{GMAIL}/messages/abc/modify", {"id": "abc"})
        fake_google.add("GET", f"{GMAIL}/messages/abc", gmail_message("abc"))

        result = await registry.execute(
            "markEmailAsReadOrUnread", {"message_id": "abc", "mark_as_read": True}, tool_context
        )

        assert result.text.startswith(SUCCESS_MESSAGES.EMAIL_MARKED_READ)
        modify = fake_google.requests_to("POST", f"{GMAIL}/messages/abc/modify")[0]
        assert json.loads(modify.content) == {"removeLabelIds": ["UNREAD"]}

    @pytest.mark.asyncio
    async def test_add_labels_by_name(self, registry, tool_context, fake_google):
        fake_google.add(
            "GET",
            f"{GMAIL}/labels",
            {"labels": [{"id": "STARRED", "name": "STARRED", "type": "system"}, {"id": "Label_1", "name": "Work"}]},
        )
        fake_google.add("POST", f"{GMAIL}/messages/abc/modify", {"id": "abc"})

        result = await registry.execute(
            "manageEmailLabels",
            {"message_id": "abc", "action": "add", "label_names": ["work", "Missing"]},
            tool_context,
        )

        assert result.text.startswith("✅ Labels added to email abc: work")
        assert "⚠️ Labels not found: Missing" in result.text
        modify = fake_google.requests_to("POST", f"{GMAIL}/messages/abc/modify")[0]
        assert json.loads(modify.content) == {"addLabelIds": ["Label_1"]}

    @pytest.mark.asyncio
    async def test_list_labels(self, registry, tool_context, fake_google):
        fake_google.add(
            "GET",
            f"{GMAIL}/labels",
            {"labels": [{"id": "INBOX", "name": "INBOX", "type": "system"}, {"id": "Label_1", "name": "Work"}]},
        )

        result = await registry.execute("listEmailLabels", {}, tool_context)

        assert "**Available Labels (2):**" in result.text
        assert "• INBOX" in result.text
        assert "• Work" in result.text
