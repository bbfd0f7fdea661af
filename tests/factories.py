"""
Test data builders and the in-memory messaging SDK.

``FakeMessagesSDK`` has the same surface as ``MessagesInterface``;
recipient parsing is delegated to the real parser so validation behaves
as in production.
"""

from datetime import datetime, timedelta, timezone
from typing import Optional

from imessage_mcp.messages_interface import as_recipient
from imessage_mcp.models import MessageFilter, MessageRecord

BASE_TIME = datetime(2025, 6, 1, 12, 0, 0, tzinfo=timezone.utc)


def at(minutes: int) -> datetime:
    """Timestamp ``minutes`` after BASE_TIME."""
    return BASE_TIME + timedelta(minutes=minutes)


def record(
    chat_id: str,
    text: Optional[str] = "hello",
    minutes: Optional[int] = 0,
    sender: Optional[str] = "+15551234567",
    is_from_me: bool = False,
    is_read: bool = True,
    is_group_chat: bool = False,
) -> MessageRecord:
    return MessageRecord(
        text=text,
        chat_id=chat_id,
        timestamp=at(minutes) if minutes is not None else None,
        is_from_me=is_from_me,
        sender=None if is_from_me else sender,
        is_read=is_read,
        is_group_chat=is_group_chat,
    )


def sdk_message(
    chat_id: str,
    text: Optional[str],
    minutes: int,
    sender: Optional[str] = "+15551234567",
    is_from_me: bool = False,
    is_read: bool = True,
    is_group_chat: bool = False,
) -> dict:
    """One message in the shape MessagesInterface.get_messages returns."""
    return {
        "guid": f"{chat_id}-{minutes}",
        "text": text,
        "date": at(minutes),
        "is_from_me": is_from_me,
        "is_read": is_read,
        "service": "iMessage",
        "sender": None if is_from_me else sender,
        "chat_id": chat_id,
        "is_group_chat": is_group_chat,
    }


class FakeMessagesSDK:
    """In-memory stand-in for MessagesInterface."""

    def __init__(self, messages: Optional[list] = None, wrap: bool = True):
        self.messages = messages or []
        self.wrap = wrap
        self.sent: list[tuple] = []
        self.filters: list[MessageFilter] = []
        self.send_result = {"success": True, "error": None}
        self.query_error: Optional[Exception] = None
        self.close_calls = 0

    def as_recipient(self, value: str) -> str:
        return as_recipient(value)

    def send(self, recipient: str, text: str, chat_id: Optional[str] = None) -> dict:
        self.sent.append((recipient, text, chat_id))
        return self.send_result

    def get_messages(self, message_filter: MessageFilter):
        self.filters.append(message_filter)
        if self.query_error is not None:
            raise self.query_error
        messages = [
            m for m in self.messages
            if message_filter.chat_id is None or m["chat_id"] == message_filter.chat_id
        ]
        if message_filter.limit:
            messages = messages[:message_filter.limit]
        if self.wrap:
            return {"messages": messages, "total": len(messages)}
        return messages

    def close(self) -> None:
        self.close_calls += 1
