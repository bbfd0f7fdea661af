"""
Response formatting utilities for MCP tool handlers.

Turns message records and conversation summaries into the plain-text
bodies returned to the calling agent, and builds ``ToolResult`` envelopes.
"""

from datetime import datetime
from typing import Optional

from imessage_mcp.models import (
    ConversationDetail,
    ConversationSummary,
    MessageRecord,
    ToolResult,
)
from imessage_mcp.utils.errors import format_error

UNKNOWN = "Unknown"
UNKNOWN_DATE = "Unknown date"

NO_MESSAGES = "No messages found"
NO_CONVERSATIONS = "No conversations found"

CONVERSATION_SEPARATOR = "\n\n---\n\n"


def text_response(text: str) -> ToolResult:
    """Create a successful text result."""
    return ToolResult(text=text)


def error_response(error: BaseException) -> ToolResult:
    """Create an error-flagged result for ``error``."""
    return ToolResult(text=format_error(error), is_error=True)


def format_timestamp(value: Optional[datetime], placeholder: str = UNKNOWN_DATE) -> str:
    """Render a timestamp in local time, e.g. ``1/2/2025, 3:04:05 PM``."""
    if value is None:
        return placeholder
    local = value.astimezone() if value.tzinfo else value
    hour = local.hour % 12 or 12
    return (
        f"{local.month}/{local.day}/{local.year}, "
        f"{hour}:{local.minute:02d}:{local.second:02d} {'PM' if local.hour >= 12 else 'AM'}"
    )


def format_message(record: MessageRecord) -> str:
    """One message as ``[date] sender (service): text``."""
    sender = "You" if record.is_from_me else (record.sender or UNKNOWN)
    return (
        f"[{format_timestamp(record.timestamp)}] "
        f"{sender} ({record.service or 'iMessage'}): {record.display_text}"
    )


def format_message_list(records: list[MessageRecord]) -> str:
    if not records:
        return NO_MESSAGES
    return "\n\n".join(format_message(record) for record in records)


def format_participants(participants: tuple[str, ...]) -> str:
    return ", ".join(participants) or UNKNOWN


def format_conversation(summary: ConversationSummary) -> str:
    unread = f" ({summary.unread_count} unread)" if summary.unread_count > 0 else ""
    return (
        f"Chat ID: {summary.chat_id}\n"
        f"Participants: {format_participants(summary.participants)}\n"
        f"Last Message: {summary.last_message}{unread}"
    )


def format_conversation_list(summaries: list[ConversationSummary]) -> str:
    if not summaries:
        return NO_CONVERSATIONS
    return CONVERSATION_SEPARATOR.join(format_conversation(summary) for summary in summaries)


def chat_not_found(chat_id: str) -> str:
    return f"No messages found for chat ID: {chat_id}"


def format_conversation_detail(detail: ConversationDetail) -> str:
    """
    Multi-line detail block for one conversation.

    Every field is present; ``Unknown`` stands in for missing participants
    or dates.
    """
    summary = detail.summary
    return (
        f"Chat ID: {summary.chat_id}\n"
        f"Type: {detail.kind}\n"
        f"Participants: {format_participants(summary.participants)}\n"
        f"Last Message: {summary.last_message}\n"
        f"Last Message Date: {format_timestamp(summary.last_message_at, UNKNOWN)}\n"
        f"Unread Count: {summary.unread_count}\n"
        f"Total Messages: {detail.total_messages}"
    )
