"""Data models shared by the gateway, aggregator and tool handlers."""

from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from mcp import types

NO_TEXT = "(no text)"


@dataclass(frozen=True)
class MessageRecord:
    """A single message as returned by the messaging SDK."""

    text: Optional[str]
    chat_id: str
    timestamp: Optional[datetime] = None
    is_from_me: bool = False
    sender: Optional[str] = None
    is_read: bool = True
    is_group_chat: bool = False
    service: str = "iMessage"
    id: Optional[str] = None

    @property
    def display_text(self) -> str:
        return self.text or NO_TEXT


@dataclass(frozen=True)
class ConversationSummary:
    """Conversation state derived from one message snapshot."""

    chat_id: str
    last_message: str
    last_message_at: Optional[datetime]
    participants: tuple[str, ...] = ()
    unread_count: int = 0


@dataclass(frozen=True)
class ConversationDetail:
    """Summary of one conversation plus its classification and size."""

    summary: ConversationSummary
    is_group_chat: bool
    total_messages: int

    @property
    def kind(self) -> str:
        return "Group Chat" if self.is_group_chat else "1-on-1"


@dataclass
class MessageFilter:
    """Filter passed through to the SDK message query."""

    recipient: Optional[str] = None
    chat_id: Optional[str] = None
    limit: Optional[int] = None
    unread_only: bool = False


@dataclass
class ToolResult:
    """Outcome of one tool invocation: a text body and an error flag."""

    text: str
    is_error: bool = False

    def to_call_tool_result(self) -> types.CallToolResult:
        return types.CallToolResult(
            content=[types.TextContent(type="text", text=self.text)],
            isError=self.is_error,
        )

    def to_dict(self) -> dict:
        return {
            "content": [{"type": "text", "text": self.text}],
            "isError": self.is_error,
        }
