"""
Messaging gateway: the single seam between tool handlers and the SDK.

The gateway owns the SDK instance for the life of the process, runs its
blocking calls in worker threads, normalizes what it returns into
``MessageRecord`` objects, and translates its failures into the
``MessagingError`` taxonomy.
"""

import asyncio
import logging
from datetime import datetime
from typing import Any, Optional

from imessage_mcp import aggregator
from imessage_mcp.config import sdk_output_suppressed
from imessage_mcp.messages_interface import MessagesInterface
from imessage_mcp.models import (
    ConversationDetail,
    ConversationSummary,
    MessageFilter,
    MessageRecord,
)
from imessage_mcp.utils.errors import (
    InvalidRecipient,
    QueryFailed,
    SDKInitError,
    SendFailed,
)

logger = logging.getLogger(__name__)

DEFAULT_SCAN_MULTIPLIER = 10
DEFAULT_DETAIL_SCAN_LIMIT = 100


def _field(raw: Any, *names: str, default: Any = None) -> Any:
    """Read the first present field from a dict or object, trying each name."""
    for name in names:
        if isinstance(raw, dict):
            if raw.get(name) is not None:
                return raw[name]
        elif getattr(raw, name, None) is not None:
            return getattr(raw, name)
    return default


def _to_datetime(value: Any) -> Optional[datetime]:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        dt = value
    elif isinstance(value, (int, float)):
        # Epoch milliseconds, as JavaScript-style SDKs report them
        dt = datetime.fromtimestamp(value / 1000)
    else:
        try:
            dt = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
        except ValueError:
            logger.debug(f"Unparseable message date: {value!r}")
            return None
    # Naive values are local time; make every timestamp comparable
    return dt if dt.tzinfo else dt.astimezone()


def to_message_record(raw: Any) -> MessageRecord:
    """Build a MessageRecord from one SDK message (dict or object)."""
    sender = _field(raw, "sender", "handle", "sender_handle")
    guid = _field(raw, "guid", "id")
    return MessageRecord(
        id=str(guid) if guid is not None else None,
        text=_field(raw, "text"),
        sender=str(sender) if sender is not None else None,
        timestamp=_to_datetime(_field(raw, "date", "timestamp")),
        is_from_me=bool(_field(raw, "is_from_me", "isFromMe", default=False)),
        chat_id=str(_field(raw, "chat_id", "chatId", default="unknown")),
        is_read=bool(_field(raw, "is_read", "isRead", default=True)),
        is_group_chat=bool(_field(raw, "is_group_chat", "isGroupChat", default=False)),
        service=str(_field(raw, "service", default="iMessage")),
    )


def normalize_query_result(result: Any) -> list:
    """
    Flatten an SDK query result into a list of raw messages.

    SDKs return either a bare sequence or a wrapper carrying a
    ``messages`` field (mapping key or attribute).
    """
    if result is None:
        return []
    if isinstance(result, (list, tuple)):
        return list(result)
    messages = _field(result, "messages")
    if messages is None:
        return []
    return list(messages)


class MessagingGateway:
    """Async facade over the messaging SDK."""

    def __init__(
        self,
        sdk: Any,
        conversation_scan_multiplier: int = DEFAULT_SCAN_MULTIPLIER,
        detail_scan_limit: int = DEFAULT_DETAIL_SCAN_LIMIT,
    ):
        """
        Args:
            sdk: Object providing ``as_recipient``, ``send``, ``get_messages``
                and ``close``
            conversation_scan_multiplier: Messages scanned per requested
                conversation when listing conversations
            detail_scan_limit: Messages scanned when looking up one conversation
        """
        self._sdk = sdk
        self.conversation_scan_multiplier = conversation_scan_multiplier
        self.detail_scan_limit = detail_scan_limit
        self._closed = False

    @classmethod
    def from_config(cls, config: dict) -> "MessagingGateway":
        """
        Initialize the SDK described by ``config`` and wrap it.

        Raises:
            SDKInitError: If the SDK cannot be constructed
        """
        try:
            with sdk_output_suppressed():
                sdk = MessagesInterface(
                    config["paths"]["messages_db"],
                    max_concurrent=config["sdk"]["max_concurrent"],
                    send_timeout=config["sdk"]["send_timeout"],
                )
        except Exception as e:
            raise SDKInitError(f"Failed to initialize messaging SDK: {e}") from e

        limits = config["limits"]
        return cls(
            sdk,
            conversation_scan_multiplier=limits["conversation_scan_multiplier"],
            detail_scan_limit=limits["detail_scan_limit"],
        )

    @property
    def closed(self) -> bool:
        return self._closed

    def _parse_recipient(self, recipient: str) -> str:
        try:
            return self._sdk.as_recipient(recipient)
        except ValueError as e:
            raise InvalidRecipient(recipient) from e

    async def send_message(self, recipient: str, text: str, chat_id: Optional[str] = None) -> str:
        """
        Send a message.

        Returns:
            Confirmation text naming the recipient

        Raises:
            InvalidRecipient: If the SDK cannot parse ``recipient``
            SendFailed: If delivery fails
        """
        handle = self._parse_recipient(recipient)

        try:
            result = await asyncio.to_thread(self._sdk.send, handle, text, chat_id)
        except Exception as e:
            raise SendFailed(f"Failed to send message: {e}") from e

        if isinstance(result, dict) and not result.get("success", True):
            raise SendFailed(f"Failed to send message: {result.get('error') or 'unknown error'}")

        logger.info(f"Message sent to {recipient}")
        return f"Message sent successfully to {recipient}"

    async def query_messages(
        self,
        recipient: Optional[str] = None,
        limit: Optional[int] = None,
        unread_only: bool = False,
        chat_id: Optional[str] = None,
        operation: str = "read messages",
    ) -> list[MessageRecord]:
        """
        Fetch a fresh message snapshot from the SDK.

        Args:
            recipient: Only messages exchanged with this handle
            limit: Maximum number of messages
            unread_only: Only unread messages from others
            chat_id: Only messages in this chat
            operation: Describes the caller in failure messages

        Returns:
            Message records in SDK order (newest first)

        Raises:
            InvalidRecipient: If ``recipient`` cannot be parsed
            QueryFailed: If the SDK query fails
        """
        message_filter = MessageFilter(
            recipient=self._parse_recipient(recipient) if recipient else None,
            chat_id=chat_id,
            limit=limit,
            unread_only=unread_only,
        )

        try:
            result = await asyncio.to_thread(self._sdk.get_messages, message_filter)
            return [to_message_record(raw) for raw in normalize_query_result(result)]
        except Exception as e:
            raise QueryFailed(f"Failed to {operation}: {e}") from e

    async def list_conversations(self, limit: int, offset: int = 0) -> list[ConversationSummary]:
        """
        Recent conversations, newest activity first.

        Only the ``(limit + offset) * conversation_scan_multiplier`` most
        recent messages are scanned, so conversations without a message in
        that window are not listed.
        """
        window = (limit + offset) * self.conversation_scan_multiplier
        messages = await self.query_messages(limit=window, operation="get conversations")
        return aggregator.list_conversations(messages, limit, offset)

    async def get_conversation_detail(self, chat_id: str) -> Optional[ConversationDetail]:
        """Details for ``chat_id`` over its most recent messages, or None if it has none."""
        messages = await self.query_messages(
            chat_id=chat_id,
            limit=self.detail_scan_limit,
            operation="get conversation details",
        )
        return aggregator.conversation_detail(messages, chat_id)

    async def close(self) -> None:
        """Release the SDK. Safe to call more than once."""
        if self._closed:
            return
        self._closed = True
        try:
            await asyncio.to_thread(self._sdk.close)
        finally:
            logger.info("Messaging gateway closed")
