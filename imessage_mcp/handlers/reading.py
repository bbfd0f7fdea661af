"""
Reading Handlers

Handles tools for reading message history:
- read-messages: recent messages, optionally by chat, sender or unread state
"""

import logging

from imessage_mcp.gateway import MessagingGateway
from imessage_mcp.utils.responses import format_message_list
from imessage_mcp.utils.validation import ReadMessagesArgs

logger = logging.getLogger(__name__)


async def handle_read_messages(args: ReadMessagesArgs, gateway: MessagingGateway) -> str:
    """
    Handle read-messages tool call.

    Args:
        args: Validated {"chatId"?, "recipient"?, "limit", "unreadOnly"}
        gateway: MessagingGateway instance

    Returns:
        Messages separated by blank lines, or "No messages found"
    """
    records = await gateway.query_messages(
        recipient=args.recipient,
        limit=args.limit,
        unread_only=args.unread_only,
        chat_id=args.chat_id,
    )
    logger.info(f"read-messages returned {len(records)} messages")
    return format_message_list(records)
