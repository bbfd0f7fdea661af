"""
Conversation Handlers

Handles tools that summarize conversations:
- get-conversations: recent chats with last message and unread count
- get-conversation-details: one chat by ID
"""

import logging

from imessage_mcp.gateway import MessagingGateway
from imessage_mcp.utils.responses import (
    chat_not_found,
    format_conversation_detail,
    format_conversation_list,
)
from imessage_mcp.utils.validation import (
    GetConversationDetailsArgs,
    GetConversationsArgs,
)

logger = logging.getLogger(__name__)


async def handle_get_conversations(args: GetConversationsArgs, gateway: MessagingGateway) -> str:
    """Handle get-conversations tool call."""
    summaries = await gateway.list_conversations(args.limit, offset=args.offset)
    logger.info(f"get-conversations returned {len(summaries)} conversations")
    return format_conversation_list(summaries)


async def handle_get_conversation_details(
    args: GetConversationDetailsArgs,
    gateway: MessagingGateway
) -> str:
    """Handle get-conversation-details tool call."""
    detail = await gateway.get_conversation_detail(args.chat_id)
    if detail is None:
        return chat_not_found(args.chat_id)
    return format_conversation_detail(detail)
