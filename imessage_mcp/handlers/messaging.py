"""
Messaging Handlers

Handles tools for sending iMessages:
- send-message: Send to a phone number or e-mail handle
"""

import logging

from imessage_mcp.gateway import MessagingGateway
from imessage_mcp.utils.validation import SendMessageArgs

logger = logging.getLogger(__name__)


async def handle_send_message(args: SendMessageArgs, gateway: MessagingGateway) -> str:
    """
    Handle send-message tool call.

    Args:
        args: Validated {"recipient", "text", "chatId"?}
        gateway: MessagingGateway instance

    Returns:
        Confirmation text
    """
    return await gateway.send_message(args.recipient, args.text, chat_id=args.chat_id)
