"""
Tool registry and dispatch.

Maps tool names to handlers, validates arguments, and turns every failure
inside a handler into an error-flagged ``ToolResult``. Unknown tool names
are the only failure raised to the transport.
"""

import logging
from typing import Any, Awaitable, Callable

from imessage_mcp.gateway import MessagingGateway
from imessage_mcp.handlers import conversations, messaging, reading
from imessage_mcp.models import ToolResult
from imessage_mcp.tools import (
    GET_CONVERSATION_DETAILS,
    GET_CONVERSATIONS,
    READ_MESSAGES,
    SEND_MESSAGE,
)
from imessage_mcp.utils.errors import UnknownOperation
from imessage_mcp.utils.responses import error_response, text_response
from imessage_mcp.utils.validation import ToolArguments, validate_arguments

logger = logging.getLogger(__name__)

Handler = Callable[[ToolArguments, MessagingGateway], Awaitable[str]]

TOOL_REGISTRY: dict[str, Handler] = {
    SEND_MESSAGE: messaging.handle_send_message,
    READ_MESSAGES: reading.handle_read_messages,
    GET_CONVERSATIONS: conversations.handle_get_conversations,
    GET_CONVERSATION_DETAILS: conversations.handle_get_conversation_details,
}


class ToolDispatcher:
    """Routes tool calls to handlers backed by one gateway."""

    def __init__(self, gateway: MessagingGateway):
        self.gateway = gateway

    async def dispatch(self, name: str, arguments: Any) -> ToolResult:
        """
        Handle one tool call.

        Args:
            name: Tool name
            arguments: Raw arguments object from the request

        Returns:
            ToolResult with the formatted text, or with ``Error: ...`` text
            and ``is_error`` set when validation or the handler fails

        Raises:
            UnknownOperation: If no handler is registered under ``name``
        """
        handler = TOOL_REGISTRY.get(name)
        if handler is None:
            logger.warning(f"Unknown tool requested: {name}")
            raise UnknownOperation(name)

        logger.info(f"Tool called: {name} with args: {arguments}")

        try:
            args = validate_arguments(name, arguments)
            text = await handler(args, self.gateway)
        except Exception as e:
            logger.error(f"Error executing tool {name}: {e}", exc_info=True)
            return error_response(e)

        return text_response(text)
