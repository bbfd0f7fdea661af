"""
Tool definitions advertised by the server.

The list is fixed: it is built once at import time and returned as-is on
every ``tools/list`` request.
"""

from mcp import types

SEND_MESSAGE = "send-message"
READ_MESSAGES = "read-messages"
GET_CONVERSATIONS = "get-conversations"
GET_CONVERSATION_DETAILS = "get-conversation-details"

TOOL_NAMES = (SEND_MESSAGE, READ_MESSAGES, GET_CONVERSATIONS, GET_CONVERSATION_DETAILS)

TOOL_DEFINITIONS: list[types.Tool] = [
    types.Tool(
        name=SEND_MESSAGE,
        description=(
            "Sends an iMessage to a recipient. "
            "Use this to send text messages to phone numbers or email addresses. "
            "The recipient can be a phone number (e.g., '+1234567890') or email address."
        ),
        inputSchema={
            "type": "object",
            "properties": {
                "recipient": {
                    "type": "string",
                    "description": "Recipient phone number (e.g., '+1234567890') or email address"
                },
                "text": {
                    "type": "string",
                    "description": "Message text to send"
                },
                "chatId": {
                    "type": "string",
                    "description": "Optional chat ID if continuing an existing conversation"
                }
            },
            "required": ["recipient", "text"]
        }
    ),
    types.Tool(
        name=READ_MESSAGES,
        description=(
            "Reads iMessage history, newest first. "
            "Filter by chat ID or by the sender's phone number or email address. "
            "Returns messages with timestamps and sender information."
        ),
        inputSchema={
            "type": "object",
            "properties": {
                "chatId": {
                    "type": "string",
                    "description": "Chat/conversation ID to read from"
                },
                "recipient": {
                    "type": "string",
                    "description": "Phone number or email to filter messages by sender"
                },
                "limit": {
                    "type": "number",
                    "description": "Maximum number of messages to return (default: 50)",
                    "default": 50
                },
                "unreadOnly": {
                    "type": "boolean",
                    "description": "Only return unread messages (default: false)",
                    "default": False
                }
            },
            "required": []
        }
    ),
    types.Tool(
        name=GET_CONVERSATIONS,
        description=(
            "Lists recent iMessage conversations with their last message and unread count. "
            "Conversations are derived from recent message history, so chats with no recent "
            "activity may be missing. Returns chat IDs usable with the other tools."
        ),
        inputSchema={
            "type": "object",
            "properties": {
                "limit": {
                    "type": "number",
                    "description": "Maximum number of conversations to return (default: 50)",
                    "default": 50
                },
                "offset": {
                    "type": "number",
                    "description": "Number of conversations to skip for pagination (default: 0, max: 10000)",
                    "default": 0
                }
            },
            "required": []
        }
    ),
    types.Tool(
        name=GET_CONVERSATION_DETAILS,
        description=(
            "Gets details about a specific conversation by chat ID: "
            "participants, last message, unread count, and whether it is a group chat."
        ),
        inputSchema={
            "type": "object",
            "properties": {
                "chatId": {
                    "type": "string",
                    "description": "Chat/conversation ID"
                }
            },
            "required": ["chatId"]
        }
    ),
]
