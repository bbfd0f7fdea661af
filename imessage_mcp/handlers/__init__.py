"""
MCP Tool Handlers Package

Organized by domain:
- messaging: send-message
- reading: read-messages
- conversations: get-conversations, get-conversation-details
"""

from . import messaging
from . import reading
from . import conversations

__all__ = [
    "messaging",
    "reading",
    "conversations",
]
