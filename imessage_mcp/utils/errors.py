"""
Error types and error-message normalization for MCP tool handlers.

Every failure a tool call can hit is a ``MessagingError`` subclass. The
dispatcher turns them into ``Error: ...`` text results; only
``UnknownOperation`` is surfaced to the caller as a protocol fault.
"""

import logging
from typing import Optional

logger = logging.getLogger(__name__)

# Common error patterns for permission issues
PERMISSION_ERROR_PATTERNS = [
    "unable to open database",
    "permission denied",
    "operation not permitted",
    "authorization denied",
    "authorization not granted",
    "not authorized",
]

FULL_DISK_ACCESS_HELP = """
To grant Full Disk Access:

1. Open System Settings (or System Preferences on older macOS)
2. Go to Privacy & Security -> Full Disk Access
3. Add the terminal or application that launches this server
4. Toggle it ON and restart that application

The Messages database is protected by macOS privacy controls."""

DATABASE_LOCKED_HELP = """
The Messages database may be in use by another process.
Wait a few seconds and try again."""


class MessagingError(Exception):
    """Base exception for all messaging tool errors."""


class InvalidArguments(MessagingError):
    """Tool arguments are missing or have the wrong shape."""

    def __init__(
        self,
        operation: str,
        problem: str,
        field: Optional[str] = None,
        required: Optional[list[str]] = None,
    ):
        self.operation = operation
        self.field = field
        self.required = required or []
        message = f"Invalid arguments for {operation}: {problem}"
        if self.required:
            message += f". Required: {', '.join(self.required)}"
        super().__init__(message)


class InvalidRecipient(MessagingError):
    """Recipient is neither a phone number nor an e-mail address."""

    def __init__(self, recipient: str):
        self.recipient = recipient
        super().__init__(
            f"Invalid recipient format: {recipient}. "
            "Expected phone number (e.g., +1234567890) or email address."
        )


class SendFailed(MessagingError):
    """The messaging SDK reported a delivery failure."""


class QueryFailed(MessagingError):
    """The messaging SDK failed to return messages."""


class UnknownOperation(MessagingError):
    """No handler is registered under the requested tool name."""

    def __init__(self, name: str):
        self.name = name
        super().__init__(f"Unknown tool: {name}")


class SDKInitError(MessagingError):
    """The messaging SDK could not be initialized."""


def is_permission_error(error: BaseException) -> bool:
    """
    Check if an error is likely a permission/access error.

    The error's cause chain is inspected too, since SDK failures arrive
    wrapped in ``QueryFailed``.
    """
    current: Optional[BaseException] = error
    while current is not None:
        text = str(current).lower()
        if any(pattern in text for pattern in PERMISSION_ERROR_PATTERNS):
            return True
        current = current.__cause__
    return False


def _is_locked_error(error: BaseException) -> bool:
    text = str(error).lower()
    cause = str(error.__cause__).lower() if error.__cause__ else ""
    return any(word in text or word in cause for word in ("database is locked", "database is busy"))


def format_error(error: BaseException) -> str:
    """
    Render an exception as the user-visible error text.

    Args:
        error: The exception raised while handling a tool call

    Returns:
        ``Error: <cause>``, followed by troubleshooting steps for
        database permission and locking problems
    """
    text = f"Error: {error}"
    if isinstance(error, QueryFailed):
        if is_permission_error(error):
            text += f"\n{FULL_DISK_ACCESS_HELP}"
        elif _is_locked_error(error):
            text += f"\n{DATABASE_LOCKED_HELP}"
    return text
