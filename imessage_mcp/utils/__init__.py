"""
MCP Server Utilities

Shared validation, response formatting, and error handling utilities
for the iMessage MCP server.
"""

from .errors import (
    MessagingError,
    InvalidArguments,
    InvalidRecipient,
    SendFailed,
    QueryFailed,
    UnknownOperation,
    SDKInitError,
    format_error,
)

from .responses import (
    text_response,
    error_response,
)

from .validation import (
    validate_arguments,
    ARGUMENT_SCHEMAS,
    MAX_MESSAGE_LIMIT,
)

__all__ = [
    # Errors
    "MessagingError",
    "InvalidArguments",
    "InvalidRecipient",
    "SendFailed",
    "QueryFailed",
    "UnknownOperation",
    "SDKInitError",
    "format_error",
    # Responses
    "text_response",
    "error_response",
    # Validation
    "validate_arguments",
    "ARGUMENT_SCHEMAS",
    "MAX_MESSAGE_LIMIT",
]
