"""
Validation of MCP tool arguments.

Each operation has a pydantic schema; ``ARGUMENT_SCHEMAS`` maps operation
names to schemas so the dispatcher validates every call the same way.
Failures are raised as ``InvalidArguments`` naming the offending field.
"""

import math
import os
from typing import Any, Optional, Union

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    StrictBool,
    StrictFloat,
    StrictInt,
    StrictStr,
    ValidationError,
    field_validator,
)

from imessage_mcp.tools import (
    GET_CONVERSATION_DETAILS,
    GET_CONVERSATIONS,
    READ_MESSAGES,
    SEND_MESSAGE,
)
from imessage_mcp.utils.errors import InvalidArguments

# Validation constants - configurable via environment variables
MAX_MESSAGE_LIMIT = int(os.getenv("IMESSAGE_MAX_LIMIT", "500"))
DEFAULT_LIMIT = 50
MIN_LIMIT = 1
MAX_CONVERSATION_OFFSET = 10_000

Number = Union[StrictInt, StrictFloat]


def _whole_number(value: Optional[float], name: str, min_val: int, max_val: Optional[int] = None) -> Optional[int]:
    if value is None:
        return None
    if isinstance(value, float) and not math.isfinite(value):
        raise ValueError(f"{name} must be a finite number")
    if value != int(value):
        raise ValueError(f"{name} must be a whole number")
    int_value = int(value)
    if int_value < min_val:
        raise ValueError(f"{name} must be at least {min_val}, got {int_value}")
    if max_val is not None and int_value > max_val:
        raise ValueError(f"{name} must be at most {max_val}, got {int_value}")
    return int_value


class ToolArguments(BaseModel):
    """Base for tool argument schemas; accepts camelCase names from the wire."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore", frozen=True)


class SendMessageArgs(ToolArguments):
    recipient: StrictStr
    text: StrictStr
    chat_id: Optional[StrictStr] = Field(default=None, alias="chatId")

    @field_validator("recipient")
    @classmethod
    def _recipient_not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("recipient cannot be empty")
        return value.strip()

    @field_validator("text")
    @classmethod
    def _text_not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("text cannot be empty")
        return value


class ReadMessagesArgs(ToolArguments):
    chat_id: Optional[StrictStr] = Field(default=None, alias="chatId")
    recipient: Optional[StrictStr] = None
    limit: Number = DEFAULT_LIMIT
    unread_only: StrictBool = Field(default=False, alias="unreadOnly")

    @field_validator("limit")
    @classmethod
    def _limit_in_range(cls, value: float) -> int:
        return _whole_number(value, "limit", MIN_LIMIT, MAX_MESSAGE_LIMIT)


class GetConversationsArgs(ToolArguments):
    limit: Number = DEFAULT_LIMIT
    offset: Number = 0

    @field_validator("limit")
    @classmethod
    def _limit_in_range(cls, value: float) -> int:
        return _whole_number(value, "limit", MIN_LIMIT, MAX_MESSAGE_LIMIT)

    @field_validator("offset")
    @classmethod
    def _offset_not_negative(cls, value: float) -> int:
        return _whole_number(value, "offset", 0, MAX_CONVERSATION_OFFSET)


class GetConversationDetailsArgs(ToolArguments):
    chat_id: StrictStr = Field(alias="chatId")

    @field_validator("chat_id")
    @classmethod
    def _chat_id_not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("chatId cannot be empty")
        return value.strip()


ARGUMENT_SCHEMAS: dict[str, type[ToolArguments]] = {
    SEND_MESSAGE: SendMessageArgs,
    READ_MESSAGES: ReadMessagesArgs,
    GET_CONVERSATIONS: GetConversationsArgs,
    GET_CONVERSATION_DETAILS: GetConversationDetailsArgs,
}

# Wire names of required fields, in the order they are reported
REQUIRED_FIELDS: dict[str, list[str]] = {
    SEND_MESSAGE: ["recipient", "text"],
    READ_MESSAGES: [],
    GET_CONVERSATIONS: [],
    GET_CONVERSATION_DETAILS: ["chatId"],
}

_TYPE_PROBLEMS = {
    "string_type": "must be a string",
    "bool_type": "must be a boolean",
    "int_type": "must be a number",
    "float_type": "must be a number",
}


def _describe(error: dict) -> tuple[str, str]:
    """Turn one pydantic error into (field, problem)."""
    loc = error.get("loc") or ("arguments",)
    field = str(loc[0])
    error_type = error.get("type", "")

    if error_type == "missing":
        return field, f"missing required field '{field}'"
    for prefix, problem in _TYPE_PROBLEMS.items():
        if error_type.startswith(prefix):
            return field, f"{field} {problem}"
    if error_type == "value_error":
        # pydantic prefixes messages raised from validators with "Value error, "
        return field, str(error.get("msg", "")).removeprefix("Value error, ")
    return field, f"{field}: {error.get('msg', 'invalid value')}"


def validate_arguments(operation: str, arguments: Any) -> ToolArguments:
    """
    Validate raw tool arguments against the operation's schema.

    Args:
        operation: Registered tool name
        arguments: The untyped arguments object from the tool call

    Returns:
        The typed arguments model for ``operation``

    Raises:
        InvalidArguments: If a field is missing or has the wrong type
        KeyError: If ``operation`` has no schema
    """
    schema = ARGUMENT_SCHEMAS[operation]
    required = REQUIRED_FIELDS[operation]

    if arguments is None:
        arguments = {}
    if not isinstance(arguments, dict):
        raise InvalidArguments(
            operation,
            f"arguments must be an object, got {type(arguments).__name__}",
            required=required,
        )

    try:
        return schema.model_validate(arguments)
    except ValidationError as e:
        field, problem = _describe(e.errors()[0])
        raise InvalidArguments(operation, problem, field=field, required=required) from e
