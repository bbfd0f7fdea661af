"""Shared fixtures for the iMessage MCP server tests."""

import pytest

from factories import FakeMessagesSDK, sdk_message
from imessage_mcp.config import DEFAULT_CONFIG, _merge
from imessage_mcp.gateway import MessagingGateway


# =============================================================================
# Fixtures
# =============================================================================

@pytest.fixture
def sample_messages():
    """Three messages across two chats, newest first."""
    return [
        sdk_message("chat-a", "See you soon", 30, sender="+15551234567", is_read=False),
        sdk_message("chat-b", "Lunch?", 20, sender="friend@example.com"),
        sdk_message("chat-a", "On my way", 10, is_from_me=True),
    ]


@pytest.fixture
def fake_sdk(sample_messages):
    return FakeMessagesSDK(sample_messages)


@pytest.fixture
def gateway(fake_sdk):
    return MessagingGateway(fake_sdk)


@pytest.fixture
def config(tmp_path):
    """Default configuration pointing at a temporary directory."""
    return _merge(DEFAULT_CONFIG, {
        "paths": {
            "messages_db": str(tmp_path / "chat.db"),
            "log_dir": str(tmp_path / "logs"),
        },
    })
