"""
Unit tests for conversation aggregation.
Covers grouping, the last-message merge rules, ordering and pagination.
"""

import pytest

from factories import at, record
from imessage_mcp.aggregator import (
    conversation_detail,
    group_by_conversation,
    list_conversations,
)


class TestGroupByConversation:
    """Tests for group_by_conversation."""

    def test_empty_input(self):
        assert group_by_conversation([]) == {}

    def test_one_summary_per_chat(self):
        summaries = group_by_conversation([
            record("a", minutes=3),
            record("b", minutes=2),
            record("a", minutes=1),
        ])
        assert set(summaries) == {"a", "b"}

    def test_later_timestamp_replaces_last_message(self):
        summaries = group_by_conversation([
            record("a", text="older", minutes=1),
            record("a", text="newer", minutes=5),
        ])
        assert summaries["a"].last_message == "newer"
        assert summaries["a"].last_message_at == at(5)

    def test_tie_keeps_first_seen(self):
        summaries = group_by_conversation([
            record("a", text="first", minutes=5),
            record("a", text="second", minutes=5),
        ])
        assert summaries["a"].last_message == "first"

    def test_missing_timestamp_never_wins(self):
        summaries = group_by_conversation([
            record("a", text="dated", minutes=5),
            record("a", text="undated", minutes=None),
        ])
        assert summaries["a"].last_message == "dated"

    def test_timestamp_beats_missing_first_timestamp(self):
        summaries = group_by_conversation([
            record("a", text="undated", minutes=None),
            record("a", text="dated", minutes=1),
        ])
        assert summaries["a"].last_message == "dated"
        assert summaries["a"].last_message_at == at(1)

    def test_missing_text_placeholder(self):
        summaries = group_by_conversation([record("a", text=None)])
        assert summaries["a"].last_message == "(no text)"

    def test_participants_exclude_local_user(self):
        summaries = group_by_conversation([
            record("a", sender="+15550000001", minutes=3),
            record("a", is_from_me=True, minutes=2),
            record("a", sender="+15550000002", minutes=1),
            record("a", sender="+15550000001", minutes=0),
        ])
        assert summaries["a"].participants == ("+15550000001", "+15550000002")

    def test_unread_counts_only_incoming(self):
        summaries = group_by_conversation([
            record("a", is_read=False, minutes=3),
            record("a", is_read=False, is_from_me=True, minutes=2),
            record("a", is_read=True, minutes=1),
            record("a", is_read=False, minutes=0),
        ])
        assert summaries["a"].unread_count == 2


class TestListConversations:
    """Tests for list_conversations ordering and slicing."""

    def test_sorted_newest_first(self):
        summaries = list_conversations([
            record("old", minutes=1),
            record("new", minutes=9),
            record("mid", minutes=5),
        ], limit=10)
        assert [s.chat_id for s in summaries] == ["new", "mid", "old"]

    def test_limit_applies_after_sort(self):
        summaries = list_conversations([
            record("old", minutes=1),
            record("new", minutes=9),
        ], limit=1)
        assert [s.chat_id for s in summaries] == ["new"]

    def test_offset_skips_conversations(self):
        summaries = list_conversations([
            record("c", minutes=1),
            record("a", minutes=9),
            record("b", minutes=5),
        ], limit=1, offset=1)
        assert [s.chat_id for s in summaries] == ["b"]

    def test_undated_conversations_sort_last(self):
        summaries = list_conversations([
            record("undated", minutes=None),
            record("dated", minutes=0),
        ], limit=10)
        assert [s.chat_id for s in summaries] == ["dated", "undated"]

    def test_equal_timestamps_keep_first_seen_order(self):
        summaries = list_conversations([
            record("first", minutes=4),
            record("second", minutes=4),
        ], limit=10)
        assert [s.chat_id for s in summaries] == ["first", "second"]

    def test_empty_snapshot(self):
        assert list_conversations([], limit=5) == []


class TestConversationDetail:
    """Tests for conversation_detail."""

    def test_not_found(self):
        assert conversation_detail([record("a")], "missing") is None

    def test_counts_only_matching_chat(self):
        detail = conversation_detail([
            record("a", minutes=3, is_read=False),
            record("b", minutes=2, is_read=False),
            record("a", minutes=1, is_from_me=True),
        ], "a")
        assert detail.total_messages == 2
        assert detail.summary.unread_count == 1
        assert detail.summary.last_message_at == at(3)

    def test_group_flag_from_any_record(self):
        detail = conversation_detail([
            record("g", minutes=2),
            record("g", minutes=1, is_group_chat=True),
        ], "g")
        assert detail.is_group_chat is True
        assert detail.kind == "Group Chat"

    def test_one_on_one(self):
        detail = conversation_detail([record("d")], "d")
        assert detail.kind == "1-on-1"


class TestRepeatability:
    """Aggregating the same snapshot twice gives the same answer."""

    @pytest.fixture
    def snapshot(self):
        return [
            record("a", text="latest", minutes=9, is_read=False),
            record("b", text="group", minutes=7, is_group_chat=True, sender="+15550000002"),
            record("a", text="tie", minutes=9),
            record("a", minutes=4, is_from_me=True),
            record("c", text="undated", minutes=None),
            record("b", minutes=2, sender="+15550000003", is_read=False),
        ]

    def test_group_by_conversation_twice(self, snapshot):
        assert group_by_conversation(snapshot) == group_by_conversation(snapshot)

    def test_list_conversations_twice(self, snapshot):
        first = list_conversations(snapshot, limit=2, offset=1)
        assert first == list_conversations(snapshot, limit=2, offset=1)
        assert [s.chat_id for s in first] == ["b", "c"]

    def test_conversation_detail_twice(self, snapshot):
        first = conversation_detail(snapshot, "b")
        assert first == conversation_detail(snapshot, "b")
        assert first.total_messages == 2

    def test_snapshot_is_not_modified(self, snapshot):
        before = list(snapshot)
        group_by_conversation(snapshot)
        list_conversations(snapshot, limit=10)
        conversation_detail(snapshot, "a")
        assert snapshot == before

    def test_tuple_snapshot(self, snapshot):
        frozen = tuple(snapshot)
        assert list_conversations(frozen, limit=10) == list_conversations(frozen, limit=10)
        assert conversation_detail(frozen, "a") == conversation_detail(frozen, "a")
