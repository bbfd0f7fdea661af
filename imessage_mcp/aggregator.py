"""
Conversation aggregation over a snapshot of message records.

The messaging SDK has no conversations endpoint, so conversation lists and
details are derived here from a flat sequence of messages. Everything in
this module is pure: the same snapshot always yields the same summaries, and the
snapshot itself is only read, never consumed or modified.

Merge rules, applied per record in input order:

- the first record seen for a chat initializes its last message/timestamp;
- a later record replaces them only when its timestamp is strictly greater,
  so ties keep the first-seen record and a missing timestamp never wins
  over a present one;
- participants and unread counts accumulate only for records not sent by
  the local user; a record counts as unread when ``is_read`` is false.
"""

from datetime import datetime
from typing import Iterable, Optional, Sequence

from imessage_mcp.models import (
    ConversationDetail,
    ConversationSummary,
    MessageRecord,
)


def _is_later(candidate: Optional[datetime], current: Optional[datetime]) -> bool:
    if candidate is None:
        return False
    if current is None:
        return True
    return candidate > current


class ConversationAccumulator:
    """Running state for one conversation while scanning a snapshot."""

    def __init__(self, first: MessageRecord):
        self.chat_id = first.chat_id
        self.last_message = first.display_text
        self.last_message_at = first.timestamp
        self.participants: dict[str, None] = {}
        self.unread_count = 0
        self.total_messages = 0
        self.is_group_chat = False

    def add(self, record: MessageRecord) -> None:
        self.total_messages += 1
        if _is_later(record.timestamp, self.last_message_at):
            self.last_message = record.display_text
            self.last_message_at = record.timestamp
        if not record.is_from_me:
            if record.sender:
                self.participants.setdefault(record.sender, None)
            if not record.is_read:
                self.unread_count += 1
        if record.is_group_chat:
            self.is_group_chat = True

    def summary(self) -> ConversationSummary:
        return ConversationSummary(
            chat_id=self.chat_id,
            last_message=self.last_message,
            last_message_at=self.last_message_at,
            participants=tuple(self.participants),
            unread_count=self.unread_count,
        )


def _accumulate(messages: Iterable[MessageRecord]) -> dict[str, ConversationAccumulator]:
    accumulators: dict[str, ConversationAccumulator] = {}
    for record in messages:
        accumulator = accumulators.get(record.chat_id)
        if accumulator is None:
            accumulator = accumulators[record.chat_id] = ConversationAccumulator(record)
        accumulator.add(record)
    return accumulators


def group_by_conversation(messages: Sequence[MessageRecord]) -> dict[str, ConversationSummary]:
    """
    Group a message snapshot by chat id.

    Args:
        messages: Message records in SDK order

    Returns:
        One ConversationSummary per distinct chat id, keyed by chat id
    """
    return {
        chat_id: accumulator.summary()
        for chat_id, accumulator in _accumulate(messages).items()
    }


def _sort_key(summary: ConversationSummary) -> tuple:
    # Conversations without any timestamp sort last
    return (summary.last_message_at is not None, summary.last_message_at or datetime.min)


def list_conversations(
    messages: Sequence[MessageRecord],
    limit: int,
    offset: int = 0,
) -> list[ConversationSummary]:
    """
    Most recently active conversations first.

    Args:
        messages: Message records in SDK order
        limit: Maximum number of summaries to return
        offset: Number of summaries to skip after sorting

    Returns:
        Summaries sorted by last message timestamp, newest first. The sort
        is stable, so conversations with equal timestamps keep first-seen
        order.
    """
    summaries = sorted(
        group_by_conversation(messages).values(),
        key=_sort_key,
        reverse=True,
    )
    return summaries[offset:offset + limit]


def conversation_detail(
    messages: Sequence[MessageRecord],
    chat_id: str,
) -> Optional[ConversationDetail]:
    """
    Details for a single conversation.

    Returns:
        ConversationDetail, or None when no record in the snapshot has
        ``chat_id``
    """
    matching = [record for record in messages if record.chat_id == chat_id]
    if not matching:
        return None

    accumulator = _accumulate(matching)[chat_id]
    return ConversationDetail(
        summary=accumulator.summary(),
        is_group_chat=accumulator.is_group_chat,
        total_messages=accumulator.total_messages,
    )
