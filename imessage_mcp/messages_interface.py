"""
macOS Messages client used as the messaging SDK.

Sends messages via AppleScript and reads message history from the
Messages database (chat.db). This module knows nothing about MCP; the
gateway wraps it and translates its results and failures.
"""

import logging
import plistlib
import re
import sqlite3
import subprocess
import threading
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Optional

from imessage_mcp.models import MessageFilter

logger = logging.getLogger(__name__)

# Cocoa reference date used by chat.db timestamps
COCOA_EPOCH = datetime(2001, 1, 1, tzinfo=timezone.utc)

# Timestamps above this are nanoseconds (macOS High Sierra+), below are seconds
NANOSECOND_THRESHOLD = 1_000_000_000_000

EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
PHONE_PATTERN = re.compile(r"^\+?\d{7,15}$")
PHONE_FORMATTING_CHARS = " -().\t"

STRING_END_BYTES = (0x84, 0x86, 0x00)

# Conversation id of a message row; the chat id filter matches this same expression
CHAT_KEY_SQL = """COALESCE(
    NULLIF(chat.guid, ''),
    NULLIF(chat.chat_identifier, ''),
    NULLIF(message.cache_roomnames, ''),
    NULLIF(handle.id, ''),
    'unknown'
)"""


def as_recipient(value: str) -> str:
    """
    Parse a recipient handle.

    Phone numbers may contain spaces, dashes, dots and parentheses; they
    are returned with that formatting removed. E-mail addresses are
    returned lowercased.

    Args:
        value: Phone number or e-mail address

    Returns:
        Normalized recipient handle

    Raises:
        ValueError: If the value is neither a phone number nor an e-mail
    """
    if not isinstance(value, str):
        raise ValueError(f"Recipient must be a string, got {type(value).__name__}")

    candidate = value.strip()
    if EMAIL_PATTERN.match(candidate):
        return candidate.lower()

    phone = "".join(ch for ch in candidate if ch not in PHONE_FORMATTING_CHARS)
    if PHONE_PATTERN.match(phone):
        return phone

    raise ValueError(f"Not a phone number or email address: {value!r}")


def escape_applescript_string(s: Optional[str]) -> str:
    """Escape backslashes, then double quotes, for AppleScript string literals."""
    if s is None:
        return ""
    return s.replace("\\", "\\\\").replace('"', '\\"')


def is_group_chat_identifier(chat_identifier: Optional[str]) -> bool:
    """
    Check if a chat identifier belongs to a group chat.

    Group chats look like ``chat152668864985555509``; some older rows
    list several handles separated by commas.
    """
    if not chat_identifier:
        return False
    if chat_identifier.startswith("chat") and chat_identifier[4:].isdigit():
        return True
    return "," in chat_identifier


def cocoa_to_datetime(value: Optional[int]) -> Optional[datetime]:
    """Convert a chat.db timestamp to an aware UTC datetime."""
    if not value:
        return None
    seconds = value / 1_000_000_000 if abs(value) > NANOSECOND_THRESHOLD else value
    try:
        return COCOA_EPOCH + timedelta(seconds=seconds)
    except OverflowError:
        return None


def extract_text_from_blob(blob: Optional[bytes]) -> Optional[str]:
    """
    Recover message text from an ``attributedBody`` blob.

    macOS Ventura+ leaves ``message.text`` empty and stores the content as
    an archived NSAttributedString, either as a binary plist
    (NSKeyedArchiver) or in the older "streamtyped" layout.

    Args:
        blob: Raw bytes from the attributedBody column

    Returns:
        Extracted text or None
    """
    if not blob:
        return None

    bplist_start = blob.find(b"bplist")
    if bplist_start != -1:
        try:
            plist = plistlib.loads(blob[bplist_start:])
        except Exception as e:
            logger.debug(f"Failed to parse attributedBody plist: {e}")
        else:
            for obj in plist.get("$objects", []) if isinstance(plist, dict) else []:
                if isinstance(obj, dict) and isinstance(obj.get("NS.string"), str):
                    return obj["NS.string"].strip() or None
                if isinstance(obj, str) and obj.strip() and not obj.startswith(("NS", "$")):
                    return obj.strip()

    # streamtyped: "NSString" marker, a few control bytes, '+', one length byte, then the text
    marker = blob.find(b"NSString")
    if marker == -1:
        return None
    plus = blob.find(b"+", marker)
    if plus == -1 or plus > marker + 20:
        return None

    start = plus + 2
    end = start
    while end < len(blob) and blob[end] not in STRING_END_BYTES:
        end += 1

    text = blob[start:end].decode("utf-8", errors="ignore").strip()
    return text or None


class MessagesInterface:
    """Interface to the macOS Messages app."""

    def __init__(
        self,
        messages_db_path: str = "~/Library/Messages/chat.db",
        max_concurrent: int = 5,
        send_timeout: int = 30,
    ):
        """
        Initialize Messages interface.

        Args:
            messages_db_path: Path to Messages database (default: standard location)
            max_concurrent: Maximum number of sends/queries running at once
            send_timeout: Seconds to wait for osascript before giving up
        """
        self.messages_db_path = Path(messages_db_path).expanduser()
        self.send_timeout = send_timeout
        self._slots = threading.BoundedSemaphore(max(1, max_concurrent))
        self._closed = False
        logger.info(f"Initialized MessagesInterface with DB: {self.messages_db_path}")

        if not self.messages_db_path.exists():
            logger.warning(
                "Messages database not accessible. "
                "Grant Full Disk Access: System Settings -> Privacy & Security"
            )

    @staticmethod
    def as_recipient(value: str) -> str:
        return as_recipient(value)

    def _ensure_open(self) -> None:
        if self._closed:
            raise RuntimeError("MessagesInterface is closed")

    def send(self, recipient: str, text: str, chat_id: Optional[str] = None) -> dict:
        """
        Send an iMessage using AppleScript.

        Args:
            recipient: Parsed phone number or e-mail handle
            text: Message text to send
            chat_id: Optional chat GUID; when given the message goes to that chat

        Returns:
            dict: {"success": bool, "error": Optional[str]}
        """
        self._ensure_open()

        escaped_text = escape_applescript_string(text)
        if chat_id:
            script = f'''
            tell application "Messages"
                set targetChat to chat id "{escape_applescript_string(chat_id)}"
                send "{escaped_text}" to targetChat
            end tell
            '''
        else:
            script = f'''
            tell application "Messages"
                set targetService to 1st account whose service type = iMessage
                set targetBuddy to participant "{escape_applescript_string(recipient)}" of targetService
                send "{escaped_text}" to targetBuddy
            end tell
            '''

        with self._slots:
            try:
                result = subprocess.run(
                    ["osascript", "-e", script],
                    capture_output=True,
                    text=True,
                    timeout=self.send_timeout,
                )
            except subprocess.TimeoutExpired:
                logger.error("AppleScript timeout - Messages.app may not be running")
                return {"success": False, "error": "Timeout - ensure Messages.app is running"}
            except FileNotFoundError:
                return {"success": False, "error": "osascript not found - sending requires macOS"}

        if result.returncode != 0:
            error_msg = result.stderr.strip() or f"osascript exited with status {result.returncode}"
            logger.error(f"Failed to send message: {error_msg}")
            return {"success": False, "error": error_msg}

        logger.info(f"Message sent to {recipient}")
        return {"success": True, "error": None}

    def _connect(self) -> sqlite3.Connection:
        if not self.messages_db_path.exists():
            raise sqlite3.OperationalError(
                f"unable to open database file: {self.messages_db_path}"
            )
        return sqlite3.connect(f"file:{self.messages_db_path}?mode=ro", uri=True)

    def get_messages(self, message_filter: Optional[MessageFilter] = None) -> dict:
        """
        Query messages across conversations, newest first.

        Args:
            message_filter: Optional sender handle, chat id, unread-only
                flag and row limit

        Returns:
            dict: {"messages": [...], "total": int}; each message has keys
            guid, text, date, is_from_me, is_read, service, sender, chat_id,
            is_group_chat

        Raises:
            sqlite3.Error: If the database cannot be opened or queried
        """
        self._ensure_open()
        message_filter = message_filter or MessageFilter()

        conditions = []
        params: list[Any] = []
        if message_filter.recipient:
            conditions.append("handle.id LIKE ?")
            params.append(f"%{message_filter.recipient}%")
        if message_filter.chat_id:
            conditions.append(f"{CHAT_KEY_SQL} = ?")
            params.append(message_filter.chat_id)
        if message_filter.unread_only:
            conditions.append("message.is_read = 0 AND message.is_from_me = 0")

        query = f"""
            SELECT
                message.guid,
                message.text,
                message.attributedBody,
                message.date,
                message.is_from_me,
                message.is_read,
                message.service,
                message.cache_roomnames,
                handle.id,
                chat.chat_identifier,
                {CHAT_KEY_SQL}
            FROM message
            LEFT JOIN handle ON message.handle_id = handle.ROWID
            LEFT JOIN chat_message_join ON chat_message_join.message_id = message.ROWID
            LEFT JOIN chat ON chat.ROWID = chat_message_join.chat_id
        """
        if conditions:
            query += " WHERE " + " AND ".join(conditions)
        query += " ORDER BY message.date DESC"
        if message_filter.limit:
            query += " LIMIT ?"
            params.append(message_filter.limit)

        with self._slots:
            conn = self._connect()
            try:
                rows = conn.execute(query, params).fetchall()
            finally:
                conn.close()

        messages = [self._row_to_message(row) for row in rows]
        logger.info(f"Retrieved {len(messages)} messages")
        return {"messages": messages, "total": len(messages)}

    def _row_to_message(self, row: tuple) -> dict:
        (guid, text, attributed_body, date_cocoa, is_from_me, is_read, service,
         cache_roomnames, handle_id, chat_identifier, chat_key) = row

        message_text = text
        if not message_text and attributed_body:
            message_text = extract_text_from_blob(attributed_body)

        return {
            "guid": guid,
            "text": message_text,
            "date": cocoa_to_datetime(date_cocoa),
            "is_from_me": bool(is_from_me),
            "is_read": bool(is_read),
            "service": service or "iMessage",
            "sender": handle_id,
            "chat_id": chat_key,
            "is_group_chat": is_group_chat_identifier(chat_identifier or cache_roomnames),
        }

    def close(self) -> None:
        """Release the client. Later sends and queries raise."""
        if not self._closed:
            self._closed = True
            logger.info("MessagesInterface closed")
