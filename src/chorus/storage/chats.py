"""Append-only chat history storage."""

import json
import sqlite3
import uuid

from chorus.exceptions import NotFoundError, UnauthorizedError
from chorus.llm.client import (
    AssistantMessage,
    Message,
    SystemMessage,
    ToolCall,
    ToolMessage,
    UserMessage,
)
from chorus.storage.database import Database, from_db_time, to_db_time
from chorus.storage.schema import ChatRecord, MessageRecord


def message_to_record(chat_id: str, message: Message) -> MessageRecord:
    """Convert an in-memory message variant to a storable record."""
    tool_calls_json = None
    tool_call_id = None
    name = None

    if isinstance(message, AssistantMessage) and message.tool_calls:
        tool_calls_json = json.dumps(
            [
                {"id": tc.id, "name": tc.name, "arguments": tc.arguments}
                for tc in message.tool_calls
            ]
        )
    elif isinstance(message, ToolMessage):
        tool_call_id = message.tool_call_id
        name = message.name

    return MessageRecord(
        chat_id=chat_id,
        role=message.role,
        content=message.content or "",
        tool_calls=tool_calls_json,
        tool_call_id=tool_call_id,
        name=name,
    )


def record_to_message(record: MessageRecord) -> Message:
    """Rebuild the typed message variant from a stored record."""
    if record.role == "user":
        return UserMessage(content=record.content)
    if record.role == "system":
        return SystemMessage(content=record.content)
    if record.role == "tool":
        return ToolMessage(
            content=record.content,
            tool_call_id=record.tool_call_id or "",
            name=record.name or "",
        )
    if record.role == "assistant":
        tool_calls = None
        if record.tool_calls:
            tool_calls = [
                ToolCall(id=tc["id"], name=tc["name"], arguments=tc["arguments"])
                for tc in json.loads(record.tool_calls)
            ]
        return AssistantMessage(content=record.content, tool_calls=tool_calls)
    raise ValueError(f"Unknown message role: {record.role}")


def _row_to_chat(row: sqlite3.Row) -> ChatRecord:
    return ChatRecord(
        id=row["id"],
        author_id=row["author_id"],
        title=row["title"],
        created_at=from_db_time(row["created_at"]),
        updated_at=from_db_time(row["updated_at"]),
    )


def _row_to_message(row: sqlite3.Row) -> MessageRecord:
    return MessageRecord(
        id=row["id"],
        chat_id=row["chat_id"],
        role=row["role"],
        content=row["content"],
        tool_calls=row["tool_calls"],
        tool_call_id=row["tool_call_id"],
        name=row["name"],
        created_at=from_db_time(row["created_at"]),
    )


class ChatStore:
    """SQLite-backed chats with an append-only message history."""

    def __init__(self, db: Database):
        self.db = db

    def create_chat(
        self,
        author_id: str,
        title: str | None = None,
        first_message: Message | None = None,
    ) -> ChatRecord:
        """Create a chat, optionally pre-seeded with its first message.

        Args:
            author_id: Owning user id
            title: Optional chat title
            first_message: Message stored in the same transaction as the chat

        Returns:
            Created chat record
        """
        chat = ChatRecord(id=str(uuid.uuid4()), author_id=author_id, title=title)

        with self.db.transaction() as conn:
            conn.execute(
                """
                INSERT INTO chats (id, author_id, title, created_at, updated_at)
                VALUES (?, ?, ?, ?, ?)
                """,
                (
                    chat.id,
                    chat.author_id,
                    chat.title,
                    to_db_time(chat.created_at),
                    to_db_time(chat.updated_at),
                ),
            )
            if first_message is not None:
                self._insert_message(conn, message_to_record(chat.id, first_message))

        return chat

    def get_chat(self, chat_id: str) -> ChatRecord | None:
        with self.db.connect() as conn:
            row = conn.execute("SELECT * FROM chats WHERE id = ?", (chat_id,)).fetchone()
        return _row_to_chat(row) if row else None

    def get_owned_chat(self, user_id: str, chat_id: str) -> ChatRecord:
        """Get a chat and check that ``user_id`` owns it.

        Raises:
            NotFoundError: If the chat does not exist
            UnauthorizedError: If the chat belongs to another user
        """
        chat = self.get_chat(chat_id)
        if chat is None:
            raise NotFoundError(f"Chat '{chat_id}' not found")
        if chat.author_id != user_id:
            raise UnauthorizedError(f"Chat '{chat_id}' is not owned by this user")
        return chat

    def list_chats(self, author_id: str, limit: int = 50, offset: int = 0) -> list[ChatRecord]:
        """List a user's chats, most recently active first."""
        with self.db.connect() as conn:
            rows = conn.execute(
                """
                SELECT * FROM chats
                WHERE author_id = ?
                ORDER BY updated_at DESC
                LIMIT ? OFFSET ?
                """,
                (author_id, limit, offset),
            ).fetchall()
        return [_row_to_chat(row) for row in rows]

    def set_title(self, chat_id: str, title: str) -> bool:
        """Set the title once; returns False if it was already assigned."""
        with self.db.connect() as conn:
            cursor = conn.execute(
                "UPDATE chats SET title = ? WHERE id = ? AND title IS NULL",
                (title, chat_id),
            )
            return cursor.rowcount > 0

    def _insert_message(self, conn: sqlite3.Connection, record: MessageRecord) -> int:
        cursor = conn.execute(
            """
            INSERT INTO messages
            (chat_id, role, content, tool_calls, tool_call_id, name, created_at)
            VALUES (?, ?, ?, ?, ?, ?, ?)
            """,
            (
                record.chat_id,
                record.role,
                record.content,
                record.tool_calls,
                record.tool_call_id,
                record.name,
                to_db_time(record.created_at),
            ),
        )
        conn.execute(
            "UPDATE chats SET updated_at = ? WHERE id = ?",
            (to_db_time(record.created_at), record.chat_id),
        )
        message_id = cursor.lastrowid
        assert message_id is not None
        return message_id

    def append_message(self, chat_id: str, message: Message) -> int:
        """Append a message to a chat.

        Returns:
            Message ID assigned by database
        """
        with self.db.transaction() as conn:
            return self._insert_message(conn, message_to_record(chat_id, message))

    def append_messages(self, chat_id: str, messages: list[Message]) -> list[int]:
        """Append several messages atomically (an assistant message and its tool results)."""
        with self.db.transaction() as conn:
            return [
                self._insert_message(conn, message_to_record(chat_id, message))
                for message in messages
            ]

    def load_records(self, chat_id: str) -> list[MessageRecord]:
        """Load the stored records of a chat in insertion order."""
        with self.db.connect() as conn:
            rows = conn.execute(
                "SELECT * FROM messages WHERE chat_id = ? ORDER BY id ASC", (chat_id,)
            ).fetchall()
        return [_row_to_message(row) for row in rows]

    def load_messages(self, chat_id: str) -> list[Message]:
        """Load a chat's history as typed messages."""
        return [record_to_message(record) for record in self.load_records(chat_id)]

    def get_message_count(self, chat_id: str) -> int:
        with self.db.connect() as conn:
            result = conn.execute(
                "SELECT COUNT(*) FROM messages WHERE chat_id = ?", (chat_id,)
            ).fetchone()
        return int(result[0])
