"""User directory used to resolve the identity handed to the orchestrator."""

import sqlite3
import uuid

from chorus.exceptions import NotFoundError
from chorus.storage.database import Database, from_db_time, to_db_time
from chorus.storage.schema import UserRecord, utcnow


def _row_to_user(row: sqlite3.Row) -> UserRecord:
    return UserRecord(
        id=row["id"],
        name=row["name"],
        created_at=from_db_time(row["created_at"]),
        deleted_at=from_db_time(row["deleted_at"]),
    )


class UserStore:
    """Minimal user storage; sign-up and credentials live elsewhere."""

    def __init__(self, db: Database):
        self.db = db

    def create_user(self, name: str, user_id: str | None = None) -> UserRecord:
        """Create a user.

        Args:
            name: Display name
            user_id: Optional explicit id (generates UUID if not provided)

        Returns:
            Created user record
        """
        user = UserRecord(id=user_id or str(uuid.uuid4()), name=name)
        with self.db.connect() as conn:
            conn.execute(
                "INSERT INTO users (id, name, created_at, deleted_at) VALUES (?, ?, ?, NULL)",
                (user.id, user.name, to_db_time(user.created_at)),
            )
        return user

    def get_user(self, user_id: str) -> UserRecord | None:
        """Get a non-deleted user by id, or None."""
        with self.db.connect() as conn:
            row = conn.execute(
                "SELECT * FROM users WHERE id = ? AND deleted_at IS NULL", (user_id,)
            ).fetchone()
        return _row_to_user(row) if row else None

    def require_user(self, user_id: str) -> UserRecord:
        """Get a non-deleted user by id.

        Raises:
            NotFoundError: If the user is missing or deleted
        """
        user = self.get_user(user_id)
        if user is None:
            raise NotFoundError(f"User '{user_id}' not found")
        return user

    def list_users(self) -> list[UserRecord]:
        with self.db.connect() as conn:
            rows = conn.execute(
                "SELECT * FROM users WHERE deleted_at IS NULL ORDER BY created_at ASC"
            ).fetchall()
        return [_row_to_user(row) for row in rows]

    def delete_user(self, user_id: str) -> bool:
        """Soft-delete a user. Returns False if there was nothing to delete."""
        with self.db.connect() as conn:
            cursor = conn.execute(
                "UPDATE users SET deleted_at = ? WHERE id = ? AND deleted_at IS NULL",
                (to_db_time(utcnow()), user_id),
            )
            return cursor.rowcount > 0
