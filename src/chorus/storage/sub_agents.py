"""Sub-agent storage with prompt edit history."""

import logging
import sqlite3
import uuid
from typing import Literal

from chorus.exceptions import ConflictError, NotFoundError
from chorus.storage.database import Database, from_db_time, to_db_time
from chorus.storage.schema import SubAgentHistoryRecord, SubAgentRecord, utcnow

logger = logging.getLogger(__name__)

UpdatePolicy = Literal["append", "replace"]


def _row_to_sub_agent(row: sqlite3.Row) -> SubAgentRecord:
    return SubAgentRecord(
        id=row["id"],
        name=row["name"],
        prompt=row["prompt"],
        chat_id=row["chat_id"],
        created_at=from_db_time(row["created_at"]),
        updated_at=from_db_time(row["updated_at"]),
        deleted_at=from_db_time(row["deleted_at"]),
    )


def _row_to_history(row: sqlite3.Row) -> SubAgentHistoryRecord:
    return SubAgentHistoryRecord(
        id=row["id"],
        sub_agent_id=row["sub_agent_id"],
        old_prompt=row["old_prompt"],
        created_at=from_db_time(row["created_at"]),
    )


def merge_prompt(current: str, new: str, policy: UpdatePolicy) -> str:
    """Apply an update policy to a prompt.

    ``append`` adds the new text as a trailing paragraph; ``replace``
    discards the current prompt.
    """
    if policy == "replace" or not current.strip():
        return new
    return f"{current.rstrip()}\n\n{new.strip()}"


class SubAgentStore:
    """SQLite-backed CRUD for sub-agents.

    Every prompt mutation runs inside one ``BEGIN IMMEDIATE`` transaction that
    reads the current prompt, writes a history row holding it, and stores the
    new value, so two turns editing the same sub-agent cannot lose an update.
    """

    def __init__(self, db: Database):
        self.db = db

    # -- reads -------------------------------------------------------------

    def _fetch(
        self, conn: sqlite3.Connection, sub_agent_id: str, include_deleted: bool = False
    ) -> SubAgentRecord | None:
        query = "SELECT * FROM sub_agents WHERE id = ?"
        if not include_deleted:
            query += " AND deleted_at IS NULL"
        row = conn.execute(query, (sub_agent_id,)).fetchone()
        return _row_to_sub_agent(row) if row else None

    def _fetch_by_name(self, conn: sqlite3.Connection, name: str) -> SubAgentRecord | None:
        row = conn.execute(
            "SELECT * FROM sub_agents WHERE name = ? AND deleted_at IS NULL", (name,)
        ).fetchone()
        return _row_to_sub_agent(row) if row else None

    def get(self, sub_agent_id: str, include_deleted: bool = False) -> SubAgentRecord:
        """Get a sub-agent by id.

        Raises:
            NotFoundError: If missing, or soft-deleted and ``include_deleted`` is False
        """
        with self.db.connect() as conn:
            sub_agent = self._fetch(conn, sub_agent_id, include_deleted=include_deleted)
        if sub_agent is None:
            raise NotFoundError(f"Sub-agent '{sub_agent_id}' not found")
        return sub_agent

    def resolve(self, id_or_name: str) -> SubAgentRecord:
        """Resolve a live sub-agent by id first, then by name.

        Raises:
            NotFoundError: If neither lookup matches
        """
        with self.db.connect() as conn:
            sub_agent = self._fetch(conn, id_or_name) or self._fetch_by_name(conn, id_or_name)
        if sub_agent is None:
            raise NotFoundError(f"Sub-agent '{id_or_name}' not found")
        return sub_agent

    def list_sub_agents(self, chat_id: str | None = None) -> list[SubAgentRecord]:
        """List live sub-agents, newest first, optionally limited to one chat."""
        query = "SELECT * FROM sub_agents WHERE deleted_at IS NULL"
        params: list[str] = []
        if chat_id is not None:
            query += " AND chat_id = ?"
            params.append(chat_id)
        query += " ORDER BY created_at DESC"

        with self.db.connect() as conn:
            rows = conn.execute(query, params).fetchall()
        return [_row_to_sub_agent(row) for row in rows]

    def recent(self) -> SubAgentRecord | None:
        """Return the most recently updated live sub-agent."""
        with self.db.connect() as conn:
            row = conn.execute(
                """
                SELECT * FROM sub_agents
                WHERE deleted_at IS NULL
                ORDER BY updated_at DESC
                LIMIT 1
                """
            ).fetchone()
        return _row_to_sub_agent(row) if row else None

    def history(self, sub_agent_id: str, newest_first: bool = False) -> list[SubAgentHistoryRecord]:
        """Return the prompt history of a sub-agent (deleted ones included)."""
        order = "DESC" if newest_first else "ASC"
        with self.db.connect() as conn:
            rows = conn.execute(
                f"""
                SELECT * FROM sub_agent_histories
                WHERE sub_agent_id = ?
                ORDER BY created_at {order}, id {order}
                """,
                (sub_agent_id,),
            ).fetchall()
        return [_row_to_history(row) for row in rows]

    def version_chain(self, sub_agent_id: str) -> list[str]:
        """All prompt versions, oldest first, ending with the current prompt."""
        sub_agent = self.get(sub_agent_id, include_deleted=True)
        return [entry.old_prompt for entry in self.history(sub_agent_id)] + [sub_agent.prompt]

    # -- writes ------------------------------------------------------------

    def _write_prompt(
        self, conn: sqlite3.Connection, sub_agent: SubAgentRecord, new_prompt: str
    ) -> SubAgentRecord:
        now = utcnow()
        conn.execute(
            """
            INSERT INTO sub_agent_histories (sub_agent_id, old_prompt, created_at)
            VALUES (?, ?, ?)
            """,
            (sub_agent.id, sub_agent.prompt, to_db_time(now)),
        )
        conn.execute(
            "UPDATE sub_agents SET prompt = ?, updated_at = ? WHERE id = ?",
            (new_prompt, to_db_time(now), sub_agent.id),
        )
        return sub_agent.model_copy(update={"prompt": new_prompt, "updated_at": now})

    def upsert(
        self, name: str, prompt: str, chat_id: str | None = None
    ) -> tuple[SubAgentRecord, bool]:
        """Create a sub-agent, or update the prompt of the live one with this name.

        An update with an unchanged prompt is a no-op and writes no history.

        Args:
            name: Unique sub-agent name
            prompt: Prompt text
            chat_id: Originating chat, only recorded on creation

        Returns:
            Tuple of (record, created)
        """
        with self.db.transaction() as conn:
            existing = self._fetch_by_name(conn, name)
            if existing is not None:
                if existing.prompt == prompt:
                    return existing, False
                logger.info("Updating sub-agent '%s' via create", name)
                return self._write_prompt(conn, existing, prompt), False

            sub_agent = SubAgentRecord(
                id=str(uuid.uuid4()), name=name, prompt=prompt, chat_id=chat_id
            )
            conn.execute(
                """
                INSERT INTO sub_agents
                (id, name, prompt, chat_id, created_at, updated_at, deleted_at)
                VALUES (?, ?, ?, ?, ?, ?, NULL)
                """,
                (
                    sub_agent.id,
                    sub_agent.name,
                    sub_agent.prompt,
                    sub_agent.chat_id,
                    to_db_time(sub_agent.created_at),
                    to_db_time(sub_agent.updated_at),
                ),
            )
            logger.info("Created sub-agent '%s' (%s)", name, sub_agent.id)
            return sub_agent, True

    def update_prompt(
        self, id_or_name: str, prompt: str, policy: UpdatePolicy = "append"
    ) -> SubAgentRecord:
        """Mutate a sub-agent prompt, resolving by id first and then by name.

        A history row with the previous prompt is always written.

        Raises:
            NotFoundError: If no live sub-agent matches
        """
        with self.db.transaction() as conn:
            sub_agent = self._fetch(conn, id_or_name) or self._fetch_by_name(conn, id_or_name)
            if sub_agent is None:
                raise NotFoundError(f"Sub-agent '{id_or_name}' not found")
            merged = merge_prompt(sub_agent.prompt, prompt, policy)
            return self._write_prompt(conn, sub_agent, merged)

    def delete(self, sub_agent_id: str) -> bool:
        """Soft-delete a sub-agent.

        Returns:
            True if it was deleted now, False if it already was

        Raises:
            NotFoundError: If the id is unknown
        """
        with self.db.transaction() as conn:
            sub_agent = self._fetch(conn, sub_agent_id, include_deleted=True)
            if sub_agent is None:
                raise NotFoundError(f"Sub-agent '{sub_agent_id}' not found")
            if sub_agent.is_deleted:
                return False
            conn.execute(
                "UPDATE sub_agents SET deleted_at = ? WHERE id = ?",
                (to_db_time(utcnow()), sub_agent_id),
            )
            return True

    def restore(self, sub_agent_id: str) -> SubAgentRecord:
        """Clear ``deleted_at``.

        Raises:
            NotFoundError: If the id is unknown
            ConflictError: If a live sub-agent already uses the name
        """
        with self.db.transaction() as conn:
            sub_agent = self._fetch(conn, sub_agent_id, include_deleted=True)
            if sub_agent is None:
                raise NotFoundError(f"Sub-agent '{sub_agent_id}' not found")
            if not sub_agent.is_deleted:
                return sub_agent
            try:
                conn.execute(
                    "UPDATE sub_agents SET deleted_at = NULL WHERE id = ?", (sub_agent_id,)
                )
            except sqlite3.IntegrityError as e:
                raise ConflictError(
                    f"Sub-agent name '{sub_agent.name}' is already in use"
                ) from e
            return sub_agent.model_copy(update={"deleted_at": None})
