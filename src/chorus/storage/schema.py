"""Pydantic models for persisted records."""

from datetime import datetime, timezone

from pydantic import BaseModel, Field


def utcnow() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


class UserRecord(BaseModel):
    """A user known to the orchestrator."""

    id: str
    name: str
    created_at: datetime = Field(default_factory=utcnow)
    deleted_at: datetime | None = None


class ChatRecord(BaseModel):
    """A chat owned by one user."""

    id: str
    author_id: str
    title: str | None = None
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)


class MessageRecord(BaseModel):
    """A message record in a chat."""

    id: int | None = None  # Auto-assigned by database
    chat_id: str
    role: str  # user, assistant, system, tool
    content: str = ""
    tool_calls: str | None = None  # JSON string
    tool_call_id: str | None = None
    name: str | None = None
    created_at: datetime = Field(default_factory=utcnow)


class SubAgentRecord(BaseModel):
    """A named, persisted prompt specialization."""

    id: str
    name: str
    prompt: str
    chat_id: str | None = None  # Originating chat, provenance only
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)
    deleted_at: datetime | None = None

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None


class SubAgentHistoryRecord(BaseModel):
    """The value a sub-agent prompt had before one mutation."""

    id: int | None = None
    sub_agent_id: str
    old_prompt: str
    created_at: datetime = Field(default_factory=utcnow)
