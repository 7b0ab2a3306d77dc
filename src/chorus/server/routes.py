"""API routes for the chorus server."""

import json
import logging
from collections.abc import AsyncIterator

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from pydantic import BaseModel, Field
from sse_starlette.sse import EventSourceResponse

from chorus import __version__
from chorus.agent.events import ChatCreated, Frame, TextDelta, TurnDone
from chorus.agent.orchestrator import Orchestrator
from chorus.config.schema import ChorusConfig
from chorus.storage.schema import (
    ChatRecord,
    MessageRecord,
    SubAgentHistoryRecord,
    SubAgentRecord,
)

logger = logging.getLogger(__name__)

DONE_MARKER = "[DONE]"


class PromptRequest(BaseModel):
    """Request body for the chat endpoints."""

    prompt: str = Field(min_length=1)


class UpdatePromptRequest(BaseModel):
    """Request body for a manual sub-agent prompt edit."""

    prompt: str = Field(min_length=1)


class HealthResponse(BaseModel):
    """Health check response."""

    status: str
    model: str
    version: str


class ChatHistoryResponse(BaseModel):
    """A chat with its stored messages."""

    chat: ChatRecord
    messages: list[MessageRecord]


class SubAgentDetailResponse(BaseModel):
    """A sub-agent with its prompt history, newest first."""

    sub_agent: SubAgentRecord
    history: list[SubAgentHistoryRecord]


class DeleteResponse(BaseModel):
    ok: bool
    already_deleted: bool


def frame_to_event(frame: Frame) -> dict[str, str]:
    """Map an orchestrator frame to an SSE event."""
    if isinstance(frame, ChatCreated):
        return {"event": "chat", "data": json.dumps({"chat_id": frame.chat_id})}
    if isinstance(frame, TextDelta):
        return {"event": "message", "data": frame.text}
    if isinstance(frame, TurnDone):
        return {"event": "done", "data": DONE_MARKER}
    raise TypeError(f"Unknown frame: {frame!r}")


async def stream_events(frames: AsyncIterator[Frame]) -> AsyncIterator[dict[str, str]]:
    """Relay frames as SSE events; a failing turn ends with an ``error`` event."""
    try:
        async for frame in frames:
            yield frame_to_event(frame)
    except Exception as e:
        logger.exception("Chat turn failed")
        yield {"event": "error", "data": json.dumps({"error": str(e)})}


def create_router(config: ChorusConfig, orchestrator: Orchestrator) -> APIRouter:
    """Create API router bound to an orchestrator.

    Args:
        config: Chorus configuration
        orchestrator: Orchestrator whose stores back the read endpoints

    Returns:
        Configured API router
    """
    router = APIRouter()
    user_header = config.server.user_header

    async def current_user(request: Request) -> str:
        """Resolve the authenticated user id forwarded by the auth proxy."""
        user_id = request.headers.get(user_header)
        if not user_id:
            raise HTTPException(status_code=401, detail=f"Missing {user_header} header")
        orchestrator.users.require_user(user_id)
        return user_id

    @router.get("/health", response_model=HealthResponse)
    async def health() -> HealthResponse:
        """Health check endpoint."""
        return HealthResponse(status="healthy", model=config.model.name, version=__version__)

    # -- chats -------------------------------------------------------------

    @router.post("/ai/chat")
    async def create_chat(
        request: PromptRequest, user_id: str = Depends(current_user)
    ) -> EventSourceResponse:
        """Start a chat and stream the first turn.

        Events: ``chat`` with the new id, ``message`` per text delta,
        ``done`` with ``[DONE]``, or ``error``.
        """
        frames = await orchestrator.create_chat(user_id, request.prompt)
        return EventSourceResponse(stream_events(frames))

    @router.post("/ai/chat/{chat_id}")
    async def continue_chat(
        chat_id: str, request: PromptRequest, user_id: str = Depends(current_user)
    ) -> EventSourceResponse:
        """Stream one more turn of an existing chat."""
        frames = await orchestrator.continue_chat(user_id, chat_id, request.prompt)
        return EventSourceResponse(stream_events(frames))

    @router.get("/ai/chat", response_model=list[ChatRecord])
    async def list_chats(
        user_id: str = Depends(current_user),
        limit: int = Query(default=50, ge=1, le=200),
        offset: int = Query(default=0, ge=0),
    ) -> list[ChatRecord]:
        return orchestrator.chats.list_chats(user_id, limit=limit, offset=offset)

    @router.get("/ai/chat/{chat_id}", response_model=ChatHistoryResponse)
    async def get_chat(chat_id: str, user_id: str = Depends(current_user)) -> ChatHistoryResponse:
        chat = orchestrator.chats.get_owned_chat(user_id, chat_id)
        return ChatHistoryResponse(chat=chat, messages=orchestrator.chats.load_records(chat_id))

    # -- sub-agents --------------------------------------------------------

    @router.get("/agents", response_model=list[SubAgentRecord])
    async def list_agents(_: str = Depends(current_user)) -> list[SubAgentRecord]:
        return orchestrator.sub_agents.list_sub_agents()

    @router.get("/agents/recent", response_model=SubAgentRecord)
    async def recent_agent(_: str = Depends(current_user)) -> SubAgentRecord:
        sub_agent = orchestrator.sub_agents.recent()
        if sub_agent is None:
            raise HTTPException(status_code=404, detail="No sub-agents yet")
        return sub_agent

    @router.get("/agents/{sub_agent_id}", response_model=SubAgentDetailResponse)
    async def get_agent(
        sub_agent_id: str, _: str = Depends(current_user)
    ) -> SubAgentDetailResponse:
        sub_agent = orchestrator.sub_agents.get(sub_agent_id)
        history = orchestrator.sub_agents.history(sub_agent_id, newest_first=True)
        return SubAgentDetailResponse(sub_agent=sub_agent, history=history)

    @router.patch("/agents/{sub_agent_id}", response_model=SubAgentRecord)
    async def update_agent(
        sub_agent_id: str, request: UpdatePromptRequest, _: str = Depends(current_user)
    ) -> SubAgentRecord:
        """Replace a sub-agent prompt by hand; the old prompt goes to history."""
        sub_agent = orchestrator.sub_agents.get(sub_agent_id)
        return orchestrator.sub_agents.update_prompt(sub_agent.id, request.prompt, policy="replace")

    @router.delete("/agents/{sub_agent_id}", response_model=DeleteResponse)
    async def delete_agent(sub_agent_id: str, _: str = Depends(current_user)) -> DeleteResponse:
        deleted = orchestrator.sub_agents.delete(sub_agent_id)
        return DeleteResponse(ok=True, already_deleted=not deleted)

    @router.post("/agents/{sub_agent_id}/restore", response_model=SubAgentRecord)
    async def restore_agent(sub_agent_id: str, _: str = Depends(current_user)) -> SubAgentRecord:
        return orchestrator.sub_agents.restore(sub_agent_id)

    return router
