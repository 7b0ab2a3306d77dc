"""Sub-agent tools: create, find, run, update and delete stored prompts.

Sub-agents are not live agents. Running one hands its stored prompt back
to the orchestrator, which folds it into the conversation so the main model
answers with that specialization.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Literal

from chorus.tools.base import Tool, ToolParameter, ToolSchema

if TYPE_CHECKING:
    from chorus.storage.schema import SubAgentRecord
    from chorus.storage.sub_agents import SubAgentStore, UpdatePolicy

logger = logging.getLogger(__name__)

CREATE_SUB_AGENT = "create_sub_agent"
FIND_SUB_AGENT = "find_sub_agent"
RUN_SUB_AGENT = "run_sub_agent"
UPDATE_SUB_AGENT = "update_sub_agent"
DELETE_SUB_AGENT = "delete_sub_agent"

PROMPT_PREVIEW_LENGTH = 200


def _summary(sub_agent: SubAgentRecord) -> dict[str, Any]:
    return sub_agent.model_dump(mode="json", include={"id", "name", "prompt", "updated_at"})


def create_sub_agent_tools(
    store: SubAgentStore,
    update_policy: UpdatePolicy = "append",
    scope: Literal["all", "chat"] = "all",
) -> list[Tool]:
    """Create the five sub-agent tools bound to ``store``.

    Args:
        store: Sub-agent storage
        update_policy: How ``update_sub_agent`` merges prompts ("append" or "replace")
        scope: "all" lists every sub-agent in find; "chat" only the current chat's

    Returns:
        Tools in the order create, find, run, update, delete
    """

    async def create_fn(name: str, prompt: str, chat_id: str | None = None) -> dict[str, Any]:
        sub_agent, created = store.upsert(name=name, prompt=prompt, chat_id=chat_id)
        return {"sub_agent": _summary(sub_agent), "created": created}

    async def find_fn(chat_id: str | None = None) -> dict[str, Any]:
        sub_agents = store.list_sub_agents(chat_id=chat_id if scope == "chat" else None)
        return {
            "sub_agents": [
                {
                    "id": s.id,
                    "name": s.name,
                    "prompt_preview": s.prompt[:PROMPT_PREVIEW_LENGTH],
                    "created_at": s.created_at.isoformat(),
                }
                for s in sub_agents
            ]
        }

    async def run_fn(id: str, input: str = "", chat_id: str | None = None) -> dict[str, Any]:
        sub_agent = store.get(id)
        logger.info("Running sub-agent '%s' (%s)", sub_agent.name, sub_agent.id)
        return {
            "sub_agent": {"id": sub_agent.id, "name": sub_agent.name, "prompt": sub_agent.prompt},
            "input": input,
            "instructions": (
                "Adopt the sub-agent prompt above to handle the input, then post-process "
                "the result into a specialized, user-ready answer. Chain further tools if "
                "the result needs verification or enrichment."
            ),
        }

    async def update_fn(id: str, prompt: str, chat_id: str | None = None) -> dict[str, Any]:
        sub_agent = store.update_prompt(id, prompt, policy=update_policy)
        logger.info("Updated sub-agent '%s' (%s, %s)", sub_agent.name, sub_agent.id, update_policy)
        return {"sub_agent": _summary(sub_agent)}

    async def delete_fn(id: str) -> dict[str, Any]:
        deleted = store.delete(id)
        return {"ok": True, "already_deleted": not deleted}

    update_description = (
        "Refine an existing Sub Agent's prompt. Address it by id (a name also works). "
        + (
            "The text you pass is appended to the current prompt, so send only the "
            "additional guidance, never a rewrite of the whole prompt."
            if update_policy == "append"
            else "The text you pass replaces the current prompt entirely."
        )
    )

    return [
        Tool(
            schema=ToolSchema(
                name=CREATE_SUB_AGENT,
                description=(
                    "Create a new Sub Agent specialized in handling a kind of question. "
                    "Creating with an existing name updates that Sub Agent's prompt."
                ),
                parameters=[
                    ToolParameter(
                        name="name", type="string", description="The name for the Sub Agent"
                    ),
                    ToolParameter(
                        name="prompt",
                        type="string",
                        description=(
                            "The prompt for the Sub Agent: the problem it handles and "
                            "how it resolves it"
                        ),
                    ),
                ],
            ),
            fn=create_fn,
            needs_chat=True,
        ),
        Tool(
            schema=ToolSchema(
                name=FIND_SUB_AGENT,
                description=(
                    "List the available Sub Agents so you can choose one by name and "
                    "prompt before running or updating it."
                ),
            ),
            fn=find_fn,
            needs_chat=True,
        ),
        Tool(
            schema=ToolSchema(
                name=RUN_SUB_AGENT,
                description=(
                    "Run a stored Sub Agent's prompt on a given input. After running, "
                    "post-process the output into a specialized, user-ready result."
                ),
                parameters=[
                    ToolParameter(name="id", type="string", description="The Sub Agent id to run"),
                    ToolParameter(
                        name="input",
                        type="string",
                        description="The input/instruction for the Sub Agent",
                    ),
                ],
            ),
            fn=run_fn,
            needs_chat=True,
        ),
        Tool(
            schema=ToolSchema(
                name=UPDATE_SUB_AGENT,
                description=update_description,
                parameters=[
                    ToolParameter(
                        name="id", type="string", description="The Sub Agent id to update"
                    ),
                    ToolParameter(
                        name="prompt",
                        type="string",
                        description=(
                            "Prompt text to add"
                            if update_policy == "append"
                            else "The new prompt for the Sub Agent"
                        ),
                    ),
                ],
            ),
            fn=update_fn,
            needs_chat=True,
        ),
        Tool(
            schema=ToolSchema(
                name=DELETE_SUB_AGENT,
                description="Delete a Sub Agent by id. Deleting twice is harmless.",
                parameters=[
                    ToolParameter(
                        name="id", type="string", description="The Sub Agent id to delete"
                    ),
                ],
            ),
            fn=delete_fn,
        ),
    ]
