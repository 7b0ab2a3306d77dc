"""Tests for the sub-agent tools as the model sees them."""

import json

import pytest

from chorus.llm.client import ToolCall
from chorus.tools.registry import ToolRegistry
from chorus.tools.sub_agents import (
    CREATE_SUB_AGENT,
    DELETE_SUB_AGENT,
    FIND_SUB_AGENT,
    RUN_SUB_AGENT,
    UPDATE_SUB_AGENT,
    create_sub_agent_tools,
)


@pytest.fixture
def registry(sub_agents):
    return ToolRegistry(create_sub_agent_tools(sub_agents))


async def _call(registry, name: str, /, chat_id: str = "chat-1", **arguments):
    call = ToolCall(id=f"call_{name}", name=name, arguments=json.dumps(arguments))
    return await registry.execute(call, chat_id=chat_id)


def test_tool_order_and_schemas(sub_agents):
    tools = create_sub_agent_tools(sub_agents)

    assert [t.name for t in tools] == [
        CREATE_SUB_AGENT,
        FIND_SUB_AGENT,
        RUN_SUB_AGENT,
        UPDATE_SUB_AGENT,
        DELETE_SUB_AGENT,
    ]
    for tool in tools:
        properties = tool.schema.to_openai_format()["function"]["parameters"]["properties"]
        assert "chat_id" not in properties


@pytest.mark.asyncio
async def test_create_links_chat(registry, sub_agents, chats, user):
    chat = chats.create_chat(user.id)

    outcome = await _call(
        registry, CREATE_SUB_AGENT, chat_id=chat.id, name="travel", prompt="Plan trips."
    )

    assert outcome.ok
    assert outcome.result["created"] is True
    stored = sub_agents.get(outcome.result["sub_agent"]["id"])
    assert stored.chat_id == chat.id


@pytest.mark.asyncio
async def test_create_twice_is_idempotent(registry, sub_agents):
    """Test the same create call twice leaves one record and no history."""
    first = await _call(registry, CREATE_SUB_AGENT, chat_id=None, name="travel", prompt="p")
    second = await _call(registry, CREATE_SUB_AGENT, chat_id=None, name="travel", prompt="p")

    assert second.result["created"] is False
    assert second.result["sub_agent"]["id"] == first.result["sub_agent"]["id"]
    assert len(sub_agents.list_sub_agents()) == 1
    assert sub_agents.history(first.result["sub_agent"]["id"]) == []


@pytest.mark.asyncio
async def test_find_lists_previews(registry, sub_agents):
    sub_agents.upsert("long", "x" * 500)

    outcome = await _call(registry, FIND_SUB_AGENT)

    [entry] = outcome.result["sub_agents"]
    assert entry["name"] == "long"
    assert len(entry["prompt_preview"]) == 200
    assert set(entry) == {"id", "name", "prompt_preview", "created_at"}


@pytest.mark.asyncio
async def test_find_scoped_to_chat(sub_agents, chats, user):
    chat = chats.create_chat(user.id)
    sub_agents.upsert("mine", "p", chat_id=chat.id)
    sub_agents.upsert("shared", "p")
    registry = ToolRegistry(create_sub_agent_tools(sub_agents, scope="chat"))

    outcome = await _call(registry, FIND_SUB_AGENT, chat_id=chat.id)

    assert [s["name"] for s in outcome.result["sub_agents"]] == ["mine"]


@pytest.mark.asyncio
async def test_run_returns_prompt_and_input(registry, sub_agents):
    sub_agent, _ = sub_agents.upsert("travel", "Plan trips.")

    outcome = await _call(registry, RUN_SUB_AGENT, id=sub_agent.id, input="Lisbon in May")

    assert outcome.result["sub_agent"] == {
        "id": sub_agent.id,
        "name": "travel",
        "prompt": "Plan trips.",
    }
    assert outcome.result["input"] == "Lisbon in May"


@pytest.mark.asyncio
async def test_run_after_delete_fails(registry, sub_agents):
    """Test deleting twice succeeds and a later run reports not found."""
    sub_agent, _ = sub_agents.upsert("travel", "Plan trips.")

    first = await _call(registry, DELETE_SUB_AGENT, id=sub_agent.id)
    second = await _call(registry, DELETE_SUB_AGENT, id=sub_agent.id)
    run = await _call(registry, RUN_SUB_AGENT, id=sub_agent.id, input="x")

    assert first.result == {"ok": True, "already_deleted": False}
    assert second.result == {"ok": True, "already_deleted": True}
    assert not run.ok
    assert "not found" in json.loads(run.content)["error"]


@pytest.mark.asyncio
async def test_update_appends_and_records_history(registry, sub_agents):
    sub_agent, _ = sub_agents.upsert("travel", "Plan trips.")

    outcome = await _call(registry, UPDATE_SUB_AGENT, id=sub_agent.id, prompt="Mention visas.")

    assert outcome.result["sub_agent"]["prompt"] == "Plan trips.\n\nMention visas."
    assert [h.old_prompt for h in sub_agents.history(sub_agent.id)] == ["Plan trips."]


@pytest.mark.asyncio
async def test_update_replace_policy_by_name(sub_agents):
    sub_agents.upsert("travel", "Plan trips.")
    registry = ToolRegistry(create_sub_agent_tools(sub_agents, update_policy="replace"))

    outcome = await _call(registry, UPDATE_SUB_AGENT, id="travel", prompt="Only Europe.")

    assert outcome.result["sub_agent"]["prompt"] == "Only Europe."


@pytest.mark.asyncio
async def test_update_unknown_is_error_outcome(registry):
    outcome = await _call(registry, UPDATE_SUB_AGENT, id="ghost", prompt="x")

    assert not outcome.ok
