"""Tests for sub-agent storage and its prompt history."""

import pytest

from chorus.exceptions import ConflictError, NotFoundError
from chorus.storage.sub_agents import merge_prompt


def test_create_via_upsert(sub_agents):
    sub_agent, created = sub_agents.upsert("travel", "Plan trips.", chat_id=None)

    assert created is True
    assert sub_agents.get(sub_agent.id).prompt == "Plan trips."
    assert sub_agents.history(sub_agent.id) == []


def test_upsert_same_prompt_is_idempotent(sub_agents):
    """Test creating twice with identical input leaves one record and no history."""
    first, _ = sub_agents.upsert("travel", "Plan trips.")
    second, created = sub_agents.upsert("travel", "Plan trips.")

    assert created is False
    assert second.id == first.id
    assert len(sub_agents.list_sub_agents()) == 1
    assert sub_agents.history(first.id) == []


def test_upsert_new_prompt_writes_history(sub_agents):
    first, _ = sub_agents.upsert("travel", "v1")
    updated, created = sub_agents.upsert("travel", "v2")

    assert created is False
    assert updated.prompt == "v2"
    assert [h.old_prompt for h in sub_agents.history(first.id)] == ["v1"]


def test_history_round_trip(sub_agents):
    """Test ascending history plus the current prompt is the full version chain."""
    sub_agent, _ = sub_agents.upsert("writer", "v1")
    sub_agents.update_prompt(sub_agent.id, "v2", policy="replace")
    sub_agents.update_prompt(sub_agent.id, "v3", policy="replace")

    assert sub_agents.version_chain(sub_agent.id) == ["v1", "v2", "v3"]
    newest_first = sub_agents.history(sub_agent.id, newest_first=True)
    assert [h.old_prompt for h in newest_first] == ["v2", "v1"]


def test_update_append_policy(sub_agents):
    sub_agent, _ = sub_agents.upsert("writer", "Write clearly.")

    updated = sub_agents.update_prompt(sub_agent.id, "  Prefer short sentences. ")

    assert updated.prompt == "Write clearly.\n\nPrefer short sentences."
    assert sub_agents.get(sub_agent.id).prompt == updated.prompt


def test_update_resolves_by_name(sub_agents):
    sub_agent, _ = sub_agents.upsert("writer", "v1")

    updated = sub_agents.update_prompt("writer", "v2", policy="replace")

    assert updated.id == sub_agent.id
    assert updated.prompt == "v2"


def test_update_unknown_raises(sub_agents):
    with pytest.raises(NotFoundError):
        sub_agents.update_prompt("ghost", "x")


def test_delete_is_idempotent(sub_agents):
    """Test deleting twice succeeds and running afterwards fails."""
    sub_agent, _ = sub_agents.upsert("travel", "Plan trips.")

    assert sub_agents.delete(sub_agent.id) is True
    assert sub_agents.delete(sub_agent.id) is False
    with pytest.raises(NotFoundError):
        sub_agents.get(sub_agent.id)
    assert sub_agents.get(sub_agent.id, include_deleted=True).is_deleted


def test_delete_unknown_raises(sub_agents):
    with pytest.raises(NotFoundError):
        sub_agents.delete("ghost")


def test_name_is_reusable_after_delete(sub_agents):
    old, _ = sub_agents.upsert("travel", "v1")
    sub_agents.delete(old.id)

    new, created = sub_agents.upsert("travel", "v2")

    assert created is True
    assert new.id != old.id


def test_restore(sub_agents):
    sub_agent, _ = sub_agents.upsert("travel", "v1")
    sub_agents.delete(sub_agent.id)

    restored = sub_agents.restore(sub_agent.id)

    assert restored.deleted_at is None
    assert sub_agents.get(sub_agent.id).name == "travel"


def test_restore_conflict(sub_agents):
    """Test restoring fails while another live sub-agent holds the name."""
    old, _ = sub_agents.upsert("travel", "v1")
    sub_agents.delete(old.id)
    sub_agents.upsert("travel", "v2")

    with pytest.raises(ConflictError):
        sub_agents.restore(old.id)


def test_list_and_recent(sub_agents, chats, user):
    chat = chats.create_chat(user.id)
    a, _ = sub_agents.upsert("a", "pa", chat_id=chat.id)
    b, _ = sub_agents.upsert("b", "pb")
    sub_agents.update_prompt(a.id, "pa2", policy="replace")

    assert [s.id for s in sub_agents.list_sub_agents()] == [b.id, a.id]
    assert [s.id for s in sub_agents.list_sub_agents(chat_id=chat.id)] == [a.id]
    assert sub_agents.recent().id == a.id


def test_recent_empty(sub_agents):
    assert sub_agents.recent() is None


def test_merge_prompt():
    assert merge_prompt("a", "b", "replace") == "b"
    assert merge_prompt("", "b", "append") == "b"
    assert merge_prompt("a\n", " b ", "append") == "a\n\nb"
