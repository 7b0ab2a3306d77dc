"""Tests for prompt directive parsing."""

from chorus.agent.directives import (
    ForceSearch,
    ForceUpdate,
    MentionSubAgent,
    directive_instructions,
    normalize_name,
    parse_directives,
)
from chorus.storage.schema import SubAgentRecord


def _agent(id: str, name: str) -> SubAgentRecord:
    return SubAgentRecord(id=id, name=name, prompt="p")


AGENTS = [_agent("sa-1", "research bot"), _agent("sa-2", "Travel-Planner")]


def test_normalize_name():
    assert normalize_name("Research_Bot") == "research bot"
    assert normalize_name("  travel--planner ") == "travel planner"


def test_mention_resolves_with_separator_equivalence():
    directives = parse_directives("@research_bot summarize this", AGENTS)

    assert directives == [MentionSubAgent(sub_agent_id="sa-1", name="research bot")]


def test_unknown_mention_is_ignored():
    assert parse_directives("ping @nobody", AGENTS) == []


def test_email_address_is_not_a_mention():
    assert parse_directives("mail me at me@research_bot.org", AGENTS) == []


def test_mentions_deduplicated_in_order():
    directives = parse_directives("@travel_planner then @research-bot and @Research_Bot", AGENTS)

    assert [d.sub_agent_id for d in directives] == ["sa-2", "sa-1"]


def test_edit_and_search_flags():
    directives = parse_directives("/search latest news /edit @research_bot", AGENTS)

    assert directives == [
        MentionSubAgent(sub_agent_id="sa-1", name="research bot"),
        ForceUpdate(),
        ForceSearch(),
    ]


def test_slash_inside_word_is_not_a_directive():
    assert parse_directives("see docs/search and path/edit", AGENTS) == []


def test_instructions_for_mention_and_edit():
    instructions = directive_instructions(
        [MentionSubAgent(sub_agent_id="sa-1", name="research bot"), ForceUpdate()]
    )

    assert len(instructions) == 2
    assert "run_sub_agent" in instructions[0]
    assert "sa-1" in instructions[0]
    assert "update_sub_agent" in instructions[1]
    assert "sa-1" in instructions[1]


def test_instructions_for_edit_without_mention():
    [instruction] = directive_instructions([ForceUpdate()])

    assert "find_sub_agent" in instruction


def test_instructions_for_search():
    [instruction] = directive_instructions([ForceSearch()])

    assert "web_search" in instruction


def test_no_directives_no_instructions():
    assert directive_instructions([]) == []
