"""Prompt directives: ``@mention``, ``/edit`` and ``/search`` markers.

Directives are parsed from the user's prompt before the first model call of
a turn and rendered as extra system instructions. The prompt itself is never
rewritten, so persisted history keeps exactly what the user typed.
"""

import re
from collections.abc import Iterable
from dataclasses import dataclass
from typing import Union

from chorus.storage.schema import SubAgentRecord

MENTION_PATTERN = re.compile(r"(?<![\w@])@(\w[\w\-]*)")
EDIT_PATTERN = re.compile(r"(?<!\S)/edit\b")
SEARCH_PATTERN = re.compile(r"(?<!\S)/search\b")


@dataclass(frozen=True)
class MentionSubAgent:
    """The user addressed a sub-agent by name."""

    sub_agent_id: str
    name: str


@dataclass(frozen=True)
class ForceUpdate:
    """The user asked for a sub-agent prompt to be edited."""


@dataclass(frozen=True)
class ForceSearch:
    """The user asked for a web search."""


Directive = Union[MentionSubAgent, ForceUpdate, ForceSearch]


def normalize_name(name: str) -> str:
    """Fold case and treat spaces, underscores and dashes as equivalent."""
    return re.sub(r"[\s_\-]+", " ", name).strip().casefold()


def parse_directives(prompt: str, sub_agents: Iterable[SubAgentRecord]) -> list[Directive]:
    """Extract directives from a prompt.

    Mentions that do not resolve to a live sub-agent are ignored.

    Args:
        prompt: The user's prompt
        sub_agents: Live sub-agents mentions are resolved against

    Returns:
        Mentions in prompt order (deduplicated), then ForceUpdate, then ForceSearch
    """
    by_name = {normalize_name(s.name): s for s in sub_agents}

    directives: list[Directive] = []
    seen: set[str] = set()
    for match in MENTION_PATTERN.finditer(prompt):
        sub_agent = by_name.get(normalize_name(match.group(1)))
        if sub_agent is None or sub_agent.id in seen:
            continue
        seen.add(sub_agent.id)
        directives.append(MentionSubAgent(sub_agent_id=sub_agent.id, name=sub_agent.name))

    if EDIT_PATTERN.search(prompt):
        directives.append(ForceUpdate())
    if SEARCH_PATTERN.search(prompt):
        directives.append(ForceSearch())

    return directives


def directive_instructions(directives: list[Directive]) -> list[str]:
    """Render directives as system instructions for the model."""
    instructions = []
    mentions = [d for d in directives if isinstance(d, MentionSubAgent)]

    for mention in mentions:
        instructions.append(
            f'The user addressed the sub-agent "{mention.name}". Call run_sub_agent with '
            f'id "{mention.sub_agent_id}" and the user\'s request as input before answering.'
        )

    for directive in directives:
        if isinstance(directive, ForceUpdate):
            target = (
                f'the sub-agent with id "{mentions[0].sub_agent_id}"'
                if mentions
                else "the sub-agent the user refers to (use find_sub_agent to get its id)"
            )
            instructions.append(
                f"The user asked to edit a sub-agent. Call update_sub_agent on {target} "
                "with the requested change."
            )
        elif isinstance(directive, ForceSearch):
            instructions.append(
                "The user asked for a web search. Call web_search before answering and "
                "ground the answer in what you find."
            )

    return instructions
