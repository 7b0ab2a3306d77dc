"""Frames emitted by the orchestrator while a turn runs."""

from dataclasses import dataclass
from typing import Union


@dataclass(frozen=True)
class ChatCreated:
    """Control frame carrying the id of a newly created chat; always first."""

    chat_id: str


@dataclass(frozen=True)
class TextDelta:
    """A fragment of assistant text."""

    text: str


@dataclass(frozen=True)
class TurnDone:
    """End of turn."""


Frame = Union[ChatCreated, TextDelta, TurnDone]
