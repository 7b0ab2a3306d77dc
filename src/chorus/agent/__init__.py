"""Conversation orchestration: the turn loop, directives and stream frames."""

from chorus.agent.events import ChatCreated, Frame, TextDelta, TurnDone
from chorus.agent.orchestrator import Orchestrator, TurnBudget

__all__ = ["ChatCreated", "Frame", "Orchestrator", "TextDelta", "TurnBudget", "TurnDone"]
