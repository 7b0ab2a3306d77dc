"""Accumulation of streamed tool call fragments into complete tool calls."""

import json
import logging
from dataclasses import dataclass

from chorus.llm.client import ToolCall, ToolCallDelta

logger = logging.getLogger(__name__)


@dataclass
class PartialToolCall:
    """A tool call still being assembled from stream fragments."""

    index: int
    id: str | None = None
    name: str | None = None
    arguments_buffer: str = ""

    def is_complete(self) -> bool:
        """True once a name is known and the buffer holds valid JSON."""
        if not self.name:
            return False
        try:
            json.loads(self.arguments_buffer or "{}")
        except json.JSONDecodeError:
            return False
        return True

    def promote(self, fallback_id: str) -> ToolCall:
        """Convert to a complete ToolCall. Call only when complete."""
        return ToolCall(
            id=self.id or fallback_id,
            name=self.name or "",
            arguments=self.arguments_buffer or "{}",
        )


class ToolCallAccumulator:
    """Collects tool call deltas keyed by their stream index.

    Fragments are only concatenated while streaming; arguments are parsed
    once, in :meth:`finish`, after the stream has ended.
    """

    def __init__(self) -> None:
        self._partials: dict[int, PartialToolCall] = {}

    def add(self, delta: ToolCallDelta) -> None:
        partial = self._partials.get(delta.index)
        if partial is None:
            partial = PartialToolCall(index=delta.index)
            self._partials[delta.index] = partial

        if delta.id:
            partial.id = delta.id
        # The name arrives whole on the first fragment; later repeats are ignored
        if delta.name and not partial.name:
            partial.name = delta.name
        if delta.arguments:
            partial.arguments_buffer += delta.arguments

    def finish(self) -> list[ToolCall]:
        """Return the complete tool calls in stream order.

        Incomplete fragments (no name, or arguments that never became valid
        JSON) are dropped with a warning.
        """
        calls: list[ToolCall] = []
        for index in sorted(self._partials):
            partial = self._partials[index]
            if not partial.is_complete():
                logger.warning(
                    "Dropping incomplete tool call at index %d (name=%r)",
                    index,
                    partial.name,
                )
                continue
            calls.append(partial.promote(fallback_id=f"call_{index}"))
        return calls
