"""LLM client protocol and data types."""

from collections.abc import AsyncIterator
from dataclasses import dataclass, field
from typing import Any, Literal, Protocol, Union

ToolChoice = Literal["auto", "required", "none"]


@dataclass
class ToolCall:
    """A complete tool call requested by the LLM.

    ``arguments`` is the raw JSON text emitted by the model. It is parsed
    when the call is dispatched, not here.
    """

    id: str
    name: str
    arguments: str = "{}"


@dataclass
class SystemMessage:
    """Instruction message."""

    content: str
    role: Literal["system"] = "system"


@dataclass
class UserMessage:
    """A user prompt."""

    content: str
    role: Literal["user"] = "user"


@dataclass
class AssistantMessage:
    """Model output, optionally carrying the tool calls it requested."""

    content: str = ""
    tool_calls: list[ToolCall] | None = None
    role: Literal["assistant"] = "assistant"


@dataclass
class ToolMessage:
    """Result of one tool call, linked back to it by ``tool_call_id``."""

    content: str
    tool_call_id: str
    name: str
    role: Literal["tool"] = "tool"


Message = Union[SystemMessage, UserMessage, AssistantMessage, ToolMessage]


@dataclass
class Usage:
    """Token usage reported by the provider."""

    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0


@dataclass
class CompletionResponse:
    """Response from LLM completion."""

    content: str
    tool_calls: list[ToolCall] | None = None
    finish_reason: str = "stop"
    usage: Usage = field(default_factory=Usage)


@dataclass
class ToolCallDelta:
    """A fragment of a tool call received while streaming."""

    index: int
    id: str | None = None
    name: str | None = None
    arguments: str | None = None


@dataclass
class StreamChunk:
    """One streamed event: a text delta, tool call fragments and/or usage."""

    content: str | None = None
    tool_calls: list[ToolCallDelta] = field(default_factory=list)
    usage: Usage | None = None
    finish_reason: str | None = None


class LLMClient(Protocol):
    """Protocol for LLM client implementations."""

    async def complete(
        self,
        messages: list[Message],
        tools: list[dict[str, Any]] | None = None,
        tool_choice: ToolChoice | None = None,
        temperature: float | None = None,
        max_tokens: int | None = None,
    ) -> CompletionResponse:
        """Generate a completion from the LLM.

        Args:
            messages: Conversation history
            tools: Available tools in OpenAI function format
            tool_choice: "auto", "required" or "none"; ignored without tools
            temperature: Sampling temperature override
            max_tokens: Maximum tokens to generate

        Returns:
            CompletionResponse with content, optional tool calls and usage
        """
        ...

    def stream_complete(
        self,
        messages: list[Message],
        tools: list[dict[str, Any]] | None = None,
        tool_choice: ToolChoice | None = None,
        temperature: float | None = None,
    ) -> AsyncIterator[StreamChunk]:
        """Stream a completion from the LLM.

        Args:
            messages: Conversation history
            tools: Available tools in OpenAI function format
            tool_choice: "auto", "required" or "none"; ignored without tools
            temperature: Sampling temperature override

        Yields:
            StreamChunk objects as they arrive
        """
        ...

    async def complete_structured(
        self,
        messages: list[Message],
        schema_name: str,
        schema: dict[str, Any],
    ) -> dict[str, Any]:
        """Generate a JSON object constrained to ``schema``.

        Raises:
            ValueError: If the model output is not a JSON object
        """
        ...
