"""Client for OpenAI-compatible chat completion servers."""

import json
from collections.abc import AsyncIterator
from typing import Any

from openai import AsyncOpenAI

from chorus.llm.client import (
    AssistantMessage,
    CompletionResponse,
    Message,
    StreamChunk,
    ToolCall,
    ToolCallDelta,
    ToolChoice,
    ToolMessage,
    Usage,
)


class OpenAICompatibleClient:
    """LLM client for any OpenAI-compatible inference server.

    OpenAI itself, Ollama and vLLM all expose ``/v1/chat/completions``
    endpoints; the backend differences are only in base URL and API key,
    which :func:`chorus.llm.factory.create_llm_client` fills in.
    """

    def __init__(
        self,
        model: str,
        base_url: str | None = None,
        api_key: str = "none",
        timeout: int = 120,
        temperature: float = 0.7,
    ) -> None:
        """Initialise the client.

        Args:
            model: Model name served by the backend.
            base_url: OpenAI-compatible endpoint (must include ``/v1``);
                None uses the SDK default (api.openai.com).
            api_key: API key (many backends ignore this but the SDK requires one).
            timeout: Request timeout in seconds.
            temperature: Default sampling temperature.
        """
        self.model = model
        self.temperature = temperature
        self.client = AsyncOpenAI(base_url=base_url, api_key=api_key, timeout=timeout)

    def _convert_messages(self, messages: list[Message]) -> list[dict[str, Any]]:
        """Convert internal message variants to OpenAI format."""
        openai_messages: list[dict[str, Any]] = []

        for msg in messages:
            message_dict: dict[str, Any] = {
                "role": msg.role,
                "content": msg.content,
            }

            if isinstance(msg, AssistantMessage) and msg.tool_calls:
                message_dict["content"] = msg.content or None
                message_dict["tool_calls"] = [
                    {
                        "id": tc.id,
                        "type": "function",
                        "function": {
                            "name": tc.name,
                            "arguments": tc.arguments,
                        },
                    }
                    for tc in msg.tool_calls
                ]

            if isinstance(msg, ToolMessage):
                message_dict["tool_call_id"] = msg.tool_call_id
                message_dict["name"] = msg.name

            openai_messages.append(message_dict)

        return openai_messages

    def _parse_tool_calls(self, tool_calls: Any) -> list[ToolCall]:
        """Parse tool calls from an OpenAI-compatible response.

        Arguments are kept as the raw JSON text; validation happens at dispatch.
        """
        if not tool_calls:
            return []

        return [
            ToolCall(
                id=tc.id,
                name=tc.function.name,
                arguments=tc.function.arguments or "{}",
            )
            for tc in tool_calls
        ]

    @staticmethod
    def _parse_usage(usage: Any) -> Usage:
        if usage is None:
            return Usage()
        return Usage(
            prompt_tokens=usage.prompt_tokens or 0,
            completion_tokens=usage.completion_tokens or 0,
            total_tokens=usage.total_tokens or 0,
        )

    def _build_params(
        self,
        messages: list[Message],
        tools: list[dict[str, Any]] | None,
        tool_choice: ToolChoice | None,
        temperature: float | None,
    ) -> dict[str, Any]:
        params: dict[str, Any] = {
            "model": self.model,
            "messages": self._convert_messages(messages),
            "temperature": temperature if temperature is not None else self.temperature,
        }

        if tools:
            params["tools"] = tools
            params["tool_choice"] = tool_choice or "auto"

        return params

    async def complete(
        self,
        messages: list[Message],
        tools: list[dict[str, Any]] | None = None,
        tool_choice: ToolChoice | None = None,
        temperature: float | None = None,
        max_tokens: int | None = None,
    ) -> CompletionResponse:
        """Generate a completion.

        Args:
            messages: Conversation history.
            tools: Available tools in OpenAI function format.
            tool_choice: Tool choice mode, only sent when tools are given.
            temperature: Sampling temperature override.
            max_tokens: Maximum tokens to generate.

        Returns:
            CompletionResponse with content, optional tool calls and usage.
        """
        params = self._build_params(messages, tools, tool_choice, temperature)

        if max_tokens:
            params["max_tokens"] = max_tokens

        response = await self.client.chat.completions.create(**params)

        choice = response.choices[0]
        message = choice.message

        tool_calls = self._parse_tool_calls(message.tool_calls)

        return CompletionResponse(
            content=message.content or "",
            tool_calls=tool_calls if tool_calls else None,
            finish_reason=choice.finish_reason or "stop",
            usage=self._parse_usage(response.usage),
        )

    async def stream_complete(
        self,
        messages: list[Message],
        tools: list[dict[str, Any]] | None = None,
        tool_choice: ToolChoice | None = None,
        temperature: float | None = None,
    ) -> AsyncIterator[StreamChunk]:
        """Stream a completion.

        Args:
            messages: Conversation history.
            tools: Available tools in OpenAI function format.
            tool_choice: Tool choice mode, only sent when tools are given.
            temperature: Sampling temperature override.

        Yields:
            StreamChunk objects carrying text deltas, tool call fragments
            and, on the final chunk, token usage.
        """
        params = self._build_params(messages, tools, tool_choice, temperature)
        params["stream"] = True
        params["stream_options"] = {"include_usage": True}

        stream = await self.client.chat.completions.create(**params)

        async for chunk in stream:
            usage = self._parse_usage(chunk.usage) if chunk.usage else None

            if not chunk.choices:
                if usage:
                    yield StreamChunk(usage=usage)
                continue

            choice = chunk.choices[0]
            delta = choice.delta
            deltas = [
                ToolCallDelta(
                    index=tc.index,
                    id=tc.id,
                    name=tc.function.name if tc.function else None,
                    arguments=tc.function.arguments if tc.function else None,
                )
                for tc in (delta.tool_calls or [])
            ]

            yield StreamChunk(
                content=delta.content or None,
                tool_calls=deltas,
                usage=usage,
                finish_reason=choice.finish_reason,
            )

    async def complete_structured(
        self,
        messages: list[Message],
        schema_name: str,
        schema: dict[str, Any],
    ) -> dict[str, Any]:
        """Generate a JSON object matching ``schema`` (structured outputs).

        Raises:
            ValueError: If the output is not a JSON object.
        """
        response = await self.client.chat.completions.create(
            model=self.model,
            messages=self._convert_messages(messages),
            response_format={
                "type": "json_schema",
                "json_schema": {"name": schema_name, "schema": schema, "strict": True},
            },
        )

        content = response.choices[0].message.content or ""
        try:
            data = json.loads(content)
        except json.JSONDecodeError as e:
            raise ValueError(f"Structured output is not valid JSON: {e}") from e

        if not isinstance(data, dict):
            raise ValueError("Structured output is not a JSON object")
        return data

    async def close(self) -> None:
        """Close the underlying HTTP client."""
        await self.client.close()
