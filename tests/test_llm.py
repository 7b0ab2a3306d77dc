"""Tests for the OpenAI-compatible LLM client."""

import json

import pytest
import respx
from httpx import Response

from chorus.config.schema import ChorusConfig
from chorus.llm.client import (
    AssistantMessage,
    SystemMessage,
    ToolCall,
    ToolMessage,
    UserMessage,
)
from chorus.llm.factory import create_llm_client
from chorus.llm.openai_compat import OpenAICompatibleClient

BASE_URL = "http://localhost:11434/v1"
COMPLETIONS_URL = f"{BASE_URL}/chat/completions"


@pytest.fixture
def llm_client():
    """Create a client pointed at a mocked endpoint."""
    return OpenAICompatibleClient(model="test-model", base_url=BASE_URL, api_key="test")


def _completion(message: dict, usage: dict | None = None) -> dict:
    return {
        "id": "chatcmpl-123",
        "object": "chat.completion",
        "created": 1677652288,
        "model": "test-model",
        "choices": [{"index": 0, "message": message, "finish_reason": "stop"}],
        "usage": usage,
    }


def _sse(*chunks: dict) -> str:
    lines = [f"data: {json.dumps(chunk)}\n\n" for chunk in chunks]
    lines.append("data: [DONE]\n\n")
    return "".join(lines)


def _chunk(delta: dict | None = None, usage: dict | None = None, finish: str | None = None) -> dict:
    return {
        "id": "chatcmpl-123",
        "object": "chat.completion.chunk",
        "created": 1677652288,
        "model": "test-model",
        "choices": [] if delta is None else [{"index": 0, "delta": delta, "finish_reason": finish}],
        "usage": usage,
    }


@pytest.mark.asyncio
@respx.mock
async def test_complete_simple_response(llm_client):
    """Test simple completion without tool calls."""
    respx.post(COMPLETIONS_URL).mock(
        return_value=Response(
            200,
            json=_completion(
                {"role": "assistant", "content": "Hello!"},
                usage={"prompt_tokens": 5, "completion_tokens": 2, "total_tokens": 7},
            ),
        )
    )

    response = await llm_client.complete([UserMessage("Hi")])

    assert response.content == "Hello!"
    assert response.tool_calls is None
    assert response.usage.total_tokens == 7


@pytest.mark.asyncio
@respx.mock
async def test_complete_keeps_raw_arguments(llm_client):
    """Test tool call arguments are passed through as raw JSON text."""
    raw = json.dumps({"query": "python"})
    respx.post(COMPLETIONS_URL).mock(
        return_value=Response(
            200,
            json=_completion(
                {
                    "role": "assistant",
                    "content": None,
                    "tool_calls": [
                        {
                            "id": "call_1",
                            "type": "function",
                            "function": {"name": "web_search", "arguments": raw},
                        }
                    ],
                }
            ),
        )
    )

    response = await llm_client.complete([UserMessage("search")])

    assert response.content == ""
    assert response.tool_calls == [ToolCall(id="call_1", name="web_search", arguments=raw)]


@pytest.mark.asyncio
@respx.mock
async def test_request_payload_format(llm_client):
    """Test messages, tools and tool_choice are sent in OpenAI format."""
    route = respx.post(COMPLETIONS_URL).mock(
        return_value=Response(200, json=_completion({"role": "assistant", "content": "ok"}))
    )
    tools = [{"type": "function", "function": {"name": "fetch", "parameters": {}}}]
    messages = [
        SystemMessage("sys"),
        UserMessage("hi"),
        AssistantMessage(tool_calls=[ToolCall(id="c1", name="fetch", arguments='{"url": "x"}')]),
        ToolMessage(content="{}", tool_call_id="c1", name="fetch"),
    ]

    await llm_client.complete(messages, tools=tools, tool_choice="required")

    body = json.loads(route.calls.last.request.content)
    assert body["tool_choice"] == "required"
    assert body["tools"] == tools
    assert body["messages"][2]["content"] is None
    assert body["messages"][2]["tool_calls"][0]["function"]["arguments"] == '{"url": "x"}'
    assert body["messages"][3]["tool_call_id"] == "c1"


@pytest.mark.asyncio
@respx.mock
async def test_tool_choice_omitted_without_tools(llm_client):
    """Test tool_choice is not sent when no tools are offered."""
    route = respx.post(COMPLETIONS_URL).mock(
        return_value=Response(200, json=_completion({"role": "assistant", "content": "ok"}))
    )

    await llm_client.complete([UserMessage("hi")], tool_choice="none")

    body = json.loads(route.calls.last.request.content)
    assert "tools" not in body
    assert "tool_choice" not in body


@pytest.mark.asyncio
@respx.mock
async def test_stream_complete_text_tool_deltas_and_usage(llm_client):
    """Test streamed chunks carry text, tool call fragments and final usage."""
    stream = _sse(
        _chunk({"role": "assistant", "content": "Hel"}),
        _chunk({"content": "lo"}),
        _chunk(
            {
                "tool_calls": [
                    {
                        "index": 0,
                        "id": "call_1",
                        "type": "function",
                        "function": {"name": "fetch", "arguments": '{"url":'},
                    }
                ]
            }
        ),
        _chunk({"tool_calls": [{"index": 0, "function": {"arguments": ' "http://x"}'}}]}),
        _chunk({}, finish="tool_calls"),
        _chunk(usage={"prompt_tokens": 10, "completion_tokens": 5, "total_tokens": 15}),
    )
    route = respx.post(COMPLETIONS_URL).mock(
        return_value=Response(200, text=stream, headers={"content-type": "text/event-stream"})
    )

    chunks = [chunk async for chunk in llm_client.stream_complete([UserMessage("hi")])]

    body = json.loads(route.calls.last.request.content)
    assert body["stream"] is True
    assert body["stream_options"] == {"include_usage": True}

    assert "".join(c.content for c in chunks if c.content) == "Hello"
    deltas = [d for c in chunks for d in c.tool_calls]
    assert deltas[0].name == "fetch"
    assert "".join(d.arguments or "" for d in deltas) == '{"url": "http://x"}'
    assert chunks[-1].usage.total_tokens == 15


@pytest.mark.asyncio
@respx.mock
async def test_complete_structured(llm_client):
    """Test structured output is parsed and the schema is sent."""
    route = respx.post(COMPLETIONS_URL).mock(
        return_value=Response(
            200, json=_completion({"role": "assistant", "content": '{"title": "Trip plans"}'})
        )
    )
    schema = {"type": "object", "properties": {"title": {"type": "string"}}}

    data = await llm_client.complete_structured([UserMessage("hi")], "chat_title", schema)

    assert data == {"title": "Trip plans"}
    body = json.loads(route.calls.last.request.content)
    assert body["response_format"]["type"] == "json_schema"
    assert body["response_format"]["json_schema"]["name"] == "chat_title"


@pytest.mark.asyncio
@respx.mock
async def test_complete_structured_invalid_json(llm_client):
    """Test non-JSON structured output raises ValueError."""
    respx.post(COMPLETIONS_URL).mock(
        return_value=Response(200, json=_completion({"role": "assistant", "content": "nope"}))
    )

    with pytest.raises(ValueError):
        await llm_client.complete_structured([UserMessage("hi")], "chat_title", {})


def test_factory_backends(monkeypatch):
    """Test the factory resolves base URLs and API keys per backend."""
    monkeypatch.setenv("OPENAI_API_KEY", "sk-test")
    config = ChorusConfig()
    client = create_llm_client(config)
    assert client.client.api_key == "sk-test"
    assert client.model == "gpt-4o-mini"

    monkeypatch.delenv("OPENAI_API_KEY")
    config.inference.backend = "ollama"
    client = create_llm_client(config)
    assert str(client.client.base_url).startswith("http://localhost:11434/v1")
    assert client.client.api_key == "ollama"

    config.inference.backend = "vllm"
    config.inference.base_url = "http://gpu-box:8000/v1"
    client = create_llm_client(config)
    assert str(client.client.base_url).startswith("http://gpu-box:8000/v1")
