"""LLM client implementations."""

from .client import (
    AssistantMessage,
    CompletionResponse,
    LLMClient,
    Message,
    StreamChunk,
    SystemMessage,
    ToolCall,
    ToolCallDelta,
    ToolMessage,
    Usage,
    UserMessage,
)
from .factory import create_llm_client
from .openai_compat import OpenAICompatibleClient
from .streaming import PartialToolCall, ToolCallAccumulator

__all__ = [
    "AssistantMessage",
    "CompletionResponse",
    "LLMClient",
    "Message",
    "OpenAICompatibleClient",
    "PartialToolCall",
    "StreamChunk",
    "SystemMessage",
    "ToolCall",
    "ToolCallAccumulator",
    "ToolCallDelta",
    "ToolMessage",
    "Usage",
    "UserMessage",
    "create_llm_client",
]
