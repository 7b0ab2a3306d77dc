"""Per-request tool registry and defensive tool call dispatch."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from chorus.exceptions import ToolError
from chorus.llm.client import ToolCall
from chorus.tools.base import Tool

if TYPE_CHECKING:
    from chorus.config.schema import ChorusConfig
    from chorus.storage.sub_agents import SubAgentStore
    from chorus.tools.web import WebClient

logger = logging.getLogger(__name__)

# Keys a model may use to pass the chat id itself; the injected value wins
_CHAT_ID_KEYS = ("chat_id", "chatId")


@dataclass
class ToolOutcome:
    """Result of dispatching one tool call."""

    tool_call: ToolCall
    ok: bool
    result: Any = None
    error: str | None = None

    @property
    def content(self) -> str:
        """Tool message content fed back to the model."""
        payload = self.result if self.ok else {"error": self.error}
        if isinstance(payload, str):
            return payload
        return json.dumps(payload, default=str, ensure_ascii=False)


def parse_arguments(raw: str | None) -> dict[str, Any]:
    """Parse tool call arguments.

    Raises:
        ToolError: If the text is not a JSON object
    """
    if raw is None or not raw.strip():
        return {}
    try:
        args = json.loads(raw)
    except json.JSONDecodeError as e:
        raise ToolError(f"Malformed tool arguments: {e.msg}") from e
    if not isinstance(args, dict):
        raise ToolError("Tool arguments must be a JSON object")
    return args


class ToolRegistry:
    """Maps tool names to tools for one request scope.

    Handlers hold explicit references to their dependencies (stores, HTTP
    clients) instead of closing over global state, so a registry can be
    built against test doubles.
    """

    def __init__(self, tools: list[Tool] | None = None) -> None:
        self._tools: dict[str, Tool] = {}
        for tool in tools or []:
            self.register(tool)

    def register(self, tool: Tool) -> None:
        """Register a tool.

        Raises:
            ValueError: If a tool with the same name already exists
        """
        if tool.name in self._tools:
            raise ValueError(f"Tool '{tool.name}' already registered")
        self._tools[tool.name] = tool

    def get(self, name: str) -> Tool:
        """Get a tool by name.

        Raises:
            KeyError: If tool not found
        """
        if name not in self._tools:
            raise KeyError(f"Tool '{name}' not found in registry")
        return self._tools[name]

    def has(self, name: str) -> bool:
        return name in self._tools

    @property
    def names(self) -> list[str]:
        return list(self._tools)

    def schemas(self, names: list[str] | None = None) -> list[dict[str, Any]]:
        """Tool schemas in OpenAI format, optionally restricted to ``names``."""
        selected = self._tools.values() if names is None else (
            self._tools[name] for name in names if name in self._tools
        )
        return [tool.schema.to_openai_format() for tool in selected]

    def _prepare_arguments(
        self, tool: Tool, tool_call: ToolCall, chat_id: str | None
    ) -> dict[str, Any]:
        args = parse_arguments(tool_call.arguments)

        if tool.needs_chat:
            for key in _CHAT_ID_KEYS:
                args.pop(key, None)

        known = tool.schema.parameter_names
        unexpected = sorted(set(args) - known)
        if unexpected:
            logger.debug("Ignoring unexpected arguments for %s: %s", tool.name, unexpected)
            args = {key: value for key, value in args.items() if key in known}

        missing = sorted(
            param.name
            for param in tool.schema.parameters
            if param.required and args.get(param.name) is None
        )
        if missing:
            raise ToolError(f"Missing required argument(s): {', '.join(missing)}")

        if tool.needs_chat:
            args["chat_id"] = chat_id
        return args

    async def execute(self, tool_call: ToolCall, chat_id: str | None = None) -> ToolOutcome:
        """Execute one tool call, converting every failure into an error outcome.

        Args:
            tool_call: Call emitted by the model
            chat_id: Current chat, injected into tools that need it

        Returns:
            ToolOutcome; never raises for tool-level failures
        """
        tool = self._tools.get(tool_call.name)
        if tool is None:
            return ToolOutcome(tool_call, ok=False, error=f"Unknown tool '{tool_call.name}'")

        try:
            args = self._prepare_arguments(tool, tool_call, chat_id)
            logger.debug("Executing tool %s (%s)", tool.name, tool_call.id)
            result = await tool.execute(**args)
        except ToolError as e:
            logger.info("Tool %s failed: %s", tool.name, e)
            return ToolOutcome(tool_call, ok=False, error=str(e))
        except Exception as e:
            logger.warning("Tool %s raised %s", tool.name, type(e).__name__, exc_info=True)
            return ToolOutcome(tool_call, ok=False, error=f"{type(e).__name__}: {e}")

        return ToolOutcome(tool_call, ok=True, result=result)


def build_tool_registry(
    config: ChorusConfig,
    sub_agents: SubAgentStore,
    web: WebClient | None = None,
) -> ToolRegistry:
    """Build the registry for one request from configuration.

    Args:
        config: Chorus configuration
        sub_agents: Sub-agent store used by the sub-agent tools
        web: Client for the search/read service; web tools are skipped without it

    Returns:
        Populated ToolRegistry
    """
    from chorus.tools.http import create_fetch_tool
    from chorus.tools.sub_agents import create_sub_agent_tools
    from chorus.tools.web import create_web_read_tool, create_web_search_tool

    registry = ToolRegistry()

    if config.tools.fetch:
        registry.register(create_fetch_tool(default_timeout_ms=config.tools.fetch_timeout_ms))
    if web is not None and config.tools.web_search:
        registry.register(create_web_search_tool(web))
    if web is not None and config.tools.web_read:
        registry.register(create_web_read_tool(web))

    for tool in create_sub_agent_tools(
        sub_agents,
        update_policy=config.agent.update_policy,
        scope=config.agent.sub_agent_scope,
    ):
        registry.register(tool)

    return registry
