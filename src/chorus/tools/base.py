"""Base types for the tool system."""

from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Any


@dataclass
class ToolParameter:
    """Definition of a tool parameter."""

    name: str
    type: str  # JSON Schema type
    description: str
    required: bool = True
    enum: list[str] | None = None
    default: Any = None
    minimum: float | None = None
    maximum: float | None = None


@dataclass
class ToolSchema:
    """JSON Schema representation of a tool for LLM function calling."""

    name: str
    description: str
    parameters: list[ToolParameter] = field(default_factory=list)

    def to_openai_format(self) -> dict[str, Any]:
        """Convert to OpenAI function calling format.

        Returns:
            Dictionary matching OpenAI's function schema format
        """
        properties = {}
        required = []

        for param in self.parameters:
            param_schema: dict[str, Any] = {
                "type": param.type,
                "description": param.description,
            }
            if param.enum:
                param_schema["enum"] = param.enum
            if param.default is not None:
                param_schema["default"] = param.default
            if param.minimum is not None:
                param_schema["minimum"] = param.minimum
            if param.maximum is not None:
                param_schema["maximum"] = param.maximum

            properties[param.name] = param_schema

            if param.required:
                required.append(param.name)

        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": {
                    "type": "object",
                    "properties": properties,
                    "required": required,
                },
            },
        }

    @property
    def parameter_names(self) -> set[str]:
        return {param.name for param in self.parameters}


# Tool function signature: async function returning any JSON-serializable value
ToolFunction = Callable[..., Awaitable[Any]]


@dataclass
class Tool:
    """A tool that the orchestrator can dispatch to.

    ``needs_chat`` tools receive the current chat id as a ``chat_id`` keyword
    argument; it is never part of the schema shown to the model.
    """

    schema: ToolSchema
    fn: ToolFunction
    needs_chat: bool = False

    @property
    def name(self) -> str:
        return self.schema.name

    async def execute(self, **kwargs: Any) -> Any:
        """Execute the tool with given arguments.

        Args:
            **kwargs: Tool arguments

        Returns:
            Tool execution result
        """
        return await self.fn(**kwargs)
