"""Pydantic models for chorus.yaml configuration."""

from typing import Literal

from pydantic import BaseModel, Field, model_validator


class ModelConfig(BaseModel):
    """LLM model configuration."""

    name: str = Field(default="gpt-4o-mini", description="Model name served by the backend")
    temperature: float = Field(default=0.7, description="Sampling temperature", ge=0.0, le=2.0)


class InferenceConfig(BaseModel):
    """Inference backend configuration."""

    backend: Literal["openai", "ollama", "vllm"] = Field(
        default="openai",
        description="OpenAI-compatible backend to use",
    )
    base_url: str | None = Field(
        default=None,
        description="Endpoint including /v1; None uses the backend default",
    )
    api_key_env: str | None = Field(
        default="OPENAI_API_KEY",
        description="Environment variable holding the API key",
    )
    timeout: int = Field(default=120, description="Request timeout in seconds", ge=1)


class AgentConfig(BaseModel):
    """Orchestration loop configuration."""

    max_iterations: int = Field(
        default=12, description="Maximum tool-calling iterations per turn", ge=1, le=50
    )
    hard_token_limit: int = Field(
        default=150_000,
        description="Total tokens per turn after which tools are skipped and the answer is forced",
        ge=1,
    )
    soft_token_limit: int = Field(
        default=140_000,
        description="Total tokens per turn after which the next call must answer without tools",
        ge=1,
    )
    system_prompt: str = Field(
        default=(
            "You are chorus, an assistant that orchestrates specialized sub-agents. "
            "Use web_search, web_read and fetch for current information. Before answering "
            "a specialized request, look for a fitting sub-agent with find_sub_agent and run "
            "it; create one when the kind of request is likely to recur. Answer the user "
            "directly and cite the sources you used."
        ),
        description="System prompt for the main loop",
    )
    default_chat_title: str = Field(
        default="New Chat", description="Title used when title generation fails"
    )
    self_critique: bool = Field(
        default=True,
        description="Let the model refine a sub-agent's prompt after a turn that ran it",
    )
    update_policy: Literal["append", "replace"] = Field(
        default="append",
        description="Whether update_sub_agent appends to or replaces the stored prompt",
    )
    sub_agent_scope: Literal["all", "chat"] = Field(
        default="all",
        description="Whether find_sub_agent lists every sub-agent or only the current chat's",
    )

    @model_validator(mode="after")
    def _check_limits(self) -> "AgentConfig":
        if self.soft_token_limit >= self.hard_token_limit:
            raise ValueError("soft_token_limit must be lower than hard_token_limit")
        return self


class ToolsConfig(BaseModel):
    """Tool availability configuration."""

    fetch: bool = Field(default=True, description="Enable the HTTP fetch tool")
    web_search: bool = Field(default=True, description="Enable the web search tool")
    web_read: bool = Field(default=True, description="Enable the page reading tool")
    fetch_timeout_ms: int = Field(
        default=10_000, description="Default fetch timeout in milliseconds", ge=100
    )


class WebConfig(BaseModel):
    """Search/read service configuration."""

    base_url: str = Field(default="http://localhost:3001", description="Service root URL")
    timeout: int = Field(default=30, description="Request timeout in seconds", ge=1)


class StorageConfig(BaseModel):
    """Persistence configuration."""

    database_path: str = Field(
        default="~/.chorus/chorus.db",
        description="Path to the SQLite database",
    )


class ServerConfig(BaseModel):
    """API server configuration."""

    host: str = Field(default="127.0.0.1", description="Server bind address")
    port: int = Field(default=8000, description="Server port", ge=1, le=65535)
    cors_origins: list[str] = Field(
        default=["http://localhost:3000"],
        description="Allowed CORS origins (use ['*'] for development only)",
    )
    user_header: str = Field(
        default="X-User-Id",
        description="Header carrying the authenticated user id set by the auth proxy",
    )


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO", description="Root log level"
    )


class ChorusConfig(BaseModel):
    """Root configuration schema for chorus."""

    model: ModelConfig = Field(default_factory=ModelConfig)
    inference: InferenceConfig = Field(default_factory=InferenceConfig)
    agent: AgentConfig = Field(default_factory=AgentConfig)
    tools: ToolsConfig = Field(default_factory=ToolsConfig)
    web: WebConfig = Field(default_factory=WebConfig)
    storage: StorageConfig = Field(default_factory=StorageConfig)
    server: ServerConfig = Field(default_factory=ServerConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
