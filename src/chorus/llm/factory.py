"""Factory function for creating LLM clients from configuration."""

from __future__ import annotations

import os
from typing import TYPE_CHECKING

from chorus.llm.openai_compat import OpenAICompatibleClient

if TYPE_CHECKING:
    from chorus.config.schema import ChorusConfig

DEFAULT_BASE_URLS = {
    "openai": None,
    "ollama": "http://localhost:11434/v1",
    "vllm": "http://localhost:8000/v1",
}


def create_llm_client(config: ChorusConfig) -> OpenAICompatibleClient:
    """Create an LLM client based on configuration.

    Reads ``config.inference.backend`` and returns a client pointed at the
    configured (or backend default) endpoint. The API key is read from the
    environment variable named by ``config.inference.api_key_env``.

    Args:
        config: Chorus configuration.

    Returns:
        An LLM client for the configured backend.

    Raises:
        ValueError: If the backend is not recognised.
    """
    inference = config.inference
    backend = inference.backend

    if backend not in DEFAULT_BASE_URLS:
        raise ValueError(f"Unknown inference backend: {backend}")

    base_url = inference.base_url or DEFAULT_BASE_URLS[backend]
    api_key = os.environ.get(inference.api_key_env, "") if inference.api_key_env else ""

    if backend == "ollama":
        # Ollama doesn't use API keys but the SDK requires one
        api_key = api_key or "ollama"

    return OpenAICompatibleClient(
        model=config.model.name,
        base_url=base_url,
        api_key=api_key or "none",
        timeout=inference.timeout,
        temperature=config.model.temperature,
    )
