"""Wiring of the orchestrator from configuration.

Builds the database, the stores, the web client and a per-turn tool
registry factory, then hands them to an :class:`Orchestrator`.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from chorus.agent.orchestrator import Orchestrator, TurnBudget
from chorus.llm.factory import create_llm_client
from chorus.storage import ChatStore, Database, SubAgentStore, UserStore
from chorus.tools.registry import ToolRegistry, build_tool_registry
from chorus.tools.web import WebClient

if TYPE_CHECKING:
    from chorus.config.schema import ChorusConfig
    from chorus.llm.client import LLMClient

logger = logging.getLogger(__name__)


def create_turn_budget(config: ChorusConfig) -> TurnBudget:
    """Turn limits from the ``agent`` section."""
    return TurnBudget(
        max_iterations=config.agent.max_iterations,
        hard_token_limit=config.agent.hard_token_limit,
        soft_token_limit=config.agent.soft_token_limit,
    )


def build_orchestrator(
    config: ChorusConfig,
    llm: LLMClient | None = None,
    db: Database | None = None,
) -> Orchestrator:
    """Create an orchestrator from configuration.

    Args:
        config: Chorus configuration
        llm: LLM client; created from ``config.inference`` when omitted
        db: Database; opened at ``config.storage.database_path`` when omitted

    Returns:
        Ready-to-use Orchestrator
    """
    if db is None:
        db = Database(config.storage.database_path)
    if llm is None:
        llm = create_llm_client(config)

    sub_agents = SubAgentStore(db)
    web = (
        WebClient(config.web.base_url, timeout=config.web.timeout)
        if config.tools.web_search or config.tools.web_read
        else None
    )

    def tools_factory() -> ToolRegistry:
        return build_tool_registry(config, sub_agents, web=web)

    logger.debug("Building orchestrator for model %s", config.model.name)
    return Orchestrator(
        llm=llm,
        chats=ChatStore(db),
        users=UserStore(db),
        sub_agents=sub_agents,
        tools_factory=tools_factory,
        budget=create_turn_budget(config),
        system_prompt=config.agent.system_prompt,
        default_chat_title=config.agent.default_chat_title,
        self_critique=config.agent.self_critique,
    )
