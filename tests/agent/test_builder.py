"""Tests for building an orchestrator from configuration."""

from chorus.agent.builder import build_orchestrator, create_turn_budget
from chorus.config.schema import ChorusConfig
from chorus.llm.openai_compat import OpenAICompatibleClient


def test_turn_budget_from_config():
    config = ChorusConfig()
    config.agent.max_iterations = 3

    budget = create_turn_budget(config)

    assert budget.max_iterations == 3
    assert budget.hard_token_limit == 150_000
    assert budget.soft_token_limit == 140_000


def test_build_orchestrator_defaults(custom_config):
    orchestrator = build_orchestrator(custom_config)

    assert isinstance(orchestrator.llm, OpenAICompatibleClient)
    assert orchestrator.llm.model == "gpt-test"
    assert orchestrator.budget.max_iterations == 5
    assert orchestrator.self_critique is True


def test_tools_factory_builds_fresh_registries(custom_config, db):
    orchestrator = build_orchestrator(custom_config, db=db)

    first = orchestrator.tools_factory()
    second = orchestrator.tools_factory()

    assert first is not second
    assert "web_search" in first.names
    assert "run_sub_agent" in first.names


def test_web_tools_disabled(custom_config, db):
    custom_config.tools.web_search = False
    custom_config.tools.web_read = False

    registry = build_orchestrator(custom_config, db=db).tools_factory()

    assert "web_search" not in registry.names
    assert "web_read" not in registry.names
