"""Pytest configuration and shared fixtures."""

import pytest

from chorus.config.schema import ChorusConfig
from chorus.storage import ChatStore, Database, SubAgentStore, UserStore


@pytest.fixture
def default_config() -> ChorusConfig:
    """Provide a default configuration for tests."""
    return ChorusConfig()


@pytest.fixture
def custom_config(tmp_path) -> ChorusConfig:
    """Provide a configuration pointing at a temporary database."""
    config = ChorusConfig()
    config.model.name = "gpt-test"
    config.storage.database_path = str(tmp_path / "chorus.db")
    config.agent.max_iterations = 5
    return config


@pytest.fixture
def db(tmp_path) -> Database:
    """Create a temporary database."""
    return Database(tmp_path / "test_chorus.db")


@pytest.fixture
def users(db) -> UserStore:
    return UserStore(db)


@pytest.fixture
def chats(db) -> ChatStore:
    return ChatStore(db)


@pytest.fixture
def sub_agents(db) -> SubAgentStore:
    return SubAgentStore(db)


@pytest.fixture
def user(users):
    """A registered user."""
    return users.create_user("alice", user_id="user-1")
