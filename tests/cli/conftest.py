"""Shared fixtures for CLI tests."""

from pathlib import Path

import pytest
import yaml


@pytest.fixture
def tmp_config_path(tmp_path: Path) -> Path:
    """Write a config file pointing at a temporary database."""
    path = tmp_path / "chorus.yaml"
    path.write_text(yaml.safe_dump({"storage": {"database_path": str(tmp_path / "chorus.db")}}))
    return path
