"""Configuration loading and validation."""

import os
from pathlib import Path
from typing import Optional, Union

import yaml
from pydantic import ValidationError

from chorus.config.schema import ChorusConfig

DEFAULT_CONFIG_PATH = Path.home() / ".chorus" / "chorus.yaml"
CONFIG_ENV_VAR = "CHORUS_CONFIG"


class ConfigError(Exception):
    """Configuration loading or validation error."""


def default_config_path() -> Path:
    """Config path from ``CHORUS_CONFIG``, else ``~/.chorus/chorus.yaml``."""
    env_path = os.environ.get(CONFIG_ENV_VAR)
    return Path(env_path).expanduser() if env_path else DEFAULT_CONFIG_PATH


def load_config(path: Optional[Path] = None) -> ChorusConfig:
    """Load and validate chorus configuration from YAML file.

    Args:
        path: Path to config file. If None, tries the default location.
              If file doesn't exist, returns default config.

    Returns:
        Validated configuration object

    Raises:
        ConfigError: If config file exists but is invalid
    """
    if path is None:
        path = default_config_path()

    # Zero-config mode: if file doesn't exist, use all defaults
    if not path.exists():
        return ChorusConfig()

    try:
        with open(path, "r") as f:
            config_data = yaml.safe_load(f)

        # Handle empty file
        if config_data is None:
            return ChorusConfig()

        return ChorusConfig(**config_data)

    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {path}: {e}") from e
    except ValidationError as e:
        raise ConfigError(f"Configuration validation failed: {e}") from e
    except Exception as e:
        raise ConfigError(f"Failed to load config from {path}: {e}") from e


def save_config(config: ChorusConfig, path: Optional[Union[str, Path]] = None) -> None:
    """Save configuration to YAML file.

    Args:
        config: Configuration object to save
        path: Destination path (string or Path object). If None, uses default location.
    """
    if path is None:
        path = default_config_path()
    elif isinstance(path, str):
        path = Path(path)

    # Ensure directory exists
    path.parent.mkdir(parents=True, exist_ok=True)

    config_dict = config.model_dump()

    with open(path, "w") as f:
        yaml.safe_dump(config_dict, f, default_flow_style=False, sort_keys=False)
