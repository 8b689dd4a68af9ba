"""Configuration loading and management for agent_dispatch.

Functions:
    get_config_path: Resolve the config file path (env var or default)
    load_config: Load configuration from ~/.agent_dispatch/config.yaml
    create_default_config: Write a default config.yaml
    config_exists: Check whether a config file exists
"""

import os
from pathlib import Path
from typing import Any

from dotenv import load_dotenv
from pydantic import ValidationError as PydanticValidationError
import yaml

# Load .env file from current directory and ~/.agent_dispatch/
load_dotenv()
load_dotenv(Path.home() / ".agent_dispatch" / ".env")

from agent_dispatch.config.models import (  # noqa: E402
    EngineConfig,
    get_config_dir,
    get_default_config,
)
from agent_dispatch.core.errors import ConfigError  # noqa: E402

CONFIG_ENV_VAR = "AGENT_DISPATCH_CONFIG"


def get_config_path() -> Path:
    """Resolve the configuration file path.

    Priority:
        1. AGENT_DISPATCH_CONFIG environment variable
        2. ~/.agent_dispatch/config.yaml
    """
    env_path = os.environ.get(CONFIG_ENV_VAR, "").strip()
    if env_path:
        return Path(env_path).expanduser()
    return get_config_dir() / "config.yaml"


def _model_to_yaml_dict(model: EngineConfig) -> dict[str, Any]:
    return model.model_dump(mode="json")


def create_default_config(
    config_path: Path | None = None,
    *,
    overwrite: bool = False,
) -> Path:
    """Write the default configuration (including the agent roster) to YAML.

    Args:
        config_path: Destination file. Defaults to ``get_config_path()``.
        overwrite: If True, replace an existing file.

    Returns:
        Path of the written file.

    Raises:
        ConfigError: If the file exists and overwrite=False.
    """
    if config_path is None:
        config_path = get_config_path()

    if config_path.exists() and not overwrite:
        raise ConfigError(
            f"Configuration file already exists: {config_path}",
            config_file=str(config_path),
        )

    config_path.parent.mkdir(parents=True, exist_ok=True)
    with config_path.open("w") as f:
        yaml.dump(
            _model_to_yaml_dict(get_default_config()),
            f,
            default_flow_style=False,
            sort_keys=False,
            allow_unicode=True,
        )
    return config_path


def load_config(config_path: Path | None = None) -> EngineConfig:
    """Load configuration from a YAML file.

    Args:
        config_path: Path to config file. Defaults to ``get_config_path()``.

    Returns:
        Validated EngineConfig instance.

    Raises:
        ConfigError: If file doesn't exist, is malformed, or fails validation.
    """
    if config_path is None:
        config_path = get_config_path()

    if not config_path.exists():
        raise ConfigError(
            f"Configuration file not found: {config_path}. "
            "Run `agent-dispatch config init` to create default configuration.",
            config_file=str(config_path),
        )

    try:
        with config_path.open() as f:
            config_dict = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigError(
            f"Failed to parse configuration file: {e}",
            config_file=str(config_path),
            details={"yaml_error": str(e)},
        ) from e

    if config_dict is None:
        config_dict = {}
    if not isinstance(config_dict, dict):
        raise ConfigError(
            "Configuration file must contain a mapping at the top level",
            config_file=str(config_path),
        )

    try:
        return EngineConfig.model_validate(config_dict)
    except PydanticValidationError as e:
        error_messages = []
        for error in e.errors():
            loc = ".".join(str(x) for x in error["loc"])
            error_messages.append(f"  - {loc}: {error['msg']}")

        raise ConfigError(
            "Configuration validation failed:\n" + "\n".join(error_messages),
            config_file=str(config_path),
            details={"validation_errors": e.errors(include_url=False)},
        ) from e


def load_config_or_default(config_path: Path | None = None) -> EngineConfig:
    """Load the configuration file if it exists, else the built-in defaults.

    A file that exists but is invalid still raises ConfigError.
    """
    path = config_path or get_config_path()
    if not path.exists():
        return get_default_config()
    return load_config(path)


def config_exists(config_path: Path | None = None) -> bool:
    """Check if the configuration file exists."""
    return (config_path or get_config_path()).exists()
