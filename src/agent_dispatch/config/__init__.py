"""Configuration module for agent_dispatch.

Functions:
    load_config: Load configuration from ~/.agent_dispatch/config.yaml
    create_default_config: Create a default config.yaml
    config_exists: Check whether the configuration file exists
    get_default_config: Built-in defaults including the agent roster
"""

from agent_dispatch.config.loader import (
    CONFIG_ENV_VAR,
    config_exists,
    create_default_config,
    get_config_path,
    load_config,
    load_config_or_default,
)
from agent_dispatch.config.models import (
    AgentConfig,
    DispatchConfig,
    EngineConfig,
    LoadConfig,
    PersistenceConfig,
    RecommenderConfig,
    ScoringWeights,
    SessionConfig,
    TrackerConfig,
    get_config_dir,
    get_default_agents,
    get_default_config,
)

__all__ = [
    # Models
    "AgentConfig",
    "DispatchConfig",
    "EngineConfig",
    "LoadConfig",
    "PersistenceConfig",
    "RecommenderConfig",
    "ScoringWeights",
    "SessionConfig",
    "TrackerConfig",
    # Defaults
    "get_config_dir",
    "get_default_agents",
    "get_default_config",
    # Loader
    "CONFIG_ENV_VAR",
    "config_exists",
    "create_default_config",
    "get_config_path",
    "load_config",
    "load_config_or_default",
]
