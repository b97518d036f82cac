"""Configuration loading."""

from reyestr.core.config.settings import (
    DEFAULT_CONFIG_PATH,
    ConfigManager,
    LoggingConfig,
    PipelineConfig,
    ReyestrConfig,
    StoreConfig,
    load_config,
    load_config_from_env,
)

__all__ = [
    "ConfigManager",
    "DEFAULT_CONFIG_PATH",
    "LoggingConfig",
    "PipelineConfig",
    "ReyestrConfig",
    "StoreConfig",
    "load_config",
    "load_config_from_env",
]
