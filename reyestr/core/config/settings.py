"""Run configuration: defaults, TOML file and environment overrides."""

from __future__ import annotations

import os
import tomllib
from dataclasses import asdict, dataclass, field, fields
from pathlib import Path
from typing import Any

from reyestr.core.exceptions import ConfigError
from reyestr.core.logging import get_logger
from reyestr.core.models import Category, CategorySpec, default_specs

logger = get_logger(__name__)

DEFAULT_CONFIG_PATH = Path.home() / ".reyestr" / "config.toml"
DEFAULT_DATABASE = str(Path.home() / ".reyestr" / "registry.duckdb")


@dataclass
class StoreConfig:
    """DuckDB store settings."""

    database: str = DEFAULT_DATABASE
    threads: int | None = None
    read_only: bool = False


@dataclass
class PipelineConfig:
    """Streaming, batching and retry settings."""

    data_dir: str | None = None
    batch_size: int = 500
    chunk_size: int = 65536
    max_depth: int = 32
    write_timeout: float = 30.0  # seconds, per attempt
    max_attempts: int = 3
    base_delay: float = 0.5
    max_delay: float = 8.0
    max_consecutive_failures: int = 3
    diff_mode: bool = False
    encoding: str | None = None
    record_tag: str = "RECORD"
    key_field: str = "RECORD_NUMBER"
    mandatory: list[str] = field(default_factory=list)
    member_names: dict[str, str] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if self.batch_size < 1:
            raise ConfigError("batch_size must be at least 1", {"batch_size": self.batch_size})
        if self.chunk_size < 1:
            raise ConfigError("chunk_size must be at least 1", {"chunk_size": self.chunk_size})
        if self.max_attempts < 1:
            raise ConfigError("max_attempts must be at least 1", {"max_attempts": self.max_attempts})
        if self.max_consecutive_failures < 1:
            raise ConfigError(
                "max_consecutive_failures must be at least 1",
                {"max_consecutive_failures": self.max_consecutive_failures},
            )
        if self.write_timeout <= 0:
            raise ConfigError("write_timeout must be positive", {"write_timeout": self.write_timeout})


@dataclass
class LoggingConfig:
    """Logging settings."""

    level: str = "INFO"
    file: str | None = None


def _build(section_cls: type, values: dict[str, Any], section: str) -> Any:
    known = {item.name for item in fields(section_cls)}
    unknown = sorted(set(values) - known)
    if unknown:
        raise ConfigError(f"unknown keys in [{section}]: {', '.join(unknown)}", {"section": section})
    try:
        return section_cls(**values)
    except TypeError as exc:
        raise ConfigError(f"invalid [{section}] section: {exc}", {"section": section}) from exc


@dataclass
class ReyestrConfig:
    """Top level configuration."""

    store: StoreConfig = field(default_factory=StoreConfig)
    pipeline: PipelineConfig = field(default_factory=PipelineConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    @classmethod
    def from_dict(cls, config_dict: dict[str, Any]) -> ReyestrConfig:
        return cls(
            store=_build(StoreConfig, config_dict.get("store", {}), "store"),
            pipeline=_build(PipelineConfig, config_dict.get("pipeline", {}), "pipeline"),
            logging=_build(LoggingConfig, config_dict.get("logging", {}), "logging"),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "store": asdict(self.store),
            "pipeline": asdict(self.pipeline),
            "logging": asdict(self.logging),
        }

    def merged(self, updates: dict[str, Any]) -> ReyestrConfig:
        """Return a copy with ``updates`` deep-merged over the current values."""

        return ReyestrConfig.from_dict(deep_update(self.to_dict(), updates))

    def category_specs(self) -> dict[Category, CategorySpec]:
        """Per-category layout after applying the pipeline overrides."""

        try:
            mandatory = {Category.parse(name) for name in self.pipeline.mandatory}
            member_names = {Category.parse(key): value for key, value in self.pipeline.member_names.items()}
        except ValueError as exc:
            raise ConfigError(str(exc)) from exc

        specs = {}
        for category, spec in default_specs().items():
            specs[category] = spec.with_overrides(
                member_name=member_names.get(category, spec.member_name),
                record_tag=self.pipeline.record_tag,
                key_field=self.pipeline.key_field,
                mandatory=category in mandatory,
            )
        return specs


def deep_update(target: dict[str, Any], updates: dict[str, Any]) -> dict[str, Any]:
    for key, value in updates.items():
        if isinstance(value, dict) and isinstance(target.get(key), dict) and key != "member_names":
            target[key] = deep_update(target[key], value)
        else:
            target[key] = value
    return target


class ConfigManager:
    """Loads the TOML configuration file."""

    def __init__(self, config_path: Path | None = None):
        self.config_path = config_path or DEFAULT_CONFIG_PATH
        self.config = self._load_config()

    def _load_config(self) -> ReyestrConfig:
        if not self.config_path.exists():
            return ReyestrConfig()

        try:
            with open(self.config_path, "rb") as f:
                config_dict = tomllib.load(f)
        except (OSError, tomllib.TOMLDecodeError) as e:
            logger.warning(f"Failed to load config from {self.config_path}: {e}")
            return ReyestrConfig()
        return ReyestrConfig.from_dict(config_dict)

    def get_config(self) -> ReyestrConfig:
        return self.config


def _env_bool(value: str) -> bool:
    return value.strip().lower() in {"1", "true", "yes", "on"}


_ENV_VARS: dict[str, tuple[str, str, Any]] = {
    "REYESTR_DATABASE": ("store", "database", str),
    "REYESTR_DATA_DIR": ("pipeline", "data_dir", str),
    "REYESTR_BATCH_SIZE": ("pipeline", "batch_size", int),
    "REYESTR_WRITE_TIMEOUT": ("pipeline", "write_timeout", float),
    "REYESTR_MAX_ATTEMPTS": ("pipeline", "max_attempts", int),
    "REYESTR_MAX_CONSECUTIVE_FAILURES": ("pipeline", "max_consecutive_failures", int),
    "REYESTR_DIFF_MODE": ("pipeline", "diff_mode", _env_bool),
    "REYESTR_RECORD_TAG": ("pipeline", "record_tag", str),
    "REYESTR_KEY_FIELD": ("pipeline", "key_field", str),
    "REYESTR_LOG_LEVEL": ("logging", "level", str),
    "REYESTR_LOG_FILE": ("logging", "file", str),
}


def load_config_from_env(environ: dict[str, str] | None = None) -> dict[str, Any]:
    """Collect ``REYESTR_*`` overrides as a nested dict."""

    env = os.environ if environ is None else environ
    config: dict[str, dict[str, Any]] = {}
    for name, (section, key, convert) in _ENV_VARS.items():
        raw = env.get(name)
        if raw is None or raw == "":
            continue
        try:
            value = convert(raw)
        except ValueError as exc:
            raise ConfigError(f"invalid value for {name}: {raw!r}", {"variable": name}) from exc
        config.setdefault(section, {})[key] = value
    return config


def load_config(config_path: Path | None = None, overrides: dict[str, Any] | None = None) -> ReyestrConfig:
    """Resolve the effective config: defaults < TOML < environment < ``overrides``."""

    config = ConfigManager(config_path).get_config()
    config = config.merged(load_config_from_env())
    if overrides:
        config = config.merged(overrides)
    return config


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
