"""
Tests for configuration management.

Covers defaults, TOML loading, ``REYESTR_*`` environment overrides and the
precedence between them.
"""

from pathlib import Path
from unittest.mock import patch

import pytest

from reyestr.core.config import (
    ConfigManager,
    PipelineConfig,
    ReyestrConfig,
    StoreConfig,
    load_config,
    load_config_from_env,
)
from reyestr.core.exceptions import ConfigError
from reyestr.core.models import Category


def _write(path: Path, text: str) -> Path:
    path.write_text(text, encoding="utf-8")
    return path


class TestDefaults:
    """Default values of every section."""

    def test_pipeline_defaults(self):
        config = ReyestrConfig()

        assert config.pipeline.batch_size == 500
        assert config.pipeline.max_attempts == 3
        assert config.pipeline.max_consecutive_failures == 3
        assert config.pipeline.diff_mode is False
        assert config.pipeline.record_tag == "RECORD"
        assert config.store.database.endswith("registry.duckdb")
        assert config.logging.level == "INFO"

    @pytest.mark.parametrize(
        "field_name, value",
        [("batch_size", 0), ("chunk_size", 0), ("max_attempts", 0), ("max_consecutive_failures", 0), ("write_timeout", 0)],
    )
    def test_invalid_pipeline_values_raise(self, field_name, value):
        with pytest.raises(ConfigError):
            PipelineConfig(**{field_name: value})

    def test_round_trip_through_dict(self):
        config = ReyestrConfig(store=StoreConfig(database=":memory:", threads=2))

        assert ReyestrConfig.from_dict(config.to_dict()) == config

    def test_unknown_keys_are_rejected(self):
        with pytest.raises(ConfigError, match="unknown keys in \\[pipeline\\]: bacth_size"):
            ReyestrConfig.from_dict({"pipeline": {"bacth_size": 10}})


class TestCategorySpecs:
    """Per-category layout derived from the pipeline section."""

    def test_defaults_follow_registry_layout(self):
        specs = ReyestrConfig().category_specs()

        assert list(specs) == list(Category)
        assert specs[Category.LEGAL_ENTITY].member_name == "UO_FULL_out.xml"
        assert specs[Category.SOLE_PROPRIETOR].table_name == "sole_proprietors"
        assert not any(spec.mandatory for spec in specs.values())

    def test_overrides_are_applied(self):
        config = ReyestrConfig().merged(
            {
                "pipeline": {
                    "record_tag": "SUBJECT",
                    "key_field": "RECORD",
                    "mandatory": ["UO", "sole_proprietors"],
                    "member_names": {"FSU": "fsu.xml"},
                }
            }
        )

        specs = config.category_specs()

        assert specs[Category.PUBLIC_ASSOCIATION].member_name == "fsu.xml"
        assert specs[Category.LEGAL_ENTITY].mandatory
        assert specs[Category.SOLE_PROPRIETOR].mandatory
        assert not specs[Category.PUBLIC_ASSOCIATION].mandatory
        assert {spec.record_tag for spec in specs.values()} == {"SUBJECT"}
        assert {spec.key_field for spec in specs.values()} == {"RECORD"}

    def test_unknown_category_raises_config_error(self):
        config = ReyestrConfig().merged({"pipeline": {"mandatory": ["banks"]}})

        with pytest.raises(ConfigError):
            config.category_specs()


class TestConfigManager:
    """TOML file loading."""

    def test_missing_file_gives_defaults(self, tmp_path):
        manager = ConfigManager(tmp_path / "absent.toml")

        assert manager.get_config() == ReyestrConfig()

    def test_file_values_are_loaded(self, tmp_path):
        path = _write(
            tmp_path / "config.toml",
            """
            [store]
            database = "/data/registry.duckdb"

            [pipeline]
            batch_size = 250
            diff_mode = true

            [pipeline.member_names]
            UO = "uo.xml"

            [logging]
            level = "DEBUG"
            """.replace("            ", ""),
        )

        config = ConfigManager(path).get_config()

        assert config.store.database == "/data/registry.duckdb"
        assert config.pipeline.batch_size == 250
        assert config.pipeline.diff_mode is True
        assert config.pipeline.member_names == {"UO": "uo.xml"}
        assert config.logging.level == "DEBUG"

    def test_unparseable_file_falls_back_to_defaults(self, tmp_path):
        path = _write(tmp_path / "config.toml", "[pipeline\nbatch_size = ")

        assert ConfigManager(path).get_config() == ReyestrConfig()


class TestEnvironment:
    """``REYESTR_*`` variables."""

    def test_variables_are_converted(self):
        env = {
            "REYESTR_DATABASE": "/tmp/r.duckdb",
            "REYESTR_BATCH_SIZE": "100",
            "REYESTR_WRITE_TIMEOUT": "2.5",
            "REYESTR_DIFF_MODE": "yes",
            "REYESTR_LOG_LEVEL": "warning",
            "REYESTR_KEY_FIELD": "",
        }

        overrides = load_config_from_env(env)

        assert overrides == {
            "store": {"database": "/tmp/r.duckdb"},
            "pipeline": {"batch_size": 100, "write_timeout": 2.5, "diff_mode": True},
            "logging": {"level": "warning"},
        }

    def test_bad_number_raises(self):
        with pytest.raises(ConfigError, match="REYESTR_BATCH_SIZE"):
            load_config_from_env({"REYESTR_BATCH_SIZE": "many"})


class TestPrecedence:
    """defaults < TOML < environment < explicit overrides."""

    def test_layers_apply_in_order(self, tmp_path):
        path = _write(tmp_path / "config.toml", "[pipeline]\nbatch_size = 250\nmax_attempts = 5\nmax_delay = 1.0\n")
        env = {"REYESTR_BATCH_SIZE": "100", "REYESTR_MAX_ATTEMPTS": "4"}

        with patch.dict("os.environ", env, clear=True):
            config = load_config(path, {"pipeline": {"batch_size": 10}})

        assert config.pipeline.batch_size == 10
        assert config.pipeline.max_attempts == 4
        assert config.pipeline.max_delay == 1.0
        assert config.pipeline.chunk_size == 65536

    def test_invalid_override_raises(self, tmp_path):
        with patch.dict("os.environ", {}, clear=True):
            with pytest.raises(ConfigError):
                load_config(tmp_path / "absent.toml", {"pipeline": {"batch_size": 0}})
