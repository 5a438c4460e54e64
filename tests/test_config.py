#!/usr/bin/env python3
"""
Tests for engine configuration loading
"""

import pytest

from roster_analytics.analytics.config import (
    DEFAULT_CONFIG_PATH,
    EngineConfig,
    apply_overrides,
    load_config,
    load_yaml,
)


class TestLoadConfig:
    """Test loading ranking_config.yaml"""

    def test_packaged_defaults_match_dataclass(self):
        """The packaged YAML and the dataclass defaults agree"""
        assert load_config() == EngineConfig()

    def test_yaml_uses_upper_case_keys(self):
        """Config file keys are upper case"""
        values = load_yaml(DEFAULT_CONFIG_PATH)

        assert all(key.isupper() for key in values)
        assert values["MAIN_SIZE"] == 50

    def test_overrides(self):
        """Overrides replace file values"""
        config = load_config(overrides={"MAIN_SIZE": 10, "SERVER_AVG_TOP_N": None})

        assert config.main_size == 10
        assert config.server_avg_top_n is None
        assert config.wing_size == 50

    def test_custom_file(self, tmp_path):
        """A custom file only needs the keys it changes"""
        path = tmp_path / "config.yaml"
        path.write_text("WING_SIZE: 7\nWINDOW_KEYS: [1, 3]\n", encoding="utf-8")
        config = load_config(path)

        assert config.wing_size == 7
        assert config.window_keys == ("1", "3")

    def test_empty_file(self, tmp_path):
        """An empty file gives the defaults"""
        path = tmp_path / "empty.yaml"
        path.write_text("", encoding="utf-8")

        assert load_config(path) == EngineConfig()


class TestEngineConfig:
    """Test EngineConfig construction"""

    def test_unknown_key_ignored(self):
        """Unknown keys are skipped"""
        config = EngineConfig.from_dict({"NOT_A_KEY": 1, "TAG_THRESHOLD": 0.9})

        assert config.tag_threshold == 0.9

    def test_default_window_must_exist(self):
        """DEFAULT_SCORE_WINDOW must be one of WINDOW_KEYS"""
        with pytest.raises(ValueError):
            EngineConfig.from_dict({"DEFAULT_SCORE_WINDOW": 2})

    def test_to_dict_round_trip(self):
        """to_dict uses the file's key style"""
        data = EngineConfig().to_dict()

        assert data["DEFAULT_SCORE_WINDOW"] == "3"
        assert EngineConfig.from_dict(data) == EngineConfig()


def test_apply_overrides_does_not_mutate():
    """apply_overrides returns a new mapping"""
    base = {"MAIN_SIZE": 50}
    merged = apply_overrides(base, {"MAIN_SIZE": 5})

    assert merged["MAIN_SIZE"] == 5
    assert base["MAIN_SIZE"] == 50
