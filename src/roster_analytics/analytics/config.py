#!/usr/bin/env python3
"""
Engine configuration.

Loads ranking_config.yaml into a frozen EngineConfig. The YAML keeps the
upper-case key style; EngineConfig exposes them as lower-case attributes.
"""

from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any, Dict, Optional, Tuple, Union
import logging

import yaml

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = Path(__file__).with_name("ranking_config.yaml")


@dataclass(frozen=True)
class EngineConfig:
    exp_level_threshold: int = 393
    exp_per_level_high: float = 1_500_000_000
    mine_cap: float = 100
    treasury_cap: float = 45
    window_keys: Tuple[str, ...] = ("1", "3", "6", "12")
    default_score_window: str = "3"
    growth_baseline: float = 1_000_000
    growth_min_guild_count: int = 2
    server_avg_top_n: Optional[int] = 150
    top_average_n: int = 100
    percentile_cohort_n: int = 500
    score_weight_growth: float = 0.75
    score_weight_consistency: float = 0.25
    level_penalty_weight: float = 0.15
    level_per30_target: float = 3
    coverage_floor: float = 0.75
    main_size: int = 50
    wing_size: int = 50
    top_movers_limit: int = 5
    tag_threshold: float = 0.8
    low_coverage_threshold: float = 0.8
    reserved_group_id: str = "col-1"

    @classmethod
    def from_dict(cls, values: Dict[str, Any]) -> "EngineConfig":
        """
        Build a config from an upper-case keyed mapping.

        Unknown keys are ignored with a warning so a newer YAML file does not
        break an older engine.
        """
        known = {f.name for f in fields(cls)}
        kwargs: Dict[str, Any] = {}
        for key, value in values.items():
            name = str(key).lower()
            if name not in known:
                logger.warning(f"Ignoring unknown config key: {key}")
                continue
            if name == "window_keys":
                value = tuple(str(v) for v in value)
            elif name == "default_score_window":
                value = str(value)
            kwargs[name] = value
        config = cls(**kwargs)
        if config.default_score_window not in config.window_keys:
            raise ValueError(
                f"DEFAULT_SCORE_WINDOW {config.default_score_window!r} "
                f"is not one of WINDOW_KEYS {list(config.window_keys)}"
            )
        return config

    def to_dict(self) -> Dict[str, Any]:
        return {f.name.upper(): getattr(self, f.name) for f in fields(self)}


def load_yaml(path: Union[str, Path]) -> Dict[str, Any]:
    """
    Load YAML configuration file.

    Args:
        path: Path to YAML file

    Returns:
        Configuration dictionary (empty if the file is empty)
    """
    with open(path, "r", encoding="utf-8") as f:
        return yaml.safe_load(f) or {}


def apply_overrides(base_cfg: Dict[str, Any], overrides: Dict[str, Any]) -> Dict[str, Any]:
    """
    Apply parameter overrides to base configuration.

    Args:
        base_cfg: Base configuration dictionary
        overrides: Override parameters

    Returns:
        New configuration with overrides applied
    """
    config = base_cfg.copy()
    config.update(overrides)
    return config


def load_config(path: Optional[Union[str, Path]] = None,
                overrides: Optional[Dict[str, Any]] = None) -> EngineConfig:
    """
    Load the engine configuration.

    Args:
        path: YAML file to read (defaults to the packaged ranking_config.yaml)
        overrides: Upper-case keyed values applied on top of the file

    Returns:
        EngineConfig instance
    """
    config_path = Path(path) if path else DEFAULT_CONFIG_PATH
    values = load_yaml(config_path)
    if overrides:
        values = apply_overrides(values, overrides)
    logger.debug(f"Loaded engine config from {config_path}")
    return EngineConfig.from_dict(values)
