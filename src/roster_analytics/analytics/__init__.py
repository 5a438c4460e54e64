"""
Analytics module for the guild roster analytics engine.

This module provides the snapshot pipeline, scoring and ranking
implementation, plus the save index session.
"""

from .ranking_engine import compute_dataset
from .config import EngineConfig, load_config
from .save_index import SaveIndexSession, SavePlayer
from .percentiles import compute_percentiles, percentile_from_sorted

__all__ = [
    'compute_dataset',
    'EngineConfig',
    'load_config',
    'SaveIndexSession',
    'SavePlayer',
    'compute_percentiles',
    'percentile_from_sorted'
]
