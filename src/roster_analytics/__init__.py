"""
Guild roster analytics.

Turns periodic guild roster snapshots into growth metrics, composite scores
and Main / Wing recommendations.
"""

__version__ = "1.0.0"
