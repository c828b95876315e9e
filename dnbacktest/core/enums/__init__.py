"""
Core enumerations for the strategy backtester.

This module provides centralized enumerations for domain concepts
like strategy kinds, position stances, assets and data sources.
"""

from .assets import Asset
from .data_sources import DataSource
from .position_types import RecommendedAction, Stance
from .strategy_kinds import StrategyKind

__all__ = ["Asset", "DataSource", "RecommendedAction", "Stance", "StrategyKind"]
