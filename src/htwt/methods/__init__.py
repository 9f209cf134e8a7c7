"""
Methods registry for automatic scorer discovery.

This module provides automatic registration of scoring methods by introspecting
BaseScorer subclasses in the htwt.methods submodules.
"""

from typing import Dict, Type
from .base import BaseScorer


# Import scorer modules to register subclasses
from .percentile import scorer as percentile_scorer
from .zscore import scorer as zscore_scorer


def _build_registry() -> Dict[str, Type[BaseScorer]]:
    """Build the registry by discovering BaseScorer subclasses."""
    registry = {}
    for cls in BaseScorer.__subclasses__():
        # Derive method name from class name: ZScoreScorer -> 'zscore'
        method_name = cls.__name__.replace("Scorer", "").lower()
        registry[method_name] = cls
    return registry


# Global registry instance
registry = _build_registry()

__all__ = ["registry", "BaseScorer", "percentile_scorer", "zscore_scorer"]
