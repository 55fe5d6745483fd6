"""Crossover package: operators, inheritance tracking, and the crossover manager."""

from __future__ import annotations

from agent_evolution.crossover.manager import CrossoverManager
from agent_evolution.crossover.types import (
    CompatibilityAnalysis,
    CrossoverOperatorName,
    CrossoverResult,
    Inheritance,
)

__all__ = [
    "CompatibilityAnalysis",
    "CrossoverManager",
    "CrossoverOperatorName",
    "CrossoverResult",
    "Inheritance",
]
