"""Fitness package: profiles, contexts, and the multi-dimensional evaluator."""

from __future__ import annotations

from agent_evolution.fitness.evaluator import FitnessEvaluator
from agent_evolution.fitness.profile import (
    FitnessContext,
    FitnessDimension,
    FitnessProfile,
    PerformanceRecord,
)

__all__ = [
    "FitnessContext",
    "FitnessDimension",
    "FitnessEvaluator",
    "FitnessProfile",
    "PerformanceRecord",
]
