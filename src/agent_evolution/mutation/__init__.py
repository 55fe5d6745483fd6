"""Mutation package: strategies, directives, and the mutation manager."""

from __future__ import annotations

from agent_evolution.mutation.manager import MutationManager
from agent_evolution.mutation.types import (
    DirectionalGoal,
    DirectionalMutation,
    MutationPoint,
    MutationResult,
    MutationStrategyName,
    StructuralMutation,
    StructuralOperation,
)

__all__ = [
    "DirectionalGoal",
    "DirectionalMutation",
    "MutationManager",
    "MutationPoint",
    "MutationResult",
    "MutationStrategyName",
    "StructuralMutation",
    "StructuralOperation",
]
