"""Mutation result and directive types."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum

from agent_evolution.agents.base import Agent


class MutationStrategyName(str, Enum):
    GAUSSIAN = "gaussian"
    UNIFORM = "uniform"
    ADAPTIVE = "adaptive"
    DIRECTIONAL = "directional"
    STRUCTURAL = "structural"
    CREATIVE = "creative"


class DirectionalGoal(str, Enum):
    IMPROVE_PERFORMANCE = "improve_performance"
    INCREASE_DIVERSITY = "increase_diversity"
    ENHANCE_STABILITY = "enhance_stability"
    BOOST_CREATIVITY = "boost_creativity"


class StructuralOperation(str, Enum):
    ADD_CAPABILITY = "add_capability"
    REMOVE_CAPABILITY = "remove_capability"
    MERGE_CAPABILITIES = "merge_capabilities"


ALL_CAPABILITIES = "all"


@dataclass(frozen=True)
class DirectionalMutation:
    """A goal applied to a target set of capability ids (or ``"all"``)."""

    goal: DirectionalGoal = DirectionalGoal.IMPROVE_PERFORMANCE
    targets: tuple[str, ...] = (ALL_CAPABILITIES,)
    step_size: float = 0.1
    confidence: float = 0.8

    def targets_capability(self, capability_id: str) -> bool:
        return ALL_CAPABILITIES in self.targets or capability_id in self.targets


@dataclass(frozen=True)
class StructuralMutation:
    operation: StructuralOperation = StructuralOperation.ADD_CAPABILITY
    structural_impact: float = 0.3


@dataclass(frozen=True)
class MutationPoint:
    """One capability touched by a mutation, with its before and after values.

    ``None`` on the before side means the capability was created; on the
    after side that it was removed.
    """

    location: str
    kind: str  # "capability", "structure" or "specialization"
    strength_before: float | None
    strength_after: float | None
    adaptation_before: float | None = None
    adaptation_after: float | None = None
    added_specializations: tuple[str, ...] = ()
    confidence: float = 0.8

    @property
    def strength_delta(self) -> float:
        return (self.strength_after or 0.0) - (self.strength_before or 0.0)


@dataclass
class MutationResult:
    agent: Agent
    parent_id: str
    mutation_type: MutationStrategyName
    mutation_points: list[MutationPoint] = field(default_factory=list)
    strength: float = 0.0
    expected_impact: float = 0.0
    risk_level: float = 0.0
    reversible: bool = True


@dataclass
class MutationAnalysis:
    agent_id: str
    potential: float
    recommended_strategies: list[MutationStrategyName]
    optimal_rate: float
    risk_factors: list[str]


@dataclass
class StrategyStatistics:
    count: int
    average_impact: float
    average_risk: float
    success_rate: float
