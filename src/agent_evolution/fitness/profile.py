"""Fitness profile, evaluation context, and performance records."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import Iterator

from agent_evolution.config import FitnessWeights


class FitnessDimension(str, Enum):
    """The eleven scored dimensions, in weight order."""
    PERFORMANCE = "performance"
    ADAPTABILITY = "adaptability"
    EFFICIENCY = "efficiency"
    SPECIALIZATION = "specialization"
    GENERALIZATION = "generalization"
    INNOVATION = "innovation"
    STABILITY = "stability"
    ROBUSTNESS = "robustness"
    SUSTAINABILITY = "sustainability"
    COLLABORATION = "collaboration"
    LEARNING_VELOCITY = "learning_velocity"


# Objectives used for Pareto dominance.
PARETO_OBJECTIVES = (
    FitnessDimension.PERFORMANCE,
    FitnessDimension.ADAPTABILITY,
    FitnessDimension.EFFICIENCY,
    FitnessDimension.INNOVATION,
    FitnessDimension.STABILITY,
)


@dataclass(frozen=True)
class FitnessContext:
    """The task situation an agent is scored against."""

    task_domain: str = "general"
    complexity_level: float = 0.5
    time_constraints: float = 1000.0
    collaboration_requirements: float = 0.5
    adaptation_pressure: float = 0.6
    innovation_demand: float = 0.4
    stability_requirement: float = 0.7


@dataclass(frozen=True)
class PerformanceRecord:
    """Outcome of one task attempt."""

    accuracy: float
    efficiency: float
    quality_score: float
    task_id: str = ""
    recorded_at: datetime = field(default_factory=lambda: datetime.now(UTC))

    @property
    def task_score(self) -> float:
        return self.accuracy * 0.4 + self.efficiency * 0.3 + self.quality_score * 0.3


@dataclass(frozen=True)
class FitnessProfile:
    """Per-dimension scores for one agent in one context.

    ``overall`` is derived from the weighted sum and cannot be passed in.
    """

    performance: float = 0.0
    adaptability: float = 0.0
    efficiency: float = 0.0
    specialization: float = 0.0
    generalization: float = 0.0
    innovation: float = 0.0
    stability: float = 0.0
    robustness: float = 0.0
    sustainability: float = 0.0
    collaboration: float = 0.0
    learning_velocity: float = 0.0
    weights: FitnessWeights = field(default_factory=FitnessWeights, repr=False, compare=False)
    overall: float = field(init=False, default=0.0)

    def __post_init__(self) -> None:
        weights = self.weights.normalized()
        object.__setattr__(self, "weights", weights)
        object.__setattr__(
            self, "overall", sum(self.get(dim) * getattr(weights, dim.value) for dim in FitnessDimension)
        )

    def get(self, dimension: FitnessDimension | str) -> float:
        return float(getattr(self, FitnessDimension(dimension).value))

    def items(self) -> Iterator[tuple[FitnessDimension, float]]:
        for dim in FitnessDimension:
            yield dim, self.get(dim)

    def as_vector(self) -> list[float]:
        return [score for _, score in self.items()]

    def as_dict(self) -> dict[str, float]:
        scores = {dim.value: score for dim, score in self.items()}
        scores["overall"] = self.overall
        return scores
