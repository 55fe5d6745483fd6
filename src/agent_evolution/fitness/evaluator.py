"""Multi-dimensional fitness evaluation."""

from __future__ import annotations

import itertools
import threading
from collections import deque
from dataclasses import dataclass, field
from typing import Mapping, Sequence

import numpy as np
import structlog

from agent_evolution.agents.base import Agent
from agent_evolution.config import FitnessConfig, FitnessWeights
from agent_evolution.fitness import scorers
from agent_evolution.fitness.profile import (
    PARETO_OBJECTIVES,
    FitnessContext,
    FitnessDimension,
    FitnessProfile,
    PerformanceRecord,
)

logger = structlog.get_logger()

BOTTLENECK_THRESHOLD = 0.4
RECOMMENDATION_TARGET = 0.8
NEUTRAL_STEP = 0.05

_IMPROVEMENT_STRATEGIES = {
    FitnessDimension.PERFORMANCE: "Focus on task-specific capability strengthening",
    FitnessDimension.ADAPTABILITY: "Increase exposure to diverse tasks and adaptation events",
    FitnessDimension.EFFICIENCY: "Align capability count with task complexity",
    FitnessDimension.SPECIALIZATION: "Deepen expertise around the strongest specialization",
    FitnessDimension.GENERALIZATION: "Broaden capability types to cover more domains",
    FitnessDimension.INNOVATION: "Encourage creative mutation and novel capability combinations",
    FitnessDimension.STABILITY: "Lower adaptation rates to reduce performance variance",
    FitnessDimension.ROBUSTNESS: "Add redundant capabilities for critical specializations",
    FitnessDimension.SUSTAINABILITY: "Rebalance capability strengths and prune excess capabilities",
    FitnessDimension.COLLABORATION: "Develop communication and coordination capabilities",
    FitnessDimension.LEARNING_VELOCITY: "Increase learning opportunities and feedback frequency",
}


@dataclass
class DimensionStatistics:
    mean: float
    minimum: float
    maximum: float
    std: float
    median: float


@dataclass
class ImprovementRecommendation:
    dimension: FitnessDimension
    current_score: float
    priority: float
    strategy: str


@dataclass
class FitnessComparison:
    differences: dict[FitnessDimension, float]
    overall_difference: float
    first_dominates: bool
    second_dominates: bool

    @property
    def better(self) -> str:
        if self.first_dominates:
            return "first"
        if self.second_dominates:
            return "second"
        return "non_dominated"


@dataclass
class FitnessLandscape:
    ruggedness: float
    neutrality: float
    epistasis: float
    pareto_front: list[int] = field(default_factory=list)


def _weight_key(key: str | FitnessDimension) -> str:
    if key == "learningVelocity":
        return FitnessDimension.LEARNING_VELOCITY.value
    return FitnessDimension(key).value


class FitnessEvaluator:
    """Scores agents on eleven dimensions and aggregates them with normalized weights.

    Stability and learning velocity are read from the evaluator's own bounded
    history of previous evaluations, so repeated evaluation of the same agent
    id matters.
    """

    def __init__(self, config: FitnessConfig | None = None) -> None:
        self._config = config or FitnessConfig()
        self._weights = self._config.weights.normalized()
        self._history: dict[str, deque[FitnessProfile]] = {}
        self._lock = threading.Lock()

    @property
    def config(self) -> FitnessConfig:
        return self._config

    @property
    def weights(self) -> FitnessWeights:
        return self._weights

    def meets_threshold(self, score: float) -> bool:
        """Whether an overall fitness ``score`` reaches the configured fitness threshold."""
        return score >= self._config.fitness_threshold

    def evaluate_fitness(
        self,
        agent: Agent,
        context: FitnessContext,
        history: Sequence[PerformanceRecord] | None = None,
    ) -> FitnessProfile:
        """Score ``agent`` in ``context`` and record the result."""
        prior = [p.performance for p in self.get_fitness_history(agent.id)]
        profile = FitnessProfile(
            performance=scorers.performance(agent, history),
            adaptability=scorers.adaptability(agent),
            efficiency=scorers.efficiency(agent, context),
            specialization=scorers.specialization(agent),
            generalization=scorers.generalization(agent),
            innovation=scorers.innovation(agent),
            stability=scorers.stability(prior),
            robustness=scorers.robustness(agent),
            sustainability=scorers.sustainability(agent, context),
            collaboration=scorers.collaboration(agent, context),
            learning_velocity=scorers.learning_velocity(prior),
            weights=self._weights,
        )
        with self._lock:
            self._history.setdefault(
                agent.id, deque(maxlen=self._config.history_limit)
            ).append(profile)
        logger.debug("fitness_evaluated", agent_id=agent.id, overall=round(profile.overall, 4))
        return profile

    # -- Pareto ---------------------------------------------------------------

    @staticmethod
    def dominates(a: FitnessProfile, b: FitnessProfile) -> bool:
        """True when ``a`` is no worse on every objective and better on one."""
        strictly_better = False
        for objective in PARETO_OBJECTIVES:
            va, vb = a.get(objective), b.get(objective)
            if va < vb:
                return False
            if va > vb:
                strictly_better = True
        return strictly_better

    def pareto_front(self, profiles: Sequence[FitnessProfile]) -> list[int]:
        """Indices of the profiles no other profile dominates."""
        return [
            i
            for i, candidate in enumerate(profiles)
            if not any(self.dominates(other, candidate) for j, other in enumerate(profiles) if j != i)
        ]

    # -- Population-level measures --------------------------------------------

    @staticmethod
    def calculate_fitness_diversity(profiles: Sequence[FitnessProfile]) -> float:
        """Mean pairwise Euclidean distance over the dimension scores."""
        if len(profiles) < 2:
            return 0.0
        vectors = np.array([p.as_vector() for p in profiles], dtype=np.float64)
        distances = [
            float(np.linalg.norm(vectors[i] - vectors[j]))
            for i, j in itertools.combinations(range(len(vectors)), 2)
        ]
        return float(np.mean(distances))

    @staticmethod
    def identify_bottlenecks(
        profile: FitnessProfile, threshold: float = BOTTLENECK_THRESHOLD
    ) -> list[FitnessDimension]:
        return [dim for dim, score in profile.items() if score < threshold]

    # -- Weights ----------------------------------------------------------------

    def set_fitness_weights(self, weights: Mapping[str, float]) -> FitnessWeights:
        """Merge a partial update into the current weights and renormalize."""
        merged = self._weights.model_dump()
        merged.update({_weight_key(k): float(v) for k, v in weights.items()})
        self._weights = FitnessWeights(**merged).normalized()
        logger.info("fitness_weights_updated", **self._weights.model_dump())
        return self._weights

    # -- History and analysis -----------------------------------------------------

    def get_fitness_history(self, agent_id: str) -> list[FitnessProfile]:
        with self._lock:
            return list(self._history.get(agent_id, ()))

    def clear_history(self, agent_id: str | None = None) -> None:
        with self._lock:
            if agent_id is None:
                self._history.clear()
            else:
                self._history.pop(agent_id, None)

    def get_fitness_statistics(self, agent_id: str) -> dict[FitnessDimension, DimensionStatistics]:
        history = self.get_fitness_history(agent_id)
        if not history:
            return {}
        matrix = np.array([p.as_vector() for p in history], dtype=np.float64)
        stats: dict[FitnessDimension, DimensionStatistics] = {}
        for index, dim in enumerate(FitnessDimension):
            column = matrix[:, index]
            stats[dim] = DimensionStatistics(
                mean=float(column.mean()),
                minimum=float(column.min()),
                maximum=float(column.max()),
                std=float(column.std()),
                median=float(np.median(column)),
            )
        return stats

    def generate_improvement_recommendations(
        self, profile: FitnessProfile
    ) -> list[ImprovementRecommendation]:
        """Dimensions below the target score, most valuable first."""
        recommendations = []
        for dim, score in profile.items():
            priority = getattr(self._weights, dim.value) * max(0.0, RECOMMENDATION_TARGET - score)
            if priority > 0:
                recommendations.append(
                    ImprovementRecommendation(
                        dimension=dim,
                        current_score=score,
                        priority=priority,
                        strategy=_IMPROVEMENT_STRATEGIES[dim],
                    )
                )
        recommendations.sort(key=lambda r: r.priority, reverse=True)
        return recommendations

    def compare_fitness(self, a: FitnessProfile, b: FitnessProfile) -> FitnessComparison:
        return FitnessComparison(
            differences={dim: a.get(dim) - b.get(dim) for dim in FitnessDimension},
            overall_difference=a.overall - b.overall,
            first_dominates=self.dominates(a, b),
            second_dominates=self.dominates(b, a),
        )

    def analyze_fitness_landscape(self, profiles: Sequence[FitnessProfile]) -> FitnessLandscape:
        """Ruggedness and neutrality of consecutive overall scores, plus dimension coupling."""
        if len(profiles) < 2:
            return FitnessLandscape(ruggedness=0.0, neutrality=1.0, epistasis=0.0,
                                    pareto_front=list(range(len(profiles))))
        overall = np.array([p.overall for p in profiles], dtype=np.float64)
        steps = np.abs(np.diff(overall))
        ruggedness = float(steps.mean())
        neutrality = float((steps < NEUTRAL_STEP).mean())

        epistasis = 0.0
        if len(profiles) >= 3:
            matrix = np.array([p.as_vector() for p in profiles], dtype=np.float64)
            with np.errstate(invalid="ignore", divide="ignore"):
                corr = np.corrcoef(matrix, rowvar=False)
            corr = np.nan_to_num(corr, nan=0.0)
            off_diagonal = corr[~np.eye(corr.shape[0], dtype=bool)]
            epistasis = float(np.abs(off_diagonal).mean())

        return FitnessLandscape(
            ruggedness=ruggedness,
            neutrality=neutrality,
            epistasis=epistasis,
            pareto_front=self.pareto_front(profiles),
        )
