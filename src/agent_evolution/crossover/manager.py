"""Crossover engine: compatibility gating, operator choice, and bookkeeping."""

from __future__ import annotations

from collections import defaultdict, deque
from typing import Sequence

import numpy as np
import structlog

from agent_evolution.agents.base import Agent, Capability
from agent_evolution.agents.trace import AdaptationEvent
from agent_evolution.config import CrossoverConfig
from agent_evolution.crossover.operators import OPERATOR_REGISTRY, CrossoverOperator, Sourced
from agent_evolution.crossover.types import (
    CompatibilityAnalysis,
    CrossoverOperatorName,
    CrossoverResult,
    OperatorStatistics,
)
from agent_evolution.errors import EvolutionError, IncompatibleParents, OperatorNotFound
from agent_evolution.fitness.profile import FitnessContext
from agent_evolution.rng import chance, clamp, make_rng, new_id
from agent_evolution.similarity import capability_overlap, compatibility, jaccard, morphology_compatibility

logger = structlog.get_logger()


class CrossoverManager:
    """Recombines two parents into two offspring under one of five operators."""

    _SUCCESS_FITNESS = 0.5
    _TUNING_WINDOW = 50
    _MIN_RATE = 0.1
    _MAX_RATE = 0.95

    def __init__(self, config: CrossoverConfig | None = None, rng: np.random.Generator | None = None) -> None:
        self._config = config or CrossoverConfig()
        self._rng = rng if rng is not None else make_rng()
        self._history: deque[CrossoverResult] = deque(maxlen=self._config.history_limit)

    @property
    def config(self) -> CrossoverConfig:
        return self._config

    # -- Measures -------------------------------------------------------------------

    @staticmethod
    def calculate_compatibility(parent1: Agent, parent2: Agent) -> float:
        return compatibility(parent1, parent2)

    @staticmethod
    def calculate_complementarity(parent1: Agent, parent2: Agent) -> float:
        """How much each parent covers where the other is weak."""
        kinds = list(dict.fromkeys(parent1.capability_kinds + parent2.capability_kinds))
        if kinds:
            gaps = []
            for kind in kinds:
                first, second = parent1.find_kind(kind), parent2.find_kind(kind)
                gaps.append(abs((first.strength if first else 0.0) - (second.strength if second else 0.0)))
            capability_term = sum(gaps) / len(gaps)
        else:
            capability_term = 0.0
        specialization_term = 1.0 - jaccard(parent1.specializations, parent2.specializations)
        return clamp(0.7 * capability_term + 0.3 * specialization_term)

    @staticmethod
    def calculate_diversity_potential(parent1: Agent, parent2: Agent) -> float:
        return clamp(
            0.7 * (1.0 - capability_overlap(parent1, parent2))
            + 0.3 * (1.0 - morphology_compatibility(parent1, parent2))
        )

    def analyze_compatibility(self, parent1: Agent, parent2: Agent) -> CompatibilityAnalysis:
        compat = self.calculate_compatibility(parent1, parent2)
        complementarity = self.calculate_complementarity(parent1, parent2)
        if complementarity > 0.7:
            operator = CrossoverOperatorName.SEMANTIC
        elif compat > 0.6:
            operator = CrossoverOperatorName.UNIFORM
        elif compat > 0.3:
            operator = CrossoverOperatorName.SINGLE_POINT
        else:
            operator = CrossoverOperatorName.ADAPTIVE
        return CompatibilityAnalysis(
            compatibility=compat,
            complementarity=complementarity,
            diversity_potential=self.calculate_diversity_potential(parent1, parent2),
            recommended_operator=operator,
        )

    @staticmethod
    def _delegate(analysis: CompatibilityAnalysis) -> CrossoverOperatorName:
        """Concrete operator for an adaptive crossover; never adaptive itself."""
        if analysis.complementarity > 0.7:
            return CrossoverOperatorName.SEMANTIC
        if analysis.compatibility > 0.6:
            return CrossoverOperatorName.UNIFORM
        if analysis.diversity_potential > 0.6:
            return CrossoverOperatorName.MORPHOLOGICAL
        return CrossoverOperatorName.SINGLE_POINT

    # -- Entry points -------------------------------------------------------------------

    def perform_crossover(
        self,
        parent1: Agent,
        parent2: Agent,
        context: FitnessContext | None = None,
        operator: CrossoverOperatorName | str | None = None,
    ) -> CrossoverResult:
        """Recombine two parents.

        Raises ``IncompatibleParents`` below the compatibility threshold and
        ``OperatorNotFound`` for an unknown explicit operator.
        """
        if operator is not None:
            try:
                operator = CrossoverOperatorName(operator)
            except ValueError:
                raise OperatorNotFound(str(operator)) from None

        analysis = self.analyze_compatibility(parent1, parent2)
        threshold = self._config.compatibility_threshold
        if analysis.compatibility < threshold:
            raise IncompatibleParents(parent1.id, parent2.id, analysis.compatibility, threshold)

        chosen = operator or analysis.recommended_operator
        delegated = self._delegate(analysis) if chosen is CrossoverOperatorName.ADAPTIVE else None
        implementation: CrossoverOperator = OPERATOR_REGISTRY[delegated or chosen](self._rng)
        recombination = implementation.recombine(parent1, parent2)

        novelty = implementation.novelty * (0.75 + 0.25 * analysis.diversity_potential)
        expected = self._expected_fitness(parent1, parent2, implementation.fitness_bonus, novelty)
        tag = chosen.value if delegated is None else f"{chosen.value}:{delegated.value}"
        offspring = (
            self._build_offspring(parent1, parent2, recombination.offspring1, tag, context),
            self._build_offspring(parent1, parent2, recombination.offspring2, tag, context),
        )
        result = CrossoverResult(
            offspring=offspring,
            parent_ids=(parent1.id, parent2.id),
            crossover_type=chosen,
            crossover_points=recombination.points,
            inheritance_map=recombination.inheritance_map(),
            offspring_inheritance=recombination.offspring_inheritance(),
            novelty_score=novelty,
            expected_fitness=expected,
            delegated_operator=delegated,
        )
        self._history.append(result)
        logger.debug(
            "crossover_performed",
            parents=[parent1.id, parent2.id],
            operator=tag,
            compatibility=round(analysis.compatibility, 4),
            novelty=round(novelty, 4),
        )
        return result

    def perform_batch_crossover(
        self,
        parents: Sequence[Agent],
        pairs: Sequence[tuple[int, int]] | None = None,
        context: FitnessContext | None = None,
    ) -> list[CrossoverResult]:
        """Cross sequential pairs (or the given index pairs) with probability ``crossover_rate``."""
        if pairs is None:
            pairs = [(i, i + 1) for i in range(0, len(parents) - 1, 2)]
        results: list[CrossoverResult] = []
        for i, j in pairs:
            if not (0 <= i < len(parents) and 0 <= j < len(parents)):
                logger.warning("crossover_pair_out_of_range", pair=(i, j), parents=len(parents))
                continue
            if not chance(self._rng, self._config.crossover_rate):
                continue
            try:
                results.append(self.perform_crossover(parents[i], parents[j], context))
            except EvolutionError as exc:
                logger.warning("crossover_failed", pair=(parents[i].id, parents[j].id), error=str(exc))
        return results

    def _expected_fitness(self, parent1: Agent, parent2: Agent, bonus: float, novelty: float) -> float:
        """Inherited fitness plus the operator bonus, blended with novelty by the configured weights."""
        inherited = min(1.0, (parent1.fitness_score + parent2.fitness_score) / 2 + bonus)
        total = self._config.fitness_weight + self._config.novelty_weight
        if total == 0:
            return inherited
        return (self._config.fitness_weight * inherited + self._config.novelty_weight * novelty) / total

    def _build_offspring(
        self,
        parent1: Agent,
        parent2: Agent,
        sourced: list[Sourced],
        tag: str,
        context: FitnessContext | None,
    ) -> Agent:
        capabilities: list[Capability] = [cap for cap, _ in sourced]
        generation = max(parent1.generation, parent2.generation) + 1
        parent_ids = (parent1.id, parent2.id)
        return Agent(
            id=new_id(self._rng, "agent"),
            capabilities=tuple(capabilities),
            fitness_score=(parent1.fitness_score + parent2.fitness_score) / 2,
            generation=generation,
            parent_ids=parent_ids,
            adaptation_history=(
                AdaptationEvent(
                    kind=f"crossover:{tag}",
                    detail=context.task_domain if context else "",
                    generation=generation,
                    parent_ids=parent_ids,
                ),
            ),
        )

    # -- Bookkeeping -----------------------------------------------------------------

    def get_crossover_history(self) -> list[CrossoverResult]:
        return list(self._history)

    def get_crossover_statistics(self) -> dict[CrossoverOperatorName, OperatorStatistics]:
        grouped: dict[CrossoverOperatorName, list[CrossoverResult]] = defaultdict(list)
        for result in self._history:
            grouped[result.crossover_type].append(result)
        return {
            name: OperatorStatistics(
                count=len(results),
                average_novelty=sum(r.novelty_score for r in results) / len(results),
                average_expected_fitness=sum(r.expected_fitness for r in results) / len(results),
            )
            for name, results in grouped.items()
        }

    def update_parameters(self) -> CrossoverConfig:
        """Tune the crossover rate from how promising recent offspring looked."""
        recent = list(self._history)[-self._TUNING_WINDOW:]
        if not recent:
            return self._config
        success = sum(1 for r in recent if r.expected_fitness > self._SUCCESS_FITNESS) / len(recent)
        rate = self._config.crossover_rate
        if success < 0.5:
            rate *= 0.9
        elif success > 0.8:
            rate *= 1.1
        rate = clamp(rate, self._MIN_RATE, self._MAX_RATE)
        self._config = self._config.model_copy(update={"crossover_rate": rate})
        logger.info("crossover_parameters_updated", success_rate=round(success, 3), crossover_rate=rate)
        return self._config
