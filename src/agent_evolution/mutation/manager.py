"""Mutation engine: potential gating, strategy choice, and bookkeeping."""

from __future__ import annotations

from collections import defaultdict, deque
from typing import Sequence

import numpy as np
import structlog

from agent_evolution.agents.base import Agent
from agent_evolution.agents.factory import AgentFactory
from agent_evolution.agents.trace import AdaptationEvent
from agent_evolution.config import MutationConfig
from agent_evolution.errors import (
    EvolutionError,
    InsufficientMutationPotential,
    StrategyNotFound,
    StructuralMutationDisabled,
)
from agent_evolution.fitness.profile import FitnessContext
from agent_evolution.mutation.strategies import (
    STRATEGY_REGISTRY,
    DirectionalMutationStrategy,
    MutationOutcome,
    MutationStrategy,
    StructuralMutationStrategy,
)
from agent_evolution.mutation.types import (
    DirectionalMutation,
    MutationAnalysis,
    MutationResult,
    MutationStrategyName,
    StrategyStatistics,
    StructuralMutation,
)
from agent_evolution.rng import chance, clamp, make_rng, new_id

logger = structlog.get_logger()


class MutationManager:
    """Applies one of six mutation strategies to an agent and returns a new agent.

    ``mutate_agent`` picks the strategy from the agent's state; the other
    entry points let callers force a strategy or supply a directive.
    """

    _POTENTIAL_THRESHOLD = 0.1
    _SUCCESS_IMPACT = 0.1
    _MIN_RATE = 0.05
    _MAX_RATE = 0.3

    def __init__(
        self,
        config: MutationConfig | None = None,
        rng: np.random.Generator | None = None,
        factory: AgentFactory | None = None,
    ) -> None:
        self._config = config or MutationConfig()
        self._rng = rng if rng is not None else make_rng()
        self._factory = factory or AgentFactory(self._rng)
        self._history: deque[MutationResult] = deque(maxlen=self._config.history_limit)

    @property
    def config(self) -> MutationConfig:
        return self._config

    # -- Entry points -----------------------------------------------------------

    def mutate_agent(self, agent: Agent, context: FitnessContext | None = None) -> MutationResult:
        """Gate on mutation potential, then run the top recommended strategy."""
        potential = self.calculate_mutation_potential(agent)
        if potential < self._POTENTIAL_THRESHOLD:
            raise InsufficientMutationPotential(agent.id, potential, self._POTENTIAL_THRESHOLD)

        strategy = self.recommend_strategies(agent)[0]
        config = self._adapted_config(agent, context)
        return self._run(agent, strategy, config)

    def mutate_with_strategy(self, agent: Agent, strategy: MutationStrategyName | str) -> MutationResult:
        """Run a named strategy with the configured rate and strength."""
        try:
            name = MutationStrategyName(strategy)
        except ValueError:
            raise StrategyNotFound(str(strategy)) from None
        if name is MutationStrategyName.STRUCTURAL and not self._config.enable_structural_mutation:
            raise StructuralMutationDisabled()
        return self._run(agent, name, self._config)

    def mutate_directional(self, agent: Agent, directive: DirectionalMutation) -> MutationResult:
        strategy = DirectionalMutationStrategy(self._config, self._rng, self._factory)
        return self._finish(agent, strategy, strategy.apply(agent, directive), self._config)

    def mutate_structural(self, agent: Agent, mutation: StructuralMutation) -> MutationResult:
        if not self._config.enable_structural_mutation:
            raise StructuralMutationDisabled()
        strategy = StructuralMutationStrategy(self._config, self._rng, self._factory)
        return self._finish(agent, strategy, strategy.apply(agent, mutation), self._config)

    def mutate_population(
        self, agents: Sequence[Agent], context: FitnessContext | None = None
    ) -> list[MutationResult]:
        """Mutate each agent with probability ``mutation_rate``; failures are skipped."""
        results: list[MutationResult] = []
        for agent in agents:
            if not chance(self._rng, self._config.mutation_rate):
                continue
            try:
                results.append(self.mutate_agent(agent, context))
            except EvolutionError as exc:
                logger.warning("mutation_failed", agent_id=agent.id, error=str(exc))
        return results

    # -- Internals --------------------------------------------------------------

    def _adapted_config(self, agent: Agent, context: FitnessContext | None) -> MutationConfig:
        if not self._config.adaptive_mutation:
            return self._config
        fitness = agent.fitness_score
        rate = self.optimal_mutation_rate(agent)
        if context is not None:
            rate = clamp(rate * (0.5 + context.adaptation_pressure), self._MIN_RATE, self._MAX_RATE)
        strength = min(1.0, self._config.mutation_strength * ((1.0 - fitness) + 0.5))
        return self._config.model_copy(update={"mutation_rate": rate, "mutation_strength": strength})

    def _run(self, agent: Agent, name: MutationStrategyName, config: MutationConfig) -> MutationResult:
        strategy = STRATEGY_REGISTRY[name](config, self._rng, self._factory)
        return self._finish(agent, strategy, strategy.apply(agent), config)

    def _finish(
        self,
        agent: Agent,
        strategy: MutationStrategy,
        outcome: MutationOutcome,
        config: MutationConfig,
    ) -> MutationResult:
        points = outcome.points
        if points:
            impact = sum(abs(p.strength_delta) for p in points) / len(points)
            risk = sum(abs(p.strength_delta) * (1.0 - p.confidence) for p in points) / len(points)
        else:
            impact = risk = 0.0

        child = agent.with_capabilities(
            outcome.capabilities,
            id=new_id(self._rng, "agent"),
            age=0,
            generation=agent.generation + 1,
            parent_ids=(agent.id,),
        ).record(
            AdaptationEvent(
                kind=f"mutation:{strategy.name.value}",
                detail=f"{len(points)} points",
                generation=agent.generation + 1,
                impact=impact,
                parent_ids=(agent.id,),
            )
        )
        result = MutationResult(
            agent=child,
            parent_id=agent.id,
            mutation_type=strategy.name,
            mutation_points=points,
            strength=config.mutation_strength,
            expected_impact=impact,
            risk_level=risk,
            reversible=strategy.reversible,
        )
        self._history.append(result)
        logger.debug(
            "agent_mutated",
            parent_id=agent.id,
            child_id=child.id,
            strategy=strategy.name.value,
            points=len(points),
            impact=round(impact, 4),
        )
        return result

    # -- Analysis -----------------------------------------------------------------

    @staticmethod
    def capability_diversity(agent: Agent) -> float:
        if not agent.capabilities:
            return 0.0
        return min(1.0, len(agent.specializations) / (2 * len(agent.capabilities)))

    def calculate_mutation_potential(self, agent: Agent) -> float:
        return (
            (1.0 - agent.fitness_score) * 0.5
            + (1.0 - self.capability_diversity(agent)) * 0.3
            + max(0.0, 1.0 - len(agent.adaptation_history) / 100) * 0.2
        )

    def recommend_strategies(self, agent: Agent) -> list[MutationStrategyName]:
        """Strategies in preference order; adaptive is always last."""
        strategies: list[MutationStrategyName] = []
        if agent.fitness_score < 0.4:
            strategies.append(MutationStrategyName.DIRECTIONAL)
        if len(agent.capabilities) < 3 and self._config.enable_structural_mutation:
            strategies.append(MutationStrategyName.STRUCTURAL)
        if agent.fitness_score > 0.7:
            strategies.append(MutationStrategyName.CREATIVE)
        else:
            strategies.append(MutationStrategyName.GAUSSIAN)
        strategies.append(MutationStrategyName.ADAPTIVE)
        return strategies

    def optimal_mutation_rate(self, agent: Agent) -> float:
        return clamp(0.1 + (1.0 - agent.fitness_score) * 0.2, self._MIN_RATE, self._MAX_RATE)

    def analyze_mutation_potential(self, agent: Agent) -> MutationAnalysis:
        risk_factors = []
        if len(agent.capabilities) < 3:
            risk_factors.append("too_few_capabilities")
        if agent.fitness_score > 0.8:
            risk_factors.append("high_fitness_degradation_risk")
        if len(agent.adaptation_history) < 5:
            risk_factors.append("insufficient_adaptation_history")
        return MutationAnalysis(
            agent_id=agent.id,
            potential=self.calculate_mutation_potential(agent),
            recommended_strategies=self.recommend_strategies(agent),
            optimal_rate=self.optimal_mutation_rate(agent),
            risk_factors=risk_factors,
        )

    def get_mutation_history(self) -> list[MutationResult]:
        return list(self._history)

    def get_mutation_statistics(self) -> dict[MutationStrategyName, StrategyStatistics]:
        grouped: dict[MutationStrategyName, list[MutationResult]] = defaultdict(list)
        for result in self._history:
            grouped[result.mutation_type].append(result)
        return {
            name: StrategyStatistics(
                count=len(results),
                average_impact=sum(r.expected_impact for r in results) / len(results),
                average_risk=sum(r.risk_level for r in results) / len(results),
                success_rate=sum(1 for r in results if r.expected_impact > self._SUCCESS_IMPACT) / len(results),
            )
            for name, results in grouped.items()
        }

    def update_parameters(self) -> MutationConfig:
        """Nudge the mutation rate toward what has recently produced impact."""
        if not self._history:
            return self._config
        success = sum(1 for r in self._history if r.expected_impact > self._SUCCESS_IMPACT) / len(self._history)
        rate = self._config.mutation_rate
        if success < 0.3:
            rate *= 0.9
        elif success > 0.7:
            rate *= 1.1
        rate = clamp(rate, self._MIN_RATE, self._MAX_RATE)
        self._config = self._config.model_copy(update={"mutation_rate": rate})
        logger.info("mutation_parameters_updated", success_rate=round(success, 3), mutation_rate=rate)
        return self._config
