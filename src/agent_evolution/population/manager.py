"""Population manager - orchestrates the full generational cycle."""

from __future__ import annotations

import math
import time
from collections import deque
from concurrent.futures import ThreadPoolExecutor
from typing import Callable, Sequence

import numpy as np
import structlog

from agent_evolution.agents.base import Agent
from agent_evolution.agents.factory import AgentFactory
from agent_evolution.agents.pool import AgentPool
from agent_evolution.config import (
    CrossoverConfig,
    EvolutionConfig,
    FitnessConfig,
    MutationConfig,
    PopulationConfig,
    ReplacementStrategy,
)
from agent_evolution.crossover.manager import CrossoverManager
from agent_evolution.errors import PopulationNotInitialized
from agent_evolution.fitness.evaluator import FitnessEvaluator
from agent_evolution.fitness.profile import FitnessContext, FitnessDimension, FitnessProfile, PerformanceRecord
from agent_evolution.mutation.manager import MutationManager
from agent_evolution.population.diversity import DiversityAssessment, DiversityMaintainer
from agent_evolution.population.metrics import (
    EvolutionSummary,
    GenerationPhase,
    GenerationResult,
    MigrationResult,
    PopulationAnalysis,
    PopulationMetrics,
)
from agent_evolution.population.species import SpeciesManager
from agent_evolution.rng import make_rng
from agent_evolution.selection.tournament import TournamentSelector
from agent_evolution.settings import EvolutionSettings
from agent_evolution.similarity import agent_distance, compatibility, diversity_index

logger = structlog.get_logger()

CONVERGENCE_WINDOW = 10
CONVERGENCE_VARIANCE = 0.001
STAGNATION_WINDOW = 5
STAGNATION_WARMUP = 20
STAGNATION_LIMIT = 0.9
TREND_WINDOW = 5
TREND_DELTA = 0.05
MIGRANT_MIN_DISTANCE = 0.5


def _by_fitness(agents: Sequence[Agent]) -> list[Agent]:
    return sorted(agents, key=lambda a: a.fitness_score, reverse=True)


def _dedupe(agents: Sequence[Agent]) -> list[Agent]:
    seen: set[str] = set()
    unique = []
    for agent in agents:
        if agent.id not in seen:
            seen.add(agent.id)
            unique.append(agent)
    return unique


class PopulationManager:
    """Main orchestration: evaluate -> speciate -> select -> reproduce -> replace -> age -> diversify -> record.

    Every collaborator shares one random generator, so a seeded manager
    replays the same run.
    """

    def __init__(
        self,
        config: PopulationConfig | None = None,
        *,
        fitness: FitnessConfig | None = None,
        mutation: MutationConfig | None = None,
        crossover: CrossoverConfig | None = None,
        rng: np.random.Generator | None = None,
    ) -> None:
        self._config = config or PopulationConfig()
        if rng is None:
            seed = self._config.seed if self._config.seed is not None else EvolutionSettings().seed
            rng = make_rng(seed)
        self._rng = rng
        self._factory = AgentFactory(self._rng)
        self._evaluator = FitnessEvaluator(fitness)
        self._mutation = MutationManager(mutation, self._rng, self._factory)
        self._crossover = CrossoverManager(crossover, self._rng)
        self._species = SpeciesManager(self._config.species_threshold)
        self._diversity = DiversityMaintainer(
            self._rng,
            self._factory,
            target_diversity=self._config.target_diversity,
            max_population_size=self._config.max_population_size,
        )
        self._selector = TournamentSelector(
            self._rng,
            elitism_rate=self._config.elitism_rate,
            selection_pressure=self._config.selection_pressure,
        )
        self._pool = AgentPool(capacity=self._config.max_population_size)
        self._generation = 0
        self._phase = GenerationPhase.IDLE
        self._metrics: deque[PopulationMetrics] = deque(maxlen=self._config.metrics_history_limit)
        self._performance: dict[str, deque[PerformanceRecord]] = {}
        self._profiles: dict[str, FitnessProfile] = {}
        self._replacers: dict[str, Callable[[list[Agent], list[Agent]], list[Agent]]] = {
            ReplacementStrategy.GENERATIONAL.value: self._replace_generational,
            ReplacementStrategy.STEADY_STATE.value: self._replace_steady_state,
            ReplacementStrategy.ELITE_PRESERVE.value: self._replace_elite_preserve,
            ReplacementStrategy.ISLAND_MODEL.value: self._replace_island_model,
        }

    @classmethod
    def from_config(cls, config: EvolutionConfig, rng: np.random.Generator | None = None) -> PopulationManager:
        return cls(
            config.population,
            fitness=config.fitness,
            mutation=config.mutation,
            crossover=config.crossover,
            rng=rng,
        )

    # -- Accessors ----------------------------------------------------------------

    @property
    def config(self) -> PopulationConfig:
        return self._config

    @property
    def generation(self) -> int:
        return self._generation

    @property
    def phase(self) -> GenerationPhase:
        return self._phase

    @property
    def evaluator(self) -> FitnessEvaluator:
        return self._evaluator

    @property
    def mutation_manager(self) -> MutationManager:
        return self._mutation

    @property
    def crossover_manager(self) -> CrossoverManager:
        return self._crossover

    @property
    def species_manager(self) -> SpeciesManager:
        return self._species

    @property
    def diversity_maintainer(self) -> DiversityMaintainer:
        return self._diversity

    def get_current_population(self) -> list[Agent]:
        return self._pool.members

    def get_best_agents(self, k: int = 1) -> list[Agent]:
        return self._pool.best(k)

    def get_population_history(self) -> list[PopulationMetrics]:
        return list(self._metrics)

    def get_population_metrics(self) -> PopulationMetrics:
        """Latest snapshot, or a fresh one when nothing has been recorded yet."""
        if self._metrics:
            return self._metrics[-1]
        return self._snapshot(self._pool.members)

    def assess_population_diversity(self) -> DiversityAssessment:
        return self._diversity.assess(self._pool.members)

    def record_performance(self, agent_id: str, record: PerformanceRecord) -> None:
        """Feed a task outcome for ``agent_id`` into its next evaluation."""
        window = self._evaluator.config.evaluation_window
        self._performance.setdefault(agent_id, deque(maxlen=window)).append(record)

    # -- Lifecycle -------------------------------------------------------------------

    def initialize_population(self, seed_agents: Sequence[Agent] = ()) -> list[Agent]:
        """Seed the population, topping up to the minimum size with random agents."""
        agents = _dedupe(seed_agents)
        if len(agents) > self._config.max_population_size:
            agents = _by_fitness(agents)[: self._config.max_population_size]
        while len(agents) < self._config.min_population_size:
            agents.append(self._factory.random_agent(self._generation))
        self._pool.reset(agents)
        self._species.update_species(agents, self._generation)
        self._metrics.append(self._snapshot(agents))
        logger.info(
            "population_initialized",
            seeded=len(seed_agents),
            population=len(agents),
            species=self._species.species_count,
        )
        return self._pool.members

    def reset_population(self) -> None:
        self._pool.reset()
        self._species.reset()
        self._metrics.clear()
        self._performance.clear()
        self._profiles.clear()
        self._evaluator.clear_history()
        self._generation = 0
        self._phase = GenerationPhase.IDLE
        logger.info("population_reset")

    def add_agent(self, agent: Agent) -> bool:
        """Admit ``agent``; when full it must beat the weakest member, which it replaces."""
        accepted, evicted = self._pool.admit(agent)
        if evicted is not None:
            self._forget(evicted.id)
        if accepted:
            self._species.assign_agent(agent, self._generation)
        return accepted

    def remove_agent(self, agent_id: str) -> Agent | None:
        removed = self._pool.discard(agent_id)
        if removed is not None:
            self._forget(agent_id)
        return removed

    def _forget(self, agent_id: str) -> None:
        self._species.remove_agent(agent_id)
        self._profiles.pop(agent_id, None)

    # -- The generation cycle ---------------------------------------------------------

    def _set_phase(self, phase: GenerationPhase) -> None:
        self._phase = phase
        logger.debug("generation_phase", generation=self._generation, phase=phase.value)

    @staticmethod
    def default_context() -> FitnessContext:
        return FitnessContext()

    def evolve_generation(self, context: FitnessContext | None = None) -> GenerationResult:
        """Execute one full generation and return what changed."""
        if not self._pool:
            raise PopulationNotInitialized()
        context = context or self.default_context()
        self._generation += 1
        generation = self._generation
        before = self._pool.members
        previous_ids = {a.id for a in before}
        previous_avg = float(np.mean([a.fitness_score for a in before]))
        previous_best = max(a.fitness_score for a in before)
        logger.info("generation_start", generation=generation, population=len(before))

        # 1. Evaluate
        self._set_phase(GenerationPhase.EVALUATING)
        population = self._evaluate(before, context)

        # 2. Speciate
        self._set_phase(GenerationPhase.SPECIATING)
        species_update = self._species.update_species(population, generation)

        # 3. Select parents
        self._set_phase(GenerationPhase.SELECTING)
        parent_count = max(2, round(len(population) * self._config.parent_fraction))
        selection = self._selector.select_parents(population, parent_count)

        # 4. Reproduce
        self._set_phase(GenerationPhase.REPRODUCING)
        offspring = self._reproduce(selection.selected_agents, context)

        # 5. Replace
        self._set_phase(GenerationPhase.REPLACING)
        survivors = self.apply_replacement(population, offspring)

        # 6. Age
        scored = {a.id for a in population} | {a.id for a in offspring}
        culled: list[str] = []
        if self._config.aging_enabled:
            self._set_phase(GenerationPhase.AGING)
            survivors, culled = self._age(survivors)

        # 7. Diversify
        self._set_phase(GenerationPhase.DIVERSIFYING)
        survivors = self._diversity.maintain_diversity(survivors, generation)
        survivors = self._evaluate_newcomers(survivors, scored, context)
        survivors = self._enforce_bounds(survivors)
        survivors = self._evaluate_newcomers(survivors, scored, context)
        self._pool.reset(survivors)

        # 8. Record
        self._set_phase(GenerationPhase.RECORDED)
        metrics = self._snapshot(survivors)
        self._metrics.append(metrics)

        result = GenerationResult(
            new_population=list(survivors),
            generation=generation,
            metrics=metrics,
            improvements=[
                a.id for a in survivors if a.id not in previous_ids and a.fitness_score > previous_avg
            ],
            extinctions=species_update.extinct,
            emergent_species=[s.id for s in self._species.emergent_species()],
            performance_gains={
                "average": metrics.average_fitness - previous_avg,
                "best": metrics.best_fitness - previous_best,
            },
            offspring_count=len(offspring),
            culled=culled,
        )
        logger.info(
            "generation_complete",
            generation=generation,
            population_size=metrics.population_size,
            mean_score=round(metrics.average_fitness, 4),
            best_score=round(metrics.best_fitness, 4),
            diversity=round(metrics.diversity_index, 4),
            species=metrics.species_count,
            offspring=len(offspring),
        )
        self._set_phase(GenerationPhase.IDLE)
        return result

    def _evaluate(self, agents: Sequence[Agent], context: FitnessContext) -> list[Agent]:
        """Score every agent; runs on a thread pool when ``max_workers > 1``."""

        def score(agent: Agent) -> FitnessProfile:
            history = self._performance.get(agent.id)
            return self._evaluator.evaluate_fitness(agent, context, list(history) if history else None)

        if self._config.max_workers > 1 and len(agents) > 1:
            with ThreadPoolExecutor(max_workers=self._config.max_workers) as executor:
                profiles = list(executor.map(score, agents))
        else:
            profiles = [score(agent) for agent in agents]

        evaluated = []
        for agent, profile in zip(agents, profiles):
            self._profiles[agent.id] = profile
            evaluated.append(agent.with_fitness(profile.overall))
        return evaluated

    def _evaluate_newcomers(
        self, agents: list[Agent], scored: set[str], context: FitnessContext
    ) -> list[Agent]:
        """Score agents synthesized after the evaluation phase; ``scored`` is updated in place."""
        fresh = [a for a in agents if a.id not in scored]
        if not fresh:
            return agents
        evaluated = {a.id: a for a in self._evaluate(fresh, context)}
        scored.update(evaluated)
        return [evaluated.get(a.id, a) for a in agents]

    def _reproduce(
self, parents: Sequence[Agent], context: FitnessContext) -> list[Agent]:
        crossed = self._crossover.perform_batch_crossover(parents, context=context)
        children = [child for result in crossed for child in result.offspring]
        mutated = self._mutation.mutate_population(children, context)
        offspring = children + [result.agent for result in mutated]
        if not offspring:
            return []
        return self._evaluate(offspring, context)

    # -- Replacement policies -------------------------------------------------------------

    def apply_replacement(self, current: list[Agent], offspring: list[Agent]) -> list[Agent]:
        """Merge offspring into the current population under the configured policy."""
        strategy = self._config.replacement_strategy
        # Unrecognised strategies fall back to steady state.
        replacer = self._replacers.get(strategy, self._replace_steady_state)
        survivors = replacer(current, offspring)
        logger.debug(
            "population_replaced",
            strategy=strategy,
            before=len(current),
            offspring=len(offspring),
            after=len(survivors),
        )
        return survivors

    def _replace_generational(self, current: list[Agent], offspring: list[Agent]) -> list[Agent]:
        max_size = self._config.max_population_size
        target = min(max_size, len(current))
        elites = self._selector.elites(current)
        ranked_offspring = _by_fitness(offspring)
        new = _dedupe(elites + ranked_offspring)[:max_size]
        if len(new) < target:
            # Too few offspring to refill: carry over the best remaining parents.
            kept = {a.id for a in new}
            new += [a for a in _by_fitness(current) if a.id not in kept][: target - len(new)]
        return _by_fitness(new)[:max_size]

    def _replace_steady_state(self, current: list[Agent], offspring: list[Agent]) -> list[Agent]:
        return _by_fitness(_dedupe(current + offspring))[: self._config.max_population_size]

    def _replace_elite_preserve(self, current: list[Agent], offspring: list[Agent]) -> list[Agent]:
        elites = self._selector.elites(current)
        elite_ids = {a.id for a in elites}
        rest = [a for a in _dedupe(current + offspring) if a.id not in elite_ids]
        slots = max(0, self._config.max_population_size - len(elites))
        return elites + self._diversity.select_diverse_agents(rest, slots)

    def _replace_island_model(self, current: list[Agent], offspring: list[Agent]) -> list[Agent]:
        max_size = self._config.max_population_size
        species = self._species.species
        if not species:
            return self._replace_steady_state(current, offspring)

        candidates: dict[str, list[Agent]] = {s.id: list(s.members) for s in species}
        unplaced: list[Agent] = []
        for child in offspring:
            home = next(
                (s for s in species if compatibility(child, s.representative) >= self._species.threshold),
                None,
            )
            (candidates[home.id] if home is not None else unplaced).append(child)

        total = sum(s.average_fitness for s in species)
        chosen: list[Agent] = []
        for s in species:
            share = s.average_fitness / total if total > 0 else 1 / len(species)
            slots = max(1, math.floor(share * max_size))
            chosen += _by_fitness(candidates[s.id])[:slots]

        chosen = _dedupe(chosen)
        target = min(max_size, len(current))
        if len(chosen) < target:
            kept = {a.id for a in chosen}
            leftovers = [a for a in _dedupe(current + offspring + unplaced) if a.id not in kept]
            chosen += _by_fitness(leftovers)[: target - len(chosen)]
        return _by_fitness(chosen)[:max_size]

    # -- Aging, bounds, metrics ------------------------------------------------------------

    def _age(self, agents: list[Agent]) -> tuple[list[Agent], list[str]]:
        elite_ids = {a.id for a in self._selector.elites(agents)}
        aged = [a.aged() for a in agents]
        survivors = [a for a in aged if a.id in elite_ids or a.age <= self._config.max_agent_age]
        culled = [a.id for a in aged if a not in survivors]
        if culled:
            logger.info("agents_culled", generation=self._generation, count=len(culled))
        while len(survivors) < self._config.min_population_size:
            survivors.append(self._factory.random_agent(self._generation))
        return survivors, culled

    def _enforce_bounds(self, agents: list[Agent]) -> list[Agent]:
        if len(agents) > self._config.max_population_size:
            agents = _by_fitness(agents)[: self._config.max_population_size]
        while len(agents) < self._config.min_population_size:
            agents.append(self._factory.random_agent(self._generation))
        return agents

    def _snapshot(self, agents: Sequence[Agent]) -> PopulationMetrics:
        fitness = np.array([a.fitness_score for a in agents], dtype=np.float64)
        average = float(fitness.mean()) if len(fitness) else 0.0
        previous = [m.average_fitness for m in self._metrics]
        window = (previous + [average])[-STAGNATION_WINDOW:]
        if len(window) >= STAGNATION_WINDOW:
            stagnation = max(0.0, 1.0 - 10.0 * float(np.mean(np.abs(np.diff(window)))))
        else:
            stagnation = 0.0
        return PopulationMetrics(
            generation=self._generation,
            population_size=len(agents),
            average_fitness=average,
            fitness_variance=float(fitness.var()) if len(fitness) else 0.0,
            best_fitness=float(fitness.max()) if len(fitness) else 0.0,
            diversity_index=diversity_index(agents),
            species_count=self._species.species_count,
            average_age=float(np.mean([a.age for a in agents])) if agents else 0.0,
            evolution_rate=average - previous[-1] if previous else 0.0,
            stagnation_level=min(1.0, stagnation),
        )

    # -- Multi-generation driver -------------------------------------------------------------

    def has_converged(self) -> bool:
        if len(self._metrics) < CONVERGENCE_WINDOW:
            return False
        recent = [m.average_fitness for m in list(self._metrics)[-CONVERGENCE_WINDOW:]]
        return float(np.var(recent)) < CONVERGENCE_VARIANCE

    def is_stagnant(self) -> bool:
        if len(self._metrics) < STAGNATION_WARMUP:
            return False
        return self._metrics[-1].stagnation_level > STAGNATION_LIMIT

    def evolve_multiple_generations(
        self,
        generations: int,
        context: FitnessContext | None = None,
        time_budget: float | None = None,
    ) -> list[GenerationResult]:
        """Run up to ``generations`` cycles.

        Stops early on convergence, stagnation, or when ``time_budget`` seconds
        have elapsed (checked between generations).
        """
        results, _ = self._run(generations, context, time_budget)
        return results

    def _run(
        self,
        generations: int,
        context: FitnessContext | None,
        time_budget: float | None,
    ) -> tuple[list[GenerationResult], str | None]:
        started = time.monotonic()
        results: list[GenerationResult] = []
        for _ in range(generations):
            if time_budget is not None and time.monotonic() - started >= time_budget:
                return results, self._stop("time_budget", len(results))
            results.append(self.evolve_generation(context))
            if self.has_converged():
                return results, self._stop("convergence", len(results))
            if self.is_stagnant():
                return results, self._stop("stagnation", len(results))
        return results, None

    def _stop(self, reason: str, completed: int) -> str:
        logger.info("early_stop", reason=reason, generation=self._generation, completed=completed)
        return reason

    def evolve_population(
        self,
        generations: int,
        context: FitnessContext | None = None,
        time_budget: float | None = None,
    ) -> EvolutionSummary:
        """Run several generations and summarise the improvement."""
        initial = self.get_population_metrics()
        results, reason = self._run(generations, context, time_budget)
        final = self.get_population_metrics()
        summary = EvolutionSummary(
            success=bool(results),
            generations_completed=len(results),
            final_metrics=final,
            overall_improvement=final.average_fitness - initial.average_fitness,
            history=results,
            stop_reason=reason,
        )
        logger.info(
            "evolution_complete",
            generations=summary.generations_completed,
            improvement=round(summary.overall_improvement, 4),
            stop_reason=reason,
        )
        return summary

    # -- Analysis and migration ---------------------------------------------------------------

    def _trend(self, values: list[float]) -> str:
        if len(values) < 2:
            return "stable"
        delta = values[-1] - values[max(0, len(values) - TREND_WINDOW)]
        if delta > TREND_DELTA:
            return "improving"
        if delta < -TREND_DELTA:
            return "declining"
        return "stable"

    def analyze_population(self) -> PopulationAnalysis:
        agents = self._pool.members
        fitness = np.array([a.fitness_score for a in agents], dtype=np.float64)
        if len(fitness):
            distribution = {
                "mean": float(fitness.mean()),
                "median": float(np.median(fitness)),
                "std": float(fitness.std()),
                "min": float(fitness.min()),
                "max": float(fitness.max()),
                "q1": float(np.percentile(fitness, 25)),
                "q3": float(np.percentile(fitness, 75)),
                "above_threshold": sum(self._evaluator.meets_threshold(f) for f in fitness) / len(fitness),
            }
        else:
            distribution = {
                k: 0.0 for k in ("mean", "median", "std", "min", "max", "q1", "q3", "above_threshold")
            }

        diversity = self._diversity.assess(agents)
        species = self._species.analyze()
        history = list(self._metrics)
        trends = {
            "fitness": self._trend([m.average_fitness for m in history]),
            "diversity": self._trend([m.diversity_index for m in history]),
        }

        profiles = [self._profiles[a.id] for a in agents if a.id in self._profiles]
        dimension_means: dict[FitnessDimension, float] = {}
        improvement_plan = []
        bottlenecks: list[str] = []
        if profiles:
            mean_profile = FitnessProfile(
                **{dim.value: float(np.mean([p.get(dim) for p in profiles])) for dim in FitnessDimension},
                weights=self._evaluator.weights,
            )
            dimension_means = dict(mean_profile.items())
            bottlenecks += [dim.value for dim in self._evaluator.identify_bottlenecks(mean_profile)]
            improvement_plan = self._evaluator.generate_improvement_recommendations(mean_profile)

        stagnation = history[-1].stagnation_level if history else 0.0
        if diversity.diversity_index < self._config.target_diversity:
            bottlenecks.append("low_diversity")
        if stagnation > 0.7:
            bottlenecks.append("stagnation")
        if species.species_count <= 1 and len(agents) > 1:
            bottlenecks.append("species_collapse")
        if agents and distribution["above_threshold"] == 0:
            bottlenecks.append("below_fitness_threshold")

        opportunities: list[str] = []
        if distribution["max"] - distribution["mean"] > 0.2:
            opportunities.append("exploit_top_performers")
        if species.emergent:
            opportunities.append("nurture_emergent_species")
        if diversity.diversity_index >= self._config.target_diversity:
            opportunities.append("diversity_headroom")
        if trends["fitness"] == "improving":
            opportunities.append("sustain_momentum")

        recommendations: list[str] = []
        if "low_diversity" in bottlenecks:
            recommendations.append("Increase mutation rate or inject diverse agents")
        if "stagnation" in bottlenecks:
            recommendations.append("Switch replacement strategy or raise selection pressure")
        if "species_collapse" in bottlenecks:
            recommendations.append("Lower the species threshold to encourage speciation")
        if species.at_risk:
            recommendations.append("Protect at-risk species with island-model replacement")
        if "below_fitness_threshold" in bottlenecks:
            recommendations.append("Raise selection pressure or run more generations to reach the fitness threshold")
        recommendations += [r.strategy for r in improvement_plan[:3]]

        return PopulationAnalysis(
            fitness_distribution=distribution,
            diversity=diversity,
            species=species,
            trends=trends,
            bottlenecks=bottlenecks,
            opportunities=opportunities,
            recommendations=recommendations,
            dimension_means=dimension_means,
            improvement_plan=improvement_plan,
        )

    def migrate_agents(self, target: PopulationManager, count: int | None = None) -> MigrationResult:
        """Send strong, mutually distinct agents to ``target``; accepted ones leave this population."""
        agents = self._pool.members
        if count is None:
            count = math.floor(len(agents) * self._config.migration_rate)
        result = MigrationResult()
        if count <= 0 or not agents:
            return result

        ranked = _by_fitness(agents)
        migrants: list[Agent] = []
        for candidate in ranked:
            if len(migrants) >= count:
                break
            if not migrants or np.mean([agent_distance(candidate, m) for m in migrants]) > MIGRANT_MIN_DISTANCE:
                migrants.append(candidate)
        for candidate in ranked:
            if len(migrants) >= count:
                break
            if candidate not in migrants:
                migrants.append(candidate)

        for migrant in migrants:
            if target.add_agent(migrant):
                self.remove_agent(migrant.id)
                result.migrated.append(migrant.id)
            else:
                result.rejected.append(migrant.id)
        logger.info("agents_migrated", migrated=len(result.migrated), rejected=len(result.rejected))
        return result
