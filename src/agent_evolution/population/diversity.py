"""Population-level diversity measurement and restoration."""

from __future__ import annotations

import itertools
import math
from collections import Counter
from dataclasses import dataclass
from typing import Sequence

import numpy as np
import structlog

from agent_evolution.agents.base import Agent
from agent_evolution.agents.factory import AgentFactory
from agent_evolution.similarity import agent_distance, diversity_index

logger = structlog.get_logger()


@dataclass
class DiversityAssessment:
    diversity_index: float
    unique_capabilities: int
    unique_specializations: int
    mean_pairwise_distance: float
    target: float

    @property
    def deficit(self) -> float:
        return max(0.0, self.target - self.diversity_index)


def mean_pairwise_distance(population: Sequence[Agent]) -> float:
    if len(population) < 2:
        return 0.0
    distances = [agent_distance(a, b) for a, b in itertools.combinations(population, 2)]
    return float(np.mean(distances))


class DiversityMaintainer:
    """Measures diversity and restores it by injecting agents built from missing tags."""

    def __init__(
        self,
        rng: np.random.Generator,
        factory: AgentFactory,
        target_diversity: float = 0.7,
        max_population_size: int = 100,
    ) -> None:
        self._rng = rng
        self._factory = factory
        self.target_diversity = target_diversity
        self.max_population_size = max_population_size

    @staticmethod
    def diversity_index(population: Sequence[Agent]) -> float:
        return diversity_index(population)

    def assess(self, population: Sequence[Agent]) -> DiversityAssessment:
        return DiversityAssessment(
            diversity_index=diversity_index(population),
            unique_capabilities=len({cid for a in population for cid in a.capability_ids}),
            unique_specializations=len({t for a in population for t in a.specializations}),
            mean_pairwise_distance=mean_pairwise_distance(population),
            target=self.target_diversity,
        )

    def select_diverse_agents(self, candidates: Sequence[Agent], n: int) -> list[Agent]:
        """Farthest-point greedy selection from a random starting candidate."""
        if n <= 0 or not candidates:
            return []
        if n >= len(candidates):
            return list(candidates)

        remaining = list(candidates)
        selected = [remaining.pop(int(self._rng.integers(len(remaining))))]
        # Running sum of distances from each remaining candidate to the selected set.
        totals = [agent_distance(c, selected[0]) for c in remaining]
        while len(selected) < n:
            best = max(range(len(remaining)), key=lambda i: totals[i])
            chosen = remaining.pop(best)
            totals.pop(best)
            selected.append(chosen)
            totals = [t + agent_distance(c, chosen) for t, c in zip(totals, remaining)]
        return selected

    def marginal_contributions(self, population: Sequence[Agent]) -> list[float]:
        """How much each agent adds: ids and tags only it holds, plus its mean distance."""
        capability_counts = Counter(cid for a in population for cid in set(a.capability_ids))
        tag_counts = Counter(t for a in population for t in a.specializations)
        scores = []
        for agent in population:
            unique = sum(1 for cid in set(agent.capability_ids) if capability_counts[cid] == 1)
            unique += sum(1 for t in agent.specializations if tag_counts[t] == 1)
            scores.append(unique / 3)
        return scores

    def inject_diversity(self, population: Sequence[Agent], deficit: float, generation: int = 0) -> list[Agent]:
        """Add ``floor(deficit * size)`` agents from under-represented tags, then trim to bounds."""
        count = math.floor(deficit * len(population))
        result = list(population)
        for _ in range(count):
            result.append(self._factory.diverse_agent(result, generation))
        if count:
            logger.info("diversity_injected", generation=generation, added=count, deficit=round(deficit, 4))
        if len(result) > self.max_population_size:
            result = self._trim_least_diverse(result)
        return result

    def maintain_diversity(self, population: Sequence[Agent], generation: int = 0) -> list[Agent]:
        """Inject diversity when the index falls below target; otherwise return the population."""
        index = diversity_index(population)
        if index >= self.target_diversity:
            return list(population)
        return self.inject_diversity(population, self.target_diversity - index, generation)

    def _trim_least_diverse(self, population: list[Agent]) -> list[Agent]:
        # Mean distance breaks ties between agents that hold nothing unique.
        spread = [
            float(np.mean([agent_distance(a, b) for b in population if b is not a])) if len(population) > 1 else 0.0
            for a in population
        ]
        keep = list(zip(population, spread))
        removed = 0
        while len(keep) > self.max_population_size:
            contributions = self.marginal_contributions([a for a, _ in keep])
            weakest = min(range(len(keep)), key=lambda i: (contributions[i], keep[i][1]))
            keep.pop(weakest)
            removed += 1
        logger.debug("diversity_trimmed", removed=removed, size=len(keep))
        return [a for a, _ in keep]
