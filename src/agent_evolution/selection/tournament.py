"""Tournament parent selection."""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Sequence

import numpy as np

from agent_evolution.agents.base import Agent
from agent_evolution.similarity import diversity_index
from agent_evolution.rng import choice, sample


@dataclass
class SelectionResult:
    selected_agents: list[Agent] = field(default_factory=list)
    selection_pressure: float = 0.0
    diversity_preserved: float = 0.0
    elite_count: int = 0
    methodology: str = "tournament"


class TournamentSelector:
    """Rank-noised tournament selection.

    Each pick draws a random tournament and returns one of its top three at
    random, so the fittest agent is favoured but not guaranteed. The
    tournament covers 5% of the population per unit of selection pressure
    (10% at the default pressure of 2), and never fewer than two agents.
    """

    _FRACTION_PER_PRESSURE = 0.05
    _TOP_CANDIDATES = 3

    def __init__(
        self,
        rng: np.random.Generator,
        elitism_rate: float = 0.1,
        selection_pressure: float = 2.0,
    ) -> None:
        self._rng = rng
        self.elitism_rate = elitism_rate
        self.selection_pressure = selection_pressure

    def tournament_size(self, population_size: int) -> int:
        fraction = self._FRACTION_PER_PRESSURE * self.selection_pressure
        return min(population_size, max(2, int(population_size * fraction)))

    def elite_count(self, population_size: int) -> int:
        return math.floor(population_size * self.elitism_rate)

    def elites(self, population: Sequence[Agent]) -> list[Agent]:
        ranked = sorted(population, key=lambda a: a.fitness_score, reverse=True)
        return ranked[: self.elite_count(len(population))]

    def select_parents(self, population: Sequence[Agent], count: int) -> SelectionResult:
        if not population or count <= 0:
            return SelectionResult(selection_pressure=self.selection_pressure)

        size = self.tournament_size(len(population))
        selected: list[Agent] = []
        for _ in range(count):
            tournament = sample(self._rng, population, size)
            tournament.sort(key=lambda a: a.fitness_score, reverse=True)
            selected.append(choice(self._rng, tournament[: self._TOP_CANDIDATES]))

        population_diversity = diversity_index(population)
        preserved = diversity_index(selected) / population_diversity if population_diversity > 0 else 0.0
        return SelectionResult(
            selected_agents=selected,
            selection_pressure=self.selection_pressure,
            diversity_preserved=preserved,
            elite_count=self.elite_count(len(population)),
        )
