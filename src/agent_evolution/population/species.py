"""Compatibility-based speciation with stagnation and extinction tracking."""

from __future__ import annotations

import itertools
from collections import deque
from dataclasses import dataclass, field
from typing import Sequence

import structlog

from agent_evolution.agents.base import Agent
from agent_evolution.similarity import compatibility

logger = structlog.get_logger()

SPECIES_HISTORY_LIMIT = 20
EMERGENT_MAX_AGE = 3
RECENT_EXTINCTIONS = 5


@dataclass
class Species:
    """A compatibility cluster at one point in time."""

    id: str
    representative: Agent
    members: list[Agent] = field(default_factory=list)
    average_fitness: float = 0.0
    fitness_history: deque[float] = field(default_factory=lambda: deque(maxlen=SPECIES_HISTORY_LIMIT))
    stagnation_count: int = 0
    age: int = 0
    extinction_risk: float = 0.0
    created_generation: int = 0

    @property
    def size(self) -> int:
        return len(self.members)

    @property
    def is_emergent(self) -> bool:
        return self.age <= EMERGENT_MAX_AGE

    def best_members(self) -> list[Agent]:
        return sorted(self.members, key=lambda a: a.fitness_score, reverse=True)


@dataclass
class SpeciesUpdate:
    extinct: list[str] = field(default_factory=list)
    created: list[str] = field(default_factory=list)


@dataclass
class SpeciesAnalysis:
    species_count: int
    sizes: dict[str, int]
    average_fitness: dict[str, float]
    at_risk: list[str]
    emergent: list[str]
    recent_extinctions: list[str]


class SpeciesManager:
    """Clusters a population into species and ages them generation by generation.

    Membership is rebuilt from scratch on every update; representatives carry
    over so species identity persists across generations.
    """

    _STAGNATION_DELTA = 0.01
    _STAGNATION_LIMIT = 10
    _SMALL_SPECIES = 3
    _LOW_FITNESS = 0.3

    def __init__(self, threshold: float = 0.6) -> None:
        self.threshold = threshold
        self._species: dict[str, Species] = {}
        self._ids = itertools.count(1)
        self._extinctions: deque[str] = deque(maxlen=100)

    @property
    def species(self) -> list[Species]:
        return list(self._species.values())

    @property
    def species_count(self) -> int:
        return len(self._species)

    def get(self, species_id: str) -> Species | None:
        return self._species.get(species_id)

    def species_of(self, agent_id: str) -> Species | None:
        for species in self._species.values():
            if any(m.id == agent_id for m in species.members):
                return species
        return None

    def find_compatible(self, agent: Agent) -> Species | None:
        """First species whose representative is compatible with ``agent``."""
        for species in self._species.values():
            if compatibility(agent, species.representative) >= self.threshold:
                return species
        return None

    def assign_agent(self, agent: Agent, generation: int = 0) -> Species:
        species = self.find_compatible(agent)
        if species is None:
            species = Species(
                id=f"species_{next(self._ids)}",
                representative=agent,
                created_generation=generation,
            )
            self._species[species.id] = species
            logger.debug("species_created", species_id=species.id, representative=agent.id)
        species.members.append(agent)
        return species

    def remove_agent(self, agent_id: str) -> None:
        for species in self._species.values():
            species.members = [m for m in species.members if m.id != agent_id]

    def update_species(self, population: Sequence[Agent], generation: int = 0) -> SpeciesUpdate:
        """Recompute membership, fitness, stagnation and risk; drop dead species."""
        before = set(self._species)
        for species in self._species.values():
            species.members = []
        for agent in population:
            self.assign_agent(agent, generation)

        update = SpeciesUpdate(created=[sid for sid in self._species if sid not in before])
        for species in list(self._species.values()):
            if not species.members:
                self._extinguish(species, update, reason="empty")
                continue
            average = sum(m.fitness_score for m in species.members) / species.size
            if species.fitness_history and abs(average - species.fitness_history[-1]) < self._STAGNATION_DELTA:
                species.stagnation_count += 1
            else:
                species.stagnation_count = 0
            species.fitness_history.append(average)
            species.average_fitness = average
            species.age += 1
            species.representative = species.best_members()[0]
            species.extinction_risk = self._extinction_risk(species)
            if species.extinction_risk >= 1.0:
                self._extinguish(species, update, reason="risk")
        return update

    def _extinction_risk(self, species: Species) -> float:
        risk = 0.0
        if species.size < self._SMALL_SPECIES:
            risk += 0.3
        if species.stagnation_count > self._STAGNATION_LIMIT:
            risk += 0.4
        if species.average_fitness < self._LOW_FITNESS:
            risk += 0.3
        return min(1.0, max(0.0, risk))

    def _extinguish(self, species: Species, update: SpeciesUpdate, reason: str) -> None:
        del self._species[species.id]
        self._extinctions.append(species.id)
        update.extinct.append(species.id)
        logger.info("species_extinct", species_id=species.id, reason=reason, age=species.age)

    def recent_extinctions(self) -> list[str]:
        return list(self._extinctions)[-RECENT_EXTINCTIONS:]

    def emergent_species(self) -> list[Species]:
        return [s for s in self._species.values() if s.is_emergent]

    def analyze(self) -> SpeciesAnalysis:
        return SpeciesAnalysis(
            species_count=self.species_count,
            sizes={s.id: s.size for s in self._species.values()},
            average_fitness={s.id: s.average_fitness for s in self._species.values()},
            at_risk=[s.id for s in self._species.values() if s.extinction_risk >= 0.5],
            emergent=[s.id for s in self.emergent_species()],
            recent_extinctions=self.recent_extinctions(),
        )

    def reset(self) -> None:
        self._species.clear()
        self._extinctions.clear()
        self._ids = itertools.count(1)
