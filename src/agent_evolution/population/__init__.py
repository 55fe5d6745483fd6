"""Population package: speciation, diversity maintenance, metrics, and the generation manager."""

from __future__ import annotations

from agent_evolution.population.diversity import DiversityMaintainer
from agent_evolution.population.manager import PopulationManager
from agent_evolution.population.metrics import GenerationPhase, GenerationResult, PopulationMetrics
from agent_evolution.population.species import Species, SpeciesManager

__all__ = [
    "DiversityMaintainer",
    "GenerationPhase",
    "GenerationResult",
    "PopulationManager",
    "PopulationMetrics",
    "Species",
    "SpeciesManager",
]
