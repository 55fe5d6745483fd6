"""Population metrics snapshots and generation results."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum

from agent_evolution.agents.base import Agent
from agent_evolution.fitness.evaluator import ImprovementRecommendation
from agent_evolution.fitness.profile import FitnessDimension
from agent_evolution.population.diversity import DiversityAssessment
from agent_evolution.population.species import SpeciesAnalysis


class GenerationPhase(str, Enum):
    """States of one generation cycle."""
    IDLE = "idle"
    EVALUATING = "evaluating"
    SPECIATING = "speciating"
    SELECTING = "selecting"
    REPRODUCING = "reproducing"
    REPLACING = "replacing"
    AGING = "aging"
    DIVERSIFYING = "diversifying"
    RECORDED = "recorded"


@dataclass(frozen=True)
class PopulationMetrics:
    generation: int
    population_size: int
    average_fitness: float
    fitness_variance: float
    best_fitness: float
    diversity_index: float
    species_count: int
    average_age: float
    evolution_rate: float
    stagnation_level: float
    recorded_at: datetime = field(default_factory=lambda: datetime.now(UTC))


@dataclass
class GenerationResult:
    new_population: list[Agent]
    generation: int
    metrics: PopulationMetrics
    improvements: list[str] = field(default_factory=list)
    extinctions: list[str] = field(default_factory=list)
    emergent_species: list[str] = field(default_factory=list)
    performance_gains: dict[str, float] = field(default_factory=dict)
    offspring_count: int = 0
    culled: list[str] = field(default_factory=list)


@dataclass
class EvolutionSummary:
    success: bool
    generations_completed: int
    final_metrics: PopulationMetrics
    overall_improvement: float
    history: list[GenerationResult] = field(default_factory=list)
    stop_reason: str | None = None


@dataclass
class MigrationResult:
    migrated: list[str] = field(default_factory=list)
    rejected: list[str] = field(default_factory=list)


@dataclass
class PopulationAnalysis:
    fitness_distribution: dict[str, float]
    diversity: DiversityAssessment
    species: SpeciesAnalysis
    trends: dict[str, str]
    bottlenecks: list[str]
    opportunities: list[str]
    recommendations: list[str]
    dimension_means: dict[FitnessDimension, float] = field(default_factory=dict)
    improvement_plan: list[ImprovementRecommendation] = field(default_factory=list)
