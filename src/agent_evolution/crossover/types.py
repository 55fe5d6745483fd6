"""Crossover result types."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from agent_evolution.agents.base import Agent


class CrossoverOperatorName(str, Enum):
    UNIFORM = "uniform"
    SINGLE_POINT = "single_point"
    SEMANTIC = "semantic"
    MORPHOLOGICAL = "morphological"
    ADAPTIVE = "adaptive"


class Inheritance(str, Enum):
    """Where an offspring capability's material came from."""
    PARENT1 = "parent1"
    PARENT2 = "parent2"
    BLEND = "blend"


@dataclass
class CrossoverResult:
    offspring: tuple[Agent, Agent]
    parent_ids: tuple[str, str]
    crossover_type: CrossoverOperatorName
    crossover_points: list[dict[str, Any]] = field(default_factory=list)
    inheritance_map: dict[str, Inheritance] = field(default_factory=dict)
    offspring_inheritance: tuple[dict[str, Inheritance], dict[str, Inheritance]] = field(
        default_factory=lambda: ({}, {})
    )
    novelty_score: float = 0.0
    expected_fitness: float = 0.0
    delegated_operator: CrossoverOperatorName | None = None


@dataclass
class CompatibilityAnalysis:
    compatibility: float
    complementarity: float
    diversity_potential: float
    recommended_operator: CrossoverOperatorName


@dataclass
class OperatorStatistics:
    count: int
    average_novelty: float
    average_expected_fitness: float
