"""Configuration models for evolution runs."""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, Field, model_validator


class ReplacementStrategy(str, Enum):
    """How offspring replace the current population."""
    GENERATIONAL = "generational"
    STEADY_STATE = "steady_state"
    ELITE_PRESERVE = "elite_preserve"
    ISLAND_MODEL = "island_model"


class FitnessWeights(BaseModel):
    """Relative weight of each fitness dimension in the overall score."""
    performance: float = Field(default=0.25, ge=0.0)
    adaptability: float = Field(default=0.15, ge=0.0)
    efficiency: float = Field(default=0.15, ge=0.0)
    specialization: float = Field(default=0.10, ge=0.0)
    generalization: float = Field(default=0.08, ge=0.0)
    innovation: float = Field(default=0.08, ge=0.0)
    stability: float = Field(default=0.07, ge=0.0)
    robustness: float = Field(default=0.05, ge=0.0)
    sustainability: float = Field(default=0.04, ge=0.0)
    collaboration: float = Field(default=0.03, ge=0.0)
    learning_velocity: float = Field(default=0.02, ge=0.0, alias="learningVelocity")

    model_config = {"populate_by_name": True}

    @property
    def total(self) -> float:
        return sum(self.model_dump().values())

    def normalized(self) -> FitnessWeights:
        """Return a copy whose weights sum to 1."""
        total = self.total
        if total <= 0:
            raise ValueError("fitness weights must not all be zero")
        return FitnessWeights(**{k: v / total for k, v in self.model_dump().items()})


class FitnessConfig(BaseModel):
    """Fitness evaluator settings."""
    weights: FitnessWeights = Field(default_factory=FitnessWeights)
    evaluation_window: int = Field(default=50, ge=1, alias="evaluationWindow")
    fitness_threshold: float = Field(default=0.7, ge=0.0, le=1.0, alias="fitnessThreshold")
    history_limit: int = Field(default=50, ge=1, description="Evaluations remembered per agent")

    model_config = {"populate_by_name": True}


class MutationBounds(BaseModel):
    """Range of uniform mutation noise before scaling by strength."""
    min: float = -0.5
    max: float = 0.5

    @model_validator(mode="after")
    def _check_order(self) -> MutationBounds:
        if self.min >= self.max:
            raise ValueError(f"mutation bounds min ({self.min}) must be below max ({self.max})")
        return self


class MutationConfig(BaseModel):
    """Mutation engine settings."""
    mutation_rate: float = Field(default=0.1, ge=0.0, le=1.0, alias="mutationRate")
    mutation_strength: float = Field(default=0.1, ge=0.0, le=1.0, alias="mutationStrength")
    adaptive_mutation: bool = Field(default=True, alias="adaptiveMutation")
    preserve_core_capabilities: bool = Field(default=True, alias="preserveCoreCapabilities")
    enable_structural_mutation: bool = Field(default=True, alias="enableStructuralMutation")
    mutation_bounds: MutationBounds = Field(default_factory=MutationBounds, alias="mutationBounds")
    history_limit: int = Field(default=1000, ge=1)

    model_config = {"populate_by_name": True}


class CrossoverConfig(BaseModel):
    """Crossover engine settings."""
    crossover_rate: float = Field(default=0.8, ge=0.0, le=1.0, alias="crossoverRate")
    compatibility_threshold: float = Field(default=0.3, ge=0.0, le=1.0, alias="compatibilityThreshold")
    novelty_weight: float = Field(default=0.3, ge=0.0, le=1.0, alias="noveltyWeight")
    fitness_weight: float = Field(default=0.7, ge=0.0, le=1.0, alias="fitnessWeight")
    history_limit: int = Field(default=1000, ge=1)

    model_config = {"populate_by_name": True}


class PopulationConfig(BaseModel):
    """Population policy knobs."""
    max_population_size: int = Field(default=100, ge=1, alias="maxPopulationSize")
    min_population_size: int = Field(default=20, ge=0, alias="minPopulationSize")
    target_diversity: float = Field(default=0.7, ge=0.0, le=1.0, alias="targetDiversity")
    elitism_rate: float = Field(default=0.1, ge=0.0, le=1.0, alias="elitismRate")
    migration_rate: float = Field(default=0.05, ge=0.0, le=1.0, alias="migrationRate")
    species_threshold: float = Field(default=0.6, ge=0.0, le=1.0, alias="speciesThreshold")
    aging_enabled: bool = Field(default=True, alias="agingEnabled")
    max_agent_age: int = Field(default=50, ge=1, alias="maxAgentAge")
    selection_pressure: float = Field(default=2.0, gt=0.0, alias="selectionPressure")
    # Plain string: unrecognised values fall back to steady_state at dispatch time.
    replacement_strategy: str = Field(
        default=ReplacementStrategy.STEADY_STATE.value, alias="replacementStrategy"
    )
    parent_fraction: float = Field(default=0.6, gt=0.0, le=1.0, description="Share of population selected as parents")
    seed: int | None = Field(default=None, description="Seed for the shared random generator")
    max_workers: int = Field(default=1, ge=1, description="Threads used for fitness evaluation")
    metrics_history_limit: int = Field(default=100, ge=1)

    model_config = {"populate_by_name": True}

    @model_validator(mode="after")
    def _check_sizes(self) -> PopulationConfig:
        if self.min_population_size > self.max_population_size:
            raise ValueError(
                f"min_population_size ({self.min_population_size}) exceeds "
                f"max_population_size ({self.max_population_size})"
            )
        return self


class EvolutionConfig(BaseModel):
    """Top-level configuration bundling every component."""
    population: PopulationConfig = Field(default_factory=PopulationConfig)
    fitness: FitnessConfig = Field(default_factory=FitnessConfig)
    mutation: MutationConfig = Field(default_factory=MutationConfig)
    crossover: CrossoverConfig = Field(default_factory=CrossoverConfig)
