"""Tests for configuration models, environment settings, and logging setup."""

import json

import pytest
import structlog
from pydantic import ValidationError

import agent_evolution
from agent_evolution.config import (
    CrossoverConfig,
    EvolutionConfig,
    FitnessConfig,
    FitnessWeights,
    MutationBounds,
    MutationConfig,
    PopulationConfig,
)
from agent_evolution.logs import configure_logging
from agent_evolution.settings import EvolutionSettings


# ---------------------------------------------------------------------------
# Config models
# ---------------------------------------------------------------------------


def test_defaults():
    config = EvolutionConfig()
    assert config.population.max_population_size == 100
    assert config.population.min_population_size == 20
    assert config.population.replacement_strategy == "steady_state"
    assert config.mutation.mutation_rate == 0.1
    assert config.mutation.mutation_bounds.min == -0.5
    assert config.crossover.crossover_rate == 0.8
    assert config.crossover.compatibility_threshold == 0.3
    assert config.fitness.fitness_threshold == 0.7


def test_camel_case_aliases():
    population = PopulationConfig.model_validate(
        {"maxPopulationSize": 50, "minPopulationSize": 5, "replacementStrategy": "island_model"}
    )
    assert population.max_population_size == 50
    assert population.replacement_strategy == "island_model"

    mutation = MutationConfig.model_validate({"mutationRate": 0.4, "enableStructuralMutation": False})
    assert mutation.mutation_rate == 0.4
    assert mutation.enable_structural_mutation is False

    weights = FitnessWeights.model_validate({"learningVelocity": 0.5})
    assert weights.learning_velocity == 0.5


def test_nested_config_from_mapping():
    config = EvolutionConfig.model_validate(
        {
            "population": {"targetDiversity": 0.2},
            "crossover": {"compatibilityThreshold": 0.5},
            "fitness": {"weights": {"performance": 1.0}},
        }
    )
    assert config.population.target_diversity == 0.2
    assert config.crossover.compatibility_threshold == 0.5
    assert config.fitness.weights.performance == 1.0


@pytest.mark.parametrize(
    "factory",
    [
        lambda: PopulationConfig(min_population_size=50, max_population_size=10),
        lambda: PopulationConfig(elitism_rate=1.5),
        lambda: PopulationConfig(selection_pressure=0),
        lambda: MutationConfig(mutation_rate=-0.1),
        lambda: MutationBounds(min=0.5, max=0.5),
        lambda: CrossoverConfig(compatibility_threshold=2.0),
        lambda: FitnessConfig(history_limit=0),
        lambda: FitnessWeights(performance=-1.0),
    ],
)
def test_invalid_values_rejected(factory):
    with pytest.raises(ValidationError):
        factory()


def test_unknown_replacement_strategy_is_accepted():
    assert PopulationConfig(replacement_strategy="bogus").replacement_strategy == "bogus"


def test_weights_total_and_normalize():
    weights = FitnessWeights()
    assert weights.normalized().total == pytest.approx(1.0)
    assert weights.normalized().performance == pytest.approx(0.25 / weights.total)


# ---------------------------------------------------------------------------
# Settings and logging
# ---------------------------------------------------------------------------


def test_settings_from_environment(monkeypatch):
    monkeypatch.setenv("AGENT_EVOLUTION_LOG_LEVEL", "debug")
    monkeypatch.setenv("AGENT_EVOLUTION_LOG_FORMAT", "json")
    monkeypatch.setenv("AGENT_EVOLUTION_SEED", "99")
    settings = EvolutionSettings()
    assert settings.log_level == "debug"
    assert settings.log_format == "json"
    assert settings.seed == 99


@pytest.fixture
def reset_structlog():
    yield
    structlog.reset_defaults()


def test_configure_logging_json_filters_by_level(capsys, reset_structlog):
    configure_logging(EvolutionSettings(log_level="WARNING", log_format="json"))
    logger = structlog.get_logger()
    logger.info("hidden_event")
    logger.warning("visible_event", generation=3)
    lines = [line for line in capsys.readouterr().out.splitlines() if line.strip()]
    assert len(lines) == 1
    record = json.loads(lines[0])
    assert record["event"] == "visible_event"
    assert record["generation"] == 3
    assert record["level"] == "warning"
    assert "timestamp" in record


def test_configure_logging_tolerates_unknown_level(capsys, reset_structlog):
    configure_logging(EvolutionSettings(log_level="chatty"))
    structlog.get_logger().info("still_logged")
    assert "still_logged" in capsys.readouterr().out


# ---------------------------------------------------------------------------
# Package surface
# ---------------------------------------------------------------------------


def test_lazy_exports():
    assert agent_evolution.__version__ == "0.1.0"
    assert agent_evolution.PopulationManager.__name__ == "PopulationManager"
    with pytest.raises(AttributeError):
        agent_evolution.NotAThing  # noqa: B018
