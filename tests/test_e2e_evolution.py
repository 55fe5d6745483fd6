"""End-to-end evolution runs through the public API."""

import numpy as np
import pytest

from agent_evolution import EvolutionConfig, FitnessContext, PopulationManager
from agent_evolution.fitness.profile import PerformanceRecord


@pytest.fixture
def config() -> EvolutionConfig:
    return EvolutionConfig.model_validate(
        {
            "population": {
                "maxPopulationSize": 40,
                "minPopulationSize": 12,
                "targetDiversity": 0.6,
                "replacementStrategy": "elite_preserve",
            },
            "mutation": {"mutationRate": 0.3, "mutationStrength": 0.2},
            "crossover": {"crossoverRate": 0.9},
        }
    )


def test_full_run(config):
    manager = PopulationManager.from_config(config, rng=np.random.default_rng(2024))
    manager.initialize_population()
    context = FitnessContext(task_domain="research", complexity_level=0.8, collaboration_requirements=0.7)

    for agent in manager.get_current_population()[:4]:
        manager.record_performance(agent.id, PerformanceRecord(accuracy=0.9, efficiency=0.8, quality_score=0.85))

    summary = manager.evolve_population(8, context)

    assert summary.generations_completed == len(summary.history)
    assert summary.history[-1].generation == manager.generation
    for result in summary.history:
        assert 12 <= len(result.new_population) <= 40
        ids = [a.id for a in result.new_population]
        assert len(ids) == len(set(ids))
        for agent in result.new_population:
            assert 0.0 <= agent.fitness_score <= 1.0
            for cap in agent.capabilities:
                assert 0.0 <= cap.strength <= 1.0
                assert 0.01 <= cap.adaptation_rate <= 0.5

    descendants = [a for a in manager.get_current_population() if a.parent_ids]
    assert descendants
    assert any(a.adaptation_history[-1].kind.startswith(("crossover:", "mutation:")) for a in descendants)

    analysis = manager.analyze_population()
    assert analysis.fitness_distribution["min"] <= analysis.fitness_distribution["max"]
    assert analysis.trends["fitness"] in {"improving", "stable", "declining"}

    best = manager.get_best_agents(3)
    assert best[0].fitness_score >= best[-1].fitness_score


def test_two_islands_exchange_migrants(config):
    east = PopulationManager.from_config(config, rng=np.random.default_rng(1))
    west = PopulationManager.from_config(config, rng=np.random.default_rng(2))
    east.initialize_population()
    west.initialize_population()
    east.evolve_multiple_generations(2)
    west.evolve_multiple_generations(2)

    west_before = {a.id for a in west.get_current_population()}
    result = east.migrate_agents(west, count=3)
    arrived = {a.id for a in west.get_current_population()} - west_before
    assert arrived == set(result.migrated)
    assert not arrived & {a.id for a in east.get_current_population()}
    west.evolve_generation()
