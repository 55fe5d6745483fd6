"""Tests for tournament selection."""

import numpy as np
import pytest
from _helpers import clone_population, make_agent

from agent_evolution.selection import TournamentSelector


@pytest.fixture
def population():
    return [make_agent(fitness=i / 50, agent_id=f"a{i}", prefix=f"p{i}") for i in range(50)]


def mean_fitness(agents):
    return float(np.mean([a.fitness_score for a in agents]))


def test_tournament_size():
    selector = TournamentSelector(np.random.default_rng(0))
    assert selector.tournament_size(50) == 5
    assert selector.tournament_size(10) == 2
    assert selector.tournament_size(1) == 1


def test_tournament_grows_with_selection_pressure():
    gentle = TournamentSelector(np.random.default_rng(0), selection_pressure=1.0)
    harsh = TournamentSelector(np.random.default_rng(0), selection_pressure=6.0)
    assert gentle.tournament_size(100) == 5
    assert harsh.tournament_size(100) == 30
    assert harsh.tournament_size(10) == 3


def test_higher_pressure_selects_fitter_parents(population):
    gentle = TournamentSelector(np.random.default_rng(5), selection_pressure=1.0).select_parents(population, 300)
    harsh = TournamentSelector(np.random.default_rng(5), selection_pressure=8.0).select_parents(population, 300)
    assert mean_fitness(harsh.selected_agents) > mean_fitness(gentle.selected_agents)
    assert min(a.fitness_score for a in harsh.selected_agents) >= 0.3


def test_two_weakest_are_never_selected(population):
    selector = TournamentSelector(np.random.default_rng(1))
    result = selector.select_parents(population, 500)
    chosen = {a.id for a in result.selected_agents}
    assert "a0" not in chosen
    assert "a1" not in chosen
    assert len(result.selected_agents) == 500


def test_selection_favours_fitter_agents(population):
    result = TournamentSelector(np.random.default_rng(2)).select_parents(population, 400)
    mean = sum(a.fitness_score for a in result.selected_agents) / 400
    assert mean > sum(a.fitness_score for a in population) / 50


def test_elites(population):
    selector = TournamentSelector(np.random.default_rng(0), elitism_rate=0.1)
    assert selector.elite_count(50) == 5
    assert [a.id for a in selector.elites(population)] == ["a49", "a48", "a47", "a46", "a45"]


def test_result_metadata(population):
    result = TournamentSelector(np.random.default_rng(3), selection_pressure=1.5).select_parents(population, 10)
    assert result.methodology == "tournament"
    assert result.selection_pressure == 1.5
    assert result.elite_count == 5
    assert 0.0 < result.diversity_preserved <= 1.0


def test_empty_inputs():
    selector = TournamentSelector(np.random.default_rng(0))
    assert selector.select_parents([], 5).selected_agents == []
    assert selector.select_parents(clone_population(make_agent(), 4), 0).selected_agents == []


def test_same_seed_same_parents(population):
    first = TournamentSelector(np.random.default_rng(9)).select_parents(population, 20)
    second = TournamentSelector(np.random.default_rng(9)).select_parents(population, 20)
    assert [a.id for a in first.selected_agents] == [a.id for a in second.selected_agents]
