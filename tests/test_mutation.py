"""Tests for mutation strategies and the mutation manager."""

import numpy as np
import pytest
from _helpers import make_agent, make_capability

from agent_evolution.agents.base import MAX_ADAPTATION_RATE, MIN_ADAPTATION_RATE
from agent_evolution.agents.factory import NOVEL_SPECIALIZATIONS, STRUCTURAL_PALETTE, AgentFactory
from agent_evolution.config import MutationConfig
from agent_evolution.errors import InsufficientMutationPotential, StrategyNotFound, StructuralMutationDisabled
from agent_evolution.mutation import (
    DirectionalGoal,
    DirectionalMutation,
    MutationManager,
    MutationStrategyName,
    StructuralMutation,
    StructuralOperation,
)


def manager_with(seed: int = 0, **overrides) -> MutationManager:
    return MutationManager(MutationConfig(**overrides), rng=np.random.default_rng(seed))


def saturated_agent():
    """An agent with zero mutation potential: perfect fitness, full diversity, long history."""
    caps = [make_capability(f"s{i}", specializations=(f"s{i}_a", f"s{i}_b")) for i in range(3)]
    return make_agent(fitness=1.0, capabilities=caps, history=100)


# ---------------------------------------------------------------------------
# Value bounds
# ---------------------------------------------------------------------------


EXTREME_CAPS = [
    make_capability("hi", strength=1.0, adaptation_rate=MAX_ADAPTATION_RATE),
    make_capability("lo", strength=0.0, adaptation_rate=MIN_ADAPTATION_RATE),
    make_capability("mid", strength=0.5, adaptation_rate=0.2, specializations=("hi_tag",)),
]


@pytest.mark.parametrize("strategy", list(MutationStrategyName))
def test_every_strategy_keeps_values_in_range(strategy):
    for seed in range(25):
        manager = manager_with(seed, mutation_rate=1.0, mutation_strength=1.0)
        for fitness in (0.0, 0.5, 1.0):
            result = manager.mutate_with_strategy(make_agent(fitness=fitness, capabilities=EXTREME_CAPS), strategy)
            for cap in result.agent.capabilities:
                assert 0.0 <= cap.strength <= 1.0
                assert MIN_ADAPTATION_RATE <= cap.adaptation_rate <= MAX_ADAPTATION_RATE


def test_gaussian_with_zero_strength_changes_nothing():
    manager = manager_with(mutation_rate=1.0, mutation_strength=0.0)
    agent = make_agent()
    result = manager.mutate_with_strategy(agent, "gaussian")
    assert [c.strength for c in result.agent.capabilities] == [c.strength for c in agent.capabilities]
    assert [c.adaptation_rate for c in result.agent.capabilities] == [c.adaptation_rate for c in agent.capabilities]
    assert result.expected_impact == 0.0


def test_zero_rate_produces_no_points():
    result = manager_with(mutation_rate=0.0).mutate_with_strategy(make_agent(), MutationStrategyName.UNIFORM)
    assert result.mutation_points == []


# ---------------------------------------------------------------------------
# Manager entry points
# ---------------------------------------------------------------------------


def test_unknown_strategy():
    with pytest.raises(StrategyNotFound) as excinfo:
        manager_with().mutate_with_strategy(make_agent(), "telepathic")
    assert excinfo.value.name == "telepathic"


def test_structural_disabled():
    manager = manager_with(enable_structural_mutation=False)
    with pytest.raises(StructuralMutationDisabled):
        manager.mutate_with_strategy(make_agent(), "structural")
    with pytest.raises(StructuralMutationDisabled):
        manager.mutate_structural(make_agent(), StructuralMutation())


def test_insufficient_potential():
    manager = manager_with()
    agent = saturated_agent()
    assert manager.calculate_mutation_potential(agent) == pytest.approx(0.0)
    with pytest.raises(InsufficientMutationPotential):
        manager.mutate_agent(agent)


def test_mutate_agent_produces_child():
    parent = make_agent(fitness=0.5)
    result = manager_with().mutate_agent(parent)
    child = result.agent
    assert child.id != parent.id
    assert child.parent_ids == (parent.id,)
    assert child.generation == parent.generation + 1
    assert child.age == 0
    assert child.adaptation_history[-1].kind == f"mutation:{result.mutation_type.value}"
    assert result.parent_id == parent.id


def test_mutate_agent_is_reproducible():
    agent = make_agent(agent_id="fixed")
    first = manager_with(11).mutate_agent(agent)
    second = manager_with(11).mutate_agent(agent)
    assert first.agent.id == second.agent.id
    assert [c.strength for c in first.agent.capabilities] == [c.strength for c in second.agent.capabilities]


def test_recommend_strategies():
    manager = manager_with()
    weak_small = make_agent(fitness=0.3, n_capabilities=2)
    assert manager.recommend_strategies(weak_small) == [
        MutationStrategyName.DIRECTIONAL,
        MutationStrategyName.STRUCTURAL,
        MutationStrategyName.GAUSSIAN,
        MutationStrategyName.ADAPTIVE,
    ]
    strong = make_agent(fitness=0.8)
    assert manager.recommend_strategies(strong) == [MutationStrategyName.CREATIVE, MutationStrategyName.ADAPTIVE]

    no_structural = manager_with(enable_structural_mutation=False)
    assert MutationStrategyName.STRUCTURAL not in no_structural.recommend_strategies(weak_small)


def test_optimal_rate_bounds():
    manager = manager_with()
    assert manager.optimal_mutation_rate(make_agent(fitness=0.0)) == pytest.approx(0.3)
    assert manager.optimal_mutation_rate(make_agent(fitness=1.0)) == pytest.approx(0.1)


def test_analyze_mutation_potential():
    analysis = manager_with().analyze_mutation_potential(make_agent(fitness=0.9, n_capabilities=2))
    assert set(analysis.risk_factors) == {
        "too_few_capabilities",
        "high_fitness_degradation_risk",
        "insufficient_adaptation_history",
    }
    assert analysis.recommended_strategies[-1] is MutationStrategyName.ADAPTIVE


# ---------------------------------------------------------------------------
# Directional
# ---------------------------------------------------------------------------


class TestDirectional:
    def test_improve_targets_only_named_capability(self):
        agent = make_agent()
        directive = DirectionalMutation(goal=DirectionalGoal.IMPROVE_PERFORMANCE, targets=("cap_0",), step_size=0.2)
        result = manager_with().mutate_directional(agent, directive)
        strengths = [c.strength for c in result.agent.capabilities]
        assert strengths == pytest.approx([0.5, 0.5, 0.7])
        assert [p.location for p in result.mutation_points] == ["cap_0"]

    def test_enhance_stability_slows_adaptation(self):
        agent = make_agent()
        result = manager_with().mutate_directional(agent, DirectionalMutation(goal=DirectionalGoal.ENHANCE_STABILITY))
        assert all(c.adaptation_rate == pytest.approx(0.08) for c in result.agent.capabilities)

    def test_increase_diversity_adds_novel_tag(self):
        agent = make_agent()
        result = manager_with().mutate_directional(agent, DirectionalMutation(goal=DirectionalGoal.INCREASE_DIVERSITY))
        for before, after in zip(agent.capabilities, result.agent.capabilities):
            added = set(after.specializations) - set(before.specializations)
            assert len(added) == 1
            assert added <= set(NOVEL_SPECIALIZATIONS)
        assert all(p.kind == "specialization" for p in result.mutation_points)


# ---------------------------------------------------------------------------
# Structural
# ---------------------------------------------------------------------------


class TestStructural:
    def test_add(self):
        agent = make_agent()
        result = manager_with().mutate_structural(agent, StructuralMutation(StructuralOperation.ADD_CAPABILITY))
        assert len(result.agent.capabilities) == 4
        assert result.mutation_points[0].strength_before is None
        assert result.reversible is False

    def test_add_picks_a_kind_the_agent_lacks(self):
        factory = AgentFactory(np.random.default_rng(4))
        agent = make_agent(capabilities=[factory.random_capability(k) for k in STRUCTURAL_PALETTE[:-1]])
        result = manager_with().mutate_structural(agent, StructuralMutation(StructuralOperation.ADD_CAPABILITY))
        assert result.agent.capabilities[-1].kind == STRUCTURAL_PALETTE[-1]

    def test_add_to_a_complete_agent_still_grows(self):
        factory = AgentFactory(np.random.default_rng(4))
        agent = make_agent(capabilities=[factory.random_capability(k) for k in STRUCTURAL_PALETTE])
        result = manager_with().mutate_structural(agent, StructuralMutation(StructuralOperation.ADD_CAPABILITY))
        ids = result.agent.capability_ids
        assert len(set(ids)) == len(ids) == len(STRUCTURAL_PALETTE) + 1
        assert result.agent.capabilities[-1].kind in STRUCTURAL_PALETTE

    def test_remove_drops_weakest(self):
        agent = make_agent()
        result = manager_with().mutate_structural(agent, StructuralMutation(StructuralOperation.REMOVE_CAPABILITY))
        assert result.agent.capability_ids == ("cap_1", "cap_2")

    def test_remove_refused_for_small_agents(self):
        agent = make_agent(n_capabilities=2)
        result = manager_with().mutate_structural(agent, StructuralMutation(StructuralOperation.REMOVE_CAPABILITY))
        assert result.agent.capability_ids == agent.capability_ids
        assert result.mutation_points == []

    def test_remove_preserves_core(self):
        caps = [
            make_capability("core", strength=0.1, core=True),
            make_capability("b", strength=0.4),
            make_capability("c", strength=0.8),
        ]
        result = manager_with().mutate_structural(
            make_agent(capabilities=caps), StructuralMutation(StructuralOperation.REMOVE_CAPABILITY)
        )
        assert result.agent.capability_ids == ("core", "c")

    def test_merge(self):
        agent = make_agent()
        result = manager_with().mutate_structural(agent, StructuralMutation(StructuralOperation.MERGE_CAPABILITIES))
        caps = result.agent.capabilities
        assert len(caps) == 2
        merged = caps[0]
        assert merged.morphology["type"] == "merged"
        assert merged.strength == pytest.approx(0.5)
        assert set(merged.specializations) == {"cap_tag_0", "cap_tag_1"}
        assert caps[1].id == "cap_2"


# ---------------------------------------------------------------------------
# Population and bookkeeping
# ---------------------------------------------------------------------------


def test_mutate_population_skips_failures():
    agents = [make_agent() for _ in range(4)] + [saturated_agent()]
    results = manager_with(mutation_rate=1.0).mutate_population(agents)
    assert len(results) == 4
    assert {r.parent_id for r in results} == {a.id for a in agents[:4]}


def test_mutate_population_zero_rate():
    assert manager_with(mutation_rate=0.0).mutate_population([make_agent() for _ in range(5)]) == []


def test_history_is_bounded():
    manager = manager_with(history_limit=3)
    for _ in range(5):
        manager.mutate_with_strategy(make_agent(), "gaussian")
    assert len(manager.get_mutation_history()) == 3


def test_statistics_group_by_strategy():
    manager = manager_with(mutation_rate=1.0)
    manager.mutate_with_strategy(make_agent(), "gaussian")
    manager.mutate_with_strategy(make_agent(), "gaussian")
    manager.mutate_with_strategy(make_agent(), "uniform")
    stats = manager.get_mutation_statistics()
    assert stats[MutationStrategyName.GAUSSIAN].count == 2
    assert stats[MutationStrategyName.UNIFORM].count == 1


def test_update_parameters_lowers_rate_after_failures():
    manager = manager_with(mutation_rate=0.2, mutation_strength=0.0)
    for _ in range(4):
        manager.mutate_with_strategy(make_agent(), "gaussian")
    config = manager.update_parameters()
    assert config.mutation_rate == pytest.approx(0.18)
    assert manager.config.mutation_rate == pytest.approx(0.18)
