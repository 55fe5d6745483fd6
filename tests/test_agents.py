"""Tests for capability/agent values, the agent pool, and agent synthesis."""

import numpy as np
import pytest
from _helpers import make_agent, make_capability

from agent_evolution.agents.base import ADAPTATION_HISTORY_LIMIT, Agent, Capability
from agent_evolution.agents.factory import BASE_CAPABILITY_TYPES, NOVEL_CAPABILITY_TYPES, AgentFactory
from agent_evolution.agents.pool import AgentPool
from agent_evolution.agents.trace import AdaptationEvent


# ---------------------------------------------------------------------------
# Capability
# ---------------------------------------------------------------------------


class TestCapability:
    def test_clamps_strength_and_adaptation_rate(self):
        cap = Capability(id="c", strength=1.7, adaptation_rate=0.9)
        assert cap.strength == 1.0
        assert cap.adaptation_rate == 0.5

        low = Capability(id="c", strength=-0.2, adaptation_rate=0.0)
        assert low.strength == 0.0
        assert low.adaptation_rate == 0.01

    def test_specializations_never_empty(self):
        cap = Capability(id="c1", name="reasoning")
        assert cap.specializations == ("reasoning",)

    def test_specializations_deduplicated_in_order(self):
        cap = Capability(id="c", specializations=("b", "a", "b"))
        assert cap.specializations == ("b", "a")

    def test_evolve_returns_new_value(self):
        cap = make_capability("c", strength=0.4)
        changed = cap.evolve(strength=2.0)
        assert cap.strength == 0.4
        assert changed.strength == 1.0
        assert changed is not cap

    def test_performance_history_is_bounded(self):
        cap = Capability(id="c", performance_history=tuple(float(i) / 100 for i in range(50)))
        assert len(cap.performance_history) == 20
        assert cap.performance_history[-1] == pytest.approx(0.49)

    def test_recent_performance(self):
        assert make_capability("c").recent_performance() is None
        cap = Capability(id="c", performance_history=(0.0, 1.0, 0.2, 0.4, 0.6, 0.8))
        assert cap.recent_performance() == pytest.approx(0.6)


# ---------------------------------------------------------------------------
# Agent
# ---------------------------------------------------------------------------


class TestAgent:
    def test_specializations_are_ordered_union(self):
        agent = make_agent(
            capabilities=[
                make_capability("a", specializations=("x", "y")),
                make_capability("b", specializations=("y", "z")),
            ]
        )
        assert agent.specializations == ("x", "y", "z")

    def test_morphology_connects_capabilities_sharing_tags(self):
        agent = make_agent(
            capabilities=[
                make_capability("a", specializations=("x", "shared")),
                make_capability("b", specializations=("shared",)),
                make_capability("c", specializations=("solo",)),
            ]
        )
        morph = agent.morphology
        assert ("a", "b") in morph.connections
        assert morph.connections[("a", "b")] == pytest.approx(0.5)
        assert morph.density == pytest.approx(1 / 3)
        assert morph.structure == "clustered"

    def test_emergent_properties_need_three_capabilities(self):
        caps = [make_capability(f"c{i}", specializations=("common",)) for i in range(3)]
        agent = make_agent(capabilities=caps)
        assert agent.morphology.emergent_properties == ("common",)
        assert make_agent(capabilities=caps[:2]).morphology.emergent_properties == ()

    def test_with_capabilities_leaves_original_untouched(self):
        agent = make_agent()
        original = agent.capabilities
        changed = agent.with_capabilities(agent.capabilities[:1])
        assert agent.capabilities is original
        assert len(changed.capabilities) == 1

    def test_adaptation_history_is_bounded(self):
        agent = make_agent(history=ADAPTATION_HISTORY_LIMIT)
        grown = agent.record(AdaptationEvent(kind="extra"))
        assert len(grown.adaptation_history) == ADAPTATION_HISTORY_LIMIT
        assert grown.adaptation_history[-1].kind == "extra"

    def test_aged_and_fitness(self):
        agent = make_agent(fitness=0.2)
        assert agent.aged().age == 1
        assert agent.with_fitness(1.5).fitness_score == 1.0
        assert agent.age == 0

    def test_get_capability(self):
        agent = make_agent()
        assert agent.get_capability("cap_1").id == "cap_1"
        assert agent.get_capability("missing") is None


# ---------------------------------------------------------------------------
# Pool
# ---------------------------------------------------------------------------


def test_pool_admit_get_discard():
    pool = AgentPool()
    agent = make_agent()
    assert pool.admit(agent) == (True, None)
    assert pool.get(agent.id) is agent
    assert agent.id in pool
    assert pool.admit(agent).accepted is False
    assert pool.discard(agent.id) is agent
    assert len(pool) == 0
    assert not pool


def test_pool_best_and_weakest():
    pool = AgentPool([make_agent(fitness=s) for s in [0.3, 0.9, 0.5, 0.7, 0.1]])
    assert [a.fitness_score for a in pool.best(3)] == [0.9, 0.7, 0.5]
    assert pool.weakest().fitness_score == 0.1
    assert AgentPool().weakest() is None


def test_full_pool_evicts_weakest_for_a_fitter_newcomer():
    weak, strong = make_agent(fitness=0.2, agent_id="weak"), make_agent(fitness=0.8, agent_id="strong")
    pool = AgentPool([weak, strong], capacity=2)
    assert pool.is_full
    assert pool.admit(make_agent(fitness=0.2)) == (False, None)
    admission = pool.admit(make_agent(fitness=0.5, agent_id="mid"))
    assert admission.accepted
    assert admission.evicted is weak
    assert [a.id for a in pool] == ["strong", "mid"]


def test_pool_reset_keeps_first_of_duplicate_ids():
    pool = AgentPool([make_agent() for _ in range(3)])
    first, second = make_agent(agent_id="x", fitness=0.1), make_agent(agent_id="y")
    pool.reset([first, second, make_agent(agent_id="x", fitness=0.9)])
    assert pool.members == [first, second]
    pool.reset()
    assert pool.members == []


# ---------------------------------------------------------------------------
# Factory
# ---------------------------------------------------------------------------


def test_random_agent_shape(rng):
    agent = AgentFactory(rng).random_agent()
    assert 2 <= len(agent.capabilities) <= 5
    names = [c.name for c in agent.capabilities]
    assert len(set(names)) == len(names)
    assert all(n in BASE_CAPABILITY_TYPES for n in names)
    assert all(0.3 <= c.strength <= 0.7 for c in agent.capabilities)


def test_factory_is_reproducible():
    first = AgentFactory(np.random.default_rng(3)).random_agent()
    second = AgentFactory(np.random.default_rng(3)).random_agent()
    assert first.id == second.id
    assert [c.strength for c in first.capabilities] == [c.strength for c in second.capabilities]


def test_diverse_agent_uses_missing_tags(rng):
    factory = AgentFactory(rng)
    population = [make_agent(prefix="p") for _ in range(3)]
    agent = factory.diverse_agent(population)
    present = {t for a in population for t in a.specializations}
    assert len(agent.capabilities) == 3
    assert not set(agent.specializations) & present


def test_novel_capability_profile(rng):
    cap = AgentFactory(rng).novel_capability()
    assert 0.2 <= cap.strength <= 0.5
    assert 0.1 <= cap.adaptation_rate <= 0.3
    assert cap.morphology["type"] == "novel"


def test_synthesized_capabilities_are_named_by_kind(rng):
    factory = AgentFactory(rng)
    agent = factory.random_agent()
    assert agent.capability_kinds == tuple(c.name for c in agent.capabilities)
    assert len(set(agent.capability_ids)) == len(agent.capability_ids)
    cap = factory.capability("reasoning")
    assert cap.kind == "reasoning"
    assert cap.id.startswith("reasoning_")


def test_novel_capability_prefers_a_missing_kind(rng):
    factory = AgentFactory(rng)
    novel = factory.novel_capability(taken=NOVEL_CAPABILITY_TYPES[1:])
    assert novel.kind == NOVEL_CAPABILITY_TYPES[0]
    assert factory.novel_capability(taken=NOVEL_CAPABILITY_TYPES).kind in NOVEL_CAPABILITY_TYPES


def test_morphology_tokens_ignore_capability_ids():
    first = make_agent(capabilities=[make_capability("x1", type="reasoning"), make_capability("x2", type="social")])
    second = make_agent(capabilities=[make_capability("y1", type="reasoning"), make_capability("y2", type="social")])
    assert first.morphology.tokens() == second.morphology.tokens()
    assert "structure:modular" in first.morphology.tokens()
