"""Overlap and distance measures shared by crossover, speciation and diversity."""

from __future__ import annotations

from typing import Collection, Sequence

from agent_evolution.agents.base import Agent

CAPABILITY_WEIGHT = 0.5
MORPHOLOGY_WEIGHT = 0.3
SPECIALIZATION_WEIGHT = 0.2


def jaccard(a: Collection[str], b: Collection[str]) -> float:
    """|a ∩ b| / |a ∪ b|; two empty sets count as identical."""
    sa, sb = set(a), set(b)
    union = sa | sb
    if not union:
        return 1.0
    return len(sa & sb) / len(union)


def capability_overlap(a: Agent, b: Agent) -> float:
    """Overlap of capability kinds; instance ids are unique to each synthesis."""
    return jaccard(a.capability_kinds, b.capability_kinds)


def specialization_overlap(a: Agent, b: Agent) -> float:
    return jaccard(a.specializations, b.specializations)


def morphology_compatibility(a: Agent, b: Agent) -> float:
    return jaccard(a.morphology.tokens(), b.morphology.tokens())


def compatibility(a: Agent, b: Agent) -> float:
    """Weighted similarity used for both crossover gating and speciation."""
    return (
        CAPABILITY_WEIGHT * capability_overlap(a, b)
        + MORPHOLOGY_WEIGHT * morphology_compatibility(a, b)
        + SPECIALIZATION_WEIGHT * specialization_overlap(a, b)
    )


def agent_distance(a: Agent, b: Agent) -> float:
    """Dissimilarity used for diversity-aware selection, in [0, 1]."""
    return 0.6 * (1.0 - capability_overlap(a, b)) + 0.4 * (1.0 - specialization_overlap(a, b))


def diversity_index(population: Sequence[Agent]) -> float:
    """Distinct capability ids plus distinct tags, over three per agent, in [0, 1]."""
    if not population:
        return 0.0
    capabilities = {cid for agent in population for cid in agent.capability_ids}
    tags = {tag for agent in population for tag in agent.specializations}
    return min(1.0, (len(capabilities) + len(tags)) / (len(population) * 3))
