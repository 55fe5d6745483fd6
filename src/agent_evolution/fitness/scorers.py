"""Per-dimension fitness scorers.

Each scorer is a pure function of the agent (and context or history) that
returns a value in [0, 1].
"""

from __future__ import annotations

from typing import Sequence

import numpy as np

from agent_evolution.agents.base import MAX_ADAPTATION_RATE, Agent
from agent_evolution.fitness.profile import FitnessContext, PerformanceRecord
from agent_evolution.rng import clamp

PERFORMANCE_WINDOW = 10
STABILITY_WINDOW = 10
STABILITY_MIN_SAMPLES = 3
STABILITY_DEFAULT = 0.7
VELOCITY_MIN_SAMPLES = 5
VELOCITY_DEFAULT = 0.5
BASE_CAPABILITY_COUNT = 3
NOVEL_MORPHOLOGY_TYPES = frozenset({"novel", "diverse", "merged"})
SOCIAL_KEYWORDS = ("social", "communicat", "empath", "coordinat", "consensus", "collaborat")


def optimal_capability_count(context: FitnessContext) -> int:
    raw = BASE_CAPABILITY_COUNT * context.complexity_level * max(1.0, context.collaboration_requirements)
    return max(1, round(raw))


def specialization_depth(agent: Agent) -> int:
    """Number of distinct specialization clusters."""
    return len(agent.specializations)


def performance(agent: Agent, history: Sequence[PerformanceRecord] | None) -> float:
    if not history:
        return agent.fitness_score
    recent = history[-PERFORMANCE_WINDOW:]
    return clamp(sum(r.task_score for r in recent) / len(recent))


def adaptability(agent: Agent) -> float:
    capability_diversity = min(1.0, len(agent.capabilities) / 10)
    history_depth = min(1.0, len(agent.adaptation_history) / 20)
    return clamp(0.6 * capability_diversity + 0.4 * history_depth)


def resource_efficiency(agent: Agent) -> float:
    """Delivered strength per unit of adaptation upkeep."""
    if not agent.capabilities:
        return 0.0
    strengths = [c.strength for c in agent.capabilities]
    upkeep = sum(c.adaptation_rate for c in agent.capabilities) / len(agent.capabilities)
    return clamp(float(np.mean(strengths)) * (1.0 - 0.5 * upkeep / MAX_ADAPTATION_RATE))


def efficiency(agent: Agent, context: FitnessContext) -> float:
    optimal = optimal_capability_count(context)
    utilization = max(0.0, 1.0 - abs(len(agent.capabilities) - optimal) / optimal)
    return clamp(0.6 * utilization + 0.4 * resource_efficiency(agent))


def specialization(agent: Agent) -> float:
    """Depth of expertise combined with how concentrated strength is on one tag."""
    if not agent.capabilities:
        return 0.0
    total = sum(c.strength for c in agent.capabilities) or 1.0
    per_tag: dict[str, float] = {}
    for cap in agent.capabilities:
        for tag in cap.specializations:
            per_tag[tag] = per_tag.get(tag, 0.0) + cap.strength
    focus = max(per_tag.values()) / total
    return clamp(0.5 * min(1.0, specialization_depth(agent) / 5) + 0.5 * clamp(focus))


def generalization(agent: Agent) -> float:
    if not agent.capabilities:
        return 0.0
    primary_types = {c.specializations[0] for c in agent.capabilities}
    type_diversity = len(primary_types) / len(agent.capabilities)
    return clamp(max(0.0, 1.0 - specialization_depth(agent) / 10) * type_diversity)


def _is_novel(cap) -> bool:
    morph = cap.morphology
    return (
        morph.get("type") in NOVEL_MORPHOLOGY_TYPES
        or bool(morph.get("innovation"))
        or "creative_element" in morph
    )


def innovation(agent: Agent) -> float:
    caps = agent.capabilities
    if not caps:
        return 0.0
    novel_share = sum(1 for c in caps if _is_novel(c)) / len(caps)
    combined_share = sum(1 for c in caps if len(c.specializations) >= 2) / len(caps)
    novelty = 0.5 * novel_share + 0.5 * combined_share
    morph = agent.morphology
    emergence = 0.5 * min(1.0, len(morph.emergent_properties) / 3) + 0.5 * morph.density
    return clamp(0.6 * novelty + 0.4 * emergence)


def robustness(agent: Agent) -> float:
    """Redundant coverage of tags plus resilience to losing any single capability."""
    caps = agent.capabilities
    if not caps:
        return 0.0
    coverage: dict[str, int] = {}
    for cap in caps:
        for tag in cap.specializations:
            coverage[tag] = coverage.get(tag, 0) + 1
    redundancy = sum(1 for n in coverage.values() if n >= 2) / len(coverage)
    total = sum(c.strength for c in caps)
    largest_share = max(c.strength for c in caps) / total if total > 0 else 1.0
    resilience = 0.5 * agent.morphology.density + 0.5 * (1.0 - largest_share)
    return clamp(0.5 * redundancy + 0.5 * resilience)


def collaboration(agent: Agent, context: FitnessContext) -> float:
    caps = agent.capabilities
    if not caps:
        return 0.0
    social = sum(
        1 for c in caps if any(k in tag for tag in c.specializations for k in SOCIAL_KEYWORDS)
    ) / len(caps)
    breadth = min(1.0, specialization_depth(agent) / 5)
    fit = 1.0 - abs(breadth - context.collaboration_requirements)
    return clamp(0.5 * social + 0.5 * fit)


def sustainability(agent: Agent, context: FitnessContext) -> float:
    """Balanced strengths, moderate adaptation, and no capability bloat."""
    caps = agent.capabilities
    if not caps:
        return 0.0
    balance = 1.0 - min(1.0, 2.0 * float(np.std([c.strength for c in caps])))
    mean_rate = sum(c.adaptation_rate for c in caps) / len(caps)
    moderation = 1.0 - min(1.0, abs(mean_rate - 0.15) / 0.35)
    optimal = optimal_capability_count(context)
    load = 1.0 - min(1.0, max(0, len(caps) - optimal) / optimal)
    return clamp(0.4 * balance + 0.3 * moderation + 0.3 * load)


def stability(prior_performance: Sequence[float]) -> float:
    if len(prior_performance) < STABILITY_MIN_SAMPLES:
        return STABILITY_DEFAULT
    recent = np.asarray(prior_performance[-STABILITY_WINDOW:], dtype=np.float64)
    return clamp(1.0 - 2.0 * float(recent.var()))


def learning_velocity(prior_performance: Sequence[float]) -> float:
    if len(prior_performance) < VELOCITY_MIN_SAMPLES:
        return VELOCITY_DEFAULT
    y = np.asarray(prior_performance, dtype=np.float64)
    x = np.arange(len(y), dtype=np.float64)
    slope = float(np.polyfit(x, y, 1)[0])
    return clamp(slope * 10)
