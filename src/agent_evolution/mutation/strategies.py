"""Mutation strategies, one class per strategy, registered by name."""

from __future__ import annotations

import itertools
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import ClassVar

import numpy as np
import structlog

from agent_evolution.agents.base import Agent, Capability
from agent_evolution.agents.factory import NOVEL_SPECIALIZATIONS, AgentFactory
from agent_evolution.config import MutationConfig
from agent_evolution.mutation.types import (
    DirectionalGoal,
    DirectionalMutation,
    MutationPoint,
    MutationStrategyName,
    StructuralMutation,
    StructuralOperation,
)
from agent_evolution.rng import chance, choice, gaussian, new_id
from agent_evolution.similarity import jaccard

logger = structlog.get_logger()

MAX_SPECIALIZATIONS = 5
MIN_CAPABILITIES_FOR_REMOVAL = 3


@dataclass
class MutationOutcome:
    capabilities: list[Capability]
    points: list[MutationPoint] = field(default_factory=list)


def _point(before: Capability, after: Capability, confidence: float, kind: str = "capability") -> MutationPoint:
    added = tuple(t for t in after.specializations if t not in before.specializations)
    return MutationPoint(
        location=before.id,
        kind="specialization" if added and after.strength == before.strength else kind,
        strength_before=before.strength,
        strength_after=after.strength,
        adaptation_before=before.adaptation_rate,
        adaptation_after=after.adaptation_rate,
        added_specializations=added,
        confidence=confidence,
    )


def _missing_tag(rng: np.random.Generator, cap: Capability) -> str | None:
    missing = [t for t in NOVEL_SPECIALIZATIONS if t not in cap.specializations]
    return choice(rng, missing) if missing else None


class MutationStrategy(ABC):
    """Perturbs an agent's capability list and reports what changed."""

    name: ClassVar[MutationStrategyName]
    reversible: ClassVar[bool] = True

    def __init__(self, config: MutationConfig, rng: np.random.Generator, factory: AgentFactory) -> None:
        self._config = config
        self._rng = rng
        self._factory = factory

    @abstractmethod
    def apply(self, agent: Agent) -> MutationOutcome:
        ...

    def _gate(self, probability: float) -> bool:
        return chance(self._rng, probability)

    def _is_core(self, cap: Capability) -> bool:
        return self._config.preserve_core_capabilities and bool(cap.morphology.get("core"))


class GaussianMutation(MutationStrategy):
    name = MutationStrategyName.GAUSSIAN
    _CONFIDENCE = 0.8

    def apply(self, agent: Agent) -> MutationOutcome:
        sigma = self._config.mutation_strength
        outcome = MutationOutcome(capabilities=[])
        for cap in agent.capabilities:
            if self._gate(self._config.mutation_rate):
                new = cap.evolve(
                    strength=cap.strength + gaussian(self._rng, 0.0, sigma),
                    adaptation_rate=cap.adaptation_rate + gaussian(self._rng, 0.0, sigma * 0.1),
                )
                outcome.points.append(_point(cap, new, self._CONFIDENCE))
                cap = new
            outcome.capabilities.append(cap)
        return outcome


class UniformMutation(MutationStrategy):
    name = MutationStrategyName.UNIFORM
    _CONFIDENCE = 0.7

    def _noise(self, scale: float) -> float:
        bounds = self._config.mutation_bounds
        return (float(self._rng.random()) - 0.5) * (bounds.max - bounds.min) * scale

    def apply(self, agent: Agent) -> MutationOutcome:
        strength = self._config.mutation_strength
        outcome = MutationOutcome(capabilities=[])
        for cap in agent.capabilities:
            if self._gate(self._config.mutation_rate):
                new = cap.evolve(
                    strength=cap.strength + self._noise(strength),
                    adaptation_rate=cap.adaptation_rate + self._noise(strength * 0.1),
                )
                outcome.points.append(_point(cap, new, self._CONFIDENCE))
                cap = new
            outcome.capabilities.append(cap)
        return outcome


class AdaptiveMutation(MutationStrategy):
    """Weak capabilities on weak agents mutate more often and further."""

    name = MutationStrategyName.ADAPTIVE
    _CONFIDENCE = 0.8

    def apply(self, agent: Agent) -> MutationOutcome:
        agent_modifier = 1.0 - agent.fitness_score
        outcome = MutationOutcome(capabilities=[])
        for cap in agent.capabilities:
            recent = cap.recent_performance()
            capability_perf = cap.strength if recent is None else recent
            scale = (1.2 - capability_perf) * (0.5 + agent_modifier)
            if self._gate(min(1.0, self._config.mutation_rate * scale)):
                new = cap.evolve(
                    strength=cap.strength + gaussian(self._rng, 0.0, self._config.mutation_strength * scale),
                    adaptation_rate=cap.adaptation_rate * (1.0 + 0.1 * agent_modifier),
                )
                outcome.points.append(_point(cap, new, self._CONFIDENCE))
                cap = new
            outcome.capabilities.append(cap)
        return outcome


class DirectionalMutationStrategy(MutationStrategy):
    name = MutationStrategyName.DIRECTIONAL

    def default_directive(self) -> DirectionalMutation:
        return DirectionalMutation(step_size=self._config.mutation_strength)

    def apply(self, agent: Agent, directive: DirectionalMutation | None = None) -> MutationOutcome:
        directive = directive or self.default_directive()
        outcome = MutationOutcome(capabilities=[])
        for cap in agent.capabilities:
            if directive.targets_capability(cap.id):
                new = self._steer(cap, directive)
                if new is not cap:
                    outcome.points.append(_point(cap, new, directive.confidence))
                cap = new
            outcome.capabilities.append(cap)
        return outcome

    def _steer(self, cap: Capability, directive: DirectionalMutation) -> Capability:
        goal = directive.goal
        if goal is DirectionalGoal.IMPROVE_PERFORMANCE:
            return cap.evolve(strength=cap.strength + directive.step_size)
        if goal is DirectionalGoal.INCREASE_DIVERSITY:
            tag = _missing_tag(self._rng, cap)
            if tag is None or len(cap.specializations) >= MAX_SPECIALIZATIONS:
                return cap
            return cap.with_specialization(tag)
        if goal is DirectionalGoal.ENHANCE_STABILITY:
            return cap.evolve(adaptation_rate=cap.adaptation_rate * 0.8)
        # boost_creativity
        return cap.evolve(
            adaptation_rate=cap.adaptation_rate * 1.2,
            strength=cap.strength + gaussian(self._rng, 0.0, directive.step_size),
        )


class StructuralMutationStrategy(MutationStrategy):
    """Grows, shrinks, or fuses the capability list itself."""

    name = MutationStrategyName.STRUCTURAL
    reversible = False
    _CONFIDENCE = 0.6

    def apply(self, agent: Agent, mutation: StructuralMutation | None = None) -> MutationOutcome:
        operation = (mutation or StructuralMutation()).operation
        if operation is StructuralOperation.ADD_CAPABILITY:
            return self._add(agent)
        if operation is StructuralOperation.REMOVE_CAPABILITY:
            return self._remove(agent)
        return self._merge(agent)

    def _add(self, agent: Agent) -> MutationOutcome:
        new = self._factory.palette_capability(taken=agent.capability_kinds)
        point = MutationPoint(
            location=new.id,
            kind="structure",
            strength_before=None,
            strength_after=new.strength,
            adaptation_after=new.adaptation_rate,
            added_specializations=new.specializations,
            confidence=self._CONFIDENCE,
        )
        return MutationOutcome(capabilities=[*agent.capabilities, new], points=[point])

    def _remove(self, agent: Agent) -> MutationOutcome:
        candidates = [c for c in agent.capabilities if not self._is_core(c)]
        if len(agent.capabilities) < MIN_CAPABILITIES_FOR_REMOVAL or not candidates:
            logger.debug("structural_mutation_refused", agent_id=agent.id, operation="remove_capability")
            return MutationOutcome(capabilities=list(agent.capabilities))
        weakest = min(candidates, key=lambda c: c.strength)
        point = MutationPoint(
            location=weakest.id,
            kind="structure",
            strength_before=weakest.strength,
            strength_after=None,
            adaptation_before=weakest.adaptation_rate,
            confidence=self._CONFIDENCE,
        )
        remaining = [c for c in agent.capabilities if c.id != weakest.id]
        return MutationOutcome(capabilities=remaining, points=[point])

    def _merge(self, agent: Agent) -> MutationOutcome:
        candidates = [c for c in agent.capabilities if not self._is_core(c)]
        if len(candidates) < 2:
            logger.debug("structural_mutation_refused", agent_id=agent.id, operation="merge_capabilities")
            return MutationOutcome(capabilities=list(agent.capabilities))
        # Fuse the pair with the most specialization overlap; first pair wins ties.
        first, second = max(
            itertools.combinations(candidates, 2),
            key=lambda pair: jaccard(pair[0].specializations, pair[1].specializations),
        )
        before = (first.strength + second.strength) / 2
        merged = Capability(
            id=new_id(self._rng, "merged"),
            name=f"{first.name}+{second.name}",
            strength=before + 0.1,
            adaptation_rate=max(first.adaptation_rate, second.adaptation_rate),
            specializations=first.specializations + second.specializations,
            morphology={
                **first.morphology,
                **second.morphology,
                "type": "merged",
                "merged_from": f"{first.id},{second.id}",
            },
        )
        capabilities: list[Capability] = []
        for cap in agent.capabilities:
            if cap.id == first.id:
                capabilities.append(merged)
            elif cap.id != second.id:
                capabilities.append(cap)
        point = MutationPoint(
            location=merged.id,
            kind="structure",
            strength_before=before,
            strength_after=merged.strength,
            adaptation_after=merged.adaptation_rate,
            confidence=self._CONFIDENCE,
        )
        return MutationOutcome(capabilities=capabilities, points=[point])


class CreativeMutation(MutationStrategy):
    """Novel tags, non-linear strength reshaping, and occasional new capabilities."""

    name = MutationStrategyName.CREATIVE
    reversible = False
    _CONFIDENCE = 0.5
    _NOVEL_CAPABILITY_CONFIDENCE = 0.4
    _NOVEL_TAG_CHANCE = 0.4
    _RESCALE_CHANCE = 0.6
    _NOVEL_CAPABILITY_CHANCE = 0.3

    def apply(self, agent: Agent) -> MutationOutcome:
        outcome = MutationOutcome(capabilities=[])
        rate = min(1.0, self._config.mutation_rate * 2)
        for cap in agent.capabilities:
            if self._gate(rate):
                new = self._reshape(cap)
                if new is not cap:
                    outcome.points.append(_point(cap, new, self._CONFIDENCE))
                cap = new
            outcome.capabilities.append(cap)

        if self._gate(self._NOVEL_CAPABILITY_CHANCE):
            novel = self._factory.novel_capability(taken=[c.kind for c in outcome.capabilities])
            outcome.capabilities.append(novel)
            outcome.points.append(
                MutationPoint(
                    location=novel.id,
                    kind="structure",
                    strength_before=None,
                    strength_after=novel.strength,
                    adaptation_after=novel.adaptation_rate,
                    added_specializations=novel.specializations,
                    confidence=self._NOVEL_CAPABILITY_CONFIDENCE,
                )
            )
        return outcome

    def _reshape(self, cap: Capability) -> Capability:
        changes: dict = {}
        element = "rescale"
        if self._gate(self._NOVEL_TAG_CHANCE):
            tag = _missing_tag(self._rng, cap)
            if tag is not None:
                changes["specializations"] = cap.specializations + (tag,)
                element = tag
        if self._gate(self._RESCALE_CHANCE):
            # Power-law reshaping keeps strength in [0, 1]; zero strength means no change.
            spread = min(1.0, self._config.mutation_strength * 5)
            exponent = 2.0 ** (float(self._rng.uniform(-1.0, 1.0)) * spread)
            changes["strength"] = cap.strength ** exponent
        if not changes:
            return cap
        changes["morphology"] = {
            **cap.morphology,
            "creative_element": f"novel_{element}",
            "innovation_level": float(self._rng.random()),
        }
        return cap.evolve(**changes)


STRATEGY_REGISTRY: dict[MutationStrategyName, type[MutationStrategy]] = {
    cls.name: cls
    for cls in (
        GaussianMutation,
        UniformMutation,
        AdaptiveMutation,
        DirectionalMutationStrategy,
        StructuralMutationStrategy,
        CreativeMutation,
    )
}
