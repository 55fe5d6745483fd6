"""Crossover operators, one class per operator, registered by name."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, ClassVar

import numpy as np

from agent_evolution.agents.base import Agent, Capability
from agent_evolution.crossover.types import CrossoverOperatorName, Inheritance
from agent_evolution.rng import chance

Sourced = tuple[Capability, Inheritance]


@dataclass
class Recombination:
    """Capabilities for both offspring, each tagged with its origin."""

    offspring1: list[Sourced] = field(default_factory=list)
    offspring2: list[Sourced] = field(default_factory=list)
    points: list[dict[str, Any]] = field(default_factory=list)

    def inheritance_map(self) -> dict[str, Inheritance]:
        """Per capability id across both offspring: a single parent, or blend if mixed."""
        origins: dict[str, set[Inheritance]] = {}
        for cap, source in self.offspring1 + self.offspring2:
            origins.setdefault(cap.id, set()).add(source)
        return {
            cap_id: sources.pop() if len(sources) == 1 else Inheritance.BLEND
            for cap_id, sources in origins.items()
        }

    def offspring_inheritance(self) -> tuple[dict[str, Inheritance], dict[str, Inheritance]]:
        """Where each offspring's own copy of every capability came from."""
        return (
            {cap.id: source for cap, source in self.offspring1},
            {cap.id: source for cap, source in self.offspring2},
        )

    @staticmethod
    def _dedupe(sourced: list[Sourced]) -> list[Sourced]:
        """Keep the first capability of each kind."""
        seen: set[str] = set()
        unique = []
        for cap, source in sourced:
            if cap.kind not in seen:
                seen.add(cap.kind)
                unique.append((cap, source))
        return unique

    def finalize(self) -> Recombination:
        self.offspring1 = self._dedupe(self.offspring1)
        self.offspring2 = self._dedupe(self.offspring2)
        return self


def complement(cap: Capability) -> Capability:
    """Weaker stand-in of ``cap`` for the offspring whose parent lacked it."""
    return cap.evolve(
        strength=max(0.3, cap.strength * 0.8),
        morphology={**cap.morphology, "complementary": True},
    )


def blend(a: Capability, b: Capability, ratio: float) -> Capability:
    return a.evolve(
        strength=ratio * a.strength + (1 - ratio) * b.strength,
        adaptation_rate=ratio * a.adaptation_rate + (1 - ratio) * b.adaptation_rate,
        specializations=a.specializations + b.specializations,
        morphology={**b.morphology, **a.morphology, "blended": True},
    )


class CrossoverOperator(ABC):
    name: ClassVar[CrossoverOperatorName]
    novelty: ClassVar[float]
    fitness_bonus: ClassVar[float]

    def __init__(self, rng: np.random.Generator) -> None:
        self._rng = rng

    @abstractmethod
    def recombine(self, parent1: Agent, parent2: Agent) -> Recombination:
        ...


class UniformCrossover(CrossoverOperator):
    name = CrossoverOperatorName.UNIFORM
    novelty = 0.6
    fitness_bonus = 0.05

    def recombine(self, parent1: Agent, parent2: Agent) -> Recombination:
        result = Recombination()
        for kind in dict.fromkeys(parent1.capability_kinds + parent2.capability_kinds):
            first, second = parent1.find_kind(kind), parent2.find_kind(kind)
            heads = chance(self._rng, 0.5)
            if first is not None and second is not None:
                pair = [(first, Inheritance.PARENT1), (second, Inheritance.PARENT2)]
            else:
                cap = first or second
                source = Inheritance.PARENT1 if first is not None else Inheritance.PARENT2
                pair = [(cap, source), (complement(cap), source)]
            if not heads:
                pair.reverse()
            result.offspring1.append(pair[0])
            result.offspring2.append(pair[1])
            result.points.append({"kind": kind, "primary": "offspring1" if heads else "offspring2"})
        return result.finalize()


class SinglePointCrossover(CrossoverOperator):
    name = CrossoverOperatorName.SINGLE_POINT
    novelty = 0.4
    fitness_bonus = 0.02

    def recombine(self, parent1: Agent, parent2: Agent) -> Recombination:
        caps1 = [(c, Inheritance.PARENT1) for c in parent1.capabilities]
        caps2 = [(c, Inheritance.PARENT2) for c in parent2.capabilities]
        longer = max(len(caps1), len(caps2))
        point = int(self._rng.integers(1, longer)) if longer > 1 else 1
        result = Recombination(
            offspring1=caps1[:point] + caps2[point:],
            offspring2=caps2[:point] + caps1[point:],
            points=[{"index": point, "length": longer}],
        )
        return result.finalize()


class SemanticCrossover(CrossoverOperator):
    """Blends capabilities both parents share; passes the rest through with complements."""

    name = CrossoverOperatorName.SEMANTIC
    novelty = 0.8
    fitness_bonus = 0.08

    def recombine(self, parent1: Agent, parent2: Agent) -> Recombination:
        result = Recombination()
        for kind in dict.fromkeys(parent1.capability_kinds + parent2.capability_kinds):
            first, second = parent1.find_kind(kind), parent2.find_kind(kind)
            if first is not None and second is not None:
                ratio = float(self._rng.random())
                result.offspring1.append((blend(first, second, ratio), Inheritance.BLEND))
                result.offspring2.append((blend(first, second, 1 - ratio), Inheritance.BLEND))
                result.points.append({"kind": kind, "blend_ratio": ratio})
            elif first is not None:
                result.offspring1.append((first, Inheritance.PARENT1))
                result.offspring2.append((complement(first), Inheritance.PARENT1))
            else:
                result.offspring1.append((complement(second), Inheritance.PARENT2))
                result.offspring2.append((second, Inheritance.PARENT2))
        return result.finalize()


class MorphologicalCrossover(CrossoverOperator):
    """Unions capability lists and stamps them with the merged parent structure."""

    name = CrossoverOperatorName.MORPHOLOGICAL
    novelty = 0.9
    fitness_bonus = 0.1

    def recombine(self, parent1: Agent, parent2: Agent) -> Recombination:
        m1, m2 = parent1.morphology, parent2.morphology
        descriptor = f"{m1.structure}|{m2.structure}"
        emergent = sorted(set(m1.emergent_properties) | set(m2.emergent_properties))

        def stamp(cap: Capability, role: str) -> Capability:
            return cap.evolve(
                morphology={**cap.morphology, "morphological_influence": descriptor, "crossover_role": role}
            )

        result = Recombination(points=[{"structure": descriptor, "emergent_properties": emergent}])
        for primary, primary_source, secondary, secondary_source, out in (
            (parent1, Inheritance.PARENT1, parent2, Inheritance.PARENT2, result.offspring1),
            (parent2, Inheritance.PARENT2, parent1, Inheritance.PARENT1, result.offspring2),
        ):
            out.extend((stamp(c, "primary"), primary_source) for c in primary.capabilities)
            out.extend(
                (stamp(c, "secondary"), secondary_source)
                for c in secondary.capabilities
                if primary.find_kind(c.kind) is None
            )
        return result.finalize()


OPERATOR_REGISTRY: dict[CrossoverOperatorName, type[CrossoverOperator]] = {
    cls.name: cls
    for cls in (UniformCrossover, SinglePointCrossover, SemanticCrossover, MorphologicalCrossover)
}
