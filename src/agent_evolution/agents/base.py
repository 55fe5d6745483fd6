"""Capability and agent value types.

Both are frozen: every operator that changes an agent builds a new value.
"""

from __future__ import annotations

import dataclasses
import itertools
import uuid
from dataclasses import dataclass, field
from datetime import UTC, datetime
from functools import cached_property
from typing import Any, Iterable, Sequence

from agent_evolution.agents.trace import AdaptationEvent
from agent_evolution.rng import clamp

MIN_ADAPTATION_RATE = 0.01
MAX_ADAPTATION_RATE = 0.5
CAPABILITY_HISTORY_LIMIT = 20
ADAPTATION_HISTORY_LIMIT = 100


def _ordered_union(groups: Iterable[Iterable[str]]) -> tuple[str, ...]:
    return tuple(dict.fromkeys(itertools.chain.from_iterable(groups)))


@dataclass(frozen=True)
class Capability:
    """One atomic skill owned by an agent."""

    id: str
    name: str = ""
    strength: float = 0.5
    adaptation_rate: float = 0.1
    specializations: tuple[str, ...] = ()
    morphology: dict[str, Any] = field(default_factory=dict)
    last_used: datetime = field(default_factory=lambda: datetime.now(UTC))
    performance_history: tuple[float, ...] = ()

    def __post_init__(self) -> None:
        name = self.name or self.id
        tags = tuple(dict.fromkeys(self.specializations)) or (name,)
        object.__setattr__(self, "name", name)
        object.__setattr__(self, "strength", clamp(float(self.strength)))
        object.__setattr__(
            self,
            "adaptation_rate",
            clamp(float(self.adaptation_rate), MIN_ADAPTATION_RATE, MAX_ADAPTATION_RATE),
        )
        object.__setattr__(self, "specializations", tags)
        object.__setattr__(self, "morphology", dict(self.morphology))
        object.__setattr__(
            self, "performance_history", tuple(self.performance_history)[-CAPABILITY_HISTORY_LIMIT:]
        )

    @property
    def kind(self) -> str:
        """What the capability does. Unlike ``id`` it is shared across agents."""
        return self.name

    def evolve(self, **changes: Any) -> Capability:
        """Return a copy with ``changes`` applied; values are re-clamped."""
        return dataclasses.replace(self, **changes)

    def with_specialization(self, tag: str) -> Capability:
        if tag in self.specializations:
            return self
        return self.evolve(specializations=self.specializations + (tag,))

    def recent_performance(self, window: int = 5) -> float | None:
        """Mean of the last ``window`` performance samples, if any."""
        recent = self.performance_history[-window:]
        if not recent:
            return None
        return sum(recent) / len(recent)


@dataclass(frozen=True)
class AgentMorphology:
    """Structure derived from an agent's capabilities.

    Capabilities are nodes; two capabilities are connected when they share a
    specialization tag, weighted by the Jaccard overlap of their tags. Nodes
    carry a label (the capability's morphology type, or its name) so two
    agents can be compared by shape rather than by capability ids.
    """

    nodes: tuple[str, ...]
    connections: dict[tuple[str, str], float]
    emergent_properties: tuple[str, ...]
    traits: tuple[str, ...]
    labels: dict[str, str] = field(default_factory=dict)

    @property
    def density(self) -> float:
        n = len(self.nodes)
        if n < 2:
            return 0.0
        return len(self.connections) / (n * (n - 1) / 2)

    @property
    def structure(self) -> str:
        if not self.connections:
            return "modular"
        return "networked" if self.density >= 0.5 else "clustered"

    def label(self, node: str) -> str:
        return self.labels.get(node, node)

    def tokens(self) -> frozenset[str]:
        """Id-free structural features used for morphology similarity."""
        edge_tokens = (
            "edge:{}|{}".format(*sorted((self.label(a), self.label(b)))) for a, b in self.connections
        )
        return frozenset(
            itertools.chain(
                (f"structure:{self.structure}",),
                (f"node:{self.label(n)}" for n in self.nodes),
                edge_tokens,
                (f"emergent:{p}" for p in self.emergent_properties),
                self.traits,
            )
        )

    @classmethod
    def from_capabilities(cls, capabilities: Sequence[Capability]) -> AgentMorphology:
        connections: dict[tuple[str, str], float] = {}
        for a, b in itertools.combinations(capabilities, 2):
            tags_a, tags_b = set(a.specializations), set(b.specializations)
            shared = tags_a & tags_b
            if shared:
                key = (a.id, b.id) if a.id <= b.id else (b.id, a.id)
                connections[key] = len(shared) / len(tags_a | tags_b)

        tag_counts: dict[str, int] = {}
        for cap in capabilities:
            for tag in cap.specializations:
                tag_counts[tag] = tag_counts.get(tag, 0) + 1
        emergent = tuple(tag for tag, count in tag_counts.items() if count >= 3)

        traits = tuple(
            dict.fromkeys(
                f"{key}={value}"
                for cap in capabilities
                for key, value in cap.morphology.items()
                if isinstance(value, (str, bool, int))
            )
        )
        return cls(
            nodes=tuple(c.id for c in capabilities),
            labels={c.id: str(c.morphology.get("type", c.name)) for c in capabilities},
            connections=connections,
            emergent_properties=emergent,
            traits=traits,
        )


@dataclass(frozen=True, eq=False)
class Agent:
    """An evolvable individual: an ordered list of capabilities plus bookkeeping."""

    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    capabilities: tuple[Capability, ...] = ()
    fitness_score: float = 0.5
    age: int = 0
    generation: int = 0
    parent_ids: tuple[str, ...] = ()
    adaptation_history: tuple[AdaptationEvent, ...] = ()

    def __post_init__(self) -> None:
        object.__setattr__(self, "capabilities", tuple(self.capabilities))
        object.__setattr__(self, "fitness_score", clamp(float(self.fitness_score)))
        object.__setattr__(self, "parent_ids", tuple(self.parent_ids))
        object.__setattr__(
            self, "adaptation_history", tuple(self.adaptation_history)[-ADAPTATION_HISTORY_LIMIT:]
        )

    @property
    def capability_ids(self) -> tuple[str, ...]:
        return tuple(c.id for c in self.capabilities)

    @property
    def capability_kinds(self) -> tuple[str, ...]:
        return _ordered_union([c.kind] for c in self.capabilities)

    @property
    def specializations(self) -> tuple[str, ...]:
        """Ordered union of every capability's specialization tags."""
        return _ordered_union(c.specializations for c in self.capabilities)

    @cached_property
    def morphology(self) -> AgentMorphology:
        return AgentMorphology.from_capabilities(self.capabilities)

    def get_capability(self, capability_id: str) -> Capability | None:
        for cap in self.capabilities:
            if cap.id == capability_id:
                return cap
        return None

    def find_kind(self, kind: str) -> Capability | None:
        """First capability of ``kind``, if any."""
        return next((c for c in self.capabilities if c.kind == kind), None)

    def evolve(self, **changes: Any) -> Agent:
        return dataclasses.replace(self, **changes)

    def with_capabilities(self, capabilities: Sequence[Capability], **changes: Any) -> Agent:
        return self.evolve(capabilities=tuple(capabilities), **changes)

    def with_fitness(self, score: float) -> Agent:
        return self.evolve(fitness_score=score)

    def aged(self) -> Agent:
        return self.evolve(age=self.age + 1)

    def record(self, event: AdaptationEvent) -> Agent:
        """Append ``event`` to the bounded adaptation log."""
        return self.evolve(adaptation_history=self.adaptation_history + (event,))
