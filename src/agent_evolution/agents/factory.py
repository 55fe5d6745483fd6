"""Random synthesis of capabilities and agents."""

from __future__ import annotations

from collections import Counter
from typing import Collection, Sequence

import numpy as np

from agent_evolution.agents.base import Agent, Capability
from agent_evolution.agents.trace import AdaptationEvent
from agent_evolution.rng import chance, choice, new_id, sample, uniform

BASE_CAPABILITY_TYPES = ("reasoning", "creative", "analytical", "social", "technical")
STRUCTURAL_PALETTE = BASE_CAPABILITY_TYPES + ("strategic",)
NOVEL_CAPABILITY_TYPES = (
    "quantum_reasoning",
    "empathic_analysis",
    "fractal_creativity",
    "meta_learning",
    "systemic_thinking",
)
NOVEL_SPECIALIZATIONS = (
    "meta_cognitive",
    "quantum_intuitive",
    "systemic_holistic",
    "emergent_adaptive",
    "multi_dimensional",
    "cross_modal",
    "temporal_predictive",
    "contextual_dynamic",
    "pattern_synthesis",
)
SECONDARY_SPECIALIZATIONS = (
    "planning",
    "pattern_recognition",
    "communication",
    "problem_solving",
    "synthesis",
    "optimization",
)
TAG_VOCABULARY = (
    BASE_CAPABILITY_TYPES
    + ("strategic",)
    + NOVEL_CAPABILITY_TYPES
    + NOVEL_SPECIALIZATIONS
    + SECONDARY_SPECIALIZATIONS
)


class AgentFactory:
    """Builds fresh capabilities and agents from fixed vocabularies.

    Every synthesized capability gets a unique id and is named after its kind;
    the kind is what unrelated agents share.
    """

    def __init__(self, rng: np.random.Generator) -> None:
        self._rng = rng

    def _pick_kind(self, kinds: Sequence[str], taken: Collection[str]) -> str:
        missing = [k for k in kinds if k not in taken]
        return choice(self._rng, missing or kinds)

    def capability(
        self,
        kind: str,
        strength: tuple[float, float] = (0.3, 0.7),
        adaptation_rate: tuple[float, float] = (0.05, 0.15),
        specializations: Sequence[str] = (),
        morphology: dict | None = None,
    ) -> Capability:
        return Capability(
            id=new_id(self._rng, kind),
            name=kind,
            strength=uniform(self._rng, *strength),
            adaptation_rate=uniform(self._rng, *adaptation_rate),
            specializations=tuple(specializations) or (kind,),
            morphology=morphology or {"type": kind},
        )

    def random_capability(self, kind: str | None = None) -> Capability:
        kind = kind or choice(self._rng, BASE_CAPABILITY_TYPES)
        tags = [kind]
        if chance(self._rng, 0.3):
            tags.append(choice(self._rng, SECONDARY_SPECIALIZATIONS))
        return self.capability(kind, specializations=tags)

    def palette_capability(self, taken: Collection[str] = ()) -> Capability:
        """A capability for structural growth, preferring a kind not among ``taken`` kinds."""
        kind = self._pick_kind(STRUCTURAL_PALETTE, taken)
        return self.capability(kind, morphology={"type": kind, "origin": "structural"})

    def novel_capability(self, taken: Collection[str] = ()) -> Capability:
        """Weak but fast-adapting capability from the novelty vocabulary."""
        kind = self._pick_kind(NOVEL_CAPABILITY_TYPES, taken)
        tag = choice(self._rng, NOVEL_SPECIALIZATIONS)
        return self.capability(
            kind,
            strength=(0.2, 0.5),
            adaptation_rate=(0.1, 0.3),
            specializations=(kind, tag),
            morphology={"type": "novel", "innovation": True},
        )

    def random_agent(self, generation: int = 0) -> Agent:
        count = int(self._rng.integers(2, 6))
        kinds = sample(self._rng, BASE_CAPABILITY_TYPES, count)
        return Agent(
            id=new_id(self._rng, "agent"),
            capabilities=tuple(self.random_capability(k) for k in kinds),
            generation=generation,
            adaptation_history=(AdaptationEvent(kind="synthesized", generation=generation),),
        )

    def underrepresented_tags(self, population: Sequence[Agent], k: int = 3) -> list[str]:
        """The ``k`` vocabulary tags least present in ``population``; ties broken at random."""
        counts = Counter(tag for agent in population for tag in agent.specializations)
        shuffled = [TAG_VOCABULARY[int(i)] for i in self._rng.permutation(len(TAG_VOCABULARY))]
        return sorted(shuffled, key=lambda tag: counts[tag])[:k]

    def diverse_agent(self, population: Sequence[Agent], generation: int = 0) -> Agent:
        """An agent built from the specialization tags the population lacks most."""
        tags = self.underrepresented_tags(population)
        capabilities = tuple(
            self.capability(
                tag,
                strength=(0.4, 0.7),
                adaptation_rate=(0.08, 0.2),
                morphology={"type": "diverse"},
            )
            for tag in tags
        )
        return Agent(
            id=new_id(self._rng, "agent"),
            capabilities=capabilities,
            generation=generation,
            adaptation_history=(
                AdaptationEvent(kind="diversity_injection", detail=",".join(tags), generation=generation),
            ),
        )
