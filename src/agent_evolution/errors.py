"""Typed errors raised by the evolution engine.

All of these are local, recoverable conditions. Batch operations catch
``EvolutionError`` per item and keep going.
"""

from __future__ import annotations


class EvolutionError(Exception):
    """Base class for every error raised by this package."""


class InsufficientMutationPotential(EvolutionError):
    """Mutating the agent is not worthwhile at its current state."""

    def __init__(self, agent_id: str, potential: float, threshold: float) -> None:
        super().__init__(
            f"agent {agent_id} has mutation potential {potential:.3f} below {threshold:.3f}"
        )
        self.agent_id = agent_id
        self.potential = potential
        self.threshold = threshold


class StrategyNotFound(EvolutionError, LookupError):
    """No mutation strategy is registered under the requested name."""

    def __init__(self, name: str) -> None:
        super().__init__(f"unknown mutation strategy: {name!r}")
        self.name = name


class OperatorNotFound(EvolutionError, LookupError):
    """No crossover operator is registered under the requested name."""

    def __init__(self, name: str) -> None:
        super().__init__(f"unknown crossover operator: {name!r}")
        self.name = name


class IncompatibleParents(EvolutionError):
    """Two parents are too dissimilar to be recombined."""

    def __init__(self, parent1_id: str, parent2_id: str, compatibility: float, threshold: float) -> None:
        super().__init__(
            f"parents {parent1_id} and {parent2_id} have compatibility "
            f"{compatibility:.3f} below threshold {threshold:.3f}"
        )
        self.parent1_id = parent1_id
        self.parent2_id = parent2_id
        self.compatibility = compatibility
        self.threshold = threshold


class StructuralMutationDisabled(EvolutionError):
    """Structural mutation was requested while it is switched off."""

    def __init__(self) -> None:
        super().__init__("structural mutation is disabled by configuration")


class PopulationNotInitialized(EvolutionError):
    """A generation was requested before any agents were seeded."""

    def __init__(self) -> None:
        super().__init__("population is empty; call initialize_population first")
