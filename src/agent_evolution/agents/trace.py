"""Adaptation events - the entries of an agent's history log."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime


@dataclass(frozen=True)
class AdaptationEvent:
    """A single record in an agent's adaptation history."""

    kind: str  # e.g. "mutation:gaussian", "crossover:semantic", "diversity_injection"
    detail: str = ""
    generation: int = 0
    impact: float = 0.0
    parent_ids: tuple[str, ...] = ()
    recorded_at: datetime = field(default_factory=lambda: datetime.now(UTC))
