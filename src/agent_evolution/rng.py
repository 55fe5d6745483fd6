"""Seedable randomness shared by every stochastic operator."""

from __future__ import annotations

import math
from typing import Sequence, TypeVar

import numpy as np

T = TypeVar("T")


def make_rng(seed: int | None = None) -> np.random.Generator:
    """Return a fresh generator; ``None`` draws entropy from the OS."""
    return np.random.default_rng(seed)


def gaussian(rng: np.random.Generator, mean: float = 0.0, std: float = 1.0) -> float:
    """Box-Muller transform over two uniform draws."""
    u1 = 1.0 - float(rng.random())  # (0, 1], keeps log() finite
    u2 = float(rng.random())
    z = math.sqrt(-2.0 * math.log(u1)) * math.cos(2.0 * math.pi * u2)
    return mean + z * std


def uniform(rng: np.random.Generator, low: float, high: float) -> float:
    return low + float(rng.random()) * (high - low)


def chance(rng: np.random.Generator, probability: float) -> bool:
    return float(rng.random()) < probability


def choice(rng: np.random.Generator, items: Sequence[T]) -> T:
    return items[int(rng.integers(len(items)))]


def sample(rng: np.random.Generator, items: Sequence[T], k: int) -> list[T]:
    """Draw ``k`` distinct items without replacement, preserving draw order."""
    k = min(k, len(items))
    indices = rng.choice(len(items), size=k, replace=False)
    return [items[int(i)] for i in indices]


def new_id(rng: np.random.Generator, prefix: str) -> str:
    """Reproducible identifier drawn from the generator."""
    return f"{prefix}_{rng.bytes(6).hex()}"


def clamp(value: float, low: float = 0.0, high: float = 1.0) -> float:
    return max(low, min(high, value))
