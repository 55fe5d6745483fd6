"""Shared test fixtures."""

from __future__ import annotations

import sys
from pathlib import Path

import numpy as np
import pytest

# Make _helpers importable from test files
sys.path.insert(0, str(Path(__file__).parent))

from _helpers import make_agent, make_capability  # noqa: E402

from agent_evolution.config import PopulationConfig  # noqa: E402
from agent_evolution.fitness.profile import FitnessContext  # noqa: E402

__all__ = ["make_agent", "make_capability"]


@pytest.fixture
def rng() -> np.random.Generator:
    return np.random.default_rng(42)


@pytest.fixture
def context() -> FitnessContext:
    return FitnessContext()


@pytest.fixture
def small_config() -> PopulationConfig:
    return PopulationConfig(
        max_population_size=30,
        min_population_size=10,
        target_diversity=0.5,
        seed=7,
    )
