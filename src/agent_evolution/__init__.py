"""Agent Evolution - evolutionary optimization of capability-bearing agents."""

__all__ = [
    "Agent",
    "Capability",
    "CrossoverManager",
    "EvolutionConfig",
    "FitnessContext",
    "FitnessEvaluator",
    "MutationManager",
    "PopulationConfig",
    "PopulationManager",
]
__version__ = "0.1.0"

_EXPORTS = {
    "Agent": "agent_evolution.agents.base",
    "Capability": "agent_evolution.agents.base",
    "CrossoverManager": "agent_evolution.crossover.manager",
    "EvolutionConfig": "agent_evolution.config",
    "FitnessContext": "agent_evolution.fitness.profile",
    "FitnessEvaluator": "agent_evolution.fitness.evaluator",
    "MutationManager": "agent_evolution.mutation.manager",
    "PopulationConfig": "agent_evolution.config",
    "PopulationManager": "agent_evolution.population.manager",
}


def __getattr__(name: str):
    """Lazy imports - keep ``import agent_evolution`` free of numpy until needed."""
    module_path = _EXPORTS.get(name)
    if module_path is None:
        raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
    import importlib

    return getattr(importlib.import_module(module_path), name)
