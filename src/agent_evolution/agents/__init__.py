"""Agents package: capability and agent values, population pool, and synthesis."""

from __future__ import annotations

from agent_evolution.agents.base import Agent, AgentMorphology, Capability
from agent_evolution.agents.factory import AgentFactory
from agent_evolution.agents.pool import AgentPool
from agent_evolution.agents.trace import AdaptationEvent

__all__ = [
    "AdaptationEvent",
    "Agent",
    "AgentFactory",
    "AgentMorphology",
    "AgentPool",
    "Capability",
]
