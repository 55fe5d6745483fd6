"""The living population: an id-keyed, optionally bounded set of agents."""

from __future__ import annotations

import heapq
from typing import Iterable, Iterator, NamedTuple

from agent_evolution.agents.base import Agent


class Admission(NamedTuple):
    accepted: bool
    evicted: Agent | None = None


def _fitness(agent: Agent) -> float:
    return agent.fitness_score


class AgentPool:
    """Agents keyed by id, iterated in insertion order.

    With a ``capacity`` the pool is bounded: a newcomer to a full pool must be
    strictly fitter than the weakest member, which it evicts.
    """

    def __init__(self, agents: Iterable[Agent] = (), capacity: int | None = None) -> None:
        self.capacity = capacity
        self._members: dict[str, Agent] = {}
        self.reset(agents)

    def __len__(self) -> int:
        return len(self._members)

    def __iter__(self) -> Iterator[Agent]:
        return iter(list(self._members.values()))

    def __contains__(self, agent_id: object) -> bool:
        return agent_id in self._members

    @property
    def members(self) -> list[Agent]:
        return list(self._members.values())

    @property
    def is_full(self) -> bool:
        return self.capacity is not None and len(self._members) >= self.capacity

    def get(self, agent_id: str) -> Agent | None:
        return self._members.get(agent_id)

    def admit(self, agent: Agent) -> Admission:
        if agent.id in self._members:
            return Admission(False)
        evicted = None
        if self.is_full:
            weakest = self.weakest()
            if weakest is None or agent.fitness_score <= weakest.fitness_score:
                return Admission(False)
            evicted = self._members.pop(weakest.id)
        self._members[agent.id] = agent
        return Admission(True, evicted)

    def discard(self, agent_id: str) -> Agent | None:
        return self._members.pop(agent_id, None)

    def best(self, k: int) -> list[Agent]:
        return heapq.nlargest(k, self._members.values(), key=_fitness)

    def weakest(self) -> Agent | None:
        return min(self._members.values(), key=_fitness, default=None)

    def reset(self, agents: Iterable[Agent] = ()) -> None:
        """Swap in a new generation; the first agent wins on duplicate ids."""
        members: dict[str, Agent] = {}
        for agent in agents:
            members.setdefault(agent.id, agent)
        self._members = members
