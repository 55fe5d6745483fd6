"""Selection package: tournament parent selection."""

from __future__ import annotations

from agent_evolution.selection.tournament import SelectionResult, TournamentSelector

__all__ = ["SelectionResult", "TournamentSelector"]
