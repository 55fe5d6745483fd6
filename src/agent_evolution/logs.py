"""structlog setup for host applications."""

from __future__ import annotations

import logging

import structlog

from agent_evolution.settings import EvolutionSettings


def configure_logging(settings: EvolutionSettings | None = None) -> None:
    """Install a level-filtered structlog pipeline.

    ``log_format`` selects between a console renderer and JSON lines.
    """
    settings = settings or EvolutionSettings()
    level = logging.getLevelName(settings.log_level.upper())
    if not isinstance(level, int):
        level = logging.INFO

    renderer = (
        structlog.processors.JSONRenderer()
        if settings.log_format.lower() == "json"
        else structlog.dev.ConsoleRenderer()
    )
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
    )
