"""Process-level settings read from the environment."""

from __future__ import annotations

from pydantic_settings import BaseSettings


class EvolutionSettings(BaseSettings):
    # Logging
    log_level: str = "INFO"
    log_format: str = "console"

    # Default seed for runs that do not pass one explicitly
    seed: int | None = None

    model_config = {"env_prefix": "AGENT_EVOLUTION_", "env_file": ".env", "extra": "ignore"}
