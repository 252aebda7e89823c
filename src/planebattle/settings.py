"""Game configuration: board size, fleet size and handoff timing."""

from __future__ import annotations

import os
from functools import lru_cache
from typing import Any, Dict

from pydantic import BaseModel, Field, field_validator

DEFAULT_GRID_SIZE = 10
DEFAULT_PLANES_PER_PLAYER = 3
DEFAULT_TRANSITION_DELAY_MS = 100

_INT_ENV: dict[str, str] = {
    "grid_size": "PLANEBATTLE_GRID_SIZE",
    "planes_per_player": "PLANEBATTLE_PLANES_PER_PLAYER",
    "transition_delay_ms": "PLANEBATTLE_TRANSITION_DELAY_MS",
}


class GameSettings(BaseModel):
    """Constants the rules engine reads at match start."""

    # The plane is five cells wide and four long; columns are labelled A-Z.
    grid_size: int = Field(default=DEFAULT_GRID_SIZE, ge=6, le=26)
    planes_per_player: int = Field(default=DEFAULT_PLANES_PER_PLAYER, ge=1)
    transition_delay_ms: int = Field(default=DEFAULT_TRANSITION_DELAY_MS, ge=0)
    player_names: tuple[str, str] = ("Player 1", "Player 2")

    @field_validator("player_names")
    @classmethod
    def _names_not_blank(cls, value: tuple[str, str]) -> tuple[str, str]:
        if any(not name.strip() for name in value):
            raise ValueError("player names must not be blank")
        return value

    @property
    def transition_delay_seconds(self) -> float:
        return self.transition_delay_ms / 1000.0

    @classmethod
    def from_env(cls, **overrides: Any) -> "GameSettings":
        """Construct settings from `PLANEBATTLE_*` environment variables."""

        data: Dict[str, Any] = {}
        for field_name, env_name in _INT_ENV.items():
            raw = os.getenv(env_name)
            if raw is not None and raw.strip():
                data[field_name] = raw.strip()

        names = list(cls().player_names)
        for index, env_name in enumerate(("PLANEBATTLE_PLAYER1_NAME", "PLANEBATTLE_PLAYER2_NAME")):
            raw = os.getenv(env_name)
            if raw:
                names[index] = raw
        data["player_names"] = tuple(names)

        data.update(overrides)
        return cls(**data)


@lru_cache(maxsize=1)
def load_settings() -> GameSettings:
    """Load and cache game settings from the environment."""

    return GameSettings.from_env()
