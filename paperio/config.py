"""Match settings shared by the store, the HTTP app and run.py."""

from __future__ import annotations

import os
from dataclasses import dataclass
from enum import Enum
from typing import Mapping, Optional

from .game_engine import X_CELLS_COUNT, Y_CELLS_COUNT
from .player_vec import MAX_PLAYERS

MIN_GRID_SIZE = 6


class DisconnectPolicy(Enum):
    """What happens to a seat that stops polling during a running match."""

    FREEZE = "freeze"  # keep moving with the last heading
    ELIMINATE = "eliminate"


@dataclass(frozen=True)
class MatchSettings:
    players_per_match: int = MAX_PLAYERS
    width: int = X_CELLS_COUNT
    height: int = Y_CELLS_COUNT
    tick_count: int = 300
    tick_interval_seconds: float = 0.2
    player_timeout_seconds: int = 35
    disconnect_policy: DisconnectPolicy = DisconnectPolicy.FREEZE

    def __post_init__(self) -> None:
        if not 1 <= self.players_per_match <= MAX_PLAYERS:
            raise ValueError(f"players_per_match must be in [1, {MAX_PLAYERS}]")
        if self.width < MIN_GRID_SIZE or self.height < MIN_GRID_SIZE:
            raise ValueError(f"grid must be at least {MIN_GRID_SIZE}x{MIN_GRID_SIZE}")
        if self.tick_count < 1:
            raise ValueError("tick_count must be >= 1")
        if self.tick_interval_seconds <= 0:
            raise ValueError("tick_interval_seconds must be > 0")
        if self.player_timeout_seconds < 1:
            raise ValueError("player_timeout_seconds must be >= 1")

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> MatchSettings:
        """Build settings from PAPERIO_* variables, falling back to defaults."""
        env = os.environ if environ is None else environ
        defaults = cls()

        def _get(name: str, default):
            raw = env.get(f"PAPERIO_{name}")
            if raw is None or raw.strip() == "":
                return default
            return type(default)(raw.strip())

        return cls(
            players_per_match=_get("PLAYERS", defaults.players_per_match),
            width=_get("WIDTH", defaults.width),
            height=_get("HEIGHT", defaults.height),
            tick_count=_get("TICK_COUNT", defaults.tick_count),
            tick_interval_seconds=_get("TICK_INTERVAL", defaults.tick_interval_seconds),
            player_timeout_seconds=_get("PLAYER_TIMEOUT", defaults.player_timeout_seconds),
            disconnect_policy=DisconnectPolicy(
                env.get("PAPERIO_DISCONNECT_POLICY", defaults.disconnect_policy.value).strip().lower()
            ),
        )
