"""JSON envelopes for everything sent to players and spectators."""

from __future__ import annotations

from typing import Any

from .geometry import Direction


def _message(kind: str, params: Any) -> dict:
    return {"type": kind, "params": params}


def start_game(params: dict) -> dict:
    return _message("start_game", params)


def tick(world: dict) -> dict:
    return _message("tick", world)


def end_game() -> dict:
    return _message("end_game", {})


def parse_direction(value: Any) -> Direction:
    if not isinstance(value, str):
        raise ValueError(f"direction must be a string, got {type(value).__name__}")
    try:
        return Direction(value.strip().lower())
    except ValueError:
        raise ValueError(f"unknown direction: {value!r}") from None
