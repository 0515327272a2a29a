from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass
from enum import Enum
from typing import Dict, List, Optional, Sequence

from .game_field import GameField
from .geometry import Cell, Direction
from .player_vec import PlayerIndexedList

logger = logging.getLogger(__name__)

X_CELLS_COUNT = 31
Y_CELLS_COUNT = 31

ENEMY_CELL_SCORE = 5
FREE_CELL_SCORE = 1

VIEWER_KEY = "i"


class Status(Enum):
    ALIVE = "alive"
    LOSING = "losing"
    LOST = "lost"


@dataclass
class Player:
    position: Cell
    direction: Direction = Direction.LEFT
    score: int = 0


def default_spawns(width: int, height: int) -> List[Cell]:
    """Spawn points for seats 1..4. Seats 1 and 2 face each other across the board."""
    near_x, near_y = width // 3 - 1, height // 3 - 1
    far_x, far_y = width - 1 - near_x, height - 1 - near_y
    return [
        Cell(near_x, near_y),
        Cell(far_x, far_y),
        Cell(near_x, far_y),
        Cell(far_x, near_y),
    ]


class Game:
    def __init__(
        self,
        players_amount: int,
        width: int = X_CELLS_COUNT,
        height: int = Y_CELLS_COUNT,
        spawns: Optional[Sequence[Cell]] = None,
    ):
        """
        players_amount: 1..4, checked by the caller.
        spawns: centre of each player's starting 3x3 block, in id order.
        """
        self.width = width
        self.height = height
        self.tick_num = 1

        if spawns is None:
            spawns = default_spawns(width, height)
        self.players: PlayerIndexedList[Player] = PlayerIndexedList(
            Player(position=Cell(*pos)) for pos in spawns[:players_amount]
        )
        self.statuses: PlayerIndexedList[Status] = PlayerIndexedList.filled(
            players_amount, lambda: Status.ALIVE
        )

        self.field = GameField(width, height, players_amount)
        for player_id, player in self.players.items():
            self.field.init_player(player_id, player.position)

    def has_lost(self, player_id: int) -> bool:
        return self.statuses[player_id] == Status.LOST

    def alive_ids(self) -> List[int]:
        return [pid for pid, status in self.statuses.items() if status == Status.ALIVE]

    def get_game_params(self) -> dict:
        return {"x_cells_count": self.width, "y_cells_count": self.height}

    def get_player_scores(self) -> List[int]:
        return [player.score for player in self.players]

    def try_change_direction(self, player_id: int, new_direction: Direction) -> bool:
        player = self.players[player_id]
        if new_direction == player.direction.opposite():
            return False
        player.direction = new_direction
        return True

    def eliminate(self, player_id: int) -> None:
        """Take a player out of the match right away, e.g. after a disconnect."""
        if self.statuses[player_id] == Status.LOST:
            return
        self.field.remove_player(player_id)
        self.statuses[player_id] = Status.LOST
        logger.info("player #%d eliminated at tick %d", player_id, self.tick_num)

    def _mark_losing(self, player_id: int) -> None:
        # LOST is terminal, only live players can start losing.
        if self.statuses[player_id] == Status.ALIVE:
            self.statuses[player_id] = Status.LOSING

    def tick(self) -> None:
        next_position = self.players.map(lambda p: p.position.moved(p.direction))

        # Losing marks for this tick only; committed to LOST at the end.
        for player_id in self.alive_ids():
            if not self.field.in_bounds(next_position[player_id]):
                self._mark_losing(player_id)

        # Head to head: if one of the contenders owns the cell, it wins.
        # Otherwise everybody on the cell loses.
        contenders: Dict[Cell, List[int]] = defaultdict(list)
        for player_id in self.alive_ids():
            contenders[next_position[player_id]].append(player_id)
        for pos, player_ids in contenders.items():
            if len(player_ids) <= 1:
                continue
            owner = self.field.captured_by(pos)
            for player_id in player_ids:
                if player_id != owner:
                    self._mark_losing(player_id)

        # Stepping on our own trace is fatal, stepping into our own
        # territory closes the trace.
        positions = self.players.map(lambda p: p.position)
        for player_id in self.players.ids():
            # Re-checked per player: an earlier capture may have just caught this one.
            if self.statuses[player_id] != Status.ALIVE:
                continue
            pos = next_position[player_id]
            if self.field.is_traced_by(pos, player_id):
                self._mark_losing(player_id)
            elif self.field.is_captured_by(pos, player_id):
                enemy_cells, free_cells, casualties = self.field.capture_all(player_id, positions)
                self.players[player_id].score += enemy_cells * ENEMY_CELL_SCORE + free_cells * FREE_CELL_SCORE
                for enemy_id in sorted(casualties):
                    self._mark_losing(enemy_id)

        # Crossing somebody else's trace cuts it. The list is taken up front,
        # so two players cutting each other in the same tick both lose.
        for player_id in self.alive_ids():
            other_id = self.field.traced_by(next_position[player_id])
            if other_id is not None and other_id != player_id:
                self._mark_losing(other_id)

        for player_id in self.alive_ids():
            pos = next_position[player_id]
            if not self.field.is_captured_by(pos, player_id):
                self.field.set_traced(pos, player_id)
            self.players[player_id].position = pos

        for player_id, status in self.statuses.items():
            if status == Status.LOSING:
                self.field.remove_player(player_id)
                self.statuses[player_id] = Status.LOST
                logger.info(
                    "player #%d lost at tick %d with score %d",
                    player_id, self.tick_num, self.players[player_id].score,
                )

        self.tick_num += 1

    def _player_state(self, player_id: int) -> dict:
        player = self.players[player_id]
        return {
            "score": player.score,
            "territory": [c.to_json() for c in sorted(self.field.captured_cells(player_id))],
            "position": player.position.to_json(),
            "lines": [c.to_json() for c in sorted(self.field.traced_cells(player_id))],
            "direction": player.direction.value,
            "has_lost": self.has_lost(player_id),
        }

    def get_player_world(self, viewer: Optional[int]) -> dict:
        players = {}
        for player_id in self.players.ids():
            key = VIEWER_KEY if player_id == viewer else str(player_id)
            players[key] = self._player_state(player_id)
        return {"players": players, "tick_num": self.tick_num}

    def get_spectator_world(self) -> dict:
        return self.get_player_world(None)

    def leader_id(self) -> Optional[int]:
        best_id = None
        max_score = -1
        tie = False
        for player_id, player in self.players.items():
            if player.score > max_score:
                max_score = player.score
                best_id = player_id
                tie = False
            elif player.score == max_score:
                tie = True
        return None if tie else best_id
