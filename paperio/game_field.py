from __future__ import annotations

from typing import Dict, Iterable, List, Optional, Set, Tuple

from .geometry import Cell
from .player_vec import PlayerIndexedList

NO_PLAYER = 0

# Ordered set of flat cell indices.
IndexSet = Dict[int, None]


class GameField:
    """
    Ownership of every cell on the board.

    The grid is kept twice: as two flat row-major buffers (capture owner and
    trace owner per cell, 0 = nobody) and as per-player ordered sets of cell
    indices. Only whole operations are public, so both views always agree.
    """

    def __init__(self, width: int, height: int, players_amount: int):
        self.width = width
        self.height = height
        self._captured: List[int] = [NO_PLAYER] * (width * height)
        self._traced: List[int] = [NO_PLAYER] * (width * height)
        self._captured_cells: PlayerIndexedList[IndexSet] = PlayerIndexedList.filled(players_amount, dict)
        self._traced_cells: PlayerIndexedList[IndexSet] = PlayerIndexedList.filled(players_amount, dict)

    # -------- cell queries --------

    def in_bounds(self, cell: Cell) -> bool:
        return 0 <= cell.x < self.width and 0 <= cell.y < self.height

    def iter_cells(self) -> Iterable[Cell]:
        for y in range(self.height):
            for x in range(self.width):
                yield Cell(x, y)

    def neighbors(self, cell: Cell) -> List[Cell]:
        return [n for n in cell.neighbors_unchecked() if self.in_bounds(n)]

    def captured_by(self, cell: Cell) -> Optional[int]:
        return self._captured[self._index(cell)] or None

    def traced_by(self, cell: Cell) -> Optional[int]:
        return self._traced[self._index(cell)] or None

    def is_captured_by(self, cell: Cell, player_id: int) -> bool:
        return self._captured[self._index(cell)] == player_id

    def is_traced_by(self, cell: Cell, player_id: int) -> bool:
        return self._traced[self._index(cell)] == player_id

    def captured_cells(self, player_id: int) -> List[Cell]:
        return [self._cell(i) for i in self._captured_cells[player_id]]

    def traced_cells(self, player_id: int) -> List[Cell]:
        return [self._cell(i) for i in self._traced_cells[player_id]]

    # -------- mutation --------

    def set_traced(self, cell: Cell, player_id: int) -> None:
        i = self._index(cell)
        prev = self._traced[i]
        if prev != NO_PLAYER and prev != player_id:
            del self._traced_cells[prev][i]

        self._traced[i] = player_id
        self._traced_cells[player_id][i] = None

    def set_captured(self, cell: Cell, player_id: int) -> None:
        i = self._index(cell)

        # A player never traces a cell it owns.
        if self._traced[i] == player_id:
            self._traced[i] = NO_PLAYER
            del self._traced_cells[player_id][i]

        prev = self._captured[i]
        if prev != NO_PLAYER and prev != player_id:
            del self._captured_cells[prev][i]

        self._captured[i] = player_id
        self._captured_cells[player_id][i] = None

    def remove_player(self, player_id: int) -> None:
        for i in self._traced_cells[player_id]:
            self._traced[i] = NO_PLAYER
        self._traced_cells[player_id].clear()

        for i in self._captured_cells[player_id]:
            self._captured[i] = NO_PLAYER
        self._captured_cells[player_id].clear()

    def init_player(self, player_id: int, spawn: Cell) -> None:
        for x in range(spawn.x - 1, spawn.x + 2):
            for y in range(spawn.y - 1, spawn.y + 2):
                self.set_captured(Cell(x, y), player_id)

    # -------- capture --------

    def find_inner_cells(self, player_id: int) -> List[Cell]:
        """
        Return the cells enclosed by the player's territory and trace.

        Every free region touching the boundary is flooded; a region that
        reaches past the edge of the grid is outside and gets dropped.
        """
        visited = bytearray(self.width * self.height)
        boundary = list(self._captured_cells[player_id]) + list(self._traced_cells[player_id])
        for i in boundary:
            visited[i] = 1

        inner: List[int] = []
        for i in boundary:
            for seed in self.neighbors(self._cell(i)):
                s = self._index(seed)
                if visited[s]:
                    continue
                visited[s] = 1

                region_start = len(inner)
                inner.append(s)
                border_reached = False
                head = region_start
                while head < len(inner):
                    cell = self._cell(inner[head])
                    head += 1
                    for n in cell.neighbors_unchecked():
                        if not self.in_bounds(n):
                            border_reached = True
                            continue
                        j = self._index(n)
                        if not visited[j]:
                            visited[j] = 1
                            inner.append(j)

                if border_reached:
                    del inner[region_start:]

        return [self._cell(i) for i in inner]

    def capture_all(
        self, player_id: int, positions: PlayerIndexedList[Cell]
    ) -> Tuple[int, int, Set[int]]:
        """
        Close the player's trace: capture it and everything it encloses.

        Returns (enemy cells captured, free cells captured, enemy ids whose
        trace or current position ended up inside the captured area).
        """
        if not self._traced_cells[player_id]:
            return 0, 0, set()

        to_capture = self.find_inner_cells(player_id)
        to_capture.extend(self.traced_cells(player_id))

        enemy_cells = 0
        free_cells = 0
        casualties: Set[int] = set()
        for cell in to_capture:
            i = self._index(cell)
            owner = self._captured[i]
            if owner == NO_PLAYER:
                free_cells += 1
            elif owner != player_id:
                enemy_cells += 1

            tracer = self._traced[i]
            if tracer != NO_PLAYER and tracer != player_id:
                casualties.add(tracer)
            for enemy_id, pos in positions.items():
                if enemy_id != player_id and pos == cell:
                    casualties.add(enemy_id)

            self.set_captured(cell, player_id)

        return enemy_cells, free_cells, casualties

    def _index(self, cell: Cell) -> int:
        return cell.x + cell.y * self.width

    def _cell(self, i: int) -> Cell:
        return Cell(i % self.width, i // self.width)
