from __future__ import annotations

from typing import Callable, Generic, Iterable, Iterator, List, Tuple, TypeVar

T = TypeVar("T")
E = TypeVar("E")

MAX_PLAYERS = 4


class PlayerIndexedList(Generic[T]):
    """Fixed-length list addressed by 1-based player ids."""

    def __init__(self, items: Iterable[T]):
        self._data: List[T] = list(items)

    @classmethod
    def filled(cls, players_amount: int, factory: Callable[[], T]) -> PlayerIndexedList[T]:
        return cls(factory() for _ in range(players_amount))

    def __len__(self) -> int:
        return len(self._data)

    def __getitem__(self, player_id: int) -> T:
        return self._data[self._slot(player_id)]

    def __setitem__(self, player_id: int, value: T) -> None:
        self._data[self._slot(player_id)] = value

    def __iter__(self) -> Iterator[T]:
        return iter(self._data)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, PlayerIndexedList):
            return NotImplemented
        return self._data == other._data

    def __repr__(self) -> str:
        return f"PlayerIndexedList({self._data!r})"

    def ids(self) -> range:
        return range(1, len(self._data) + 1)

    def items(self) -> Iterator[Tuple[int, T]]:
        for i, value in enumerate(self._data):
            yield i + 1, value

    def map(self, f: Callable[[T], E]) -> PlayerIndexedList[E]:
        return PlayerIndexedList(f(value) for value in self._data)

    def _slot(self, player_id: int) -> int:
        # 0 and negative ids must not wrap around.
        if not 1 <= player_id <= len(self._data):
            raise IndexError(f"player id {player_id} out of range 1..{len(self._data)}")
        return player_id - 1
