from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple
import logging
import secrets
import string
import threading
import time

from . import messages
from .config import DisconnectPolicy, MatchSettings
from .game_engine import Game
from .geometry import Direction

logger = logging.getLogger(__name__)


def _now() -> float:
    return time.time()


def _gen_code(length: int = 6) -> str:
    alphabet = string.ascii_uppercase + string.digits
    return "".join(secrets.choice(alphabet) for _ in range(length))


def _norm_code(code: str) -> str:
    return (code or "").strip().upper()


@dataclass
class Seat:
    player_id: str
    nick: str
    is_host: bool
    joined_at: float
    last_seen: float
    slot: Optional[int] = None  # 1-based game id, assigned on start
    pending: Optional[Direction] = None


@dataclass
class Match:
    code: str
    created_at: float
    seats: Dict[str, Seat]  # key = player_id
    started: bool = False
    finished: bool = False
    game: Optional[Game] = None
    next_tick_at: float = 0.0
    result: Optional[dict] = None

    def host(self) -> Optional[Seat]:
        for s in self.seats.values():
            if s.is_host:
                return s
        return None

    def seats_by_join(self) -> List[Seat]:
        return sorted(self.seats.values(), key=lambda s: s.joined_at)

    def seats_by_slot(self) -> List[Seat]:
        return sorted(
            (s for s in self.seats.values() if s.slot is not None),
            key=lambda s: s.slot,
        )

    def seat_list(self) -> List[dict]:
        return [
            {
                "player_id": s.player_id,
                "nick": s.nick,
                "is_host": s.is_host,
                "slot": s.slot,
                "last_seen": s.last_seen,
            }
            for s in self.seats_by_join()
        ]


class MatchStore:
    """
    In-memory matches, guarded by a single lock.

    Direction requests are only queued here; they reach the game right before
    its next tick, so a tick never interleaves with a direction change.
    """

    def __init__(self, settings: Optional[MatchSettings] = None):
        self._lock = threading.Lock()
        self._matches: Dict[str, Match] = {}
        self.settings = settings or MatchSettings()

    def _new_seat(self, nick: str, is_host: bool) -> Seat:
        pid = secrets.token_urlsafe(10)
        t = _now()
        return Seat(player_id=pid, nick=nick, is_host=is_host, joined_at=t, last_seen=t)

    def create_match(self, host_nick: str) -> Tuple[Match, Seat]:
        with self._lock:
            while True:
                code = _gen_code(6)
                if code not in self._matches:
                    break

            host = self._new_seat(host_nick, is_host=True)
            match = Match(code=code, created_at=_now(), seats={host.player_id: host})
            self._matches[code] = match
            return match, host

    def get_match(self, code: str) -> Optional[Match]:
        code = _norm_code(code)
        with self._lock:
            return self._matches.get(code)

    def list_public(self) -> List[dict]:
        with self._lock:
            res = []
            for match in self._matches.values():
                if match.started:
                    continue
                res.append({
                    "code": match.code,
                    "players": len(match.seats),
                    "max_players": self.settings.players_per_match,
                    "created_at": match.created_at,
                })
            res.sort(key=lambda x: x["created_at"], reverse=True)
            return res

    def get_public_state(self, code: str) -> dict:
        code = _norm_code(code)
        with self._lock:
            match = self._matches.get(code)
            if not match:
                return {"ok": False, "error": "Match not found"}

            host = match.host()
            return {
                "ok": True,
                "code": match.code,
                "started": match.started,
                "finished": match.finished,
                "tick_num": match.game.tick_num if match.game else None,
                "players": match.seat_list(),
                "players_count": len(match.seats),
                "max_players": self.settings.players_per_match,
                "host_nick": host.nick if host else None,
            }

    def join_match(self, code: str, nick: str) -> dict:
        code = _norm_code(code)
        with self._lock:
            match = self._matches.get(code)
            if not match:
                return {"ok": False, "error": "Match not found"}
            if match.started:
                return {"ok": False, "error": "Match already started"}
            if len(match.seats) >= self.settings.players_per_match:
                return {"ok": False, "error": "Match is full"}

            nicks = {s.nick.lower() for s in match.seats.values()}
            if nick.lower() in nicks:
                return {"ok": False, "error": "Nick already taken in this match"}

            s = self._new_seat(nick, is_host=False)
            match.seats[s.player_id] = s
            return {
                "ok": True,
                "code": match.code,
                "player_id": s.player_id,
                "is_host": False,
                "max_players": self.settings.players_per_match,
            }

    def leave_match(self, code: str, player_id: str) -> bool:
        code = _norm_code(code)
        with self._lock:
            match = self._matches.get(code)
            if not match:
                return False

            if match.started:
                # Leaving a running match forfeits the seat; it stays for the result.
                seat = match.seats.get(player_id)
                if not seat:
                    return False
                if not match.finished:
                    match.game.eliminate(seat.slot)
                return True

            s = match.seats.pop(player_id, None)
            if not s:
                return False

            # If host left, promote earliest joined remaining player
            if s.is_host and match.seats:
                match.seats_by_join()[0].is_host = True

            if not match.seats:
                self._matches.pop(code, None)
            return True

    def ping(self, code: str, player_id: str) -> None:
        code = _norm_code(code)
        with self._lock:
            match = self._matches.get(code)
            if not match:
                return
            s = match.seats.get(player_id)
            if not s:
                return
            s.last_seen = _now()

    def start_match(self, code: str, player_id: str) -> dict:
        code = _norm_code(code)
        with self._lock:
            match = self._matches.get(code)
            if not match:
                return {"ok": False, "error": "Match not found"}
            s = match.seats.get(player_id)
            if not s:
                return {"ok": False, "error": "Player not found"}
            if not s.is_host:
                return {"ok": False, "error": "Only host can start"}
            if match.started:
                return {"ok": False, "error": "Already started"}

            seats = match.seats_by_join()
            for slot, seat in enumerate(seats, start=1):
                seat.slot = slot
            match.game = Game(len(seats), width=self.settings.width, height=self.settings.height)
            match.started = True
            match.next_tick_at = _now() + self.settings.tick_interval_seconds
            logger.info("match %s started with %d player(s)", match.code, len(seats))
            return {
                "ok": True,
                "started": True,
                "slot": s.slot,
                "message": messages.start_game(match.game.get_game_params()),
            }

    def set_direction(self, code: str, player_id: str, direction: Direction) -> dict:
        code = _norm_code(code)
        with self._lock:
            match = self._matches.get(code)
            if not match:
                return {"ok": False, "error": "Match not found"}
            s = match.seats.get(player_id)
            if not s:
                return {"ok": False, "error": "Player not found"}
            if not match.started:
                return {"ok": False, "error": "Match not started"}
            if match.finished:
                return {"ok": False, "error": "Match finished"}
            if match.game.has_lost(s.slot):
                return {"ok": False, "error": "Player has lost"}

            s.last_seen = _now()
            s.pending = direction
            return {"ok": True, "tick_num": match.game.tick_num}

    def advance(self, code: str) -> dict:
        """Run one tick of a started match now, regardless of its schedule."""
        code = _norm_code(code)
        with self._lock:
            match = self._matches.get(code)
            if not match:
                return {"ok": False, "error": "Match not found"}
            if not match.started:
                return {"ok": False, "error": "Match not started"}
            if match.finished:
                return {"ok": False, "error": "Match finished"}

            self._advance(match, _now())
            return {"ok": True, "tick_num": match.game.tick_num, "finished": match.finished}

    def tick_due(self, now: Optional[float] = None) -> int:
        """Tick every running match whose next tick is due. Returns how many ticked."""
        now = _now() if now is None else now
        advanced = 0
        with self._lock:
            for match in self._matches.values():
                if not match.started or match.finished or match.next_tick_at > now:
                    continue
                self._advance(match, now)
                match.next_tick_at = now + self.settings.tick_interval_seconds
                advanced += 1
        return advanced

    def _advance(self, match: Match, now: float) -> None:
        game = match.game
        cutoff = now - self.settings.player_timeout_seconds

        for seat in match.seats_by_slot():
            if game.has_lost(seat.slot):
                seat.pending = None
                continue

            if seat.last_seen < cutoff and self.settings.disconnect_policy == DisconnectPolicy.ELIMINATE:
                logger.warning("match %s: %s timed out, eliminating", match.code, seat.nick)
                game.eliminate(seat.slot)
            elif seat.pending is not None:
                if not game.try_change_direction(seat.slot, seat.pending):
                    logger.debug("match %s: %s cannot reverse to %s", match.code, seat.nick, seat.pending.value)
            seat.pending = None

        game.tick()

        if game.tick_num > self.settings.tick_count or not game.alive_ids():
            self._finish(match)

    def _finish(self, match: Match) -> None:
        game = match.game
        leader = game.leader_id()
        by_slot = {s.slot: s for s in match.seats_by_slot()}
        match.finished = True
        match.result = {
            "scores": [
                {"slot": slot, "nick": by_slot[slot].nick, "score": score, "has_lost": game.has_lost(slot)}
                for slot, score in enumerate(game.get_player_scores(), start=1)
            ],
            "leader": by_slot[leader].nick if leader is not None else None,
            "leader_slot": leader,
            "tick_num": game.tick_num,
        }
        if leader is None:
            logger.info("match %s finished: there is no winner (tie)", match.code)
        else:
            logger.info("match %s finished: winner is %s (#%d)", match.code, by_slot[leader].nick, leader)

    def get_world(self, code: str, player_id: Optional[str] = None) -> Optional[dict]:
        """Message for a viewer: start_game before the match, tick while running, end_game after."""
        code = _norm_code(code)
        with self._lock:
            match = self._matches.get(code)
            if not match:
                return None
            if not match.started:
                return messages.start_game({
                    "x_cells_count": self.settings.width,
                    "y_cells_count": self.settings.height,
                })
            if match.finished:
                return messages.end_game()

            seat = match.seats.get(player_id) if player_id else None
            if seat:
                seat.last_seen = _now()
                return messages.tick(match.game.get_player_world(seat.slot))
            return messages.tick(match.game.get_spectator_world())

    def get_result(self, code: str) -> dict:
        code = _norm_code(code)
        with self._lock:
            match = self._matches.get(code)
            if not match:
                return {"ok": False, "error": "Match not found"}
            if not match.finished:
                return {"ok": False, "error": "Match not finished"}
            return {"ok": True, **match.result}

    def cleanup(self) -> None:
        cutoff = _now() - self.settings.player_timeout_seconds
        with self._lock:
            to_delete = []
            for code, match in self._matches.items():
                stale = [pid for pid, s in match.seats.items() if s.last_seen < cutoff]

                if match.started:
                    # Seats of a running match are handled by the disconnect policy;
                    # a finished match goes once nobody is watching it.
                    if match.finished and len(stale) == len(match.seats):
                        to_delete.append(code)
                    continue

                for pid in stale:
                    match.seats.pop(pid, None)

                # Ensure host exists if players remain
                if match.seats and not any(s.is_host for s in match.seats.values()):
                    match.seats_by_join()[0].is_host = True

                if not match.seats:
                    to_delete.append(code)

            for code in to_delete:
                self._matches.pop(code, None)
