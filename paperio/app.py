from __future__ import annotations

import threading
import time
from typing import Optional

from flask import Flask, jsonify, request

from .config import MatchSettings
from .match_store import MatchStore
from .messages import parse_direction

CLEANUP_INTERVAL_SECONDS = 10


def _json_body() -> dict:
    data = request.get_json(silent=True)
    return data if isinstance(data, dict) else {}


def _text(data: dict, key: str) -> str:
    # Non-string values count as missing.
    value = data.get(key)
    return value.strip() if isinstance(value, str) else ""


def create_app(settings: Optional[MatchSettings] = None, start_background: bool = True) -> Flask:
    app = Flask(__name__)

    settings = settings or MatchSettings.from_env()
    store = MatchStore(settings)
    app.extensions["match_store"] = store

    def _cleanup_loop() -> None:
        while True:
            time.sleep(CLEANUP_INTERVAL_SECONDS)
            store.cleanup()

    def _tick_loop() -> None:
        while True:
            time.sleep(settings.tick_interval_seconds)
            store.tick_due()

    if start_background:
        for target in (_cleanup_loop, _tick_loop):
            threading.Thread(target=target, daemon=True).start()

    @app.get("/api/params")
    def api_params():
        return jsonify({
            "x_cells_count": settings.width,
            "y_cells_count": settings.height,
            "players_per_match": settings.players_per_match,
            "tick_count": settings.tick_count,
            "tick_interval_seconds": settings.tick_interval_seconds,
            "disconnect_policy": settings.disconnect_policy.value,
        })

    # -------- Matches --------

    @app.get("/api/matches")
    def api_list_matches():
        matches = store.list_public()
        app.logger.info(f"[i] List matches: {len(matches)} open")
        return jsonify(matches)

    @app.post("/api/matches")
    def api_create_match():
        data = _json_body()
        nick = _text(data, "nick")
        if not nick:
            return jsonify({"error": "Nick is required"}), 400

        match, seat = store.create_match(host_nick=nick)
        app.logger.info(f"[+] Match {match.code} created by {nick} (ID: {seat.player_id})")
        return jsonify({
            "code": match.code,
            "player_id": seat.player_id,
            "is_host": True,
            "max_players": settings.players_per_match,
        })

    @app.get("/api/matches/<code>")
    def api_get_match(code: str):
        player_id = (request.args.get("player_id") or "").strip() or None
        if not store.get_match(code):
            app.logger.warning(f"[x] Match {code} not found")
            return jsonify({"error": "Match not found"}), 404

        if player_id:
            store.ping(code, player_id)

        return jsonify(store.get_public_state(code))

    @app.post("/api/matches/<code>/join")
    def api_join_match(code: str):
        data = _json_body()
        nick = _text(data, "nick")
        if not nick:
            return jsonify({"error": "Nick is required"}), 400

        res = store.join_match(code=code, nick=nick)
        if res["ok"] is False:
            app.logger.warning(f"[x] {nick} could not join {code}: {res.get('error')}")
            return jsonify(res), 400
        app.logger.info(f"[+] {nick} joined {code} (ID: {res['player_id']})")
        return jsonify(res)

    @app.post("/api/matches/<code>/leave")
    def api_leave_match(code: str):
        data = _json_body()
        player_id = _text(data, "player_id")
        if not player_id:
            return jsonify({"error": "player_id is required"}), 400

        ok = store.leave_match(code=code, player_id=player_id)
        if not ok:
            return jsonify({"error": "Match or player not found"}), 404
        app.logger.info(f"[-] Player {player_id} left {code}")
        return jsonify({"ok": True})

    @app.post("/api/matches/<code>/start")
    def api_start_match(code: str):
        data = _json_body()
        player_id = _text(data, "player_id")
        if not player_id:
            return jsonify({"error": "player_id is required"}), 400

        res = store.start_match(code=code, player_id=player_id)
        if res["ok"] is False:
            app.logger.warning(f"[x] Could not start {code}: {res.get('error')}")
            return jsonify(res), 400
        app.logger.info(f"[>] Match {code} started")
        return jsonify(res)

    # -------- Game --------

    @app.get("/api/matches/<code>/world")
    def api_world(code: str):
        player_id = (request.args.get("player_id") or "").strip() or None
        message = store.get_world(code, player_id)
        if message is None:
            return jsonify({"error": "Match not found"}), 404
        return jsonify(message)

    @app.post("/api/matches/<code>/direction")
    def api_direction(code: str):
        data = _json_body()
        player_id = _text(data, "player_id")
        if not player_id:
            return jsonify({"error": "Auth required"}), 401

        try:
            direction = parse_direction(data.get("direction"))
        except ValueError as err:
            return jsonify({"ok": False, "error": str(err)}), 400

        res = store.set_direction(code, player_id, direction)
        if res["ok"] is False:
            status = 404 if res["error"] == "Match not found" else 400
            return jsonify(res), status
        return jsonify(res)

    @app.get("/api/matches/<code>/result")
    def api_result(code: str):
        res = store.get_result(code)
        if res["ok"] is False:
            status = 404 if res["error"] == "Match not found" else 400
            return jsonify(res), status
        return jsonify(res)

    return app


if __name__ == "__main__":
    create_app().run(host="0.0.0.0", port=5000, debug=True)
