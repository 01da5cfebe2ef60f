"""
Minimal Flask API that wires the game controller into a browser board.

Endpoints:
- POST /api/games                         -> start a human (White) vs AI (Black) game
- GET  /api/games/<id>                    -> current snapshot (poll while ai_thinking is true)
- POST /api/games/<id>/move               -> submit a human move {"from": "e2", "to": "e4"}
- POST /api/games/<id>/reset              -> start over in the same session
- POST /api/games/<id>/difficulty         -> {"difficulty": "BEGINNER" | "GRANDMASTER"}
- GET  /api/games/<id>/legal-moves?square -> legal targets for highlighting

All controllers live on one asyncio loop running in a background thread; request handlers
marshal their calls onto it so AI turns continue after the HTTP response is sent.
"""
from __future__ import annotations

import asyncio
import logging
import threading
import time
import uuid
from typing import Any, Callable, Dict, Optional

from flask import Flask, jsonify, request

from .advisor import MoveAdvisor
from .config import SETTINGS
from .controller import GameController
from .state import Difficulty

log = logging.getLogger("server")

CALL_TIMEOUT_S = 10.0


class LoopThread:
    """Owns the event loop every game controller runs on."""

    def __init__(self, name: str = "game-loop"):
        self.loop = asyncio.new_event_loop()
        self.thread = threading.Thread(target=self._run, name=name, daemon=True)
        self.thread.start()

    def _run(self):
        asyncio.set_event_loop(self.loop)
        self.loop.run_forever()

    def call(self, fn: Callable[..., Any], *args, timeout: float = CALL_TIMEOUT_S) -> Any:
        """Run a synchronous callable on the loop thread and return its result."""
        async def _invoke():
            return fn(*args)
        return asyncio.run_coroutine_threadsafe(_invoke(), self.loop).result(timeout)

    def stop(self):
        self.loop.call_soon_threadsafe(self.loop.stop)
        self.thread.join(timeout=CALL_TIMEOUT_S)


def create_app(controller_factory: Optional[Callable[[Difficulty], GameController]] = None,
               loop_thread: Optional[LoopThread] = None,
               session_ttl_s: Optional[int] = None) -> Flask:
    app = Flask(__name__)
    runtime = loop_thread or LoopThread()
    ttl_s = SETTINGS.human_game_ttl_s if session_ttl_s is None else session_ttl_s
    sessions: Dict[str, dict] = {}
    sessions_lock = threading.Lock()

    if controller_factory is None:
        advisor = MoveAdvisor()

        def controller_factory(difficulty: Difficulty) -> GameController:
            return GameController(advisor=advisor, difficulty=difficulty)

    app.extensions["llmchess_duel"] = {"runtime": runtime, "sessions": sessions}

    def _cleanup_stale_sessions():
        now = time.time()
        with sessions_lock:
            expired = [gid for gid, sess in sessions.items() if now - sess.get("updated_at", now) > ttl_s]
            for gid in expired:
                sessions.pop(gid, None)
        if expired:
            log.info("Dropped %d idle game(s)", len(expired))

    def _get_session(game_id: str) -> Optional[dict]:
        _cleanup_stale_sessions()
        with sessions_lock:
            session = sessions.get(game_id)
            if session:
                session["updated_at"] = time.time()
        return session

    def _json_body() -> dict:
        data = request.get_json(silent=True)
        return data if isinstance(data, dict) else {}

    def _serialize(session: dict) -> dict:
        snap = runtime.call(session["controller"].snapshot)
        snap["game_id"] = session["id"]
        return snap

    @app.route("/api/games", methods=["POST"])
    def create_game():
        _cleanup_stale_sessions()
        data = _json_body()
        try:
            difficulty = Difficulty.parse(data.get("difficulty") or Difficulty.BEGINNER)
        except ValueError as exc:
            return jsonify({"error": "bad_difficulty", "detail": str(exc)}), 400
        game_id = f"game_{int(time.time())}_{uuid.uuid4().hex[:6]}"
        session = {
            "id": game_id,
            "controller": controller_factory(difficulty),
            "created_at": time.time(),
            "updated_at": time.time(),
        }
        with sessions_lock:
            sessions[game_id] = session
        log.info("Created game %s (difficulty=%s)", game_id, difficulty.value)
        return jsonify(_serialize(session)), 201

    @app.route("/api/games/<game_id>", methods=["GET"])
    def get_game(game_id: str):
        session = _get_session(game_id)
        if not session:
            return jsonify({"error": "not found"}), 404
        return jsonify(_serialize(session))

    @app.route("/api/games/<game_id>/move", methods=["POST"])
    def human_move(game_id: str):
        session = _get_session(game_id)
        if not session:
            return jsonify({"error": "not found"}), 404
        data = _json_body()
        from_sq = str(data.get("from") or "").strip().lower()
        to_sq = str(data.get("to") or "").strip().lower()
        if not from_sq or not to_sq:
            return jsonify({"error": "from and to are required"}), 400
        ok = runtime.call(session["controller"].apply_human_move, from_sq, to_sq)
        if not ok:
            body = _serialize(session)
            body["error"] = "illegal_move"
            return jsonify(body), 400
        return jsonify(_serialize(session))

    @app.route("/api/games/<game_id>/reset", methods=["POST"])
    def reset_game(game_id: str):
        session = _get_session(game_id)
        if not session:
            return jsonify({"error": "not found"}), 404
        runtime.call(session["controller"].reset)
        return jsonify(_serialize(session))

    @app.route("/api/games/<game_id>/difficulty", methods=["POST"])
    def set_difficulty(game_id: str):
        session = _get_session(game_id)
        if not session:
            return jsonify({"error": "not found"}), 404
        data = _json_body()
        try:
            runtime.call(session["controller"].set_difficulty, data.get("difficulty") or "")
        except ValueError as exc:
            return jsonify({"error": "bad_difficulty", "detail": str(exc)}), 400
        return jsonify(_serialize(session))

    @app.route("/api/games/<game_id>/legal-moves", methods=["GET"])
    def legal_moves(game_id: str):
        session = _get_session(game_id)
        if not session:
            return jsonify({"error": "not found"}), 404
        square = (request.args.get("square") or "").strip().lower()
        controller: GameController = session["controller"]
        moves = runtime.call(lambda: controller.state.position.legal_moves_from(square))
        return jsonify({"square": square, "moves": moves})

    @app.after_request
    def add_cors_headers(response):
        response.headers["Access-Control-Allow-Origin"] = request.headers.get("Origin", "*")
        response.headers["Access-Control-Allow-Headers"] = "Content-Type, Authorization"
        response.headers["Access-Control-Allow-Methods"] = "GET, POST, OPTIONS"
        # Boards poll for the AI reply; never serve a cached snapshot
        response.headers["Cache-Control"] = "no-store, max-age=0"
        return response

    @app.route("/api/<path:path>", methods=["OPTIONS"])
    def cors_preflight(path: str):
        return app.make_response(("", 204))

    return app
