"""
Game controller for a human (White) vs advisor-backed AI (Black) game.

- Owns the current GameState plus the turn bookkeeping (difficulty, busy flag, commentary,
  dispatch guard, generation counter, rejected advisor moves).
- apply_human_move(): validates and commits a human move; when Black is to move afterwards the AI
  turn is dispatched on the running asyncio loop.
- request_ai_move(): one advisor round trip per position. A fingerprint guard stops duplicate
  dispatch, and responses that resolve after a reset or position change are discarded.
- reset() / set_difficulty() / snapshot() for the presentation layer.

"""
from __future__ import annotations

import asyncio
import logging
from typing import Optional

from .advisor import MoveAdvisor
from .config import SETTINGS
from .state import (
    AI_COLOR,
    HUMAN_COLOR,
    Difficulty,
    GameState,
    GameStatus,
    captured_by,
    commit_move,
    history_rows,
    initial_state,
    needs_ai_turn,
    winner,
)

PENDING_COMMENTARY = "Analyzing position..."
APOLOGY_COMMENTARY = "I stumbled. Your turn."


class GameController:
    def __init__(self, advisor: MoveAdvisor | None = None, difficulty: Difficulty | str = Difficulty.BEGINNER,
                 ai_delay_s: float | None = None, auto_ai: bool = True, max_ai_attempts: int | None = None):
        self.log = logging.getLogger("controller")
        self.advisor = advisor or MoveAdvisor()
        self.difficulty = Difficulty.parse(difficulty)
        # Pacing pause applied on BEGINNER turns only
        self.ai_delay_s = SETTINGS.beginner_delay_s if ai_delay_s is None else ai_delay_s
        self.auto_ai = auto_ai
        # Advisor calls per AI turn before the turn is given up (illegal replies only)
        self.max_ai_attempts = max(1, SETTINGS.max_ai_attempts if max_ai_attempts is None else max_ai_attempts)
        self.state: GameState = initial_state()
        self.ai_busy = False
        self.commentary = ""
        self.ai_rejected_moves = 0
        self._turn_guard = ""
        self._generation = 0
        self.ai_task: Optional[asyncio.Task] = None

    # ---------------- Read-only views -----------------
    @property
    def status(self) -> GameStatus:
        return self.state.status

    @property
    def turn_guard(self) -> str:
        return self._turn_guard

    def needs_ai_turn(self) -> bool:
        return needs_ai_turn(self.state)

    def snapshot(self) -> dict:
        st = self.state
        return {
            "fen": st.position.fingerprint(),
            "turn": st.position.side_to_move(),
            "status": st.status.value,
            "is_check": st.position.is_check(),
            "history": list(st.history),
            "history_rows": history_rows(st.history),
            "captured": {
                HUMAN_COLOR: captured_by(st, HUMAN_COLOR),
                AI_COLOR: captured_by(st, AI_COLOR),
            },
            "last_move": {"from": st.last_move.from_square, "to": st.last_move.to_square} if st.last_move else None,
            "difficulty": self.difficulty.value,
            "ai_thinking": self.ai_busy,
            "commentary": self.commentary,
            "winner": winner(st),
            "ai_rejected_moves": self.ai_rejected_moves,
        }

    # ---------------- User actions -----------------
    def apply_human_move(self, from_square: str, to_square: str) -> bool:
        """Commit a human move if it is legal and it is the human's turn. Never raises."""
        st = self.state
        if st.status.is_terminal or self.ai_busy:
            return False
        if st.position.side_to_move() != HUMAN_COLOR:
            return False
        applied = st.position.apply_move(from_square, to_square)
        if applied is None:
            self.log.debug("Rejected human move %s-%s", from_square, to_square)
            return False
        position, result = applied
        self.state = commit_move(st, position, result)
        self.log.debug("Human played %s; status=%s", result.san, self.state.status.value)
        self._after_commit()
        return True

    def set_difficulty(self, difficulty: Difficulty | str) -> None:
        self.difficulty = Difficulty.parse(difficulty)

    def reset(self) -> None:
        self._generation += 1
        self.state = initial_state()
        self.ai_busy = False
        self.commentary = ""
        self.ai_rejected_moves = 0
        self._turn_guard = ""
        self.log.debug("Game reset (generation %d)", self._generation)

    # ---------------- AI turn -----------------
    def _after_commit(self) -> None:
        """Turn handoff, evaluated once per committed move."""
        if not self.auto_ai or not self.needs_ai_turn():
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            # No loop: the caller drives the turn with `await request_ai_move()`
            return
        self.ai_task = loop.create_task(self.request_ai_move())

    async def wait_for_ai(self) -> None:
        """Wait for a dispatched AI turn (if any) to finish."""
        task = self.ai_task
        if task is not None:
            await task

    async def request_ai_move(self) -> None:
        st = self.state
        if not needs_ai_turn(st):
            return
        fen = st.position.fingerprint()
        # Compare-and-set before the first await; the loop cannot interleave here
        if self._turn_guard == fen:
            return
        self._turn_guard = fen
        generation = self._generation

        self.ai_busy = True
        self.commentary = PENDING_COMMENTARY
        try:
            legal = st.position.legal_moves()
            if not legal:
                return
            difficulty = self.difficulty
            for attempt in range(1, self.max_ai_attempts + 1):
                advice = await self.advisor.get_advised_move(fen, legal, difficulty)
                if difficulty is Difficulty.BEGINNER and self.ai_delay_s > 0:
                    await asyncio.sleep(self.ai_delay_s)

                if generation != self._generation or self.state.position.fingerprint() != fen:
                    self.log.info("Discarding stale advisor reply %r for %s", advice.move, fen)
                    return
                applied = self.state.position.apply_san(advice.move)
                if applied is not None:
                    break
                self.ai_rejected_moves += 1
                self.log.warning("Advisor proposed illegal move %r for %s (attempt %d/%d)", advice.move, fen, attempt, self.max_ai_attempts)
            else:
                self.commentary = APOLOGY_COMMENTARY
                return
            position, result = applied
            self.state = commit_move(self.state, position, result)
            self.commentary = advice.explanation
            self.log.debug("AI played %s (fallback=%s); status=%s", result.san, advice.fallback, self.state.status.value)
        except Exception:
            self.log.exception("AI turn failed for %s", fen)
            if generation == self._generation:
                self.commentary = APOLOGY_COMMENTARY
        finally:
            if generation == self._generation:
                self.ai_busy = False
