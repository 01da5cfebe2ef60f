"""
Game state values and pure transitions.

GameState is a frozen snapshot (position, SAN history, capture ledger, last move, status).
commit_move() maps (state, accepted move) to the next state; derive_status() and
needs_ai_turn() are the rules the controller evaluates after every commit.
"""
from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Optional

from .position import MoveResult, Position

HUMAN_COLOR = "white"
AI_COLOR = "black"

# Display ordering for captured pieces (queen first)
PIECE_VALUES = {"q": 9, "r": 5, "b": 3, "n": 3, "p": 1}


class GameStatus(str, Enum):
    IN_PROGRESS = "IN_PROGRESS"
    CHECKMATE = "CHECKMATE"
    DRAW = "DRAW"
    STALEMATE = "STALEMATE"
    INSUFFICIENT_MATERIAL = "INSUFFICIENT_MATERIAL"
    THREEFOLD_REPETITION = "THREEFOLD_REPETITION"

    @property
    def is_terminal(self) -> bool:
        return self is not GameStatus.IN_PROGRESS


class Difficulty(str, Enum):
    BEGINNER = "BEGINNER"  # fast model, paced reply
    GRANDMASTER = "GRANDMASTER"  # stronger model, deeper reasoning

    @classmethod
    def parse(cls, value: "Difficulty | str") -> "Difficulty":
        if isinstance(value, Difficulty):
            return value
        try:
            return cls[str(value).strip().upper()]
        except KeyError:
            raise ValueError(f"Unknown difficulty '{value}'. Expected one of: {', '.join(d.value for d in cls)}") from None


@dataclass(frozen=True)
class CapturedPiece:
    color: str  # side that lost the piece
    kind: str  # "p" | "n" | "b" | "r" | "q"

    @property
    def code(self) -> str:
        """Compact id such as 'bq' (black queen)."""
        return self.color[0] + self.kind


@dataclass(frozen=True)
class LastMove:
    from_square: str
    to_square: str


@dataclass(frozen=True)
class GameState:
    position: Position = field(default_factory=Position.starting)
    history: tuple[str, ...] = ()
    captures: tuple[CapturedPiece, ...] = ()
    last_move: Optional[LastMove] = None
    status: GameStatus = GameStatus.IN_PROGRESS


def initial_state() -> GameState:
    return GameState()


def derive_status(position: Position) -> GameStatus:
    """Most specific status first: checkmate, draw, stalemate, repetition, material."""
    if position.is_checkmate():
        return GameStatus.CHECKMATE
    if position.is_draw():
        return GameStatus.DRAW
    if position.is_stalemate():
        return GameStatus.STALEMATE
    if position.is_threefold_repetition():
        return GameStatus.THREEFOLD_REPETITION
    if position.is_insufficient_material():
        return GameStatus.INSUFFICIENT_MATERIAL
    return GameStatus.IN_PROGRESS


def commit_move(state: GameState, position: Position, result: MoveResult) -> GameState:
    captures = state.captures
    if result.captured:
        loser = AI_COLOR if result.color == HUMAN_COLOR else HUMAN_COLOR
        captures = captures + (CapturedPiece(color=loser, kind=result.captured),)
    return replace(
        state,
        position=position,
        history=state.history + (result.san,),
        captures=captures,
        last_move=LastMove(result.from_square, result.to_square),
        status=derive_status(position),
    )


def needs_ai_turn(state: GameState) -> bool:
    return state.status is GameStatus.IN_PROGRESS and state.position.side_to_move() == AI_COLOR


def captured_by(state: GameState, side: str) -> list[str]:
    """Pieces the given side has taken, most valuable first, as codes ('bq', 'bp', ...)."""
    taken = [c for c in state.captures if c.color != side]
    taken.sort(key=lambda c: PIECE_VALUES.get(c.kind, 0), reverse=True)
    return [c.code for c in taken]


def history_rows(history: tuple[str, ...]) -> list[dict]:
    """Group SAN history into numbered (white, black) rows."""
    rows = []
    for i in range(0, len(history), 2):
        rows.append({
            "move_number": i // 2 + 1,
            "white": history[i],
            "black": history[i + 1] if i + 1 < len(history) else None,
        })
    return rows


def winner(state: GameState) -> Optional[str]:
    """'human' or 'ai' after checkmate (the side to move is the one mated), else None."""
    if state.status is not GameStatus.CHECKMATE:
        return None
    return "human" if state.position.side_to_move() == AI_COLOR else "ai"
