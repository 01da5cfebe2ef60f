"""
Position: immutable chess position over a python-chess Board.

- Wraps a private Board copy; every accepted move returns a new Position, the receiver is left untouched.
- apply_move() / apply_san() validate through python-chess and return (Position, MoveResult) or None.
- Exposes the termination predicates the game status is derived from, and fingerprint() (FEN).

"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

import chess

PROMOTION_PIECES = {"q": chess.QUEEN, "r": chess.ROOK, "b": chess.BISHOP, "n": chess.KNIGHT}


def color_name(color: chess.Color) -> str:
    return "white" if color == chess.WHITE else "black"


@dataclass(frozen=True)
class MoveResult:
    """Outcome of a move the rules engine accepted."""

    from_square: str
    to_square: str
    san: str
    uci: str
    color: str  # side that moved: "white" | "black"
    captured: Optional[str] = None  # piece kind taken ("p", "n", "b", "r", "q"), None if quiet
    promotion: Optional[str] = None


class Position:
    """Read-only snapshot of a game position (placement, side to move, rights, clocks, move stack)."""

    __slots__ = ("_board",)

    def __init__(self, board: chess.Board | None = None):
        self._board = board.copy() if board is not None else chess.Board()

    @classmethod
    def starting(cls) -> "Position":
        return cls()

    @classmethod
    def from_fen(cls, fen: str) -> "Position":
        return cls(chess.Board(fen=fen))

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Position):
            return NotImplemented
        return self.fingerprint() == other.fingerprint()

    def __hash__(self) -> int:
        return hash(self.fingerprint())

    def __repr__(self) -> str:
        return f"Position({self.fingerprint()!r})"

    # ---------------- Queries -----------------
    def fingerprint(self) -> str:
        return self._board.fen()

    def board(self) -> chess.Board:
        """Return a copy of the underlying board (callers cannot mutate this position)."""
        return self._board.copy()

    def side_to_move(self) -> str:
        return color_name(self._board.turn)

    def legal_moves(self) -> list[str]:
        """Legal moves in SAN, in python-chess generation order."""
        return [self._board.san(mv) for mv in self._board.legal_moves]

    def legal_moves_from(self, square: str) -> list[dict]:
        """Legal moves starting on one square, as {from, to, san}; empty for a bad square name."""
        try:
            origin = chess.parse_square(square)
        except ValueError:
            return []
        out = []
        for mv in self._board.legal_moves:
            if mv.from_square != origin:
                continue
            # Promotion targets are offered once (queen), matching apply_move()
            if mv.promotion not in (None, chess.QUEEN):
                continue
            out.append({
                "from": chess.square_name(mv.from_square),
                "to": chess.square_name(mv.to_square),
                "san": self._board.san(mv),
            })
        return out

    def piece_at(self, square: str) -> Optional[str]:
        """Piece symbol on the square ("P", "n", ...) or None."""
        try:
            piece = self._board.piece_at(chess.parse_square(square))
        except ValueError:
            return None
        return piece.symbol() if piece else None

    # ---------------- Termination predicates -----------------
    def is_check(self) -> bool:
        return self._board.is_check()

    def is_checkmate(self) -> bool:
        return self._board.is_checkmate()

    def is_draw(self) -> bool:
        """Draw by the fifty-move rule (the draws that have no more specific status)."""
        return self._board.is_fifty_moves()

    def is_stalemate(self) -> bool:
        return self._board.is_stalemate()

    def is_threefold_repetition(self) -> bool:
        return self._board.is_repetition(3)

    def is_insufficient_material(self) -> bool:
        return self._board.is_insufficient_material()

    # ---------------- Move application -----------------
    def apply_move(self, from_square: str, to_square: str, promotion: str | None = None) -> tuple["Position", MoveResult] | None:
        """Apply a (from, to) request. Pawn moves to the last rank promote to `promotion` (queen by default).

        Returns None when the squares are malformed or the move is illegal.
        """
        try:
            origin = chess.parse_square(from_square)
            target = chess.parse_square(to_square)
        except ValueError:
            return None
        mv = chess.Move(origin, target)
        if mv not in self._board.legal_moves:
            piece_type = PROMOTION_PIECES.get((promotion or "q").lower())
            if piece_type is None:
                return None
            mv = chess.Move(origin, target, promotion=piece_type)
            if mv not in self._board.legal_moves:
                return None
        return self._push(mv)

    def apply_san(self, san: str) -> tuple["Position", MoveResult] | None:
        """Apply a move given in SAN; None if it does not parse or is illegal here."""
        try:
            mv = self._board.parse_san((san or "").strip())
        except ValueError:
            return None
        if mv not in self._board.legal_moves:
            return None
        return self._push(mv)

    def _push(self, mv: chess.Move) -> tuple["Position", MoveResult]:
        board = self._board
        captured = None
        if board.is_en_passant(mv):
            captured = "p"
        elif board.is_capture(mv):
            taken = board.piece_at(mv.to_square)
            captured = taken.symbol().lower() if taken else None
        result = MoveResult(
            from_square=chess.square_name(mv.from_square),
            to_square=chess.square_name(mv.to_square),
            san=board.san(mv),
            uci=mv.uci(),
            color=color_name(board.turn),
            captured=captured,
            promotion=chess.piece_symbol(mv.promotion) if mv.promotion else None,
        )
        nxt = board.copy()
        nxt.push(mv)
        return Position(nxt), result
