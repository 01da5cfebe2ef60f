"""Shared positions and helpers for the test suite."""
from llmchess_duel.position import Position

STALEMATE_FEN = "7k/5Q2/6K1/8/8/8/8/8 b - - 0 1"
BARE_KINGS_FEN = "8/8/8/8/8/8/8/K6k w - - 0 1"
FIFTY_MOVE_FEN = "8/8/8/8/8/8/R7/K6k w - - 100 80"
PROMOTION_FEN = "8/P7/8/8/8/7K/8/2k5 w - - 0 1"

# Human (White) half of the scholar's mate; Black answers e5, Nc6, Nf6
SCHOLARS_MATE_WHITE = [("e2", "e4"), ("f1", "c4"), ("d1", "h5"), ("h5", "f7")]
SCHOLARS_MATE_BLACK = ["e5", "Nc6", "Nf6"]

# Black replies available after 1. e4, in python-chess generation order
LEGAL_AFTER_E4 = ["Nh6", "Nf6", "Nc6", "Na6", "h6", "g6", "f6", "e6", "d6", "c6", "b6", "a6",
                  "h5", "g5", "f5", "e5", "d5", "c5", "b5", "a5"]


def play(position: Position, *moves: str) -> Position:
    """Apply UCI-style moves ("e2e4") through apply_move()."""
    for uci in moves:
        applied = position.apply_move(uci[:2], uci[2:4])
        assert applied is not None, uci
        position = applied[0]
    return position
