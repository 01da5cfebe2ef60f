"""
Parsing helpers for advisor replies.

- strip_code_fence(): drop ```json / ``` wrappers models add despite instructions.
- parse_advice(): read the two-field {"move", "explanation"} object; raises ValueError on bad shape.
- salvage_move(): find a legal SAN token inside free-form text when the JSON is unusable.
"""
from __future__ import annotations

import json
import re
from typing import TypedDict

FENCE_RE = re.compile(r"```(?:json)?", re.I)
SAN_TOKEN_RE = re.compile(r"(O-O-O|O-O|0-0-0|0-0|[KQRBN]?[a-h]?[1-8]?x?[a-h][1-8](?:=[QRBN])?[+#]?)")
CASTLE_ZERO = {"0-0": "O-O", "0-0-0": "O-O-O"}


class Advice(TypedDict):
    move: str
    explanation: str


def strip_code_fence(text: str) -> str:
    return FENCE_RE.sub("", text or "").strip()


def parse_advice(raw: str) -> Advice:
    """Parse a reply into move/explanation strings (either may be empty)."""
    cleaned = strip_code_fence(raw)
    if not cleaned:
        raise ValueError("empty_reply")
    try:
        data = json.loads(cleaned)
    except json.JSONDecodeError as exc:
        raise ValueError(f"bad_json: {exc}") from exc
    if not isinstance(data, dict):
        raise ValueError("reply_not_object")
    move = data.get("move")
    explanation = data.get("explanation")
    return {
        "move": move.strip() if isinstance(move, str) else "",
        "explanation": explanation.strip() if isinstance(explanation, str) else "",
    }


def _bare(san: str) -> str:
    return san.rstrip("+#")


def salvage_move(raw: str, legal_moves: list[str]) -> str | None:
    """Return the first token of `raw` that names a legal move (check marks ignored), else None."""
    by_bare = {_bare(m): m for m in legal_moves}
    for token in SAN_TOKEN_RE.findall(strip_code_fence(raw)):
        token = CASTLE_ZERO.get(token.rstrip("+#"), token)
        hit = by_bare.get(_bare(token))
        if hit:
            return hit
    return None
