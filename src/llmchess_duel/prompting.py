"""
Prompt builders for advisor move requests using a modular template.

The advisor sends the system instructions once per request and renders the
user template with the position and the legal-move list for the current turn.
"""
from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Dict

DEFAULT_SYSTEM = """You are a Chess Grandmaster engine.
You are playing {SIDE}.
Your goal is to win efficiently.
Analyze the current FEN position and the list of legal moves.
Select the BEST legal move from the list provided.

Return ONLY a raw JSON object with no markdown formatting.
The JSON must have this structure:
{"move": "SAN string of the selected move", "explanation": "A very short, one-sentence tactical reason for this move."}

Strict Rules:
1. You must only pick a move from the "Legal Moves" list.
2. Do not output markdown code blocks.
3. Output valid JSON only."""

DEFAULT_TEMPLATE = """Current FEN: {FEN}
Legal Moves: {LEGAL_MOVES}

Select the best move for {SIDE}."""


@dataclass
class PromptConfig:
    """System instructions and user template for one advisor request."""

    system_instructions: str = DEFAULT_SYSTEM
    template: str = DEFAULT_TEMPLATE


def render_custom_prompt(template: str, values: Dict[str, str]) -> str:
    """Replace known placeholders in the template. Unknown tokens are left intact."""
    rendered = template or ""
    for key, val in values.items():
        rendered = rendered.replace(f"{{{key}}}", val)
    return rendered


def build_advisor_messages(fen: str, legal_moves: list[str], side: str = "black", cfg: PromptConfig | None = None) -> list[dict]:
    cfg = cfg or PromptConfig()
    values = {
        "FEN": fen,
        "LEGAL_MOVES": json.dumps(list(legal_moves)),
        "SIDE": side.capitalize(),
    }
    return [
        {"role": "system", "content": render_custom_prompt(cfg.system_instructions, values)},
        {"role": "user", "content": render_custom_prompt(cfg.template, values)},
    ]
