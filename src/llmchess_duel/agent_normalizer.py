"""
Agent-backed normalizer for advisor replies that did not parse.

Flow:
1) Quick regex salvage of a legal SAN token from the free-form reply.
2) If not found and LLMCHESS_USE_GUARD_AGENT is on, ask a tiny guard Agent (Agents SDK) to return one
   move from the legal list or NONE.
3) Otherwise return an empty string so the caller can fall back.

Only moves present in the supplied legal list are ever returned.
"""
from __future__ import annotations
import logging
from agents import Agent, Runner, ModelSettings, set_default_openai_api, set_default_openai_client, set_tracing_disabled
from openai import AsyncOpenAI
from .config import SETTINGS
from .reply_parser import salvage_move

log = logging.getLogger("agent_normalizer")

INSTRUCTIONS = (
    "You receive a raw reply from a chess player and the list of legal moves.\n"
    "Identify the single move the reply intends to play.\n"
    "Output ONLY that move exactly as written in the legal list. If no move is present, output the single word NONE."
)

move_guard = Agent(
    name="MoveGuard",
    instructions=INSTRUCTIONS,
    model=SETTINGS.beginner_model,
    model_settings=ModelSettings(temperature=0.0),
)


_client_ready = False


def _configure_gateway() -> None:
    """Point the Agents SDK at the same OpenAI-compatible gateway as the advisor (once)."""
    global _client_ready
    if _client_ready:
        return
    client = AsyncOpenAI(api_key=SETTINGS.llm_api_key or None, base_url=SETTINGS.api_base or None)
    set_default_openai_client(client, use_for_tracing=False)
    set_default_openai_api("chat_completions")
    set_tracing_disabled(True)
    _client_ready = True


async def _agent_suggest(raw_reply: str, legal_moves: list[str]) -> str:
    _configure_gateway()
    user = f"LEGAL MOVES: {', '.join(legal_moves)}\nRAW REPLY: {raw_reply}\nReturn only the move or NONE:"
    result = await Runner.run(move_guard, user)
    return (result.final_output or "").strip()


async def normalize_with_agent(raw_reply: str, legal_moves: list[str], use_agent: bool | None = None) -> str:
    """Return a legal SAN move named by `raw_reply`, or "" when none can be identified."""
    cand = salvage_move(raw_reply, legal_moves)
    if cand:
        return cand

    if use_agent is None:
        use_agent = SETTINGS.use_guard_agent
    if not use_agent:
        return ""

    try:
        suggestion = await _agent_suggest(raw_reply, legal_moves)
    except Exception:
        log.exception("Guard agent failed")
        return ""
    token = suggestion.split()[0] if suggestion.split() else ""
    if token and token.upper() != "NONE":
        return salvage_move(token, legal_moves) or ""
    return ""
