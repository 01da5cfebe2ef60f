from __future__ import annotations
"""
Move advisor over the Vercel AI Gateway (OpenAI-compatible transport; configurable base URL).

get_advised_move() turns (FEN, legal SAN list, difficulty) into a move plus one line of commentary.
It always resolves: transport errors are retried, unparseable replies are salvaged when possible,
and anything else falls back to a uniformly random legal move.
"""
import asyncio
import logging
import random
from dataclasses import dataclass
from typing import Optional, List, Dict

from openai import AsyncOpenAI

from .agent_normalizer import normalize_with_agent
from .config import SETTINGS, Settings
from .prompting import PromptConfig, build_advisor_messages
from .reply_parser import parse_advice
from .state import AI_COLOR, Difficulty

log = logging.getLogger("advisor")

FALLBACK_EXPLANATION = "I'm playing intuitively right now."
MISSING_EXPLANATION = "Thinking..."


@dataclass(frozen=True)
class AdvisedMove:
    move: str
    explanation: str
    fallback: bool = False  # True when the move was not chosen by the model
    raw: Optional[str] = None


class MoveAdvisor:
    def __init__(self, settings: Settings = SETTINGS, prompt_cfg: PromptConfig | None = None,
                 client: AsyncOpenAI | None = None, rng: random.Random | None = None):
        self.settings = settings
        self.prompt_cfg = prompt_cfg or PromptConfig()
        self._client = client
        self._rng = rng or random.Random()

    def model_for(self, difficulty: Difficulty) -> str:
        if difficulty is Difficulty.GRANDMASTER:
            return self.settings.grandmaster_model
        return self.settings.beginner_model

    def _get_client(self) -> AsyncOpenAI:
        # Created on first use so a missing key becomes a fallback move rather than an import error
        if self._client is None:
            self._client = AsyncOpenAI(api_key=self.settings.llm_api_key or None, base_url=self.settings.api_base or None)
        return self._client

    async def get_advised_move(self, fen: str, legal_moves: List[str], difficulty: Difficulty = Difficulty.BEGINNER) -> AdvisedMove:
        """Ask the model for one move from `legal_moves`. Never raises."""
        try:
            difficulty = Difficulty.parse(difficulty)
            messages = build_advisor_messages(fen, legal_moves, side=AI_COLOR, cfg=self.prompt_cfg)
            raw = await self._request_with_retry(self.model_for(difficulty), messages, difficulty)
            if not raw:
                return self._fallback(legal_moves)
            return await self._interpret(raw, legal_moves)
        except Exception:
            log.exception("Advisor failed for %s; using random legal move", fen)
            return self._fallback(legal_moves)

    async def _interpret(self, raw: str, legal_moves: List[str]) -> AdvisedMove:
        try:
            advice = parse_advice(raw)
        except ValueError as exc:
            log.warning("Unparseable advisor reply (%s): %r", exc, raw[:200])
            salvaged = await normalize_with_agent(raw, legal_moves, use_agent=self.settings.use_guard_agent)
            if salvaged:
                return AdvisedMove(move=salvaged, explanation=MISSING_EXPLANATION, raw=raw)
            return self._fallback(legal_moves, raw=raw)
        move = advice["move"] or (legal_moves[0] if legal_moves else "")
        return AdvisedMove(move=move, explanation=advice["explanation"] or MISSING_EXPLANATION, raw=raw)

    def _fallback(self, legal_moves: List[str], raw: Optional[str] = None) -> AdvisedMove:
        move = self._rng.choice(legal_moves) if legal_moves else ""
        return AdvisedMove(move=move, explanation=FALLBACK_EXPLANATION, fallback=True, raw=raw)

    async def _request_with_retry(self, model: str, messages: List[Dict[str, str]], difficulty: Difficulty) -> str:
        kwargs = {
            "model": model,
            "messages": messages,
            "timeout": self.settings.responses_timeout_s,
            "response_format": {"type": "json_object"},
        }
        effort = self.settings.grandmaster_reasoning_effort
        if difficulty is Difficulty.GRANDMASTER and effort:
            kwargs["reasoning_effort"] = effort
        delay = 0.5
        retries = max(0, self.settings.responses_retries)
        for attempt in range(retries + 1):
            try:
                rsp = await self._get_client().chat.completions.create(**kwargs)
                text = _extract_text(rsp)
                if text:
                    return text.strip()
                log.warning("Empty advisor reply from %s (attempt %d)", model, attempt + 1)
            except Exception:
                if attempt >= retries:
                    log.exception("Advisor request failed after %d attempts", attempt + 1)
                    break
                sleep_s = delay * (2 ** attempt) * (0.8 + 0.4 * random.random())
                await asyncio.sleep(min(sleep_s, 10.0))
        return ""


def _extract_text(rsp) -> str:
    if not getattr(rsp, "choices", None):
        return ""
    content = getattr(rsp.choices[0].message, "content", None)
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        parts = []
        for c in content:
            if isinstance(c, dict):
                if c.get("type") == "text" and isinstance(c.get("text"), str):
                    parts.append(c["text"])
                continue
            t = getattr(c, "text", None)
            if isinstance(t, str):
                parts.append(t)
        return "\n".join(parts)
    return ""
