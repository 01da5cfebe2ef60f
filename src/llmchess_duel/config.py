"""
Configuration and environment loading for LLM Chess Duel.

- Loads settings.yml (YAML) from repo root if present; falls back to environment variables.
- Exposes SETTINGS with keys used across the project (API access, model tiers, pacing, web server).
"""
from dataclasses import dataclass
import os
from typing import Any, Callable

import yaml
from dotenv import load_dotenv

load_dotenv()


def _repo_root() -> str:
    # this file: src/llmchess_duel/config.py → repo root is two levels up
    return os.path.abspath(os.path.join(os.path.dirname(__file__), "..", ".."))


def _load_yaml(path: str) -> dict:
    if not os.path.isfile(path):
        return {}
    with open(path, "r", encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}
    return data if isinstance(data, dict) else {}


_cfg = _load_yaml(os.path.join(_repo_root(), "settings.yml"))


def _get(name: str, default: Any, cast: Callable[[Any], Any] | None = None) -> Any:
    if name in _cfg:
        val = _cfg[name]
        return cast(val) if cast else val
    env = os.environ.get(name)
    if env is not None:
        return cast(env) if cast else env
    return default


def _as_bool(val: Any) -> bool:
    if isinstance(val, bool):
        return val
    return str(val).strip().lower() in ("1", "true", "yes", "on")


@dataclass(frozen=True)
class Settings:
    # Auth / endpoint (Vercel AI Gateway, OpenAI-compatible wire format)
    llm_api_key: str
    api_base: str

    # Model tier per difficulty
    beginner_model: str
    grandmaster_model: str
    grandmaster_reasoning_effort: str

    # Tuning knobs
    responses_timeout_s: float
    responses_retries: int
    beginner_delay_s: float
    max_ai_attempts: int
    use_guard_agent: bool

    # Web surface
    human_game_ttl_s: int
    host: str
    port: int
    log_level: str


SETTINGS = Settings(
    llm_api_key=_get("LLMCHESS_LLM_API_KEY", _get("AI_GATEWAY_API_KEY", "")),
    api_base=_get("LLMCHESS_LLM_BASE_URL", _get("AI_GATEWAY_BASE_URL", "https://ai-gateway.vercel.sh/v1")),
    beginner_model=_get("LLMCHESS_BEGINNER_MODEL", "google/gemini-2.5-flash"),
    grandmaster_model=_get("LLMCHESS_GRANDMASTER_MODEL", "google/gemini-3-pro-preview"),
    grandmaster_reasoning_effort=_get("LLMCHESS_GRANDMASTER_REASONING_EFFORT", "medium"),
    responses_timeout_s=float(_get("LLMCHESS_RESPONSES_TIMEOUT_S", 60.0, cast=float)),
    responses_retries=int(_get("LLMCHESS_RESPONSES_RETRIES", 2, cast=int)),
    beginner_delay_s=float(_get("LLMCHESS_BEGINNER_DELAY_S", 0.8, cast=float)),
    max_ai_attempts=int(_get("LLMCHESS_MAX_AI_ATTEMPTS", 3, cast=int)),
    use_guard_agent=bool(_get("LLMCHESS_USE_GUARD_AGENT", False, cast=_as_bool)),
    human_game_ttl_s=int(_get("LLMCHESS_HUMAN_GAME_TTL_S", 3600, cast=int)),
    host=_get("LLMCHESS_HOST", "127.0.0.1"),
    port=int(_get("LLMCHESS_PORT", 8000, cast=int)),
    log_level=_get("LLMCHESS_LOG_LEVEL", "INFO"),
)
