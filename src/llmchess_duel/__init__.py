"""
LLM Chess Duel package: a human plays White against an LLM-advised Black.

Components:
- position: immutable python-chess position, move application and termination predicates
- state: game status/difficulty enums and pure state transitions
- advisor: Vercel AI Gateway move advisor (OpenAI-compatible), with salvage and random fallback
- controller: turn orchestration, AI dispatch guard, reset
- server/cli: Flask JSON API and terminal entry points
"""
# Package exports are intentionally minimal; import modules directly as needed.
