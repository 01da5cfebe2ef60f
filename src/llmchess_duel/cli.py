"""
Command line entry point.

  llmchess-duel serve [--host H] [--port P]      run the JSON API for a browser board
  llmchess-duel play  [--difficulty D]           play in the terminal (you are White)
"""
from __future__ import annotations

import argparse
import asyncio
import logging

from .config import SETTINGS
from .controller import GameController
from .state import Difficulty

log = logging.getLogger("cli")

HELP_TEXT = "Enter moves as e2e4 or 'e2 e4'. Commands: reset, difficulty <beginner|grandmaster>, quit."


def _parse_squares(raw: str) -> tuple[str, str] | None:
    parts = raw.replace("-", " ").split()
    if len(parts) == 1 and len(parts[0]) in (4, 5):
        return parts[0][:2], parts[0][2:4]
    if len(parts) == 2:
        return parts[0], parts[1]
    return None


def _print_state(controller: GameController) -> None:
    snap = controller.snapshot()
    print()
    print(controller.state.position.board())
    print(f"FEN: {snap['fen']}")
    if snap["history"]:
        print("Moves:", " ".join(
            f"{row['move_number']}. {row['white']}" + (f" {row['black']}" if row["black"] else "")
            for row in snap["history_rows"]
        ))
    if snap["commentary"]:
        print(f'AI: "{snap["commentary"]}"')
    print(f"Captured by you: {' '.join(snap['captured']['white']) or '-'} | by AI: {' '.join(snap['captured']['black']) or '-'}")
    print(f"Status: {snap['status'].replace('_', ' ')}" + (" (check)" if snap["is_check"] and snap["status"] == "IN_PROGRESS" else ""))


async def play(difficulty: str) -> None:
    controller = GameController(difficulty=difficulty)
    print(HELP_TEXT)
    while True:
        _print_state(controller)
        if controller.status.is_terminal:
            outcome = {"human": "You win!", "ai": "The AI wins."}.get(controller.snapshot()["winner"], "Game over.")
            print(outcome, "Type 'reset' to play again or 'quit'.")
        raw = (await asyncio.to_thread(input, "> ")).strip()
        if not raw:
            continue
        cmd = raw.lower()
        if cmd in ("quit", "exit"):
            return
        if cmd == "reset":
            controller.reset()
            continue
        if cmd.startswith("difficulty"):
            try:
                controller.set_difficulty(cmd.split(maxsplit=1)[1] if " " in cmd else "")
            except ValueError as exc:
                print(exc)
            continue
        squares = _parse_squares(cmd)
        if not squares or not controller.apply_human_move(*squares):
            print("Illegal move. " + HELP_TEXT)
            continue
        if controller.needs_ai_turn():
            print("AI is thinking...")
        await controller.wait_for_ai()


def serve(host: str, port: int) -> None:
    from .server import create_app

    app = create_app()
    log.info("Serving on http://%s:%d", host, port)
    app.run(host=host, port=port, threaded=True)


def main(argv: list[str] | None = None) -> None:
    ap = argparse.ArgumentParser(prog="llmchess-duel", description="Play White against an LLM-backed opponent.")
    ap.add_argument("--log-level", default=None, help="Python logging level (e.g., INFO, DEBUG)")
    sub = ap.add_subparsers(dest="command", required=True)
    sp = sub.add_parser("serve", help="Run the JSON API")
    sp.add_argument("--host", default=SETTINGS.host)
    sp.add_argument("--port", type=int, default=SETTINGS.port)
    pp = sub.add_parser("play", help="Play in the terminal")
    pp.add_argument("--difficulty", choices=[d.value.lower() for d in Difficulty], default="beginner")
    args = ap.parse_args(argv)

    log_level = (args.log_level or SETTINGS.log_level or "INFO").upper()
    logging.basicConfig(level=getattr(logging, log_level, logging.INFO), format="%(asctime)s %(levelname)s %(name)s: %(message)s")

    if args.command == "serve":
        serve(args.host, args.port)
    else:
        asyncio.run(play(args.difficulty))


if __name__ == "__main__":
    main()
