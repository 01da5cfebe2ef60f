import asyncio
import dataclasses
import random
import unittest
from types import SimpleNamespace
from unittest.mock import AsyncMock, Mock, patch

from llmchess_duel.advisor import FALLBACK_EXPLANATION, AdvisedMove, MoveAdvisor
from llmchess_duel.config import SETTINGS
from llmchess_duel.controller import APOLOGY_COMMENTARY, GameController
from llmchess_duel.position import Position
from llmchess_duel.state import CapturedPiece, Difficulty, GameStatus

from tests.fixtures import SCHOLARS_MATE_BLACK, SCHOLARS_MATE_WHITE


def scripted_advisor(*moves: str) -> Mock:
    """Advisor double answering the given SAN moves in order."""
    advisor = Mock(spec=MoveAdvisor)
    advisor.get_advised_move = AsyncMock(
        side_effect=[AdvisedMove(move=m, explanation=f"I like {m}.") for m in moves]
    )
    return advisor


def make_controller(advisor, **kwargs) -> GameController:
    kwargs.setdefault("ai_delay_s", 0)
    return GameController(advisor=advisor, **kwargs)


class HumanMoveTests(unittest.TestCase):
    """Synchronous paths: no event loop is running, so no AI turn is dispatched."""

    def test_opening_e4(self):
        controller = make_controller(scripted_advisor())
        self.assertTrue(controller.apply_human_move("e2", "e4"))
        self.assertEqual(controller.state.history, ("e4",))
        self.assertIs(controller.status, GameStatus.IN_PROGRESS)
        self.assertEqual(controller.state.position.side_to_move(), "black")
        self.assertIsNone(controller.ai_task)

    def test_illegal_moves_leave_state_untouched(self):
        controller = make_controller(scripted_advisor())
        before = controller.state
        for from_sq, to_sq in [("e2", "e5"), ("e3", "e4"), ("e7", "e5"), ("x1", "e4"), ("e2", "e2")]:
            self.assertFalse(controller.apply_human_move(from_sq, to_sq))
            self.assertIs(controller.state, before)
        self.assertEqual(controller.state.history, ())
        self.assertEqual(controller.state.captures, ())

    def test_human_cannot_move_for_black(self):
        controller = make_controller(scripted_advisor())
        controller.apply_human_move("e2", "e4")
        before = controller.state
        self.assertFalse(controller.apply_human_move("e7", "e5"))
        self.assertIs(controller.state, before)

    def test_set_difficulty(self):
        controller = make_controller(scripted_advisor())
        controller.set_difficulty("grandmaster")
        self.assertIs(controller.difficulty, Difficulty.GRANDMASTER)
        with self.assertRaises(ValueError):
            controller.set_difficulty("impossible")
        self.assertIs(controller.difficulty, Difficulty.GRANDMASTER)

    def test_snapshot_shape(self):
        controller = make_controller(scripted_advisor())
        controller.apply_human_move("e2", "e4")
        snap = controller.snapshot()
        self.assertEqual(snap["history"], ["e4"])
        self.assertEqual(snap["turn"], "black")
        self.assertEqual(snap["status"], "IN_PROGRESS")
        self.assertEqual(snap["last_move"], {"from": "e2", "to": "e4"})
        self.assertEqual(snap["captured"], {"white": [], "black": []})
        self.assertEqual(snap["difficulty"], "BEGINNER")
        self.assertFalse(snap["ai_thinking"])
        self.assertIsNone(snap["winner"])


class AiTurnTests(unittest.IsolatedAsyncioTestCase):
    async def test_ai_replies_after_human_move(self):
        advisor = scripted_advisor("e5")
        controller = make_controller(advisor)
        self.assertTrue(controller.apply_human_move("e2", "e4"))
        await controller.wait_for_ai()
        self.assertEqual(controller.state.history, ("e4", "e5"))
        self.assertEqual(controller.commentary, "I like e5.")
        self.assertFalse(controller.ai_busy)
        self.assertEqual((controller.state.last_move.from_square, controller.state.last_move.to_square), ("e7", "e5"))
        self.assertEqual(controller.state.position.side_to_move(), "white")
        fen, legal, difficulty = advisor.get_advised_move.await_args.args
        self.assertEqual(fen, Position.starting().apply_move("e2", "e4")[0].fingerprint())
        self.assertIn("e5", legal)
        self.assertIs(difficulty, Difficulty.BEGINNER)

    async def test_duplicate_requests_dispatch_once(self):
        advisor = scripted_advisor("e5", "d5")
        controller = make_controller(advisor, auto_ai=False)
        controller.apply_human_move("e2", "e4")
        await asyncio.gather(controller.request_ai_move(), controller.request_ai_move())
        await controller.request_ai_move()
        self.assertEqual(advisor.get_advised_move.await_count, 1)
        self.assertEqual(controller.state.history, ("e4", "e5"))

    async def test_redundant_trigger_during_dispatched_turn(self):
        advisor = scripted_advisor("e5", "d5")
        controller = make_controller(advisor)
        controller.apply_human_move("e2", "e4")
        await controller.request_ai_move()
        await controller.wait_for_ai()
        self.assertEqual(advisor.get_advised_move.await_count, 1)
        self.assertEqual(controller.state.history, ("e4", "e5"))

    async def test_guard_token_holds_fingerprint(self):
        controller = make_controller(scripted_advisor("e5"), auto_ai=False)
        controller.apply_human_move("e2", "e4")
        fen = controller.state.position.fingerprint()
        await controller.request_ai_move()
        self.assertEqual(controller.turn_guard, fen)

    async def test_difficulty_reaches_advisor(self):
        advisor = scripted_advisor("e5")
        controller = make_controller(advisor, difficulty="grandmaster")
        controller.apply_human_move("e2", "e4")
        await controller.wait_for_ai()
        self.assertIs(advisor.get_advised_move.await_args.args[2], Difficulty.GRANDMASTER)

    async def test_captures_recorded_for_both_sides(self):
        controller = make_controller(scripted_advisor("d5", "Qxd5"))
        controller.apply_human_move("e2", "e4")
        await controller.wait_for_ai()
        self.assertTrue(controller.apply_human_move("e4", "d5"))
        self.assertEqual(controller.state.captures, (CapturedPiece("black", "p"),))
        await controller.wait_for_ai()
        self.assertEqual(controller.state.history, ("e4", "d5", "exd5", "Qxd5"))
        self.assertEqual(len(controller.state.captures), 2)
        self.assertEqual(controller.state.captures[-1], CapturedPiece("white", "p"))
        snap = controller.snapshot()
        self.assertEqual(snap["captured"], {"white": ["bp"], "black": ["wp"]})

    async def test_always_failing_transport_falls_back_to_random_legal_move(self):
        client = SimpleNamespace(chat=SimpleNamespace(completions=SimpleNamespace(
            create=AsyncMock(side_effect=RuntimeError("network down"))
        )))
        settings = dataclasses.replace(SETTINGS, responses_retries=0, use_guard_agent=False)
        advisor = MoveAdvisor(settings=settings, client=client, rng=random.Random(7))
        controller = make_controller(advisor)
        controller.apply_human_move("e2", "e4")
        legal_after_e4 = controller.state.position.legal_moves()
        await controller.wait_for_ai()
        self.assertEqual(len(controller.state.history), 2)
        self.assertIn(controller.state.history[1], legal_after_e4)
        self.assertEqual(controller.commentary, FALLBACK_EXPLANATION)
        self.assertIs(controller.status, GameStatus.IN_PROGRESS)
        self.assertFalse(controller.ai_busy)

    async def test_advisor_exception_apologizes_without_moving(self):
        advisor = Mock(spec=MoveAdvisor)
        advisor.get_advised_move = AsyncMock(side_effect=RuntimeError("boom"))
        controller = make_controller(advisor)
        controller.apply_human_move("e2", "e4")
        before = controller.state
        await controller.wait_for_ai()
        self.assertIs(controller.state, before)
        self.assertEqual(controller.commentary, APOLOGY_COMMENTARY)
        self.assertFalse(controller.ai_busy)

    async def test_illegal_advisor_move_is_retried_then_accepted(self):
        advisor = scripted_advisor("Ke2", "e5")
        controller = make_controller(advisor, max_ai_attempts=3)
        controller.apply_human_move("e2", "e4")
        await controller.wait_for_ai()
        self.assertEqual(controller.state.history, ("e4", "e5"))
        self.assertEqual(controller.ai_rejected_moves, 1)
        self.assertEqual(advisor.get_advised_move.await_count, 2)

    async def test_illegal_advisor_moves_give_up_the_turn(self):
        advisor = scripted_advisor("Ke2", "Qxh2", "e4")
        controller = make_controller(advisor, max_ai_attempts=2)
        controller.apply_human_move("e2", "e4")
        before = controller.state
        await controller.wait_for_ai()
        self.assertIs(controller.state, before)
        self.assertEqual(controller.ai_rejected_moves, 2)
        self.assertEqual(controller.commentary, APOLOGY_COMMENTARY)
        self.assertFalse(controller.ai_busy)

    async def test_busy_flag_visible_while_waiting(self):
        gate = asyncio.Event()

        async def slow(fen, legal, difficulty):
            await gate.wait()
            return AdvisedMove("e5", "Patience.")

        advisor = Mock(spec=MoveAdvisor)
        advisor.get_advised_move = AsyncMock(side_effect=slow)
        controller = make_controller(advisor)
        controller.apply_human_move("e2", "e4")
        await asyncio.sleep(0)
        self.assertTrue(controller.ai_busy)
        self.assertEqual(controller.commentary, "Analyzing position...")
        self.assertFalse(controller.apply_human_move("d2", "d4"))
        gate.set()
        await controller.wait_for_ai()
        self.assertFalse(controller.ai_busy)
        self.assertEqual(controller.commentary, "Patience.")

    async def test_reply_after_reset_is_discarded(self):
        gate = asyncio.Event()

        async def slow(fen, legal, difficulty):
            await gate.wait()
            return AdvisedMove("e5", "Too late.")

        advisor = Mock(spec=MoveAdvisor)
        advisor.get_advised_move = AsyncMock(side_effect=slow)
        controller = make_controller(advisor)
        controller.apply_human_move("e2", "e4")
        stale_task = controller.ai_task
        await asyncio.sleep(0)
        self.assertTrue(controller.ai_busy)

        controller.reset()
        self.assertTrue(controller.apply_human_move("e2", "e4"))
        fresh_task = controller.ai_task
        gate.set()
        await asyncio.gather(stale_task, fresh_task)

        self.assertEqual(advisor.get_advised_move.await_count, 2)
        self.assertEqual(controller.state.history, ("e4", "e5"))
        self.assertEqual(controller.commentary, "Too late.")
        self.assertFalse(controller.ai_busy)

    async def test_reset_during_turn_leaves_fresh_game(self):
        gate = asyncio.Event()

        async def slow(fen, legal, difficulty):
            await gate.wait()
            return AdvisedMove("e5", "Too late.")

        advisor = Mock(spec=MoveAdvisor)
        advisor.get_advised_move = AsyncMock(side_effect=slow)
        controller = make_controller(advisor)
        controller.apply_human_move("e2", "e4")
        await asyncio.sleep(0)
        controller.reset()
        gate.set()
        await controller.wait_for_ai()
        self.assertEqual(controller.state.history, ())
        self.assertEqual(controller.state.position, Position.starting())
        self.assertEqual(controller.commentary, "")
        self.assertFalse(controller.ai_busy)

    async def test_scholars_mate_freezes_game_until_reset(self):
        advisor = scripted_advisor(*SCHOLARS_MATE_BLACK)
        controller = make_controller(advisor)
        for from_sq, to_sq in SCHOLARS_MATE_WHITE:
            self.assertTrue(controller.apply_human_move(from_sq, to_sq))
            await controller.wait_for_ai()
        self.assertIs(controller.status, GameStatus.CHECKMATE)
        self.assertEqual(controller.state.history[-1], "Qxf7#")
        self.assertEqual(controller.snapshot()["winner"], "human")
        self.assertEqual(advisor.get_advised_move.await_count, 3)

        frozen = controller.state
        self.assertFalse(controller.apply_human_move("a2", "a3"))
        await controller.request_ai_move()
        self.assertIs(controller.state, frozen)
        self.assertEqual(advisor.get_advised_move.await_count, 3)

        controller.reset()
        self.assertEqual(controller.state.position, Position.starting())
        self.assertEqual(controller.state.history, ())
        self.assertEqual(controller.state.captures, ())
        self.assertIs(controller.status, GameStatus.IN_PROGRESS)
        self.assertEqual(controller.turn_guard, "")
        self.assertTrue(controller.apply_human_move("e2", "e4"))


class PacingDelayTests(unittest.IsolatedAsyncioTestCase):
    async def _one_turn(self, difficulty):
        controller = make_controller(scripted_advisor("Nh6"), difficulty=difficulty, ai_delay_s=0.5)
        with patch("llmchess_duel.controller.asyncio.sleep", new=AsyncMock()) as sleep:
            controller.apply_human_move("e2", "e4")
            await controller.wait_for_ai()
        self.assertEqual(controller.state.history, ("e4", "Nh6"))
        return sleep

    async def test_beginner_reply_is_paced(self):
        sleep = await self._one_turn(Difficulty.BEGINNER)
        sleep.assert_awaited_once_with(0.5)

    async def test_grandmaster_reply_is_not_paced(self):
        sleep = await self._one_turn(Difficulty.GRANDMASTER)
        sleep.assert_not_awaited()


if __name__ == "__main__":
    unittest.main()
