"""
Tests for the turn timer and auto-play.

Covers: roll-then-score on expiry, late timers being rejected by normal
validation, recoverable auto-action failures, and countdown control.
"""

import asyncio

import pytest

from gamehub.authority import GameAuthority, MoveResult
from gamehub.config import Settings
from gamehub.errors import AutoActionError
from gamehub.game_engine import build_move
from gamehub.store import InMemoryGameStore
from gamehub.timer import TurnTimer, auto_play_turn, turn_signature
from gamehub.yahtzee.scoring import calculate_score, select_best_available_category


# ── Helpers ───────────────────────────────────────────────────────────

async def dice_table(players=("p0", "p1")):
    authority = GameAuthority(InMemoryGameStore(), settings=Settings(bot_delay_scale=0))
    await authority.create_game("yahtzee", game_id="g1")
    for pid in players:
        await authority.add_player("g1", pid, pid.upper())
    await authority.start_game("g1")
    return authority


class StubbornAuthority:
    """Reports p0 on turn with a roll owed, but refuses every move."""

    def __init__(self, state):
        self.state = state
        self.submitted = []

    async def get_state(self, game_id):
        return self.state

    async def submit_move(self, game_id, move, correlation_id=None):
        self.submitted.append(move["type"])
        return MoveResult(False, self.state)


# ══════════════════════════════════════════════════════════════════════
# Auto Play
# ══════════════════════════════════════════════════════════════════════

class TestAutoPlay:

    def test_rolls_then_scores(self):
        async def scenario():
            authority = await dice_table()
            return await auto_play_turn(authority, "g1", "p0")

        result = asyncio.run(scenario())
        assert result.accepted
        assert result.state["current_player_index"] == 1
        assert len(result.state["data"]["scores"][0]) == 1

    def test_scores_without_rolling_again(self):
        async def scenario():
            authority = await dice_table()
            await authority.submit_move("g1", build_move("p0", "roll"))
            await authority.submit_move("g1", build_move("p0", "roll"))
            dice = (await authority.get_state("g1"))["data"]["dice"]
            return dice, await auto_play_turn(authority, "g1", "p0")

        dice, result = asyncio.run(scenario())
        assert result.accepted
        scorecard = result.state["data"]["scores"][0]
        assert len(scorecard) == 1
        category = select_best_available_category(dice, {})
        assert scorecard == {category: calculate_score(dice, category)}

    def test_late_timer_is_rejected(self):
        async def scenario():
            authority = await dice_table()
            await authority.submit_move("g1", build_move("p0", "roll"))
            await authority.submit_move("g1", build_move("p0", "score", {"category": "chance"}))
            before = await authority.get_state("g1")
            result = await auto_play_turn(authority, "g1", "p0")
            return before, result, await authority.get_state("g1")

        before, result, after = asyncio.run(scenario())
        assert not result.accepted
        assert after == before

    def test_failed_roll_is_recoverable(self):
        async def scenario():
            authority = await dice_table()
            stub = StubbornAuthority(await authority.get_state("g1"))
            with pytest.raises(AutoActionError) as info:
                await auto_play_turn(stub, "g1", "p0")
            return stub, info.value

        stub, error = asyncio.run(scenario())
        assert error.recoverable
        # No score is forced after a failed roll
        assert stub.submitted == ["roll"]


# ══════════════════════════════════════════════════════════════════════
# Timer
# ══════════════════════════════════════════════════════════════════════

class TestTurnTimer:

    def test_expiry_plays_the_turn(self):
        async def scenario():
            authority = await dice_table()
            timer = TurnTimer(authority, seconds=0.01)
            timer.start("g1", "p0")
            assert timer.active
            result = await timer.task
            return timer, result

        timer, result = asyncio.run(scenario())
        assert result.accepted
        assert not timer.active
        assert timer.remaining() >= 0

    def test_cancel(self):
        async def scenario():
            authority = await dice_table()
            timer = TurnTimer(authority, seconds=60)
            timer.start("g1", "p0")
            task = timer.task
            assert timer.remaining() > 59
            timer.cancel()
            await asyncio.sleep(0)
            return timer, task, await authority.get_state("g1")

        timer, task, state = asyncio.run(scenario())
        assert task.cancelled()
        assert not timer.active
        assert timer.remaining() == 0.0
        assert state["current_player_index"] == 0

    def test_restart_only_on_new_turn(self):
        async def scenario():
            authority = await dice_table()
            state = await authority.get_state("g1")
            timer = TurnTimer(authority, seconds=60)

            timer.restart("g1", "p0", turn_signature(state))
            first = timer.task
            timer.restart("g1", "p0", turn_signature(state))
            same = timer.task

            state = (await authority.submit_move("g1", build_move("p0", "roll"))).state
            timer.restart("g1", "p0", turn_signature(state))
            fresh = timer.task
            timer.cancel()
            return first, same, fresh

        first, same, fresh = asyncio.run(scenario())
        assert first is same
        assert fresh is not first

    def test_disabled_timer(self):
        async def scenario():
            authority = await dice_table()
            timer = TurnTimer(authority, seconds=0)
            timer.start("g1", "p0")
            return timer

        assert not asyncio.run(scenario()).active

    def test_error_reported_not_raised(self):
        errors = []

        async def scenario():
            authority = await dice_table()
            stub = StubbornAuthority(await authority.get_state("g1"))
            timer = TurnTimer(stub, seconds=0.01, on_error=errors.append)
            timer.start("g1", "p0")
            return await timer.task

        assert asyncio.run(scenario()) is None
        assert len(errors) == 1
        assert isinstance(errors[0], AutoActionError)
