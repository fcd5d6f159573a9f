"""
Tests for the bots and the bot turn executor.

Covers: dice-game category and hold heuristics, grid-game search,
opponent prediction, bot construction, and step-by-step turn execution.
"""

import asyncio
import random

import pytest

from gamehub.authority import MoveResult
from gamehub.bots.base import EASY, HARD, MEDIUM
from gamehub.bots.executor import BotExecutor
from gamehub.bots.factory import create_bot
from gamehub.bots.rps import RockPaperScissorsBot, predict_choice
from gamehub.bots.tictactoe import TicTacToeBot, best_move, winning_cell
from gamehub.bots.yahtzee import YahtzeeBot, decide_dice_to_hold, select_category
from gamehub.errors import BotTurnError, UnknownGameTypeError
from gamehub.game_engine import build_move, make_player
from gamehub.registry import create_game_engine, restore_game_engine
from gamehub.rps.engine import COUNTER
from gamehub.yahtzee.state import CATEGORIES


# ── Helpers ───────────────────────────────────────────────────────────

def table(game_type, ids=("human", "bot")):
    engine = create_game_engine(game_type, "g1")
    for pid in ids:
        engine.add_player(make_player(pid, pid.title(), is_bot=pid == "bot"))
    assert engine.start_game()
    return engine


def board(*rows):
    """Board from strings like 'X.O'."""
    return [[None if ch == "." else ch for ch in row] for row in rows]


class LocalTable:
    """Fetch/submit pair over an in-memory state, for driving the executor."""

    def __init__(self, engine):
        self.game_type = engine.game_type
        self.state = engine.get_state()
        self.events = []
        self.reject = False
        self.submitted = []

    async def fetch_engine(self):
        return restore_game_engine(self.game_type, self.state["id"], self.state)

    async def submit_move(self, move):
        engine = await self.fetch_engine()
        self.submitted.append(move["type"])
        accepted = not self.reject and engine.make_move(move)
        if accepted:
            self.state = engine.get_state()
        return MoveResult(accepted, self.state)

    async def on_step(self, event):
        self.events.append(event)

    def executor(self):
        return BotExecutor(self.fetch_engine, self.submit_move, on_step=self.on_step, delay_scale=0)


# ══════════════════════════════════════════════════════════════════════
# Dice Bot
# ══════════════════════════════════════════════════════════════════════

class TestDiceHeuristics:

    def test_yahtzee_over_fives(self):
        assert select_category([5, 5, 5, 5, 5], {}) == "yahtzee"

    def test_large_straight(self):
        assert select_category([2, 3, 4, 5, 6], {}) == "large_straight"

    def test_only_one_left(self):
        card = {c: 0 for c in CATEGORIES if c != "yahtzee"}
        assert select_category([1, 2, 3, 4, 6], card) == "yahtzee"

    def test_three_sixes_go_up_top(self):
        # On pace for the upper bonus beats 24 in three of a kind or chance
        assert select_category([6, 6, 6, 5, 1], {}) == "sixes"

    def test_chance_used_late(self):
        card = {c: 0 for c in CATEGORIES if c not in ("chance", "yahtzee")}
        assert select_category([6, 6, 4, 5, 1], card) == "chance"

    def test_zero_goes_to_cheapest(self):
        card = {c: 0 for c in CATEGORIES if c not in ("ones", "chance", "yahtzee")}
        card["chance"] = 20
        # No ones either, so every open category scores zero
        assert select_category([2, 3, 3, 4, 6], card) == "ones"

    def test_full_scorecard(self):
        assert select_category([1, 1, 1, 1, 1], {c: 0 for c in CATEGORIES}) is None

    def test_hold_five_of_a_kind(self):
        assert decide_dice_to_hold([4, 4, 4, 4, 4], [False] * 5, 2, {}) == [0, 1, 2, 3, 4]

    def test_hold_full_house(self):
        assert decide_dice_to_hold([3, 2, 3, 2, 3], [False] * 5, 2, {}) == [0, 1, 2, 3, 4]

    def test_hold_run(self):
        assert decide_dice_to_hold([1, 2, 3, 4, 6], [False] * 5, 2, {}) == [0, 1, 2, 3]

    def test_hold_most_common(self):
        assert decide_dice_to_hold([2, 5, 2, 6, 1], [False] * 5, 1, {}) == [0, 2]

    def test_hold_short_run(self):
        assert decide_dice_to_hold([1, 3, 5, 6, 2], [False] * 5, 2, {}) == [0, 1, 4]

    def test_hold_highest_when_straights_done(self):
        card = {"small_straight": 30, "large_straight": 40}
        assert decide_dice_to_hold([1, 3, 5, 6, 2], [False] * 5, 2, card) == [3]

    def test_no_rolls_left(self):
        assert decide_dice_to_hold([1, 1, 1, 2, 3], [False] * 5, 0, {}) == []


class TestDiceBot:

    def test_first_decision_is_a_roll(self):
        engine = table("yahtzee", ("bot", "human"))
        bot = YahtzeeBot(engine, "bot")
        assert bot.is_bot_turn()
        decision = bot.make_decision()
        assert decision == {"type": "roll", "dice_to_hold": []}
        assert bot.decision_to_move(decision)["data"] == {"held": [False] * 5}

    def test_scores_a_yahtzee_at_once(self):
        engine = table("yahtzee", ("bot", "human"))
        engine.state["data"].update(dice=[6] * 5, rolls_left=2)
        bot = YahtzeeBot(engine, "bot", EASY)
        assert bot.make_decision() == {"type": "score", "category": "yahtzee"}

    def test_rolls_again_on_a_poor_hand(self):
        engine = table("yahtzee", ("bot", "human"))
        engine.state["data"].update(dice=[1, 2, 2, 4, 6], rolls_left=2)
        decision = YahtzeeBot(engine, "bot", HARD).make_decision()
        assert decision["type"] == "roll"
        move = YahtzeeBot(engine, "bot", HARD).decision_to_move(decision)
        assert move["data"]["held"] == [False, True, True, False, False]

    def test_must_score_with_no_rolls(self):
        engine = table("yahtzee", ("bot", "human"))
        engine.state["data"].update(dice=[1, 2, 2, 4, 6], rolls_left=0)
        assert YahtzeeBot(engine, "bot").make_decision()["type"] == "score"

    def test_not_bot_turn(self):
        engine = table("yahtzee", ("human", "bot"))
        assert not YahtzeeBot(engine, "bot").is_bot_turn()


# ══════════════════════════════════════════════════════════════════════
# Grid Bot
# ══════════════════════════════════════════════════════════════════════

class TestGridBot:

    def test_winning_cell(self):
        assert winning_cell(board("XX.", "O..", "O.."), "X") == (0, 2)
        assert winning_cell(board("X..", "...", "..."), "X") is None

    def test_best_move_wins(self):
        assert best_move(board("XX.", "OO.", "..."), "X") == (0, 2)

    def test_best_move_blocks(self):
        assert best_move(board("X..", "OO.", "X.."), "X") == (1, 2)

    def test_medium_blocks(self):
        engine = table("tic_tac_toe")
        engine.state["data"]["board"] = board("XX.", "...", "...")
        engine.state["data"]["current_symbol"] = "O"
        engine.state["current_player_index"] = 1
        decision = TicTacToeBot(engine, "bot", MEDIUM).make_decision()
        assert (decision["row"], decision["col"]) == (0, 2)

    def test_medium_takes_centre(self):
        engine = table("tic_tac_toe", ("bot", "human"))
        decision = TicTacToeBot(engine, "bot", MEDIUM, rng=random.Random(1)).make_decision()
        assert (decision["row"], decision["col"]) == (1, 1)

    def test_easy_picks_an_empty_cell(self):
        engine = table("tic_tac_toe", ("bot", "human"))
        engine.state["data"]["board"] = board("XOX", "OXO", "OX.")
        decision = TicTacToeBot(engine, "bot", EASY, rng=random.Random(3)).make_decision()
        assert (decision["row"], decision["col"]) == (2, 2)

    def test_hard_bots_draw(self):
        engine = table("tic_tac_toe", ("a", "b"))
        engine.make_move(build_move("a", "place", {"row": 1, "col": 1}))
        while not engine.is_game_finished():
            current = engine.get_current_player()["id"]
            bot = TicTacToeBot(engine, current, HARD)
            assert engine.make_move(bot.decision_to_move(bot.make_decision()))
        assert engine.state["winner"] is None
        assert engine.state["data"]["winner"] == "draw"


# ══════════════════════════════════════════════════════════════════════
# Rock Paper Scissors Bot
# ══════════════════════════════════════════════════════════════════════

class TestChoiceBot:

    def test_predict_weights_latest(self):
        rounds = [
            {"choices": {"h": "rock"}},
            {"choices": {"h": "rock"}},
            {"choices": {"h": "paper"}},
        ]
        # rock 2, paper 1 + 1 for being latest: a tie broken by rng
        assert predict_choice(rounds, "h", random.Random(0)) in ("rock", "paper")
        rounds.append({"choices": {"h": "paper"}})
        assert predict_choice(rounds, "h") == "paper"

    def test_no_history(self):
        assert predict_choice([], "h") is None

    def test_hard_counters(self):
        engine = table("rock_paper_scissors")
        engine.state["data"]["rounds"] = [{"choices": {"human": "scissors", "bot": "paper"}, "winner": "human"}]
        bot = RockPaperScissorsBot(engine, "bot", HARD)
        assert bot.make_decision() == {"type": "submit-choice", "choice": COUNTER["scissors"]}

    def test_bot_turn_follows_submissions(self):
        engine = table("rock_paper_scissors")
        bot = RockPaperScissorsBot(engine, "bot")
        assert bot.is_bot_turn()
        engine.make_move(build_move("bot", "submit-choice", {"choice": "rock"}))
        assert not bot.is_bot_turn()


# ══════════════════════════════════════════════════════════════════════
# Factory
# ══════════════════════════════════════════════════════════════════════

class TestFactory:

    def test_creates_by_game_type(self):
        engine = table("tic_tac_toe")
        bot = create_bot("tic_tac_toe", engine, "bot", HARD)
        assert isinstance(bot, TicTacToeBot)
        assert bot.difficulty == HARD
        assert bot.config.thinking_delay == 200

    def test_no_bot_for_spy_game(self):
        engine = create_game_engine("guess_the_spy", "g1")
        with pytest.raises(UnknownGameTypeError):
            create_bot("guess_the_spy", engine, "bot")

    def test_unknown_difficulty(self):
        with pytest.raises(ValueError):
            create_bot("yahtzee", table("yahtzee"), "bot", "nightmare")


# ══════════════════════════════════════════════════════════════════════
# Executor
# ══════════════════════════════════════════════════════════════════════

class TestExecutor:

    def test_dice_turn_ends_with_a_score(self):
        local = LocalTable(table("yahtzee", ("bot", "human")))
        moves = asyncio.run(local.executor().execute_turn("bot", HARD))

        assert moves == len(local.submitted)
        assert local.submitted[0] == "roll"
        assert local.submitted[-1] == "score"
        assert local.state["current_player_index"] == 1
        assert len(local.state["data"]["scores"][0]) == 1

        steps = [e["type"] for e in local.events]
        assert steps[0] == "thinking"
        assert steps[-1] == "score"
        assert all(e["bot_id"] == "bot" and e["bot_name"] == "Bot" for e in local.events)

    def test_nothing_to_do(self):
        local = LocalTable(table("yahtzee", ("human", "bot")))
        assert asyncio.run(local.executor().execute_turn("bot")) == 0
        assert local.submitted == []
        assert local.events == []

    def test_rejection_stops_the_turn(self):
        local = LocalTable(table("yahtzee", ("bot", "human")))
        local.reject = True
        with pytest.raises(BotTurnError) as info:
            asyncio.run(local.executor().execute_turn("bot"))
        assert info.value.step == "roll"
        assert local.submitted == ["roll"]

    def test_choice_stays_secret(self):
        local = LocalTable(table("rock_paper_scissors"))
        assert asyncio.run(local.executor().execute_turn("bot", EASY)) == 1
        step = local.events[-1]
        assert step["type"] == "submit-choice"
        assert step["data"] == {}

    def test_grid_turn(self):
        local = LocalTable(table("tic_tac_toe", ("bot", "human")))
        assert asyncio.run(local.executor().execute_turn("bot", MEDIUM)) == 1
        assert local.state["data"]["board"][1][1] == "X"
        assert local.events[-1]["data"] == {"row": 1, "col": 1}
