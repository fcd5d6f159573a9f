"""
Dice-scoring game: engine implementation.

Each turn the current player rolls up to three times, holding any dice
between rolls, then writes one category on their scorecard. Only scoring
passes the turn. The game ends once every scorecard is full.

Moves:
  roll   {held?: [bool] * 5}   re-roll the dice that are not held
  hold   {dice_index: int} or {held: [bool] * 5}
  score  {category: str}
"""

import random

from gamehub.game_engine import GameEngine, GameConfig
from gamehub.yahtzee.state import (
    CATEGORIES, ROLLS_PER_TURN, create_initial_data, reset_turn,
)
from gamehub.yahtzee.scoring import (
    calculate_score, calculate_total_score, is_scorecard_complete,
)


class YahtzeeEngine(GameEngine):

    game_type = "yahtzee"
    default_config = GameConfig(min_players=1, max_players=4)

    def __init__(self, game_id, config=None, rng=None):
        self.rng = rng or random
        super().__init__(game_id, config)

    # ── Setup ─────────────────────────────────────────────────────────

    def get_initial_game_data(self):
        return create_initial_data()

    def start_game(self):
        if not super().start_game():
            return False
        self.state["data"]["scores"] = [{} for _ in self.state["players"]]
        return True

    def remove_player(self, player_id):
        index = self.get_player_index(player_id)
        on_turn = index == self.state["current_player_index"]
        if not super().remove_player(player_id):
            return False
        data = self.state["data"]
        # Scorecards are stored by seat
        if index < len(data["scores"]):
            data["scores"].pop(index)
        # The next player starts a clean turn, not the leaver's half-played one
        if on_turn and self.state["status"] == "playing":
            reset_turn(data)
        return True

    def normalize_data(self, data):
        dice = data.get("dice") or []
        held = data.get("held") or []
        if len(held) != len(dice):
            data["held"] = [False] * len(dice)
        if not isinstance(data.get("scores"), list):
            data["scores"] = []
        # Scorecards follow seats; a seat without one starts empty
        while self.state["status"] != "waiting" and len(data["scores"]) < len(self.state["players"]):
            data["scores"].append({})
        return data

    # ── Validation ────────────────────────────────────────────────────

    def validate_move(self, move):
        if not super().validate_move(move):
            return False

        current = self.get_current_player()
        if current is None or current["id"] != move["player_id"]:
            return False

        data = self.state["data"]
        payload = move.get("data") or {}
        kind = move["type"]

        if kind == "roll":
            if data["rolls_left"] <= 0:
                return False
            if "held" in payload:
                return self._is_mask(payload["held"])
            return True

        if kind == "hold":
            if data["rolls_left"] >= ROLLS_PER_TURN:
                return False
            if "held" in payload:
                return self._is_mask(payload["held"])
            index = payload.get("dice_index")
            return isinstance(index, int) and not isinstance(index, bool) and 0 <= index < len(data["dice"])

        if kind == "score":
            if data["rolls_left"] >= ROLLS_PER_TURN:
                return False
            category = payload.get("category")
            if category not in CATEGORIES:
                return False
            scorecard = self._scorecard_at(self.state["current_player_index"])
            return scorecard is not None and scorecard.get(category) is None

        return False

    def _is_mask(self, held):
        dice = self.state["data"]["dice"]
        return (isinstance(held, list) and len(held) == len(dice)
                and all(isinstance(h, bool) for h in held))

    # ── Move Application ──────────────────────────────────────────────

    def process_move(self, move):
        kind = move["type"]
        if kind == "roll":
            self._do_roll(move["data"])
        elif kind == "hold":
            self._do_hold(move["data"])
        elif kind == "score":
            self._do_score(move["data"]["category"])

    def _do_roll(self, payload):
        data = self.state["data"]
        if "held" in payload:
            data["held"] = list(payload["held"])
        data["dice"] = [
            die if held else self.rng.randint(1, 6)
            for die, held in zip(data["dice"], data["held"])
        ]
        data["rolls_left"] -= 1

    def _do_hold(self, payload):
        data = self.state["data"]
        if "held" in payload:
            data["held"] = list(payload["held"])
        else:
            index = payload["dice_index"]
            data["held"][index] = not data["held"][index]

    def _do_score(self, category):
        data = self.state["data"]
        seat = self.state["current_player_index"]
        data["scores"][seat][category] = calculate_score(data["dice"], category)
        reset_turn(data)
        # Last seat closing its turn ends the round
        if seat == len(self.state["players"]) - 1:
            data["round"] += 1

    def should_advance_turn(self, move):
        return move["type"] == "score"

    # ── End of Game ───────────────────────────────────────────────────

    def check_win_condition(self):
        players = self.state["players"]
        scores = self.state["data"].get("scores") or []
        if not players or len(scores) < len(players):
            return None
        if not all(is_scorecard_complete(scores[i]) for i in range(len(players))):
            return None

        best = max(range(len(players)), key=lambda i: calculate_total_score(scores[i]))
        return players[best]

    def get_game_rules(self):
        return [
            "Roll five dice up to three times per turn",
            "Hold any dice between rolls to keep them",
            "After rolling, write a score in one empty category",
            "Upper section: sum of the matching faces; 35 bonus at 63 or more",
            "Three/four of a kind score the dice total, full house 25",
            "Small straight 30, large straight 40, five of a kind 50",
            "Chance scores the dice total",
            "Highest total after all 13 categories wins",
        ]

    # ── Accessors ─────────────────────────────────────────────────────

    def get_dice(self):
        return list(self.state["data"]["dice"])

    def get_held(self):
        return list(self.state["data"]["held"])

    def get_rolls_left(self):
        return self.state["data"]["rolls_left"]

    def get_round(self):
        return self.state["data"]["round"]

    def get_scorecard(self, player_id):
        index = self.get_player_index(player_id)
        scorecard = self._scorecard_at(index) if index is not None else None
        return dict(scorecard) if scorecard is not None else None

    def get_total_score(self, player_id):
        scorecard = self.get_scorecard(player_id)
        return calculate_total_score(scorecard) if scorecard is not None else 0

    def _scorecard_at(self, index):
        scores = self.state["data"].get("scores") or []
        if 0 <= index < len(scores):
            return scores[index]
        return None
