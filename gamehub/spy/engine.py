"""
Spy game: engine implementation.

One player is secretly the spy and does not know the location. Everyone
else does and holds a role there. Players question each other, then vote
on who the spy is. Played over several rounds with a new location each.

Phase machine (per round):
  role_reveal → questioning → voting → results → (next round or game end)

The turn cursor is not used: the questioner is tracked in data.
"""

import random
import time
from collections import Counter
from copy import deepcopy

from gamehub.game_engine import GameEngine, GameConfig
from gamehub.spy.state import (
    ROLE_REVEAL, QUESTIONING, VOTING, RESULTS, QUESTIONS_PER_PLAYER,
    SPY_ESCAPE_POINTS, CATCH_SPY_POINTS, CORRECT_VOTE_POINTS, WRONG_VOTE_POINTS,
    create_initial_data, deal_round,
)


def _non_empty_text(value):
    return isinstance(value, str) and value.strip() != ""


class SpyEngine(GameEngine):

    game_type = "guess_the_spy"
    default_config = GameConfig(min_players=3, max_players=10, time_limit=10)

    def __init__(self, game_id, config=None, rng=None):
        self.rng = rng or random
        super().__init__(game_id, config)

    # ── Setup ─────────────────────────────────────────────────────────

    def get_initial_game_data(self):
        return create_initial_data()

    def start_game(self):
        if not super().start_game():
            return False
        data = self.state["data"]
        data["scores"] = {p["id"]: 0 for p in self.state["players"]}
        self._start_round()
        return True

    def _start_round(self):
        data = self.state["data"]
        deal_round(data, [p["id"] for p in self.state["players"]], rng=self.rng)
        data["votes"] = {}
        data["question_history"] = []
        data["players_ready"] = []
        data["current_questioner_id"] = None
        data["current_target_id"] = None
        data["pending_question"] = None
        data["accused_player_id"] = None
        self._enter_phase(ROLE_REVEAL)

    def _enter_phase(self, phase):
        self.state["data"]["phase"] = phase
        self.state["data"]["phase_start_time"] = time.time()

    # ── Validation ────────────────────────────────────────────────────

    def validate_move(self, move):
        if not super().validate_move(move):
            return False

        data = self.state["data"]
        payload = move.get("data") or {}
        player_id = move["player_id"]
        phase = data["phase"]
        kind = move["type"]

        if kind == "player-ready":
            return phase == ROLE_REVEAL and player_id not in data["players_ready"]

        if kind == "ask-question":
            target = payload.get("target_id")
            return (
                phase == QUESTIONING
                and data["current_questioner_id"] == player_id
                and data["current_target_id"] is None
                and isinstance(target, str)
                and target != player_id
                and self.get_player(target) is not None
                and _non_empty_text(payload.get("question"))
            )

        if kind == "answer-question":
            return (
                phase == QUESTIONING
                and data["current_target_id"] == player_id
                and data["pending_question"] is not None
                and _non_empty_text(payload.get("answer"))
            )

        if kind == "skip-turn":
            return phase == QUESTIONING and data["current_questioner_id"] == player_id

        if kind == "vote":
            target = payload.get("target_id")
            return (
                phase == VOTING
                and isinstance(target, str)
                and target != player_id
                and self.get_player(target) is not None
            )

        if kind == "next-round":
            return phase == RESULTS and data["current_round"] < data["total_rounds"]

        return False

    # ── Move Application ──────────────────────────────────────────────

    def process_move(self, move):
        payload = move["data"]
        kind = move["type"]

        if kind == "player-ready":
            self._do_ready(move["player_id"])
        elif kind == "ask-question":
            self.state["data"]["current_target_id"] = payload["target_id"]
            self.state["data"]["pending_question"] = payload["question"].strip()
        elif kind == "answer-question":
            self._do_answer(payload["answer"].strip())
        elif kind == "skip-turn":
            self._next_questioner()
        elif kind == "vote":
            self._do_vote(move["player_id"], payload["target_id"])
        elif kind == "next-round":
            self.state["data"]["current_round"] += 1
            self._start_round()

    def _do_ready(self, player_id):
        data = self.state["data"]
        data["players_ready"].append(player_id)
        if len(data["players_ready"]) == len(self.state["players"]):
            self._enter_phase(QUESTIONING)
            data["current_questioner_id"] = self.state["players"][0]["id"]
            data["current_target_id"] = None

    def _do_answer(self, answer):
        data = self.state["data"]
        asker = self.get_player(data["current_questioner_id"])
        target = self.get_player(data["current_target_id"])
        if asker and target:
            data["question_history"].append({
                "asker_id": asker["id"],
                "asker_name": asker["name"],
                "target_id": target["id"],
                "target_name": target["name"],
                "question": data["pending_question"],
                "answer": answer,
                "timestamp": time.time(),
            })
        data["pending_question"] = None
        self._next_questioner()

    def _next_questioner(self):
        data = self.state["data"]
        players = self.state["players"]
        index = self.get_player_index(data["current_questioner_id"])
        index = -1 if index is None else index
        data["current_questioner_id"] = players[(index + 1) % len(players)]["id"]
        data["current_target_id"] = None
        data["pending_question"] = None

        elapsed = time.time() - data["phase_start_time"]
        enough = len(data["question_history"]) >= len(players) * QUESTIONS_PER_PLAYER
        if elapsed >= data["question_time_limit"] or enough:
            self._enter_phase(VOTING)
            data["votes"] = {}

    def _do_vote(self, voter_id, target_id):
        data = self.state["data"]
        data["votes"][voter_id] = target_id
        if len(data["votes"]) == len(self.state["players"]):
            self._score_round()

    def _score_round(self):
        data = self.state["data"]
        scores = data["scores"]
        spy = data["spy_player_id"]

        # Most votes is accused; ties go to whoever was voted for first
        tally = Counter(data["votes"].values())
        accused = tally.most_common(1)[0][0] if tally else None
        data["accused_player_id"] = accused

        if accused != spy:
            scores[spy] = scores.get(spy, 0) + SPY_ESCAPE_POINTS
        else:
            for player in self.state["players"]:
                if player["id"] != spy:
                    scores[player["id"]] = scores.get(player["id"], 0) + CATCH_SPY_POINTS

        for voter_id, target_id in data["votes"].items():
            points = CORRECT_VOTE_POINTS if target_id == spy else WRONG_VOTE_POINTS
            scores[voter_id] = scores.get(voter_id, 0) + points

        self._enter_phase(RESULTS)

    def should_advance_turn(self, move):
        return False

    # ── End of Game ───────────────────────────────────────────────────

    def check_win_condition(self):
        data = self.state["data"]
        if data["phase"] != RESULTS or data["current_round"] < data["total_rounds"]:
            return None
        players = self.state["players"]
        if not players:
            return None
        return max(players, key=lambda p: data["scores"].get(p["id"], 0))

    def get_game_rules(self):
        return [
            "3-10 players compete to find the spy",
            "One player is randomly assigned as the spy",
            "Regular players see the location, the spy does not",
            "Players take turns asking each other questions about the location",
            "The spy must blend in without knowing the location",
            "After questioning, everyone votes for who they think the spy is",
            "If the spy is caught the other players win, otherwise the spy wins",
            "The game is played over several rounds with new locations",
        ]

    # ── Views ─────────────────────────────────────────────────────────

    def get_player_view(self, player_id):
        """
        Each player sees only their own role. The spy does not see the
        location. The spy's identity is revealed in the results phase.
        """
        view = deepcopy(self.state)
        data = view["data"]
        if data["phase"] == RESULTS:
            return view

        own_role = data["player_roles"].get(player_id)
        data["player_roles"] = {player_id: own_role} if own_role else {}
        if player_id != data["spy_player_id"]:
            data["spy_player_id"] = ""
        else:
            data["location"] = ""
            data["location_category"] = ""
        return view

    def get_waiting_for(self):
        data = self.state["data"]
        phase = data["phase"]
        everyone = [p["id"] for p in self.state["players"]]
        if self.state["status"] != "playing":
            return []
        if phase == ROLE_REVEAL:
            return [pid for pid in everyone if pid not in data["players_ready"]]
        if phase == QUESTIONING:
            if data["current_target_id"]:
                return [data["current_target_id"]]
            return [data["current_questioner_id"]] if data["current_questioner_id"] else []
        if phase == VOTING:
            return [pid for pid in everyone if pid not in data["votes"]]
        return []
