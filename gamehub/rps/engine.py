"""
Simultaneous-reveal game: engine implementation.

Both players secretly submit rock, paper or scissors. Once both have
chosen, the round is revealed and scored; draws are replayed. The first
player to the majority of a best-of-3 or best-of-5 match wins. There is
no turn order, so the turn cursor never moves.
"""

from copy import deepcopy

from gamehub.game_engine import GameEngine, GameConfig, FINISHED, PLAYING, WAITING

CHOICES = ("rock", "paper", "scissors")
BEATS = {"rock": "scissors", "scissors": "paper", "paper": "rock"}
COUNTER = {loser: winner for winner, loser in BEATS.items()}

BEST_OF_3 = "best_of_3"
BEST_OF_5 = "best_of_5"
WINS_NEEDED = {BEST_OF_3: 2, BEST_OF_5: 3}

DRAW = "draw"


def round_winner(choices, player_ids):
    """Winning player id for one revealed round, or DRAW."""
    first, second = player_ids
    a, b = choices[first], choices[second]
    if a == b:
        return DRAW
    return first if BEATS[a] == b else second


class RockPaperScissorsEngine(GameEngine):

    game_type = "rock_paper_scissors"
    default_config = GameConfig(min_players=2, max_players=2)

    # ── Setup ─────────────────────────────────────────────────────────

    def get_initial_game_data(self):
        return {
            "mode": BEST_OF_3,
            "rounds": [],
            # Current round, None until the player submits
            "player_choices": {},
            "scores": {},
            "players_ready": [],
            "game_winner": None,
        }

    def set_mode(self, mode) -> bool:
        if self.state["status"] != WAITING or mode not in WINS_NEEDED:
            return False
        self.state["data"]["mode"] = mode
        return True

    def start_game(self):
        mode = self.state["data"].get("mode", BEST_OF_3)
        if not super().start_game():
            return False
        data = self.state["data"]
        data["mode"] = mode
        for player in self.state["players"]:
            data["scores"][player["id"]] = 0
            data["player_choices"][player["id"]] = None
        return True

    # ── Moves ─────────────────────────────────────────────────────────

    def validate_move(self, move):
        if not super().validate_move(move):
            return False
        if move["type"] != "submit-choice":
            return False
        data = self.state["data"]
        if data["game_winner"] is not None:
            return False
        if move.get("data", {}).get("choice") not in CHOICES:
            return False
        return move["player_id"] not in data["players_ready"]

    def process_move(self, move):
        data = self.state["data"]
        data["player_choices"][move["player_id"]] = move["data"]["choice"]
        data["players_ready"].append(move["player_id"])

        if len(data["players_ready"]) == len(self.state["players"]):
            self._reveal_round()

    def _reveal_round(self):
        data = self.state["data"]
        player_ids = [p["id"] for p in self.state["players"][:2]]
        choices = {pid: data["player_choices"][pid] for pid in player_ids}

        winner = round_winner(choices, player_ids)
        data["rounds"].append({"choices": choices, "winner": winner})
        if winner != DRAW:
            data["scores"][winner] = data["scores"].get(winner, 0) + 1

        needed = WINS_NEEDED[data["mode"]]
        for pid in player_ids:
            if data["scores"].get(pid, 0) >= needed:
                data["game_winner"] = pid
                self.state["status"] = FINISHED
                return

        for pid in player_ids:
            data["player_choices"][pid] = None
        data["players_ready"] = []

    def should_advance_turn(self, move):
        return False

    def check_win_condition(self):
        winner_id = self.state["data"]["game_winner"]
        if winner_id is None:
            return None
        return self.get_player(winner_id)

    def get_game_rules(self):
        return [
            "Both players choose Rock, Paper, or Scissors simultaneously",
            "Rock beats Scissors, Scissors beats Paper, Paper beats Rock",
            "If both choose the same, the round is a draw and is replayed",
            "Best-of-3 or Best-of-5 format, decided before the game starts",
            "First to win the majority of rounds wins the match",
        ]

    # ── Views ─────────────────────────────────────────────────────────

    def get_player_view(self, player_id):
        """Hide an opponent's choice until the round is revealed."""
        view = deepcopy(self.state)
        choices = view["data"]["player_choices"]
        for pid in choices:
            if pid != player_id and choices[pid] is not None:
                choices[pid] = "hidden"
        return view

    def get_waiting_for(self):
        if self.state["status"] != PLAYING:
            return []
        ready = self.state["data"]["players_ready"]
        return [p["id"] for p in self.state["players"] if p["id"] not in ready]
