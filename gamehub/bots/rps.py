"""
Rock-paper-scissors bot.

Predicts the opponent's next choice from their history (most frequent,
with the latest choice counted twice) and plays what beats it. easy
ignores history, medium counters 70% of the time, hard always counters.
"""

import random
from collections import Counter

from gamehub.bots.base import BaseBot, EASY, MEDIUM
from gamehub.rps.engine import CHOICES, COUNTER

MEDIUM_COUNTER_RATE = 0.7


def predict_choice(rounds, opponent_id, rng=random):
    counts = Counter()
    for rnd in rounds:
        choice = (rnd.get("choices") or {}).get(opponent_id)
        if choice in CHOICES:
            counts[choice] += 1
    if rounds:
        last = (rounds[-1].get("choices") or {}).get(opponent_id)
        if last in CHOICES:
            counts[last] += 1
    if not counts:
        return None
    top = max(counts.values())
    return rng.choice([c for c in CHOICES if counts[c] == top])


class RockPaperScissorsBot(BaseBot):

    turn_ending = frozenset({"submit-choice"})

    def __init__(self, engine, bot_id, difficulty=MEDIUM, rng=None):
        super().__init__(engine, bot_id, difficulty)
        self.rng = rng or random

    def make_decision(self):
        opponent = next((p for p in self.engine.state["players"] if p["id"] != self.bot_id), None)
        if opponent is None or self.difficulty == EASY:
            return self._decision(self.rng.choice(CHOICES))

        predicted = predict_choice(self.engine.state["data"]["rounds"], opponent["id"], self.rng)
        if predicted is None:
            return self._decision(self.rng.choice(CHOICES))
        if self.difficulty == MEDIUM and self.rng.random() >= MEDIUM_COUNTER_RATE:
            return self._decision(self.rng.choice(CHOICES))
        return self._decision(COUNTER[predicted])

    def _decision(self, choice):
        return {"type": "submit-choice", "choice": choice}

    def decision_to_move(self, decision):
        return self.move("submit-choice", {"choice": decision["choice"]})

    def is_bot_turn(self):
        return self.bot_id in self.engine.get_waiting_for()

    def evaluate_state(self):
        data = self.engine.state["data"]
        return f"rounds={len(data['rounds'])} ready={data['players_ready']} scores={data['scores']}"
