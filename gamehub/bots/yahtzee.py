"""
Dice game bot.

select_category and decide_dice_to_hold are pure helpers over dice and a
scorecard; YahtzeeBot strings them together into roll/score decisions.
"""

from collections import Counter

from gamehub.bots.base import BaseBot
from gamehub.yahtzee.scoring import (
    available_categories, calculate_score, upper_section_total,
)
from gamehub.yahtzee.state import (
    FACE_BY_CATEGORY, UPPER_CATEGORIES, UPPER_BONUS_THRESHOLD, UPPER_BONUS,
    ROLLS_PER_TURN, WASTE_PRIORITY,
)

# Rough points given up by writing a zero in each category
SACRIFICE_COST = {
    "ones": 1, "twos": 3, "threes": 5, "fours": 7, "fives": 9, "sixes": 11,
    "three_of_kind": 14, "four_of_kind": 8, "full_house": 12,
    "small_straight": 18, "large_straight": 16, "yahtzee": 10, "chance": 22,
}

# Score at or above which the bot stops rolling, keyed by rolls left
SCORE_THRESHOLDS = {
    "easy": {2: 15, 1: 10},
    "medium": {2: 20, 1: 15},
    "hard": {2: 25, 1: 20},
}


# ── Category Choice ──────────────────────────────────────────────────

def _bonus_reachable(scorecard):
    open_max = sum(face * 5 for c, face in FACE_BY_CATEGORY.items() if scorecard.get(c) is None)
    return upper_section_total(scorecard) + open_max >= UPPER_BONUS_THRESHOLD


def _category_value(dice, category, scorecard, bonus_reachable):
    score = calculate_score(dice, category)
    if score == 0:
        return -SACRIFICE_COST[category]

    value = score
    if category in FACE_BY_CATEGORY and bonus_reachable:
        # Three of a face keeps the upper section on pace for the bonus
        par = FACE_BY_CATEGORY[category] * 3
        if score >= par:
            value += UPPER_BONUS * par / UPPER_BONUS_THRESHOLD
        else:
            value -= (par - score)
    if category == "chance" and len(available_categories(scorecard)) > 3:
        # Keep chance for a bad roll while there is still choice
        value -= 8
    return value


def select_category(dice, scorecard):
    """
    Pick the category to score: points plus upper-bonus progress, minus the
    cost of burning a category. Returns None for a full scorecard.
    """
    available = available_categories(scorecard)
    if not available:
        return None
    if len(available) == 1:
        return available[0]

    reachable = _bonus_reachable(scorecard)
    priority = {c: i for i, c in enumerate(WASTE_PRIORITY)}
    return max(
        available,
        key=lambda c: (_category_value(dice, c, scorecard, reachable), -priority[c]),
    )


# ── Hold Choice ──────────────────────────────────────────────────────

def _longest_run(faces):
    best, run = [], []
    for face in sorted(set(faces)):
        run = run + [face] if run and face == run[-1] + 1 else [face]
        if len(run) > len(best):
            best = run
    return best


def decide_dice_to_hold(dice, held, rolls_left, scorecard):
    """Indices of the dice worth keeping for the next roll."""
    if rolls_left <= 0:
        return []

    counts = Counter(dice)
    face, count = max(counts.items(), key=lambda item: (item[1], item[0]))

    if count == 5:
        return list(range(len(dice)))

    if sorted(counts.values()) == [2, 3] and scorecard.get("full_house") is None:
        return list(range(len(dice)))

    run = _longest_run(dice)
    straights_open = scorecard.get("small_straight") is None or scorecard.get("large_straight") is None
    if len(run) >= 4 and straights_open and count < 3:
        return _indices_for_faces(dice, run)

    if count >= 2:
        return [i for i, die in enumerate(dice) if die == face]

    if len(run) >= 3 and straights_open:
        return _indices_for_faces(dice, run)

    # Nothing to build on: keep the highest die
    return [max(range(len(dice)), key=lambda i: dice[i])]


def _indices_for_faces(dice, faces):
    wanted, picked = set(faces), []
    for i, die in enumerate(dice):
        if die in wanted:
            picked.append(i)
            wanted.discard(die)
    return picked


# ── Bot ──────────────────────────────────────────────────────────────

class YahtzeeBot(BaseBot):

    turn_ending = frozenset({"score"})

    def make_decision(self):
        rolls_left = self.engine.get_rolls_left()
        dice = self.engine.get_dice()
        scorecard = self.engine.get_scorecard(self.bot_id)
        if scorecard is None:
            raise ValueError(f"No scorecard for bot {self.bot_id}")

        if rolls_left == ROLLS_PER_TURN:
            return {"type": "roll", "dice_to_hold": []}

        category = select_category(dice, scorecard)
        if rolls_left == 0 or self.should_score(calculate_score(dice, category), rolls_left):
            return {"type": "score", "category": category}

        hold = decide_dice_to_hold(dice, self.engine.get_held(), rolls_left, scorecard)
        return {"type": "roll", "dice_to_hold": hold}

    def should_score(self, score, rolls_left):
        threshold = SCORE_THRESHOLDS[self.difficulty].get(rolls_left)
        return threshold is not None and score >= threshold

    def decision_to_move(self, decision):
        if decision["type"] == "roll":
            held = [False] * len(self.engine.get_dice())
            for index in decision.get("dice_to_hold") or []:
                held[index] = True
            return self.move("roll", {"held": held})
        if decision["type"] == "score":
            if not decision.get("category"):
                raise ValueError("Score decision without a category")
            return self.move("score", {"category": decision["category"]})
        raise ValueError(f"Unknown decision type: {decision['type']}")

    def evaluate_state(self):
        return (f"dice={self.engine.get_dice()} rolls_left={self.engine.get_rolls_left()} "
                f"total={self.engine.get_total_score(self.bot_id)}")
