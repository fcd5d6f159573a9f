"""
Constants and state helpers for the dice-scoring game.

Categories, fixed scores, and initial data creation.
"""

# ── Dice ─────────────────────────────────────────────────────────────

DICE_COUNT = 5
DIE_FACES = 6
ROLLS_PER_TURN = 3

# ── Categories ───────────────────────────────────────────────────────

UPPER_CATEGORIES = ("ones", "twos", "threes", "fours", "fives", "sixes")
LOWER_CATEGORIES = (
    "three_of_kind", "four_of_kind", "full_house",
    "small_straight", "large_straight", "yahtzee", "chance",
)
CATEGORIES = UPPER_CATEGORIES + LOWER_CATEGORIES

# Face value counted by each upper category
FACE_BY_CATEGORY = {name: face for face, name in enumerate(UPPER_CATEGORIES, start=1)}

FULL_HOUSE_SCORE = 25
SMALL_STRAIGHT_SCORE = 30
LARGE_STRAIGHT_SCORE = 40
YAHTZEE_SCORE = 50

UPPER_BONUS_THRESHOLD = 63
UPPER_BONUS = 35

SMALL_STRAIGHT_RUNS = ({1, 2, 3, 4}, {2, 3, 4, 5}, {3, 4, 5, 6})

# Where a zero is cheapest to write down, cheapest first
WASTE_PRIORITY = (
    "ones", "twos", "threes", "fours", "fives", "sixes",
    "three_of_kind", "four_of_kind", "small_straight", "full_house",
    "large_straight", "chance", "yahtzee",
)

CATEGORY_LABELS = {
    "ones": "Ones", "twos": "Twos", "threes": "Threes",
    "fours": "Fours", "fives": "Fives", "sixes": "Sixes",
    "three_of_kind": "Three of a Kind", "four_of_kind": "Four of a Kind",
    "full_house": "Full House", "small_straight": "Small Straight",
    "large_straight": "Large Straight", "yahtzee": "Yahtzee", "chance": "Chance",
}


# ── Initial State ────────────────────────────────────────────────────

def create_initial_data():
    return {
        "round": 1,
        "dice": list(range(1, DICE_COUNT + 1)),
        "held": [False] * DICE_COUNT,
        "rolls_left": ROLLS_PER_TURN,
        # One scorecard per seat, filled in on start
        "scores": [],
    }


def reset_turn(data):
    """Clear per-turn fields so the next player starts fresh."""
    data["held"] = [False] * len(data.get("dice") or [0] * DICE_COUNT)
    data["rolls_left"] = ROLLS_PER_TURN
