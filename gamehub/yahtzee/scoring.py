"""
Scoring rules for the dice game.

Pure functions over a dice list and a scorecard dict
(category -> recorded score; a missing key means not yet filled).
"""

import random
from collections import Counter

from gamehub.yahtzee.state import (
    CATEGORIES, UPPER_CATEGORIES, FACE_BY_CATEGORY, DICE_COUNT, DIE_FACES,
    FULL_HOUSE_SCORE, SMALL_STRAIGHT_SCORE, LARGE_STRAIGHT_SCORE, YAHTZEE_SCORE,
    SMALL_STRAIGHT_RUNS, UPPER_BONUS_THRESHOLD, UPPER_BONUS, WASTE_PRIORITY,
)


def roll_dice(count=DICE_COUNT, rng=random):
    return [rng.randint(1, DIE_FACES) for _ in range(count)]


# ── Category Scores ──────────────────────────────────────────────────

def calculate_score(dice, category):
    """Points the given dice are worth in one category."""
    counts = Counter(dice)
    total = sum(dice)

    if category in FACE_BY_CATEGORY:
        face = FACE_BY_CATEGORY[category]
        return counts[face] * face
    if category == "three_of_kind":
        return total if max(counts.values(), default=0) >= 3 else 0
    if category == "four_of_kind":
        return total if max(counts.values(), default=0) >= 4 else 0
    if category == "full_house":
        return FULL_HOUSE_SCORE if sorted(counts.values()) == [2, 3] else 0
    if category == "small_straight":
        faces = set(dice)
        return SMALL_STRAIGHT_SCORE if any(run <= faces for run in SMALL_STRAIGHT_RUNS) else 0
    if category == "large_straight":
        return LARGE_STRAIGHT_SCORE if _is_large_straight(dice) else 0
    if category == "yahtzee":
        return YAHTZEE_SCORE if DICE_COUNT in counts.values() else 0
    if category == "chance":
        return total
    raise ValueError(f"Unknown category: {category}")


def _is_large_straight(dice):
    faces = sorted(set(dice))
    return len(faces) == 5 and faces[-1] - faces[0] == 4


# ── Totals ───────────────────────────────────────────────────────────

def upper_section_total(scorecard):
    return sum(scorecard.get(c) or 0 for c in UPPER_CATEGORIES)


def upper_bonus(scorecard):
    return UPPER_BONUS if upper_section_total(scorecard) >= UPPER_BONUS_THRESHOLD else 0


def calculate_total_score(scorecard):
    """Upper section + bonus + everything else recorded."""
    lower = sum(scorecard.get(c) or 0 for c in CATEGORIES if c not in UPPER_CATEGORIES)
    return upper_section_total(scorecard) + upper_bonus(scorecard) + lower


# ── Category Selection ───────────────────────────────────────────────

def available_categories(scorecard):
    return [c for c in CATEGORIES if scorecard.get(c) is None]


def is_scorecard_complete(scorecard):
    return not available_categories(scorecard)


def select_best_available_category(dice, scorecard):
    """
    Highest-scoring open category for these dice (earliest category wins
    ties). When every open category would score zero, the cheapest one in
    WASTE_PRIORITY is used instead. Returns None only for a full scorecard.
    """
    available = available_categories(scorecard)
    if not available:
        return None

    best, best_score = None, 0
    for category in available:
        score = calculate_score(dice, category)
        if score > best_score:
            best, best_score = category, score
    if best is not None:
        return best

    for category in WASTE_PRIORITY:
        if category in available:
            return category
    return available[0]
