"""
Base class for automated players.

A bot reads the engine it is given, returns one decision at a time, and
turns that decision into an ordinary move. It never mutates the engine;
moves go through the authority like any human move.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, replace

from gamehub.game_engine import build_move

EASY = "easy"
MEDIUM = "medium"
HARD = "hard"
DIFFICULTIES = (EASY, MEDIUM, HARD)


@dataclass
class BotConfig:
    difficulty: str = MEDIUM
    # Milliseconds before the first decision and between actions
    thinking_delay: int = 300
    action_delay: int = 300
    visual_feedback: bool = True


DEFAULT_BOT_CONFIGS = {
    EASY: BotConfig(EASY, thinking_delay=500, action_delay=400),
    MEDIUM: BotConfig(MEDIUM, thinking_delay=300, action_delay=300),
    HARD: BotConfig(HARD, thinking_delay=200, action_delay=200),
}


class BaseBot(ABC):

    # Decision types after which the bot has finished its turn
    turn_ending: frozenset = frozenset()

    def __init__(self, engine, bot_id, difficulty=MEDIUM):
        if difficulty not in DEFAULT_BOT_CONFIGS:
            raise ValueError(f"Unknown bot difficulty: {difficulty}")
        self.engine = engine
        self.bot_id = bot_id
        self.config = replace(DEFAULT_BOT_CONFIGS[difficulty])
        self.logger = logging.getLogger(f"{__name__}.{type(self).__name__}")

    @property
    def difficulty(self):
        return self.config.difficulty

    @abstractmethod
    def make_decision(self) -> dict:
        """Next decision for the current state, e.g. {"type": "roll", ...}."""
        ...

    @abstractmethod
    def decision_to_move(self, decision: dict) -> dict:
        ...

    def evaluate_state(self) -> str:
        """One-line summary for logs."""
        state = self.engine.state
        return f"{state['game_type']} status={state['status']} turn={state['current_player_index']}"

    def is_bot_turn(self) -> bool:
        current = self.engine.get_current_player()
        return current is not None and current["id"] == self.bot_id

    def get_bot_player(self):
        return self.engine.get_player(self.bot_id)

    def move(self, move_type, data=None):
        return build_move(self.bot_id, move_type, data)

    def use_engine(self, engine):
        """Point the bot at a freshly restored engine."""
        self.engine = engine
