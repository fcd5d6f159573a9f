"""
Exception types.

Illegal moves are never exceptions; engines answer them with False.
These cover programmer errors and infrastructure failures around the
authority (storage, bots, timers).
"""


class GameHubError(Exception):
    """Base class for every error raised by gamehub."""


class UnknownGameTypeError(GameHubError, ValueError):
    """A game-type tag that no engine is registered for."""


class GameNotFoundError(GameHubError, LookupError):
    pass


class PersistenceError(GameHubError):
    """The store failed to read or write a game."""


class PersistenceConflictError(PersistenceError):
    """A conditional update kept losing to concurrent writers."""

    def __init__(self, game_id, attempts):
        super().__init__(f"Game {game_id}: gave up after {attempts} conflicting writes")
        self.game_id = game_id
        self.attempts = attempts


class BotTurnError(GameHubError):
    """A bot's turn stopped part-way and needs a retry."""

    def __init__(self, message, game_id=None, bot_id=None, step=None):
        super().__init__(message)
        self.game_id = game_id
        self.bot_id = bot_id
        self.step = step


class AutoActionError(GameHubError):
    """
    A timer-driven auto action could not complete.

    Recoverable: the player is expected to act manually.
    """

    recoverable = True
