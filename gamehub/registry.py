"""
Game registry.

Maps a game-type tag to the engine class that governs it. The authority
stores only the tag and the opaque state dict; everything game-specific is
reached through the engine looked up here.
"""

from dataclasses import dataclass

from gamehub.errors import UnknownGameTypeError
from gamehub.game_engine import GameConfig, GameEngine
from gamehub.rps.engine import RockPaperScissorsEngine
from gamehub.spy.engine import SpyEngine
from gamehub.tictactoe.engine import TicTacToeEngine
from gamehub.yahtzee.engine import YahtzeeEngine


@dataclass(frozen=True)
class GameMetadata:
    game_type: str
    name: str
    engine_class: type
    min_players: int
    max_players: int
    supports_bots: bool = False
    description: str = ""

    def default_config(self) -> GameConfig:
        return GameConfig(min_players=self.min_players, max_players=self.max_players)


GAME_ENGINES: dict[str, GameMetadata] = {
    meta.game_type: meta for meta in (
        GameMetadata("yahtzee", "Yahtzee", YahtzeeEngine, 1, 4, supports_bots=True,
                     description="Roll five dice and fill a 13-category scorecard"),
        GameMetadata("tic_tac_toe", "Tic-Tac-Toe", TicTacToeEngine, 2, 2, supports_bots=True,
                     description="Three in a row on a 3x3 grid"),
        GameMetadata("rock_paper_scissors", "Rock Paper Scissors", RockPaperScissorsEngine, 2, 2,
                     supports_bots=True, description="Simultaneous best-of-3 or best-of-5 match"),
        GameMetadata("guess_the_spy", "Guess the Spy", SpyEngine, 3, 10,
                     description="Find the player who does not know the location"),
    )
}

DEFAULT_GAME_TYPE = "yahtzee"


def get_game_metadata(game_type) -> GameMetadata:
    try:
        return GAME_ENGINES[game_type]
    except KeyError:
        raise UnknownGameTypeError(
            f"Unknown game type: {game_type}. Available: {get_supported_game_types()}"
        ) from None


def get_supported_game_types() -> list[str]:
    return list(GAME_ENGINES)


def is_registered_game_type(game_type) -> bool:
    return game_type in GAME_ENGINES


def has_bot_support(game_type) -> bool:
    meta = GAME_ENGINES.get(game_type)
    return bool(meta and meta.supports_bots)


def create_game_engine(game_type, game_id, config=None) -> GameEngine:
    meta = get_game_metadata(game_type)
    return meta.engine_class(game_id, config or meta.default_config())


def restore_game_engine(game_type, game_id, state, config=None) -> GameEngine:
    """Build an engine for game_type and load a stored snapshot into it."""
    engine = create_game_engine(game_type, game_id, config)
    engine.restore_state(state)
    return engine
