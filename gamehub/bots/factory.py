"""Bot construction by game type."""

from gamehub.bots.base import MEDIUM
from gamehub.bots.rps import RockPaperScissorsBot
from gamehub.bots.tictactoe import TicTacToeBot
from gamehub.bots.yahtzee import YahtzeeBot
from gamehub.errors import UnknownGameTypeError

BOT_CLASSES = {
    "yahtzee": YahtzeeBot,
    "tic_tac_toe": TicTacToeBot,
    "rock_paper_scissors": RockPaperScissorsBot,
}


def create_bot(game_type, engine, bot_id, difficulty=MEDIUM):
    try:
        bot_class = BOT_CLASSES[game_type]
    except KeyError:
        raise UnknownGameTypeError(f"No bot available for game type: {game_type}") from None
    return bot_class(engine, bot_id, difficulty)
