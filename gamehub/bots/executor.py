"""
Bot turn executor.

Plays one bot turn a step at a time. Before every step the current state
is fetched again and the bot decides from that, so anything that changed
in between (a disconnect, a timer move) is taken into account. Each step
emits an event for spectators, and the move itself goes through the normal
submission path.

Any rejected or failed step stops the turn with BotTurnError; the caller
decides whether to retry.
"""

import asyncio
import logging
from copy import deepcopy

from gamehub.bots.base import MEDIUM
from gamehub.bots.factory import create_bot
from gamehub.errors import BotTurnError

logger = logging.getLogger(__name__)

# Enough for three rolls and a score, with room to spare
MAX_STEPS = 8


class BotExecutor:
    """
    fetch_engine: async () -> GameEngine restored from the current state
    submit_move:  async (move) -> result with an `accepted` attribute
    on_step:      optional async (event dict) -> None
    """

    def __init__(self, fetch_engine, submit_move, on_step=None, delay_scale=1.0):
        self.fetch_engine = fetch_engine
        self.submit_move = submit_move
        self.on_step = on_step
        self.delay_scale = delay_scale

    async def execute_turn(self, bot_id, difficulty=MEDIUM) -> int:
        """Play the bot's turn to the end. Returns the number of moves made."""
        engine = await self.fetch_engine()
        bot = create_bot(engine.game_type, engine, bot_id, difficulty)
        game_id = engine.state["id"]

        if not bot.is_bot_turn():
            logger.debug("Bot %s has nothing to do in %s", bot_id, game_id)
            return 0

        logger.info("Bot %s starting turn in %s", bot_id, game_id)
        await self._emit(bot, "thinking", "Thinking...")
        await self._pause(bot.config.thinking_delay)

        moves = 0
        for _ in range(MAX_STEPS):
            try:
                decision = bot.make_decision()
                move = bot.decision_to_move(decision)
            except ValueError as e:
                raise BotTurnError(f"Bot could not decide: {e}", game_id, bot_id) from e

            if not engine.validate_move(deepcopy(move)):
                raise BotTurnError(f"Planned {move['type']} is not legal", game_id, bot_id, decision["type"])

            await self._announce(bot, decision, move)
            result = await self.submit_move(move)
            if not result.accepted:
                raise BotTurnError(f"{move['type']} was rejected", game_id, bot_id, decision["type"])
            moves += 1

            if decision["type"] in bot.turn_ending:
                logger.info("Bot %s finished turn in %s after %d move(s)", bot_id, game_id, moves)
                return moves

            await self._pause(bot.config.action_delay)
            engine = await self.fetch_engine()
            bot.use_engine(engine)
            if not bot.is_bot_turn():
                raise BotTurnError("Turn ended before the bot finished", game_id, bot_id, decision["type"])

        raise BotTurnError(f"Bot did not finish within {MAX_STEPS} steps", game_id, bot_id)

    # ── Events ────────────────────────────────────────────────────────

    async def _announce(self, bot, decision, move):
        kind = decision["type"]
        if kind == "roll":
            hold = decision.get("dice_to_hold") or []
            if hold:
                await self._emit(bot, "hold", f"Holding {len(hold)} dice", {"held": move["data"]["held"]})
            await self._emit(bot, "roll", "Rolling dice")
        elif kind == "score":
            await self._emit(bot, "score", f"Scoring {decision['category']}",
                             {"category": decision["category"]})
        elif kind == "submit-choice":
            # The choice stays secret until the round is revealed
            await self._emit(bot, kind, "Choice submitted")
        else:
            await self._emit(bot, kind, kind.replace("-", " ").capitalize(), dict(move["data"]))

    async def _emit(self, bot, step, message, data=None):
        if self.on_step is None:
            return
        player = bot.get_bot_player() or {}
        await self.on_step({
            "type": step,
            "bot_id": bot.bot_id,
            "bot_name": player.get("name"),
            "message": message,
            "data": data or {},
        })

    async def _pause(self, milliseconds):
        if self.delay_scale > 0 and milliseconds:
            await asyncio.sleep(milliseconds / 1000 * self.delay_scale)
