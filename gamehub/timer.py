"""
Client-side turn timer.

When a player's turn runs out, the client plays for them: roll if no roll
has been made yet this turn, then score the best open category. The timer
firing is not a permission. Every auto move is an ordinary submission the
authority validates against the current state, so a timer that fires
after the turn has already moved on simply gets its move rejected.
"""

import asyncio
import logging
import time

from gamehub.errors import AutoActionError
from gamehub.game_engine import PLAYING, build_move
from gamehub.yahtzee.scoring import select_best_available_category
from gamehub.yahtzee.state import ROLLS_PER_TURN

logger = logging.getLogger(__name__)


def _current_player_id(state):
    players = state.get("players") or []
    if not players:
        return None
    return players[state.get("current_player_index", 0) % len(players)].get("id")


def turn_signature(state):
    """Changes whenever the turn passes or a move is made."""
    return state.get("current_player_index"), state.get("last_move_at")


async def auto_play_turn(authority, game_id, player_id):
    """
    Finish player_id's dice-game turn. Returns the MoveResult of the last
    submission. Raises AutoActionError when the forced roll fails, so the
    player can be prompted to act by hand.
    """
    state = await authority.get_state(game_id)
    data = state.get("data") or {}

    # Only picks which move to send; the authority still validates it
    if state.get("status") == PLAYING and _current_player_id(state) == player_id \
            and data.get("rolls_left") == ROLLS_PER_TURN:
        result = await authority.submit_move(game_id, build_move(player_id, "roll"))
        if not result.accepted:
            raise AutoActionError(f"Auto-roll for {player_id} in {game_id} was rejected")
        state = result.state
        data = state["data"]

    seat = next((i for i, p in enumerate(state.get("players") or []) if p.get("id") == player_id), None)
    scores = data.get("scores") or []
    scorecard = scores[seat] if seat is not None and seat < len(scores) else {}
    category = select_best_available_category(data.get("dice") or [], scorecard)

    result = await authority.submit_move(
        game_id, build_move(player_id, "score", {"category": category}))
    if result.accepted:
        logger.info("Auto-scored %s for %s in %s", category, player_id, game_id)
    else:
        logger.debug("Auto-score for %s in %s rejected (turn already over)", player_id, game_id)
    return result


class TurnTimer:
    """
    One countdown per turn. restart() is called whenever the turn
    signature (cursor, last move time) changes; the previous countdown
    is cancelled.
    """

    def __init__(self, authority, seconds, on_error=None):
        self.authority = authority
        self.seconds = seconds
        self.on_error = on_error
        self._task = None
        self._deadline = None
        self.signature = None

    def start(self, game_id, player_id, signature=None, seconds=None):
        self.cancel()
        delay = self.seconds if seconds is None else seconds
        if delay <= 0:
            return
        self.signature = signature
        self._deadline = time.monotonic() + delay
        self._task = asyncio.create_task(self._run(game_id, player_id, delay))

    def restart(self, game_id, player_id, signature):
        """Start a new countdown only if the turn actually changed."""
        if signature == self.signature and self.active:
            return
        self.start(game_id, player_id, signature)

    def cancel(self):
        if self._task is not None and not self._task.done():
            self._task.cancel()
        self._task = None
        self._deadline = None

    @property
    def task(self):
        return self._task

    @property
    def active(self) -> bool:
        return self._task is not None and not self._task.done()

    def remaining(self) -> float:
        if self._deadline is None:
            return 0.0
        return max(0.0, self._deadline - time.monotonic())

    async def _run(self, game_id, player_id, delay):
        await asyncio.sleep(delay)
        logger.info("Turn timer expired for %s in %s", player_id, game_id)
        try:
            return await auto_play_turn(self.authority, game_id, player_id)
        except AutoActionError as e:
            logger.warning("%s", e)
            if self.on_error is not None:
                self.on_error(e)
            return None
