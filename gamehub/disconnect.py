"""
Disconnect-aware turn advancement.

Helpers that operate directly on a state dict (the same shape the engines
produce). They are called only from inside the authority's per-game
critical section.

A player counts as disconnected when is_active is False and their id is
not a bot id. Bots have no real connection and are never skipped.
"""

import time
from dataclasses import dataclass, field

from gamehub.yahtzee.state import ROLLS_PER_TURN


@dataclass
class TurnAdvanceResult:
    changed: bool = False
    skipped_player_ids: list[str] = field(default_factory=list)
    current_player_id: str | None = None


def _is_disconnected(player, bot_user_ids):
    player_id = player.get("id") if isinstance(player, dict) else None
    if not player_id or player_id in bot_user_ids:
        return False
    return player.get("is_active") is False


def _next_playable_index(players, start, bot_user_ids):
    """First index after start (wrapping) whose player may act; start if none."""
    for offset in range(1, len(players) + 1):
        index = (start + offset) % len(players)
        if players[index].get("id") and not _is_disconnected(players[index], bot_user_ids):
            return index
    return start


def set_player_connection_in_state(state, user_id, is_active, timestamp=None) -> bool:
    """
    Flip one player's connectivity flag. Returns False when the player is
    unknown or already in the requested state. Never moves the turn.
    """
    players = state.get("players")
    if not isinstance(players, list):
        return False

    for player in players:
        if isinstance(player, dict) and player.get("id") == user_id:
            break
    else:
        return False

    if player.get("is_active", True) == is_active:
        return False

    timestamp = time.time() if timestamp is None else timestamp
    player["is_active"] = is_active
    if is_active:
        player.pop("disconnected_at", None)
    else:
        player["disconnected_at"] = timestamp
    state["updated_at"] = max(timestamp, state.get("updated_at") or 0)
    return True


def advance_turn_past_disconnected_players(state, bot_user_ids=(), timestamp=None) -> TurnAdvanceResult:
    """
    Move the turn cursor off disconnected players.

    Runs at most once per seat, so it always terminates. When every seat
    is disconnected the cursor stays where it is. A skip resets the held
    dice and roll budget (when the game has them) so the next player
    starts a clean turn.
    """
    players = state.get("players")
    if not isinstance(players, list) or not players:
        return TurnAdvanceResult()

    bot_user_ids = set(bot_user_ids)
    total = len(players)
    cursor = state.get("current_player_index")
    cursor = cursor if isinstance(cursor, int) and not isinstance(cursor, bool) else 0
    cursor %= total

    result = TurnAdvanceResult()
    for _ in range(total):
        current = players[cursor]
        current_id = current.get("id") if isinstance(current, dict) else None
        if not current_id or not _is_disconnected(current, bot_user_ids):
            break
        next_index = _next_playable_index(players, cursor, bot_user_ids)
        if next_index == cursor:
            break
        result.skipped_player_ids.append(current_id)
        cursor = next_index
        result.changed = True

    if result.changed:
        timestamp = time.time() if timestamp is None else timestamp
        state["current_player_index"] = cursor
        state["last_move_at"] = timestamp
        state["updated_at"] = max(timestamp, state.get("updated_at") or 0)

        data = state.get("data")
        if isinstance(data, dict):
            if isinstance(data.get("held"), list) and data["held"]:
                data["held"] = [False] * len(data["held"])
            if isinstance(data.get("rolls_left"), int):
                data["rolls_left"] = ROLLS_PER_TURN

    current = players[cursor]
    result.current_player_id = current.get("id") if isinstance(current, dict) else None
    return result


def count_active_human_players(state, bot_user_ids=()) -> int:
    bot_user_ids = set(bot_user_ids)
    return sum(
        1 for p in state.get("players") or []
        if isinstance(p, dict) and p.get("id") not in bot_user_ids and p.get("is_active", True)
    )
