"""
Tests for disconnect-aware turn advancement.

Covers: connection flag changes, skipping disconnected players, bots,
fully disconnected tables, and termination over random rosters.
"""

import random

from gamehub.disconnect import (
    advance_turn_past_disconnected_players, count_active_human_players,
    set_player_connection_in_state,
)
from gamehub.yahtzee.state import ROLLS_PER_TURN


# ── Helpers ───────────────────────────────────────────────────────────

def make_state(active, cursor=0):
    """active: list of bools, one per seat (p0, p1, ...)."""
    return {
        "players": [{"id": f"p{i}", "name": f"Player {i}", "is_active": a} for i, a in enumerate(active)],
        "current_player_index": cursor,
        "status": "playing",
        "data": {"dice": [3, 3, 4, 5, 6], "held": [True, True, False, False, False], "rolls_left": 1},
        "last_move_at": None,
        "updated_at": 0,
    }


# ══════════════════════════════════════════════════════════════════════
# Connection Flags
# ══════════════════════════════════════════════════════════════════════

class TestConnectionFlags:

    def test_disconnect_sets_timestamp(self):
        state = make_state([True, True])
        assert set_player_connection_in_state(state, "p1", False, timestamp=100.0)
        player = state["players"][1]
        assert player["is_active"] is False
        assert player["disconnected_at"] == 100.0
        assert state["updated_at"] == 100.0

    def test_reconnect_clears_timestamp(self):
        state = make_state([True, True])
        set_player_connection_in_state(state, "p1", False, timestamp=100.0)
        assert set_player_connection_in_state(state, "p1", True, timestamp=105.0)
        assert state["players"][1]["is_active"] is True
        assert "disconnected_at" not in state["players"][1]

    def test_same_value_is_a_no_op(self):
        state = make_state([True, False])
        assert not set_player_connection_in_state(state, "p0", True)
        assert not set_player_connection_in_state(state, "p1", False)

    def test_unknown_player(self):
        state = make_state([True])
        assert not set_player_connection_in_state(state, "ghost", False)
        assert not set_player_connection_in_state({"players": None}, "p0", False)

    def test_flag_change_never_moves_turn(self):
        state = make_state([True, True])
        set_player_connection_in_state(state, "p0", False)
        assert state["current_player_index"] == 0


# ══════════════════════════════════════════════════════════════════════
# Turn Advancement
# ══════════════════════════════════════════════════════════════════════

class TestAdvance:

    def test_active_current_player_untouched(self):
        state = make_state([True, False, True])
        result = advance_turn_past_disconnected_players(state)
        assert not result.changed
        assert result.skipped_player_ids == []
        assert result.current_player_id == "p0"
        assert state["data"]["rolls_left"] == 1

    def test_skip_to_next_active(self):
        state = make_state([False, True, True])
        result = advance_turn_past_disconnected_players(state, timestamp=50.0)
        assert result.changed
        assert result.skipped_player_ids == ["p0"]
        assert result.current_player_id == "p1"
        assert state["current_player_index"] == 1
        assert state["last_move_at"] == 50.0

    def test_skip_resets_turn_budget(self):
        state = make_state([False, True])
        advance_turn_past_disconnected_players(state)
        assert state["data"]["held"] == [False] * 5
        assert state["data"]["rolls_left"] == ROLLS_PER_TURN

    def test_skip_wraps_around(self):
        state = make_state([True, False, False], cursor=1)
        result = advance_turn_past_disconnected_players(state)
        assert result.current_player_id == "p0"
        assert state["current_player_index"] == 0

    def test_jumps_over_a_run_of_disconnected(self):
        state = make_state([False, False, True])
        result = advance_turn_past_disconnected_players(state)
        assert result.current_player_id == "p2"
        assert "p0" in result.skipped_player_ids

    def test_everyone_disconnected_keeps_cursor(self):
        state = make_state([False, False, False], cursor=1)
        result = advance_turn_past_disconnected_players(state)
        assert not result.changed
        assert state["current_player_index"] == 1
        assert state["data"]["rolls_left"] == 1

    def test_bots_are_never_skipped(self):
        state = make_state([False, True])
        result = advance_turn_past_disconnected_players(state, bot_user_ids={"p0"})
        assert not result.changed
        assert result.current_player_id == "p0"

    def test_bot_picks_up_the_turn(self):
        state = make_state([False, False, True])
        state["players"][1]["is_active"] = False
        result = advance_turn_past_disconnected_players(state, bot_user_ids={"p1"})
        assert result.current_player_id == "p1"

    def test_out_of_range_cursor(self):
        state = make_state([True, False, True], cursor=4)
        result = advance_turn_past_disconnected_players(state)
        # 4 % 3 == 1, which is disconnected
        assert result.current_player_id == "p2"

    def test_empty_roster(self):
        state = make_state([])
        result = advance_turn_past_disconnected_players(state)
        assert not result.changed
        assert result.current_player_id is None

    def test_random_rosters_terminate_on_playable_seat(self):
        rng = random.Random(2024)
        for _ in range(300):
            size = rng.randint(1, 8)
            active = [rng.random() < 0.4 for _ in range(size)]
            bots = {f"p{i}" for i in range(size) if rng.random() < 0.15}
            state = make_state(active, cursor=rng.randint(0, size - 1))

            result = advance_turn_past_disconnected_players(state, bot_user_ids=bots)
            assert len(result.skipped_player_ids) <= size

            playable = {f"p{i}" for i, a in enumerate(active) if a} | bots
            if playable:
                assert result.current_player_id in playable


class TestCounting:

    def test_count_active_humans(self):
        state = make_state([True, False, True])
        assert count_active_human_players(state) == 2
        assert count_active_human_players(state, {"p2"}) == 1
