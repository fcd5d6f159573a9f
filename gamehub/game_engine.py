"""
Abstract game engine.

Every turn-based game that plugs into the authority implements this class.
The authority knows nothing about game-specific rules: it restores an engine
from a stored snapshot, routes moves through make_move, and persists and
broadcasts whatever get_state returns.

State is always a plain dict (JSON-serializable) so it can be stored, sent
over the wire, and restored for reconnection without loss.

Lifecycle:
  waiting --start_game--> playing --make_move (win/draw)--> finished
  finished --reset_for_rematch--> waiting
"""

import logging
import random
import time
from abc import ABC, abstractmethod
from copy import deepcopy
from dataclasses import dataclass, replace

logger = logging.getLogger(__name__)

WAITING = "waiting"
PLAYING = "playing"
FINISHED = "finished"
STATUSES = (WAITING, PLAYING, FINISHED)


@dataclass
class GameConfig:
    min_players: int = 2
    max_players: int = 4
    # Minutes; None means untimed
    time_limit: int | None = None


def now():
    return time.time()


def make_player(player_id, name, is_bot=False):
    """Create a roster entry for a newly joined player."""
    player = {"id": player_id, "name": name, "is_active": True}
    if is_bot:
        player["is_bot"] = True
    return player


def build_move(player_id, move_type, data=None, timestamp=None):
    """Create a move dict: {player_id, type, data, timestamp}."""
    return {
        "player_id": player_id,
        "type": move_type,
        "data": dict(data or {}),
        "timestamp": now() if timestamp is None else timestamp,
    }


class GameEngine(ABC):
    """
    Stateful wrapper around one game's state dict.

    Legality questions are answered with booleans. An illegal move is a
    normal outcome and never raises.
    """

    game_type: str = "abstract"
    default_config: GameConfig = GameConfig()

    def __init__(self, game_id, config=None):
        self.config = replace(config or self.default_config)
        created = now()
        self.state = {
            "id": game_id,
            "game_type": self.game_type,
            "players": [],
            "current_player_index": 0,
            "status": WAITING,
            "data": self.get_initial_game_data(),
            "last_move_at": None,
            "created_at": created,
            "updated_at": created,
            "winner": None,
        }

    # ── Game-specific contract ────────────────────────────────────────

    @abstractmethod
    def get_initial_game_data(self) -> dict:
        """Fresh data payload for a new game or rematch."""
        ...

    @abstractmethod
    def process_move(self, move: dict) -> None:
        """
        Apply an already-validated move to state["data"].
        Called only by make_move, after validate_move returned True.
        """
        ...

    @abstractmethod
    def check_win_condition(self) -> dict | None:
        """Return the winning player dict, or None. Must not mutate state."""
        ...

    @abstractmethod
    def get_game_rules(self) -> list[str]:
        ...

    def should_advance_turn(self, move: dict) -> bool:
        """Whether an accepted move passes the turn to the next player."""
        return True

    # ── Roster ────────────────────────────────────────────────────────

    def add_player(self, player) -> bool:
        if self.state["status"] != WAITING:
            return False
        if len(self.state["players"]) >= self.config.max_players:
            return False
        if self.get_player(player["id"]) is not None:
            return False

        entry = dict(player)
        entry.setdefault("is_active", True)
        entry.pop("disconnected_at", None)
        self.state["players"].append(entry)
        self._touch()
        return True

    def remove_player(self, player_id) -> bool:
        index = self.get_player_index(player_id)
        if index is None:
            return False

        players = self.state["players"]
        players.pop(index)
        cursor = self.state["current_player_index"]
        if index <= cursor:
            cursor -= 1
        self.state["current_player_index"] = self._clamp_cursor(cursor)
        self._touch()
        return True

    def shuffle_players(self) -> bool:
        """Randomise seating. Only allowed before the game starts."""
        if self.state["status"] != WAITING:
            return False
        random.shuffle(self.state["players"])
        self.state["current_player_index"] = 0
        self._touch()
        return True

    # ── Lifecycle ─────────────────────────────────────────────────────

    def start_game(self) -> bool:
        if self.state["status"] != WAITING:
            return False
        count = len(self.state["players"])
        if not self.config.min_players <= count <= self.config.max_players:
            return False

        self.state["data"] = self.get_initial_game_data()
        self.state["status"] = PLAYING
        self.state["current_player_index"] = 0
        self.state["winner"] = None
        self._touch()
        return True

    def reset_for_rematch(self) -> bool:
        if self.state["status"] != FINISHED:
            return False
        self.state["data"] = self.get_initial_game_data()
        self.state["status"] = WAITING
        self.state["current_player_index"] = 0
        self.state["winner"] = None
        self._touch()
        return True

    # ── Moves ─────────────────────────────────────────────────────────

    def validate_move(self, move) -> bool:
        """
        Checks shared by every game: well-formed move, game in progress,
        mover seated. Subclasses call this first and add their own rules.
        """
        if not isinstance(move, dict) or not isinstance(move.get("type"), str):
            return False
        if not isinstance(move.get("data", {}), dict):
            return False
        if self.state["status"] != PLAYING:
            return False
        return self.get_player(move.get("player_id")) is not None

    def make_move(self, move) -> bool:
        if not self.validate_move(move):
            logger.debug("Rejected %s move from %s in %s",
                         move.get("type") if isinstance(move, dict) else None,
                         move.get("player_id") if isinstance(move, dict) else None,
                         self.state["id"])
            return False

        move.setdefault("data", {})
        self.process_move(move)

        self.state["last_move_at"] = now()
        self._touch()

        winner = self.check_win_condition()
        if winner is not None:
            self.state["status"] = FINISHED
            self.state["winner"] = winner["id"]
        elif self.state["status"] == PLAYING and self.should_advance_turn(move):
            self.advance_turn()
        return True

    def advance_turn(self):
        players = self.state["players"]
        if players:
            self.state["current_player_index"] = (self.state["current_player_index"] + 1) % len(players)

    # ── Snapshots ─────────────────────────────────────────────────────

    def get_state(self) -> dict:
        return deepcopy(self.state)

    def restore_state(self, snapshot):
        """
        Replace internal state with an external snapshot.

        Partial or damaged snapshots are repaired with defaults rather than
        rejected: missing roster -> empty, missing data keys -> engine
        defaults, unknown status -> waiting, cursor clamped into range.
        """
        snapshot = deepcopy(snapshot or {})
        state = self.state

        if snapshot.get("id") is not None:
            state["id"] = snapshot["id"]

        players = snapshot.get("players") or []
        state["players"] = [p for p in players if isinstance(p, dict) and "id" in p]
        for player in state["players"]:
            player.setdefault("is_active", True)

        status = snapshot.get("status")
        state["status"] = status if status in STATUSES else WAITING

        data = self.get_initial_game_data()
        if isinstance(snapshot.get("data"), dict):
            data.update(snapshot["data"])
        state["data"] = self.normalize_data(data)

        state["last_move_at"] = snapshot.get("last_move_at")
        if snapshot.get("created_at") is not None:
            state["created_at"] = snapshot["created_at"]
        if snapshot.get("updated_at") is not None:
            state["updated_at"] = snapshot["updated_at"]
        state["winner"] = snapshot.get("winner")

        cursor = snapshot.get("current_player_index")
        state["current_player_index"] = self._clamp_cursor(cursor if isinstance(cursor, int) else 0)

    def normalize_data(self, data: dict) -> dict:
        """Hook for engines to repair their payload after a restore."""
        return data

    # ── Views ─────────────────────────────────────────────────────────

    def get_player_view(self, player_id) -> dict:
        """
        State as one player may see it. Games with hidden information
        override this; open-information games return everything.
        """
        return self.get_state()

    def get_waiting_for(self) -> list[str]:
        """Ids of the players the game is waiting on."""
        if self.state["status"] != PLAYING:
            return []
        current = self.get_current_player()
        return [current["id"]] if current else []

    # ── Accessors ─────────────────────────────────────────────────────

    def get_players(self) -> list[dict]:
        return deepcopy(self.state["players"])

    def get_player(self, player_id) -> dict | None:
        for player in self.state["players"]:
            if player["id"] == player_id:
                return player
        return None

    def get_player_index(self, player_id) -> int | None:
        for i, player in enumerate(self.state["players"]):
            if player["id"] == player_id:
                return i
        return None

    def get_current_player(self) -> dict | None:
        players = self.state["players"]
        if not players:
            return None
        return players[self.state["current_player_index"]]

    def get_config(self) -> GameConfig:
        return replace(self.config)

    def is_game_finished(self) -> bool:
        return self.state["status"] == FINISHED

    # ── Internal ──────────────────────────────────────────────────────

    def _touch(self):
        # updated_at never moves backwards, even if the clock does
        self.state["updated_at"] = max(now(), self.state.get("updated_at") or 0)

    def _clamp_cursor(self, cursor):
        count = len(self.state["players"])
        if count == 0:
            return 0
        return max(0, min(cursor, count - 1))
