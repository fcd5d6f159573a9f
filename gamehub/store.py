"""
Game persistence.

Snapshots are stored as JSON text together with a version number. Writers
use update_if_version (compare-and-set on the version) so the authority can
detect a lost race and retry from a fresh read instead of taking a lock
across processes.

InMemoryGameStore is the reference backend used by the server and tests;
any object with the same async methods can replace it.
"""

import asyncio
import json
import logging
from dataclasses import dataclass, field

from gamehub.errors import PersistenceError

logger = logging.getLogger(__name__)


def serialize(state) -> str:
    """Encode a state dict; deserialize(serialize(s)) == s for every engine."""
    return json.dumps(state, sort_keys=True, separators=(",", ":"))


def deserialize(blob) -> dict:
    try:
        state = json.loads(blob)
    except (TypeError, json.JSONDecodeError) as e:
        raise PersistenceError(f"Corrupt game snapshot: {e}") from e
    if not isinstance(state, dict):
        raise PersistenceError("Corrupt game snapshot: not an object")
    return state


@dataclass
class StoredGame:
    game_id: str
    game_type: str
    blob: str
    version: int = 1
    # Engine config (min/max players, time limit) the game was created with
    config: dict = field(default_factory=dict)

    @property
    def state(self) -> dict:
        return deserialize(self.blob)


class InMemoryGameStore:

    def __init__(self):
        self._games: dict[str, StoredGame] = {}
        self._guard = asyncio.Lock()

    async def create(self, game_id, game_type, state, config=None) -> StoredGame:
        async with self._guard:
            if game_id in self._games:
                raise PersistenceError(f"Game {game_id} already exists")
            record = StoredGame(game_id, game_type, serialize(state), 1, dict(config or {}))
            self._games[game_id] = record
            return _copy(record)

    async def load(self, game_id) -> StoredGame | None:
        async with self._guard:
            record = self._games.get(game_id)
            return _copy(record) if record else None

    async def update_if_version(self, game_id, expected_version, state) -> bool:
        """
        Write state only if the stored version still equals expected_version.
        Returns False when another writer got there first.
        """
        async with self._guard:
            record = self._games.get(game_id)
            if record is None:
                raise PersistenceError(f"Game {game_id} not found")
            if record.version != expected_version:
                logger.debug("Version mismatch for %s: stored %s, expected %s",
                             game_id, record.version, expected_version)
                return False
            record.blob = serialize(state)
            record.version += 1
            return True

    async def delete(self, game_id) -> bool:
        async with self._guard:
            return self._games.pop(game_id, None) is not None

    async def list_game_ids(self) -> list[str]:
        async with self._guard:
            return list(self._games)


def _copy(record):
    return StoredGame(record.game_id, record.game_type, record.blob, record.version, dict(record.config))
