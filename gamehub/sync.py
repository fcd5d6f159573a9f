"""
State synchronisation protocol.

Authority side: every broadcast is stamped with a per-process sequence id,
a timestamp and the protocol version (with_metadata).

Observer side: GameReplica keeps the last authoritative snapshot plus a
local view that may hold optimistic moves. Snapshots are applied
idempotently by content. Sequence ids are advisory: they are used to notice
gaps and counter resets, never to drop an update, because an authority
restart starts counting from 1 again.
"""

import hashlib
import logging
import time
from copy import deepcopy

from gamehub.registry import restore_game_engine
from gamehub.store import serialize

logger = logging.getLogger(__name__)

PROTOCOL_VERSION = "1.0.0"


class SequenceCounter:
    """Monotonic event counter for one authority process."""

    def __init__(self, start=0):
        self._value = start

    def next(self) -> int:
        self._value += 1
        return self._value

    @property
    def current(self) -> int:
        return self._value

    def reset(self):
        self._value = 0


def with_metadata(payload, counter, correlation_id=None) -> dict:
    """Copy of payload with sequence_id, timestamp and version added."""
    envelope = dict(payload)
    envelope["sequence_id"] = counter.next()
    envelope["timestamp"] = time.time()
    envelope["version"] = PROTOCOL_VERSION
    if correlation_id is not None:
        envelope["correlation_id"] = correlation_id
    return envelope


def content_key(state) -> str:
    """Stable hash of a snapshot; equal states always share a key."""
    return hashlib.sha256(serialize(state).encode("utf-8")).hexdigest()


class GameReplica:
    """
    A client's or observer's copy of one game.

    authoritative_state is the last snapshot received from the authority.
    state is what the client shows: the authoritative snapshot plus any
    optimistic moves not yet confirmed.
    """

    def __init__(self, game_type, game_id, state=None, config=None):
        self.game_type = game_type
        self.game_id = game_id
        self.config = config
        self._authoritative = deepcopy(state) if state is not None else None
        self._authoritative_key = content_key(state) if state is not None else None
        self._local = deepcopy(state) if state is not None else None
        self._pending: list[dict] = []

        self.last_sequence_id: int | None = None
        self.epoch = 0
        self.gaps = 0
        self.duplicates = 0

    # ── Reads ─────────────────────────────────────────────────────────

    @property
    def state(self):
        return deepcopy(self._local)

    @property
    def authoritative_state(self):
        return deepcopy(self._authoritative)

    @property
    def has_pending(self) -> bool:
        return bool(self._pending)

    @property
    def pending_moves(self) -> list[dict]:
        return deepcopy(self._pending)

    # ── Authoritative updates ─────────────────────────────────────────

    def apply_broadcast(self, envelope) -> bool:
        """
        Apply a broadcast carrying a full snapshot under "state".

        Returns True when local state changed. A snapshot identical to the
        current authoritative one is a no-op, whatever its sequence id.
        """
        state = envelope.get("state") if isinstance(envelope, dict) else None
        if not isinstance(state, dict):
            return False

        key = content_key(state)
        if key == self._authoritative_key:
            self.duplicates += 1
            return False

        self._track_sequence(envelope.get("sequence_id"))
        self._replace(state, key)
        return True

    def reconcile(self, state):
        """The authority's answer to our own move replaces local state."""
        self._replace(state, content_key(state))

    def rollback(self):
        """Discard optimistic moves after a rejection, failure or timeout."""
        if self._pending:
            logger.debug("Rolling back %d optimistic move(s) in %s", len(self._pending), self.game_id)
        self._local = deepcopy(self._authoritative)
        self._pending = []

    def _replace(self, state, key):
        self._authoritative = deepcopy(state)
        self._authoritative_key = key
        self._local = deepcopy(state)
        self._pending = []

    def _track_sequence(self, sequence_id):
        if not isinstance(sequence_id, int):
            return
        last = self.last_sequence_id
        if last is not None:
            if sequence_id <= last:
                # Counter went backwards: the authority restarted
                self.epoch += 1
                logger.info("Sequence reset for %s (%s after %s); epoch %d",
                            self.game_id, sequence_id, last, self.epoch)
            elif sequence_id > last + 1:
                self.gaps += sequence_id - last - 1
        self.last_sequence_id = sequence_id

    # ── Optimistic updates ────────────────────────────────────────────

    def apply_optimistic(self, move) -> bool:
        """
        Predict a move locally. Moves the engine rejects are not applied
        and never sent as pending.
        """
        if self._local is None:
            return False
        engine = restore_game_engine(self.game_type, self.game_id, self._local, self.config)
        if not engine.make_move(deepcopy(move)):
            return False
        self._local = engine.get_state()
        self._pending.append(deepcopy(move))
        return True
