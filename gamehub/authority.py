"""
Game authority.

The single place where game state changes. For each game id it holds an
asyncio.Lock across load → validate → apply → persist → broadcast, so two
moves for the same game can never both apply. Different games proceed
concurrently.

Writes are conditional on the stored version. A lost race is retried from
a fresh read (the move is re-validated against the newer state) a bounded
number of times; after that the move fails and nothing is broadcast.
Storage errors fail the move. Broadcast errors are logged and ignored:
the move is already durable and the next broadcast carries the full
state anyway.
"""

import asyncio
import logging
import secrets
import time
from copy import deepcopy
from dataclasses import asdict, dataclass, field

from gamehub.bots.base import MEDIUM
from gamehub.bots.executor import BotExecutor
from gamehub.config import settings as default_settings
from gamehub.disconnect import (
    advance_turn_past_disconnected_players, count_active_human_players,
    set_player_connection_in_state,
)
from gamehub.errors import BotTurnError, GameNotFoundError, PersistenceConflictError
from gamehub.game_engine import FINISHED, PLAYING, GameConfig, make_player
from gamehub.registry import create_game_engine, get_game_metadata, restore_game_engine
from gamehub.sync import SequenceCounter, with_metadata

logger = logging.getLogger(__name__)

GAME_UPDATE = "game-update"
PLAYER_CONNECTION = "player-connection"
BOT_ACTION = "bot-action"


@dataclass
class MoveResult:
    """What happened to one submitted change."""
    accepted: bool
    state: dict | None = None
    # Sequence id of the broadcast carrying the new state
    sequence_id: int | None = None
    game_over: bool = False


@dataclass
class ConnectionSyncResult:
    changed: bool = False
    skipped_player_ids: list[str] = field(default_factory=list)
    current_player_id: str | None = None
    sequence_id: int | None = None


def channel_key(game_id):
    return f"game:{game_id}"


class GameAuthority:

    def __init__(self, store, emit=None, settings=None):
        """
        store: persistence backend (see gamehub.store)
        emit:  async emit(channel_key, event_name, payload) or None
        """
        self.store = store
        self.emit = emit
        self.settings = settings or default_settings
        self.sequence = SequenceCounter()
        self._locks: dict[str, asyncio.Lock] = {}
        # game_id -> {bot_id: difficulty}
        self._bots: dict[str, dict[str, str]] = {}
        # (game_id, bot_id) -> monotonic start time of the running turn
        self._bot_turns: dict[tuple[str, str], float] = {}

    def lock_for(self, game_id) -> asyncio.Lock:
        return self._locks.setdefault(game_id, asyncio.Lock())

    # ── Games ─────────────────────────────────────────────────────────

    async def create_game(self, game_type, game_id=None, config=None) -> dict:
        get_game_metadata(game_type)
        game_id = game_id or f"g_{secrets.token_urlsafe(8)}"
        engine = create_game_engine(game_type, game_id, config)
        state = engine.get_state()
        await self.store.create(game_id, game_type, state, asdict(engine.config))
        logger.info("Created %s game %s", game_type, game_id)
        return state

    async def get_state(self, game_id) -> dict:
        return (await self._load(game_id)).state

    async def load_engine(self, game_id):
        return self._restore(await self._load(game_id))

    async def delete_game(self, game_id):
        async with self.lock_for(game_id):
            await self.store.delete(game_id)
        self._locks.pop(game_id, None)
        self._bots.pop(game_id, None)

    # ── Changes ───────────────────────────────────────────────────────

    async def submit_move(self, game_id, move, correlation_id=None) -> MoveResult:
        """
        The only entry point for moves: humans, bots and turn timers alike.
        Illegal moves come back with accepted=False.
        """
        return await self.mutate(
            game_id, lambda engine: engine.make_move(deepcopy(move)),
            action=move.get("type"), skip_disconnected=True, correlation_id=correlation_id,
        )

    async def add_player(self, game_id, player_id, name, is_bot=False) -> MoveResult:
        player = make_player(player_id, name, is_bot=is_bot)
        return await self.mutate(game_id, lambda engine: engine.add_player(player), action="player-joined")

    async def add_bot(self, game_id, difficulty=MEDIUM, name=None) -> tuple[str, MoveResult]:
        bot_id = f"bot_{secrets.token_urlsafe(6)}"
        result = await self.add_player(game_id, bot_id, name or f"Bot ({difficulty})", is_bot=True)
        if result.accepted:
            self.register_bot(game_id, bot_id, difficulty)
        return bot_id, result

    async def remove_player(self, game_id, player_id) -> MoveResult:
        result = await self.mutate(
            game_id, lambda engine: engine.remove_player(player_id),
            action="player-left", skip_disconnected=True,
        )
        if result.accepted:
            self._bots.get(game_id, {}).pop(player_id, None)
        return result

    async def start_game(self, game_id, shuffle=False) -> MoveResult:
        def start(engine):
            if shuffle and not engine.shuffle_players():
                return False
            return engine.start_game()

        return await self.mutate(game_id, start, action="game-started", skip_disconnected=True)

    async def reset_for_rematch(self, game_id) -> MoveResult:
        return await self.mutate(game_id, lambda engine: engine.reset_for_rematch(), action="rematch")

    async def mutate(self, game_id, change, action, skip_disconnected=False, correlation_id=None) -> MoveResult:
        """
        Run change(engine) -> bool inside the game's critical section and,
        if it returns True, persist and broadcast the result.
        """
        async with self.lock_for(game_id):
            def compute(record):
                engine = self._restore(record)
                if not change(engine):
                    return None
                state = engine.get_state()
                if skip_disconnected and state["status"] == PLAYING:
                    turn = advance_turn_past_disconnected_players(state, self._bot_ids(record.game_id, state))
                    if turn.changed:
                        state = self._resync(engine, state)
                return state

            record, state = await self._write(game_id, compute)
            if state is None:
                return MoveResult(False, record.state)

            sequence_id = await self._broadcast(game_id, GAME_UPDATE, {
                "game_id": game_id,
                "game_type": record.game_type,
                "action": action,
                "state": state,
            }, correlation_id)
            game_over = state["status"] == FINISHED
            if game_over:
                logger.info("Game %s finished, winner %s", game_id, state.get("winner"))
            return MoveResult(True, state, sequence_id, game_over)

    async def set_player_connection(self, game_id, user_id, is_active) -> ConnectionSyncResult:
        """
        Record a connect/disconnect and move the turn off anyone who is
        no longer connected. Safe to call repeatedly with the same value.
        """
        async with self.lock_for(game_id):
            outcome = ConnectionSyncResult()

            def compute(record):
                state = record.state
                now = time.time()
                changed = set_player_connection_in_state(state, user_id, is_active, now)
                turn = None
                if state.get("status") == PLAYING:
                    turn = advance_turn_past_disconnected_players(
                        state, self._bot_ids(record.game_id, state), now)
                outcome.changed = changed or bool(turn and turn.changed)
                outcome.skipped_player_ids = turn.skipped_player_ids if turn else []
                outcome.current_player_id = turn.current_player_id if turn else None
                if turn and turn.changed:
                    state = self._resync(self._restore(record), state)
                return state if outcome.changed else None

            record, state = await self._write(game_id, compute)
            if state is None:
                return outcome

            if count_active_human_players(state, self._bot_ids(game_id, state)) == 0:
                logger.info("No connected human players left in %s", game_id)

            await self._broadcast(game_id, PLAYER_CONNECTION, {
                "game_id": game_id,
                "user_id": user_id,
                "is_active": is_active,
                "skipped_player_ids": outcome.skipped_player_ids,
                "current_player_id": outcome.current_player_id,
            })
            outcome.sequence_id = await self._broadcast(game_id, GAME_UPDATE, {
                "game_id": game_id,
                "game_type": record.game_type,
                "action": "player-connection",
                "state": state,
            })
            return outcome

    # ── Bots ──────────────────────────────────────────────────────────

    def register_bot(self, game_id, bot_id, difficulty=MEDIUM):
        self._bots.setdefault(game_id, {})[bot_id] = difficulty

    def bot_ids(self, game_id) -> set[str]:
        return set(self._bots.get(game_id, {}))

    def is_bot_turn_running(self, game_id, bot_id) -> bool:
        return (game_id, bot_id) in self._bot_turns

    async def run_bot_turn(self, game_id, bot_id, difficulty=None) -> int:
        """
        Play one turn for a bot. Returns the number of moves made, 0 if it
        was not the bot's turn or a turn for the same bot is already
        running. Raises BotTurnError if the turn stopped early.
        """
        key = (game_id, bot_id)
        if not self._claim_bot_turn(key):
            logger.info("Bot %s already playing in %s", bot_id, game_id)
            return 0

        difficulty = difficulty or self._bots.get(game_id, {}).get(bot_id, MEDIUM)
        executor = BotExecutor(
            fetch_engine=lambda: self.load_engine(game_id),
            submit_move=lambda move: self.submit_move(game_id, move),
            on_step=lambda event: self._broadcast(game_id, BOT_ACTION, {"game_id": game_id, **event}),
            delay_scale=self.settings.bot_delay_scale,
        )
        try:
            return await executor.execute_turn(bot_id, difficulty)
        except BotTurnError as e:
            logger.warning("Bot %s turn in %s stopped: %s", bot_id, game_id, e)
            raise
        finally:
            self._bot_turns.pop(key, None)

    def _claim_bot_turn(self, key) -> bool:
        started = self._bot_turns.get(key)
        now = time.monotonic()
        if started is not None:
            if now - started < self.settings.bot_turn_timeout_seconds:
                return False
            logger.warning("Discarding stale bot-turn lock for %s in %s (%.1fs old)",
                           key[1], key[0], now - started)
        self._bot_turns[key] = now
        return True

    def _bot_ids(self, game_id, state):
        flagged = {p["id"] for p in state.get("players") or [] if p.get("is_bot")}
        return flagged | self.bot_ids(game_id)

    # ── Internal ──────────────────────────────────────────────────────

    async def _load(self, game_id):
        record = await self.store.load(game_id)
        if record is None:
            raise GameNotFoundError(f"Game {game_id} not found")
        return record

    def _restore(self, record):
        config = GameConfig(**record.config) if record.config else None
        return restore_game_engine(record.game_type, record.game_id, record.state, config)

    def _resync(self, engine, state):
        """Re-derive turn-dependent engine data after the cursor was moved externally."""
        engine.restore_state(state)
        return engine.get_state()

    async def _write(self, game_id, compute):
        """
        Optimistic-concurrency write loop. compute(record) returns the new
        state, or None for "nothing to write". Returns (record, state).
        """
        attempts = self.settings.persist_max_retries
        for attempt in range(1, attempts + 1):
            record = await self._load(game_id)
            state = compute(record)
            if state is None:
                return record, None
            if await self.store.update_if_version(game_id, record.version, state):
                return record, state
            logger.warning("Concurrent update on %s (attempt %d/%d), retrying", game_id, attempt, attempts)
        raise PersistenceConflictError(game_id, attempts)

    async def _broadcast(self, game_id, event, payload, correlation_id=None) -> int:
        envelope = with_metadata(payload, self.sequence, correlation_id)
        if self.emit is not None:
            try:
                await self.emit(channel_key(game_id), event, envelope)
            except Exception:
                logger.exception("Broadcast of %s for %s failed", event, game_id)
        return envelope["sequence_id"]
