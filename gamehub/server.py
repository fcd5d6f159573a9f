"""
WebSocket game server.

Handles lobby management, player connections, and routing messages to the
game authority. Knows nothing about specific game rules: every change goes
through GameAuthority, and every authority broadcast is fanned out here as
a per-player view.
"""

import asyncio
import json
import logging
import secrets
import time
from dataclasses import dataclass, field

import websockets

from gamehub.authority import GAME_UPDATE, GameAuthority
from gamehub.config import settings as default_settings
from gamehub.errors import BotTurnError, GameHubError
from gamehub.game_engine import PLAYING, build_move
from gamehub.log import configure_logging
from gamehub.registry import (
    DEFAULT_GAME_TYPE, get_game_metadata, get_supported_game_types, has_bot_support,
    restore_game_engine,
)
from gamehub.store import InMemoryGameStore

logger = logging.getLogger(__name__)


def generate_room_code():
    """Generate a short, human-friendly room code."""
    chars = "ABCDEFGHJKLMNPQRSTUVWXYZ23456789"  # no I/O/0/1 for clarity
    return "".join(secrets.choice(chars) for _ in range(5))


def generate_token():
    return secrets.token_urlsafe(24)


@dataclass
class Player:
    player_id: str
    name: str
    token: str | None
    websocket: object = None
    connected: bool = False
    is_bot: bool = False


@dataclass
class Room:
    code: str
    host_id: str
    game_id: str
    game_type: str
    players: dict = field(default_factory=dict)       # player_id -> Player
    started: bool = False
    created_at: float = field(default_factory=time.time)
    # player_id -> pending grace-period task
    disconnect_timers: dict = field(default_factory=dict)

    @property
    def player_list(self):
        return [
            {"player_id": p.player_id, "name": p.name, "connected": p.connected, "is_bot": p.is_bot}
            for p in self.players.values()
        ]

    @property
    def bot_ids(self):
        return {pid for pid, p in self.players.items() if p.is_bot}


class GameServer:
    """
    Manages rooms and connections and relays authority broadcasts.
    Game-agnostic: all rules live behind the authority.
    """

    def __init__(self, store=None, settings=None):
        self.settings = settings or default_settings
        self.authority = GameAuthority(store or InMemoryGameStore(), emit=self.emit, settings=self.settings)
        self.rooms: dict[str, Room] = {}                 # code -> Room
        self.tokens: dict[str, tuple[str, str]] = {}     # token -> (room_code, player_id)
        self.games: dict[str, str] = {}                  # game_id -> room_code
        self._tasks: set[asyncio.Task] = set()

    # ── Room Management ──────────────────────────────────────────────

    async def create_room(self, game_type, host_name):
        get_game_metadata(game_type)

        code = generate_room_code()
        while code in self.rooms:
            code = generate_room_code()

        state = await self.authority.create_game(game_type)
        game_id = state["id"]
        player_id = f"p_{generate_token()[:8]}"
        token = generate_token()
        await self.authority.add_player(game_id, player_id, host_name)

        room = Room(code=code, host_id=player_id, game_id=game_id, game_type=game_type)
        room.players[player_id] = Player(player_id=player_id, name=host_name, token=token)

        self.rooms[code] = room
        self.games[game_id] = code
        self.tokens[token] = (code, player_id)
        logger.info("Room %s created for %s (%s)", code, game_type, game_id)

        return code, player_id, token

    async def join_room(self, code, name):
        room = self.rooms.get(code)
        if room is None:
            raise ValueError(f"Room {code} not found")
        if room.started:
            raise ValueError("Game already in progress")

        player_id = f"p_{generate_token()[:8]}"
        result = await self.authority.add_player(room.game_id, player_id, name)
        if not result.accepted:
            raise ValueError("Room is full")

        token = generate_token()
        room.players[player_id] = Player(player_id=player_id, name=name, token=token)
        self.tokens[token] = (code, player_id)

        return player_id, token

    async def add_bot(self, code, requester_id, difficulty="medium"):
        room = self._host_room(code, requester_id)
        if room.started:
            raise ValueError("Game already in progress")
        if not has_bot_support(room.game_type):
            raise ValueError(f"{room.game_type} does not support bots")

        bot_id, result = await self.authority.add_bot(room.game_id, difficulty)
        if not result.accepted:
            raise ValueError("Room is full")
        name = next(p["name"] for p in result.state["players"] if p["id"] == bot_id)
        room.players[bot_id] = Player(player_id=bot_id, name=name, token=None, is_bot=True)
        return bot_id

    async def start_game(self, code, requester_id, shuffle=False):
        room = self._host_room(code, requester_id)
        if room.started:
            raise ValueError("Game already started")

        result = await self.authority.start_game(room.game_id, shuffle=shuffle)
        if not result.accepted:
            meta = get_game_metadata(room.game_type)
            raise ValueError(f"Need {meta.min_players}-{meta.max_players} players")
        room.started = True
        self._schedule_bot_turns(room, result.state)
        return result.state

    def _host_room(self, code, requester_id):
        room = self.rooms.get(code)
        if room is None:
            raise ValueError("Room not found")
        if room.host_id != requester_id:
            raise ValueError("Only the host can do that")
        return room

    # ── WebSocket Handler ────────────────────────────────────────────

    async def handle_connection(self, websocket):
        """Main handler for a single WebSocket connection."""
        room_code = None
        player_id = None

        try:
            async for raw in websocket:
                try:
                    msg = json.loads(raw)
                except json.JSONDecodeError:
                    await self._send(websocket, {"type": "error", "message": "Invalid JSON"})
                    continue

                msg_type = msg.get("type")

                # ── Pre-auth messages ────────────────────────────
                if msg_type == "create":
                    await self._handle_create(websocket, msg)
                    continue

                if msg_type == "join":
                    await self._handle_join(websocket, msg)
                    continue

                if msg_type in ("auth", "reconnect"):
                    result = await self._handle_auth(websocket, msg)
                    if result:
                        room_code, player_id = result
                    continue

                # ── Authenticated messages ───────────────────────
                if not room_code or not player_id:
                    await self._send(websocket, {"type": "error", "message": "Not authenticated. Send 'auth' first."})
                    continue

                room = self.rooms.get(room_code)
                if not room:
                    await self._send(websocket, {"type": "error", "message": "Room no longer exists"})
                    continue

                try:
                    await self._route(room, player_id, websocket, msg)
                except (ValueError, GameHubError) as e:
                    await self._send(websocket, {"type": "error", "message": str(e)})

        except websockets.ConnectionClosed:
            pass
        finally:
            if room_code and player_id:
                await self._handle_disconnect(room_code, player_id, websocket)

    async def _route(self, room, player_id, websocket, msg):
        msg_type = msg.get("type")

        if msg_type == "start":
            await self.start_game(room.code, player_id, shuffle=bool(msg.get("shuffle")))
            await self._broadcast(room, {"type": "game_started", "message": "Game has begun!"})

        elif msg_type == "action":
            await self._handle_action(room, player_id, websocket, msg.get("action") or {})

        elif msg_type == "add_bot":
            await self.add_bot(room.code, player_id, msg.get("difficulty", "medium"))
            await self._broadcast(room, {"type": "lobby_update", "players": room.player_list})

        elif msg_type == "rematch":
            self._host_room(room.code, player_id)
            result = await self.authority.reset_for_rematch(room.game_id)
            if not result.accepted:
                raise ValueError("Game is not finished")
            room.started = False

        elif msg_type == "get_state":
            await self._send_game_state(room, player_id)

        elif msg_type == "chat":
            await self._broadcast(room, {
                "type": "chat",
                "from": room.players[player_id].name,
                "message": msg.get("message", ""),
            })

        else:
            await self._send(websocket, {"type": "error", "message": f"Unknown message type: {msg_type}"})

    # ── Message Handlers ─────────────────────────────────────────────

    async def _handle_create(self, websocket, msg):
        game_type = msg.get("game", DEFAULT_GAME_TYPE)
        host_name = msg.get("name", "Host")
        try:
            code, player_id, token = await self.create_room(game_type, host_name)
            await self._send(websocket, {
                "type": "created",
                "room_code": code,
                "player_id": player_id,
                "token": token,
                "game": game_type,
            })
        except ValueError as e:
            await self._send(websocket, {"type": "error", "message": str(e)})

    async def _handle_join(self, websocket, msg):
        code = msg.get("room_code", "").upper()
        name = msg.get("name", "Player")
        try:
            player_id, token = await self.join_room(code, name)
            await self._send(websocket, {
                "type": "joined",
                "room_code": code,
                "player_id": player_id,
                "token": token,
            })
        except ValueError as e:
            await self._send(websocket, {"type": "error", "message": str(e)})

    async def _handle_auth(self, websocket, msg):
        """Authenticate with a token and bind this websocket to a room/player."""
        token = msg.get("token")
        if not token or token not in self.tokens:
            await self._send(websocket, {"type": "error", "message": "Invalid token"})
            return None

        room_code, player_id = self.tokens[token]
        room = self.rooms.get(room_code)
        if not room or player_id not in room.players:
            await self._send(websocket, {"type": "error", "message": "Room or player not found"})
            return None

        player = room.players[player_id]
        player.websocket = websocket
        player.connected = True

        # Back within the grace period: the seat was never given up
        pending = room.disconnect_timers.pop(player_id, None)
        if pending is not None:
            pending.cancel()

        await self._send(websocket, {
            "type": "authenticated",
            "room_code": room_code,
            "player_id": player_id,
            "name": player.name,
            "is_host": player_id == room.host_id,
            "game": room.game_type,
            "game_started": room.started,
        })

        await self._broadcast(room, {
            "type": "lobby_update",
            "players": room.player_list,
            "game_started": room.started,
        })

        if room.started:
            await self.authority.set_player_connection(room.game_id, player_id, True)
            await self._send_game_state(room, player_id)

        return room_code, player_id

    async def _handle_action(self, room, player_id, websocket, action):
        if not room.started:
            await self._send(websocket, {"type": "error", "message": "Game not started"})
            return

        move = build_move(player_id, action.get("type"), action.get("data"))
        correlation_id = action.get("correlation_id")
        try:
            result = await self.authority.submit_move(room.game_id, move, correlation_id=correlation_id)
        except GameHubError as e:
            logger.error("Move %s in %s failed: %s", move["type"], room.game_id, e)
            await self._send(websocket, {
                "type": "action_failed",
                "correlation_id": correlation_id,
                "message": "Move could not be saved, please retry",
            })
            return

        if not result.accepted:
            # The client rolls back its optimistic state to this snapshot
            engine = restore_game_engine(room.game_type, room.game_id, result.state)
            await self._send(websocket, {
                "type": "action_rejected",
                "correlation_id": correlation_id,
                "state": engine.get_player_view(player_id),
            })
            return

        if result.game_over:
            await self._broadcast(room, {"type": "game_over", "winner": result.state.get("winner")})
        else:
            self._schedule_bot_turns(room, result.state)

    async def _handle_disconnect(self, room_code, player_id, websocket):
        room = self.rooms.get(room_code)
        if not room or player_id not in room.players:
            return
        player = room.players[player_id]
        if player.websocket is not websocket:
            # A newer connection already took over this seat
            return

        player.connected = False
        player.websocket = None
        await self._broadcast(room, {
            "type": "lobby_update",
            "players": room.player_list,
            "reason": f"{player.name} disconnected",
        })
        if room.started:
            room.disconnect_timers[player_id] = self._spawn(self._expire_connection(room, player_id))

    async def _expire_connection(self, room, player_id):
        await asyncio.sleep(self.settings.disconnect_grace_seconds)
        room.disconnect_timers.pop(player_id, None)
        result = await self.authority.set_player_connection(room.game_id, player_id, False)
        if result.skipped_player_ids:
            logger.info("Skipped disconnected %s in %s", result.skipped_player_ids, room.game_id)
            self._schedule_bot_turns(room, await self.authority.get_state(room.game_id))

    # ── Bots ─────────────────────────────────────────────────────────

    def _schedule_bot_turns(self, room, state):
        """Start a turn for every bot the game is now waiting on."""
        if not room.bot_ids or state.get("status") != PLAYING:
            return
        engine = restore_game_engine(room.game_type, room.game_id, state)
        for pid in engine.get_waiting_for():
            if pid in room.bot_ids and not self.authority.is_bot_turn_running(room.game_id, pid):
                self._spawn(self._run_bot(room, pid))

    async def _run_bot(self, room, bot_id):
        try:
            played = await self.authority.run_bot_turn(room.game_id, bot_id)
        except BotTurnError as e:
            await self._broadcast(room, {"type": "bot_error", "bot_id": bot_id, "message": str(e)})
            return
        except GameHubError:
            logger.exception("Bot %s failed in %s", bot_id, room.game_id)
            return
        if played:
            self._schedule_bot_turns(room, await self.authority.get_state(room.game_id))

    def _spawn(self, coro):
        task = asyncio.create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    # ── Broadcasting ─────────────────────────────────────────────────

    async def emit(self, channel, event, payload):
        """Transport side of the authority's broadcasts."""
        room = self.rooms.get(self.games.get(channel.split(":", 1)[-1]))
        if room is None:
            return
        if event == GAME_UPDATE:
            for player_id in room.players:
                await self._send_view(room, player_id, payload)
        else:
            await self._broadcast(room, {"type": event.replace("-", "_"), **payload})

    async def _send(self, websocket, data):
        try:
            await websocket.send(json.dumps(data))
        except websockets.ConnectionClosed:
            pass

    async def _broadcast(self, room, data):
        """Send the same message to all connected players in a room."""
        for player in room.players.values():
            if player.connected and player.websocket:
                await self._send(player.websocket, data)

    async def _send_view(self, room, player_id, envelope):
        """Send one player their redacted copy of a state broadcast."""
        player = room.players.get(player_id)
        if not player or not player.connected or not player.websocket:
            return

        engine = restore_game_engine(room.game_type, room.game_id, envelope["state"])
        waiting_for = engine.get_waiting_for()
        await self._send(player.websocket, {
            "type": "game_state",
            "action": envelope.get("action"),
            "state": engine.get_player_view(player_id),
            "waiting_for": waiting_for,
            "your_turn": player_id in waiting_for,
            "sequence_id": envelope.get("sequence_id"),
            "timestamp": envelope.get("timestamp"),
            "version": envelope.get("version"),
            "correlation_id": envelope.get("correlation_id"),
        })

    async def _send_game_state(self, room, player_id):
        state = await self.authority.get_state(room.game_id)
        await self._send_view(room, player_id, {"state": state, "action": "sync"})


# ── Server Entry Point ───────────────────────────────────────────────

async def run_server(host=None, port=None, settings=None):
    settings = settings or default_settings
    host = host or settings.host
    port = port or settings.port

    server = GameServer(settings=settings)
    logger.info("Game server starting on ws://%s:%s", host, port)
    logger.info("Registered games: %s", get_supported_game_types())

    async with websockets.serve(server.handle_connection, host, port):
        await asyncio.Future()  # run forever


def main():
    configure_logging(default_settings.log_level)
    asyncio.run(run_server())


if __name__ == "__main__":
    main()
