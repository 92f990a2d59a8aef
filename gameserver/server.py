from __future__ import annotations

import asyncio
import json
import logging
import random
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from http import HTTPStatus
from typing import Dict, List, Optional, Set

import websockets
from websockets.asyncio.server import ServerConnection, serve
from websockets.http11 import Request, Response

from engine.models import ActionType, ContractMode, GameConfig, GameType, IllegalAction
from engine.registry import Game, GameRegistry
from practice.bots import baseline_strategy

LOGGER = logging.getLogger("game_host")

ENGINE_VERBS = {verb.value for verb in ActionType}

# GameServer glues the card engines to WebSocket clients.
# Every network concern lives here; the engines stay pure and synchronous.


@dataclass
class ClientSession:
    websocket: ServerConnection
    game_id: Optional[str] = None
    seat: Optional[int] = None
    name: str = ""


@dataclass
class GameRoom:
    game: Game
    lock: asyncio.Lock = field(default_factory=asyncio.Lock)
    sessions: Dict[int, ClientSession] = field(default_factory=dict)
    bot_seats: Set[int] = field(default_factory=set)
    trick_timer: Optional[asyncio.Task] = None


class GameServer:
    def __init__(self, config: Optional[GameConfig] = None, bot_rng: Optional[random.Random] = None) -> None:
        self.config = config or GameConfig()
        self.registry = GameRegistry(self.config)
        self.rooms: Dict[str, GameRoom] = {}
        self.bot_rng = bot_rng or random.Random()

    async def start(self, host: str = "0.0.0.0", port: int = 3000) -> None:
        async with serve(self._handle_connection, host, port, process_request=self._process_request):
            LOGGER.info("Game server listening on %s:%s", host, port)
            await asyncio.Future()

    def _process_request(self, connection: ServerConnection, request: Request) -> Optional[Response]:
        """Answer plain HTTP health checks; let WebSocket upgrades through."""
        if request.headers.get("Upgrade", "").lower() == "websocket":
            return None
        if request.path in ("/", "/health", "/healthz"):
            return connection.respond(HTTPStatus.OK, "game server running\n")
        return connection.respond(HTTPStatus.NOT_FOUND, "not found\n")

    async def _handle_connection(self, websocket: ServerConnection) -> None:
        session = ClientSession(websocket=websocket)
        LOGGER.info("Client connected")
        try:
            async for raw in websocket:
                message = self._decode(raw)
                await self._handle_message(session, message)
        except websockets.ConnectionClosed:
            pass
        finally:
            await self._handle_disconnect(session)

    async def _handle_message(self, session: ClientSession, message: Dict[str, object]) -> None:
        msg_type = message.get("type")
        if not isinstance(msg_type, str):
            await self._send_error(session.websocket, code="BAD_SCHEMA", msg="type required")
            return
        if msg_type == "create_game":
            await self._handle_create(session, message)
        elif msg_type == "join_game":
            await self._handle_join(session, message)
        elif msg_type == "chat_message":
            await self._handle_chat(session, message)
        elif msg_type == "reset_game":
            await self._handle_reset(session, message)
        elif msg_type in ENGINE_VERBS:
            await self._handle_action(session, message)
        else:
            await self._send_error(session.websocket, code="UNKNOWN_TYPE", msg="Unsupported message type")

    # Lobby -----------------------------------------------------------

    async def _handle_create(self, session: ClientSession, message: Dict[str, object]) -> None:
        name = _player_name(message)
        if name is None:
            await self._send_error(session.websocket, code="BAD_SCHEMA", msg="playerName required")
            return
        if session.game_id is not None:
            await self._send_error(session.websocket, code="BAD_SCHEMA", msg="Already in a game")
            return

        options = message.get("gameConfig") or {}
        if not isinstance(options, dict):
            await self._send_error(session.websocket, code="BAD_SCHEMA", msg="gameConfig must be an object")
            return
        try:
            game_type = GameType(options.get("gameType", GameType.MEXICO.value))
            contract_mode = ContractMode(options.get("contractMode", ContractMode.FIXED.value))
        except ValueError as exc:
            await self._send_error(session.websocket, code="BAD_SCHEMA", msg=str(exc))
            return
        bots = options.get("bots", 0)
        if isinstance(bots, bool) or not isinstance(bots, int):
            await self._send_error(session.websocket, code="BAD_SCHEMA", msg="bots must be an integer")
            return

        game = self.registry.create(game_type, contract_mode)
        if not 0 <= bots < game.seats_required:
            self.registry.remove(game.game_id)
            await self._send_error(
                session.websocket,
                code="BAD_SCHEMA",
                msg=f"bots must be between 0 and {game.seats_required - 1}",
            )
            return

        room = GameRoom(game=game)
        self.rooms[game.game_id] = room
        async with room.lock:
            seat = game.join(name)
            self._seat_session(room, session, seat.seat, seat.name)
            for idx in range(bots):
                bot = game.join(f"Bot {idx + 1}", is_bot=True)
                room.bot_seats.add(bot.seat)
            LOGGER.info(
                "Game %s created by %s (%s, bots=%s)",
                game.game_id,
                name,
                game_type.value,
                bots,
            )
            await self._send_json(session.websocket, "game_created", {
                "gameId": game.game_id,
                "playerIndex": seat.seat,
                "gameType": game_type.value,
            })
            self._run_bots_locked(room)
            await self._broadcast_state_locked(room)
            self._schedule_trick_timer_locked(room)

    async def _handle_join(self, session: ClientSession, message: Dict[str, object]) -> None:
        room = self._room_for(message)
        if room is None:
            await self._send_error(session.websocket, code="GAME_NOT_FOUND", msg="Game not found")
            return
        name = _player_name(message)
        if name is None:
            await self._send_error(session.websocket, code="BAD_SCHEMA", msg="playerName required")
            return
        if session.game_id is not None:
            await self._send_error(session.websocket, code="BAD_SCHEMA", msg="Already in a game")
            return

        async with room.lock:
            game = room.game
            try:
                seat = game.join(name)
            except IllegalAction as exc:
                await self._send_error(session.websocket, code="GAME_FULL", msg=str(exc))
                return
            self._seat_session(room, session, seat.seat, seat.name)
            LOGGER.info("Game %s: %s joined as player %s", game.game_id, name, seat.seat)
            await self._send_json(session.websocket, "game_joined", {
                "gameId": game.game_id,
                "playerIndex": seat.seat,
                "gameType": game.game_type.value,
            })
            self._run_bots_locked(room)
            await self._broadcast_state_locked(room)
            self._schedule_trick_timer_locked(room)

    def _seat_session(self, room: GameRoom, session: ClientSession, seat: int, name: str) -> None:
        session.game_id = room.game.game_id
        session.seat = seat
        session.name = name
        room.sessions[seat] = session

    # Game verbs ------------------------------------------------------

    async def _handle_action(self, session: ClientSession, message: Dict[str, object]) -> None:
        verb = str(message.get("type"))
        room = await self._resolve_seat(session, message)
        if room is None:
            return
        seat = session.seat
        assert seat is not None

        async with room.lock:
            result = room.game.apply_action(seat, verb, message)
            if not result.success:
                LOGGER.warning(
                    "Rejected action game=%s seat=%s action=%s reason=%s",
                    room.game.game_id,
                    seat,
                    verb,
                    result.error,
                )
                await self._send_error(session.websocket, code="INVALID_ACTION", msg=result.error or "Invalid action")
                return

            LOGGER.debug(
                "Applied action game=%s seat=%s action=%s events=%s",
                room.game.game_id,
                seat,
                verb,
                result.events,
            )
            self._run_bots_locked(room)
            await self._broadcast_state_locked(room)
            self._schedule_trick_timer_locked(room)

    async def _handle_reset(self, session: ClientSession, message: Dict[str, object]) -> None:
        room = await self._resolve_seat(session, message)
        if room is None:
            return

        async with room.lock:
            game = room.game
            if not game.is_full():
                await self._send_error(session.websocket, code="INVALID_ACTION", msg="Game has not started")
                return
            self._cancel_trick_timer(room)
            game.reset()
            LOGGER.info("Game %s reset by player %s", game.game_id, session.seat)
            self._run_bots_locked(room)
            await self._broadcast_state_locked(room)
            self._schedule_trick_timer_locked(room)

    async def _handle_chat(self, session: ClientSession, message: Dict[str, object]) -> None:
        room = await self._resolve_seat(session, message)
        if room is None:
            return
        text = message.get("message")
        if not isinstance(text, str) or not text.strip():
            await self._send_error(session.websocket, code="BAD_SCHEMA", msg="message required")
            return

        async with room.lock:
            await self._broadcast_locked(room, "chat_message", {
                "playerName": session.name,
                "playerIndex": session.seat,
                "message": text,
                "timestamp": int(time.time() * 1000),
            })

    async def _resolve_seat(self, session: ClientSession, message: Dict[str, object]) -> Optional[GameRoom]:
        room = self._room_for(message)
        if room is None:
            await self._send_error(session.websocket, code="GAME_NOT_FOUND", msg="Game not found")
            return None
        if session.game_id != room.game.game_id or session.seat is None:
            await self._send_error(session.websocket, code="NOT_IN_GAME", msg="You are not seated in this game")
            return None
        return room

    def _room_for(self, message: Dict[str, object]) -> Optional[GameRoom]:
        game = self.registry.get(message.get("gameId"))
        if game is None:
            return None
        return self.rooms.get(game.game_id)

    # House bots & trick timer ----------------------------------------

    def _run_bots_locked(self, room: GameRoom) -> None:
        game = room.game
        while not game.is_finished():
            actor = game.next_actor()
            if actor is None or actor not in room.bot_seats:
                return
            action, payload = baseline_strategy(game, actor, self.bot_rng)
            result = game.apply_action(actor, action, payload)
            if not result.success:
                LOGGER.error(
                    "Game %s: house bot %s produced an illegal %s: %s",
                    game.game_id,
                    actor,
                    action.value,
                    result.error,
                )
                return

    def _schedule_trick_timer_locked(self, room: GameRoom) -> None:
        if room.game.phase.value != "trick_complete":
            return
        if room.trick_timer is not None and not room.trick_timer.done():
            return
        room.trick_timer = asyncio.create_task(self._trick_timer(room))

    def _cancel_trick_timer(self, room: GameRoom) -> None:
        if room.trick_timer is not None and room.trick_timer is not asyncio.current_task():
            room.trick_timer.cancel()
        room.trick_timer = None

    async def _trick_timer(self, room: GameRoom) -> None:
        await asyncio.sleep(room.game.config.trick_delay_ms / 1000)
        await self._continue_after_trick(room)

    async def _continue_after_trick(self, room: GameRoom) -> None:
        async with room.lock:
            room.trick_timer = None
            game = room.game
            if game.phase.value != "trick_complete":
                return
            try:
                events = game.continue_after_trick()
            except IllegalAction as exc:
                LOGGER.error("Game %s: could not continue after trick: %s", game.game_id, exc)
                return
            LOGGER.debug("Game %s: trick cleared, events=%s", game.game_id, events)
            self._run_bots_locked(room)
            await self._broadcast_state_locked(room)
            self._schedule_trick_timer_locked(room)

    # Connection lifecycle --------------------------------------------

    async def _handle_disconnect(self, session: ClientSession) -> None:
        room = self.rooms.get(session.game_id) if session.game_id else None
        if room is None or session.seat is None:
            LOGGER.info("Client disconnected")
            return

        seat = session.seat
        async with room.lock:
            if room.sessions.get(seat) is session:
                room.sessions.pop(seat)
            room.game.set_connected(seat, False)
            LOGGER.info("Game %s: player %s (%s) disconnected", room.game.game_id, seat, session.name)
            await self._broadcast_locked(room, "player_left", {"playerIndex": seat})
            await self._broadcast_state_locked(room)
            if not room.sessions:
                self._cancel_trick_timer(room)
                self.rooms.pop(room.game.game_id, None)
                self.registry.remove(room.game.game_id)

    # Messaging -------------------------------------------------------

    async def _broadcast_state_locked(self, room: GameRoom) -> None:
        targets = list(room.sessions.items())
        if not targets:
            return
        await asyncio.gather(
            *(
                self._send_json(session.websocket, "game_state", room.game.snapshot(seat))
                for seat, session in targets
            ),
            return_exceptions=True,
        )

    async def _broadcast_locked(self, room: GameRoom, msg_type: str, payload: Dict[str, object]) -> None:
        targets: List[ServerConnection] = [session.websocket for session in room.sessions.values()]
        if not targets:
            return
        message = self._envelope(msg_type, payload)
        await asyncio.gather(*(socket.send(message) for socket in targets), return_exceptions=True)

    async def _send_json(self, websocket: ServerConnection, msg_type: str, payload: Dict[str, object]) -> None:
        try:
            await websocket.send(self._envelope(msg_type, payload))
        except websockets.ConnectionClosed:
            pass

    async def _send_error(self, websocket: ServerConnection, code: str, msg: str) -> None:
        await self._send_json(websocket, "error", {"code": code, "msg": msg})

    def _envelope(self, msg_type: str, payload: Dict[str, object]) -> str:
        body = {"type": msg_type, "v": 1, "ts": datetime.now(timezone.utc).isoformat()}
        body.update(payload)
        return json.dumps(body)

    def _decode(self, raw: object) -> Dict[str, object]:
        try:
            message = json.loads(raw)  # type: ignore[arg-type]
        except (TypeError, json.JSONDecodeError):
            return {}
        return message if isinstance(message, dict) else {}


def _player_name(message: Dict[str, object]) -> Optional[str]:
    name = message.get("playerName")
    if not isinstance(name, str) or not name.strip():
        return None
    return name.strip()
