"""WebSocket handler for lobby real-time communication."""

import asyncio
import json
import logging
import uuid
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

from fastapi import WebSocket, WebSocketDisconnect

from memeparty.game.engine import LobbyError
from memeparty.lobby.manager import SessionStore, get_session_store
from memeparty.ws.protocol import (
    ErrorMessage,
    JoinedMessage,
    LeaveMessage,
    LobbyStateMessage,
    PingMessage,
    PongMessage,
    StartGameMessage,
    SubmitCardMessage,
    SubmitVoteMessage,
    UpdateAvatarMessage,
    UpdateNameMessage,
    UpdateSettingsMessage,
    is_known_message_type,
    parse_client_message,
)

logger = logging.getLogger(__name__)

# Messages shown to players for failed starts, by error code
START_ERROR_MESSAGES = {
    "not_enough_players": "Need at least two active players to start.",
    "not_player": "Only active players can start the game.",
    "already_starting": "The game is already starting.",
    "game_in_progress": "A game is already in progress.",
}


def error_message(code: str, message: str) -> dict[str, Any]:
    return ErrorMessage(code=code, message=message).model_dump()


@dataclass
class LobbyConnection:
    """One open socket and its outbound queue."""

    id: str
    lobby_id: str
    player_id: str
    websocket: WebSocket
    queue: asyncio.Queue = field(default_factory=asyncio.Queue)
    sender: asyncio.Task | None = None


class LobbyConnectionManager:
    """Manages WebSocket connections for lobbies.

    Every connection has its own outbound queue drained by a sender task, so
    state pushes reach each client in the order the lobby changed, without
    a slow client holding up the others.
    """

    def __init__(self) -> None:
        """Initialize the connection manager."""
        self.connections: dict[str, LobbyConnection] = {}  # connection_id -> connection
        self.lobbies: dict[str, set[str]] = {}  # lobby_id -> connection ids
        self._store: SessionStore | None = None
        self._unsubscribe: Callable[[], None] | None = None

    def listen_to(self, store: SessionStore) -> None:
        """Subscribe to state changes of a session store (once per store)."""
        if self._store is store:
            return
        if self._unsubscribe is not None:
            self._unsubscribe()
        self._store = store
        self._unsubscribe = store.add_listener(self.on_lobby_changed)

    def connect(self, lobby_id: str, websocket: WebSocket, player_id: str) -> str:
        """Register an accepted WebSocket for a player.

        Args:
            lobby_id: The lobby id
            websocket: The accepted WebSocket connection
            player_id: Player this connection speaks for

        Returns:
            The connection id, used as the player's session id
        """
        connection = LobbyConnection(
            id=uuid.uuid4().hex,
            lobby_id=lobby_id,
            player_id=player_id,
            websocket=websocket,
        )
        connection.sender = asyncio.get_running_loop().create_task(self._send_loop(connection))
        self.connections[connection.id] = connection
        self.lobbies.setdefault(lobby_id, set()).add(connection.id)
        logger.info(f"Player {player_id} connected to lobby {lobby_id} ({connection.id})")
        return connection.id

    async def disconnect(self, connection_id: str) -> LobbyConnection | None:
        """Remove a connection and stop its sender.

        Returns:
            The removed connection, or None if not found
        """
        connection = self.connections.pop(connection_id, None)
        if connection is None:
            return None

        lobby_connections = self.lobbies.get(connection.lobby_id)
        if lobby_connections is not None:
            lobby_connections.discard(connection_id)
            # Clean up empty lobby connections
            if not lobby_connections:
                del self.lobbies[connection.lobby_id]

        if connection.sender is not None:
            connection.sender.cancel()
            try:
                await connection.sender
            except asyncio.CancelledError:
                pass

        logger.info(f"Player {connection.player_id} disconnected from lobby {connection.lobby_id}")
        return connection

    def send(self, connection_id: str, message: dict[str, Any]) -> None:
        """Queue a message for one connection."""
        connection = self.connections.get(connection_id)
        if connection is not None:
            connection.queue.put_nowait(message)

    def on_lobby_changed(self, lobby_id: str) -> None:
        """Queue a lobby_state message for every connection of a lobby.

        Each payload is projected for the connection's own player at the
        moment of the change.
        """
        store = self._store
        if store is None:
            return
        for connection_id in list(self.lobbies.get(lobby_id, ())):
            connection = self.connections[connection_id]
            state = store.project_state(lobby_id, connection.player_id)
            if state is None:
                continue
            connection.queue.put_nowait(LobbyStateMessage(state=state).model_dump())

    def has_connections(self, lobby_id: str) -> bool:
        """Check if a lobby has any connections."""
        return bool(self.lobbies.get(lobby_id))

    async def _send_loop(self, connection: LobbyConnection) -> None:
        while True:
            message = await connection.queue.get()
            try:
                await connection.websocket.send_text(json.dumps(message))
            except Exception as e:
                # The receive loop notices the closed socket and cleans up
                logger.debug(f"Send to {connection.id} failed, stopping sender: {e}")
                return


# Global connection manager instance
lobby_connection_manager = LobbyConnectionManager()


def _parse_flag(value: str | bool | None) -> bool:
    if isinstance(value, bool):
        return value
    return value is not None and value.strip().lower() in ("1", "true", "yes", "on")


async def handle_lobby_websocket(
    websocket: WebSocket,
    lobby_id: str,
    player_id: str | None = None,
    name: str | None = None,
    avatar: str | None = None,
    spectator: str | bool | None = None,
) -> None:
    """Handle a WebSocket connection for a lobby.

    Args:
        websocket: The WebSocket connection
        lobby_id: The lobby id
        player_id: Previously issued player id, if reconnecting
        name: Requested display name
        avatar: Requested emoji avatar
        spectator: Whether the player asked to spectate
    """
    logger.info(f"Lobby WebSocket connection attempt: lobby={lobby_id}")

    store = get_session_store()
    lobby_connection_manager.listen_to(store)

    result = await store.join(
        lobby_id,
        player_id=player_id or None,
        name=name,
        avatar=avatar,
        spectator=_parse_flag(spectator),
    )
    if isinstance(result, LobbyError):
        logger.warning(f"Lobby WebSocket rejected: lobby {lobby_id} not found")
        await websocket.close(code=4004, reason="Lobby not found")
        return

    player = result.player
    await websocket.accept()
    connection_id = lobby_connection_manager.connect(lobby_id, websocket, player.id)

    # joined goes first; the state push from mark_connected follows it
    lobby_connection_manager.send(
        connection_id,
        JoinedMessage(
            player_id=player.id, spectator=result.spectator, message=result.note
        ).model_dump(by_alias=True),
    )
    await store.mark_connected(lobby_id, player.id, connection_id)

    left = False
    try:
        while True:
            # Receive message
            try:
                data = await websocket.receive_text()
            except WebSocketDisconnect:
                break

            # Parse message
            try:
                msg_data = json.loads(data)
            except json.JSONDecodeError:
                lobby_connection_manager.send(
                    connection_id, error_message("invalid_json", "Invalid JSON")
                )
                continue

            if not isinstance(msg_data, dict):
                lobby_connection_manager.send(
                    connection_id, error_message("invalid_message", "Message must be an object")
                )
                continue

            # Handle message
            if await _handle_message(store, connection_id, lobby_id, player.id, msg_data):
                left = True
                break

    except Exception as e:
        logger.exception(f"Error in lobby WebSocket handler for {lobby_id}: {e}")
    finally:
        await lobby_connection_manager.disconnect(connection_id)
        await store.mark_disconnected(lobby_id, player.id, connection_id)

    if left:
        await websocket.close(code=1000, reason="Left lobby")


async def _handle_message(
    store: SessionStore,
    connection_id: str,
    lobby_id: str,
    player_id: str,
    data: dict[str, Any],
) -> bool:
    """Handle a WebSocket message.

    Args:
        store: The session store
        connection_id: The sending connection
        lobby_id: The lobby id
        player_id: The sending player
        data: The parsed message data

    Returns:
        True if the player left and the connection should close
    """
    msg_type = data.get("type")
    message = parse_client_message(data)

    if message is None:
        if is_known_message_type(msg_type):
            lobby_connection_manager.send(
                connection_id,
                error_message("invalid_message", f"Invalid {msg_type} message"),
            )
        else:
            lobby_connection_manager.send(
                connection_id,
                error_message("unknown_message", f"Unknown message type: {msg_type}"),
            )
        return False

    if isinstance(message, PingMessage):
        lobby_connection_manager.send(connection_id, PongMessage().model_dump())

    elif isinstance(message, UpdateNameMessage):
        await store.update_name(lobby_id, player_id, message.name)

    elif isinstance(message, UpdateAvatarMessage):
        await store.update_avatar(lobby_id, player_id, message.avatar)

    elif isinstance(message, UpdateSettingsMessage):
        settings = message.settings
        await store.update_settings(
            lobby_id,
            player_id,
            rounds=settings.rounds,
            theme=settings.theme,
            max_players=settings.max_players,
        )

    elif isinstance(message, StartGameMessage):
        result = await store.start_game(lobby_id, player_id)
        if isinstance(result, LobbyError):
            lobby_connection_manager.send(
                connection_id,
                error_message(result.code, START_ERROR_MESSAGES.get(result.code, result.message)),
            )

    elif isinstance(message, SubmitCardMessage):
        await store.submit_card(lobby_id, player_id, message.card_id)

    elif isinstance(message, SubmitVoteMessage):
        await store.submit_vote(lobby_id, player_id, message.ranking)

    elif isinstance(message, LeaveMessage):
        logger.info(f"Player {player_id} left lobby {lobby_id}")
        return True

    return False
