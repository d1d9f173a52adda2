"""Tests for lobby WebSocket functionality."""

from collections.abc import Callable, Iterator
from typing import Any

import pytest
from fastapi.testclient import TestClient
from starlette.websockets import WebSocketDisconnect

from memeparty.lobby.manager import get_session_store, reset_session_store
from memeparty.main import app
from memeparty.ws.lobby_handler import LobbyConnectionManager


@pytest.fixture
def client() -> Iterator[TestClient]:
    """Create a test client running the app lifespan.

    All sockets opened through it share one event loop.
    """
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture(autouse=True)
def clear_state() -> Iterator[None]:
    """Clear lobbies before and after each test."""
    reset_session_store()
    yield
    reset_session_store()


def create_lobby(client: TestClient, **body: Any) -> dict[str, Any]:
    response = client.post("/api/lobbies", json=body)
    assert response.status_code == 200
    return response.json()


def receive_until(websocket, predicate: Callable[[dict[str, Any]], bool], limit: int = 10) -> dict:
    """Read messages until one matches, failing after limit messages."""
    for _ in range(limit):
        message = websocket.receive_json()
        if predicate(message):
            return message
    raise AssertionError("expected message not received")


def receive_handshake(websocket) -> tuple[dict[str, Any], dict[str, Any]]:
    """Read the joined message and the first state push."""
    joined = websocket.receive_json()
    assert joined["type"] == "joined"
    state = receive_until(websocket, lambda m: m["type"] == "lobby_state")
    return joined, state


class TestConnectionManager:
    """Tests for LobbyConnectionManager bookkeeping."""

    def test_has_connections_empty(self) -> None:
        manager = LobbyConnectionManager()

        assert not manager.has_connections("missing")

    def test_send_to_unknown_connection_is_ignored(self) -> None:
        manager = LobbyConnectionManager()

        manager.send("missing", {"type": "pong"})

        assert manager.connections == {}


class TestLobbyWebSocket:
    """Tests for the /ws/lobby endpoint."""

    def test_unknown_lobby_rejected(self, client: TestClient) -> None:
        with pytest.raises(WebSocketDisconnect) as exc_info:
            with client.websocket_connect("/ws/lobby/does-not-exist"):
                pass

        assert exc_info.value.code == 4004

    def test_host_connects(self, client: TestClient) -> None:
        created = create_lobby(client, name="Host")
        url = f"/ws/lobby/{created['lobbyId']}?player_id={created['playerId']}"

        with client.websocket_connect(url) as websocket:
            joined, message = receive_handshake(websocket)

            assert joined["playerId"] == created["playerId"]
            assert joined["spectator"] is False
            assert joined["message"] is None

            state = message["state"]
            assert state["lobbyId"] == created["lobbyId"]
            assert state["you"]["id"] == created["playerId"]
            assert state["players"][0]["connected"] is True
            assert state["players"][0]["isHost"] is True

    def test_new_player_gets_an_id(self, client: TestClient) -> None:
        created = create_lobby(client)
        url = f"/ws/lobby/{created['lobbyId']}?name=Newcomer&avatar=%F0%9F%90%B8"

        with client.websocket_connect(url) as websocket:
            joined, message = receive_handshake(websocket)

        assert joined["playerId"] != created["playerId"]
        me = next(p for p in message["state"]["players"] if p["id"] == joined["playerId"])
        assert me["name"] == "Newcomer"
        assert me["avatar"] == "🐸"

    def test_spectator_join(self, client: TestClient) -> None:
        created = create_lobby(client)
        url = f"/ws/lobby/{created['lobbyId']}?spectator=true"

        with client.websocket_connect(url) as websocket:
            joined, message = receive_handshake(websocket)

        assert joined["spectator"] is True
        assert joined["message"] == "Joined as spectator."
        assert message["state"]["you"]["spectator"] is True

    def test_ping_pong(self, client: TestClient) -> None:
        created = create_lobby(client)
        url = f"/ws/lobby/{created['lobbyId']}?player_id={created['playerId']}"

        with client.websocket_connect(url) as websocket:
            receive_handshake(websocket)
            websocket.send_json({"type": "ping"})

            assert websocket.receive_json() == {"type": "pong"}

    def test_invalid_json(self, client: TestClient) -> None:
        created = create_lobby(client)
        url = f"/ws/lobby/{created['lobbyId']}?player_id={created['playerId']}"

        with client.websocket_connect(url) as websocket:
            receive_handshake(websocket)
            websocket.send_text("not json")

            message = websocket.receive_json()
            assert message["type"] == "error"
            assert message["code"] == "invalid_json"

    def test_unknown_message_type(self, client: TestClient) -> None:
        created = create_lobby(client)
        url = f"/ws/lobby/{created['lobbyId']}?player_id={created['playerId']}"

        with client.websocket_connect(url) as websocket:
            receive_handshake(websocket)
            websocket.send_json({"type": "dance"})

            message = websocket.receive_json()
            assert message["type"] == "error"
            assert message["code"] == "unknown_message"

    def test_malformed_message(self, client: TestClient) -> None:
        created = create_lobby(client)
        url = f"/ws/lobby/{created['lobbyId']}?player_id={created['playerId']}"

        with client.websocket_connect(url) as websocket:
            receive_handshake(websocket)
            websocket.send_json({"type": "submit_card"})

            message = websocket.receive_json()
            assert message["type"] == "error"
            assert message["code"] == "invalid_message"

    def test_start_game_needs_two_players(self, client: TestClient) -> None:
        created = create_lobby(client)
        url = f"/ws/lobby/{created['lobbyId']}?player_id={created['playerId']}"

        with client.websocket_connect(url) as websocket:
            receive_handshake(websocket)
            websocket.send_json({"type": "start_game"})

            message = websocket.receive_json()
            assert message == {
                "type": "error",
                "code": "not_enough_players",
                "message": "Need at least two active players to start.",
            }

    def test_update_name_pushes_state(self, client: TestClient) -> None:
        created = create_lobby(client, name="Before")
        url = f"/ws/lobby/{created['lobbyId']}?player_id={created['playerId']}"

        with client.websocket_connect(url) as websocket:
            receive_handshake(websocket)
            websocket.send_json({"type": "update_name", "name": "After"})

            message = receive_until(websocket, lambda m: m["type"] == "lobby_state")
            assert message["state"]["players"][0]["name"] == "After"

    def test_update_settings_pushes_state(self, client: TestClient) -> None:
        created = create_lobby(client)
        url = f"/ws/lobby/{created['lobbyId']}?player_id={created['playerId']}"

        with client.websocket_connect(url) as websocket:
            receive_handshake(websocket)
            websocket.send_json(
                {
                    "type": "update_settings",
                    "settings": {"rounds": 9, "theme": "18+", "maxPlayers": 3},
                }
            )

            message = receive_until(websocket, lambda m: m["type"] == "lobby_state")
            assert message["state"]["settings"] == {
                "rounds": 9,
                "theme": "18+",
                "maxPlayers": 3,
            }

    def test_other_players_see_joins_and_leaves(self, client: TestClient) -> None:
        created = create_lobby(client, name="Host")
        lobby_id = created["lobbyId"]
        host_url = f"/ws/lobby/{lobby_id}?player_id={created['playerId']}"

        with client.websocket_connect(host_url) as host_ws:
            receive_handshake(host_ws)

            with client.websocket_connect(f"/ws/lobby/{lobby_id}?name=Guest") as guest_ws:
                guest_joined, _ = receive_handshake(guest_ws)
                guest_id = guest_joined["playerId"]

                def guest_connected(message: dict[str, Any]) -> bool:
                    players = {p["id"]: p for p in message["state"]["players"]}
                    return guest_id in players and players[guest_id]["connected"]

                state = receive_until(host_ws, guest_connected)
                assert len(state["state"]["players"]) == 2
                assert state["state"]["you"]["id"] == created["playerId"]

                guest_ws.send_json({"type": "leave"})

            def guest_gone(message: dict[str, Any]) -> bool:
                players = {p["id"]: p for p in message["state"]["players"]}
                return not players[guest_id]["connected"]

            receive_until(host_ws, guest_gone)

        lobby = get_session_store().get_lobby(lobby_id)
        assert lobby is not None
        assert not lobby.players[guest_id].connected
        assert lobby.host_id == created["playerId"]
