"""Tests for the lobbies API endpoints."""

import pytest
from fastapi.testclient import TestClient

from memeparty.lobby.manager import get_session_store, reset_session_store
from memeparty.main import app


@pytest.fixture
def client() -> TestClient:
    """Create a test client."""
    return TestClient(app)


@pytest.fixture(autouse=True)
def clear_lobbies() -> None:
    """Start every test with an empty session store."""
    reset_session_store()
    yield
    reset_session_store()


def create_lobby(client: TestClient, **body) -> dict:
    response = client.post("/api/lobbies", json=body)
    assert response.status_code == 200
    return response.json()


class TestCreateLobby:
    """Tests for POST /api/lobbies."""

    def test_create_lobby_default(self, client: TestClient) -> None:
        """Test creating a lobby with defaults."""
        data = create_lobby(client)

        assert data["lobbyId"]
        assert data["playerId"] == data["host"]["id"]
        assert data["settings"] == {"rounds": 5, "theme": "fun", "maxPlayers": 5}
        assert data["host"]["name"]
        assert data["host"]["avatar"]

        lobby = get_session_store().get_lobby(data["lobbyId"])
        assert lobby is not None
        assert lobby.host_id == data["playerId"]

    def test_create_lobby_with_settings(self, client: TestClient) -> None:
        data = create_lobby(
            client,
            rounds=12,
            theme="university",
            maxPlayers=4,
            name="Grumpy Cat",
            avatar="🐱",
        )

        assert data["settings"] == {"rounds": 12, "theme": "university", "maxPlayers": 4}
        assert data["host"]["name"] == "Grumpy Cat"
        assert data["host"]["avatar"] == "🐱"

    def test_create_lobby_clamps_settings(self, client: TestClient) -> None:
        """Out-of-range settings are clamped, not rejected."""
        data = create_lobby(client, rounds=1, theme="unknown", maxPlayers=50)

        assert data["settings"] == {"rounds": 5, "theme": "fun", "maxPlayers": 7}

    def test_create_lobby_non_numeric_rounds(self, client: TestClient) -> None:
        data = create_lobby(client, rounds="lots")

        assert data["settings"]["rounds"] == 5


class TestGetLobby:
    """Tests for GET /api/lobbies/{lobby_id}."""

    def test_get_lobby(self, client: TestClient) -> None:
        created = create_lobby(client, name="Host")

        response = client.get(f"/api/lobbies/{created['lobbyId']}")

        assert response.status_code == 200
        data = response.json()
        assert data["lobbyId"] == created["lobbyId"]
        assert data["phase"] == "lobby"
        assert data["hostId"] == created["playerId"]
        assert data["players"] == [
            {
                "id": created["playerId"],
                "name": "Host",
                "avatar": created["host"]["avatar"],
                "spectator": False,
                "connected": False,
            }
        ]

    def test_get_lobby_not_found(self, client: TestClient) -> None:
        response = client.get("/api/lobbies/does-not-exist")

        assert response.status_code == 404


class TestJoinLobby:
    """Tests for POST /api/lobbies/{lobby_id}/join."""

    def test_join_lobby(self, client: TestClient) -> None:
        created = create_lobby(client)

        response = client.post(
            f"/api/lobbies/{created['lobbyId']}/join",
            json={"name": "Distracted Boyfriend", "avatar": "👀"},
        )

        assert response.status_code == 200
        data = response.json()
        assert data["ok"] is True
        assert data["lobbyId"] == created["lobbyId"]
        assert data["playerId"] != created["playerId"]
        assert data["spectator"] is False
        assert data["message"] is None

    def test_join_as_spectator(self, client: TestClient) -> None:
        created = create_lobby(client)

        response = client.post(
            f"/api/lobbies/{created['lobbyId']}/join",
            json={"spectator": True},
        )

        data = response.json()
        assert data["spectator"] is True
        assert data["message"] == "Joined as spectator."

    def test_rejoin_returns_same_player(self, client: TestClient) -> None:
        created = create_lobby(client)
        url = f"/api/lobbies/{created['lobbyId']}/join"
        first = client.post(url, json={"name": "Guest"}).json()

        again = client.post(url, json={"playerId": first["playerId"], "name": "Other"}).json()

        assert again["playerId"] == first["playerId"]
        lobby = get_session_store().get_lobby(created["lobbyId"])
        assert len(lobby.players) == 2
        assert lobby.players[first["playerId"]].name == "Guest"

    def test_join_lobby_not_found(self, client: TestClient) -> None:
        response = client.post("/api/lobbies/does-not-exist/join", json={})

        assert response.status_code == 404
