"""Lobby API endpoints."""

import logging
from typing import Any

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field

from memeparty.api.rate_limit import create_lobby_rate_limit
from memeparty.game.engine import LobbyError
from memeparty.game.models import Lobby, LobbySettings
from memeparty.lobby.manager import get_session_store

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/lobbies", tags=["lobbies"])


class CreateLobbyRequest(BaseModel):
    """Request body for creating a lobby.

    Settings values are clamped into range rather than rejected.
    """

    rounds: Any = None
    theme: Any = None
    max_players: Any = Field(default=None, alias="maxPlayers")
    name: str | None = None
    avatar: str | None = None

    model_config = {"populate_by_name": True}


class HostInfo(BaseModel):
    id: str
    name: str
    avatar: str


class CreateLobbyResponse(BaseModel):
    """Response for creating a lobby."""

    lobby_id: str = Field(alias="lobbyId")
    player_id: str = Field(alias="playerId")
    settings: dict[str, Any]
    host: HostInfo

    model_config = {"populate_by_name": True}


class JoinLobbyRequest(BaseModel):
    """Request body for joining a lobby."""

    player_id: str | None = Field(default=None, alias="playerId")
    name: str | None = None
    avatar: str | None = None
    spectator: bool = False

    model_config = {"populate_by_name": True}


class JoinLobbyResponse(BaseModel):
    """Response for joining a lobby."""

    ok: bool = True
    lobby_id: str = Field(alias="lobbyId")
    player_id: str = Field(alias="playerId")
    spectator: bool
    message: str | None = None

    model_config = {"populate_by_name": True}


def serialize_lobby_summary(lobby: Lobby) -> dict[str, Any]:
    """Public lobby summary without hands or round details."""
    return {
        "lobbyId": lobby.id,
        "settings": lobby.settings.to_dict(),
        "phase": lobby.phase.value,
        "hostId": lobby.host_id,
        "players": [
            {
                "id": p.id,
                "name": p.name,
                "avatar": p.avatar,
                "spectator": p.spectator,
                "connected": p.connected,
            }
            for p in lobby.players.values()
        ],
    }


@router.post(
    "",
    response_model=CreateLobbyResponse,
    dependencies=[Depends(create_lobby_rate_limit)],
)
async def create_lobby(request: CreateLobbyRequest) -> CreateLobbyResponse:
    """Create a new lobby.

    The caller becomes the host and uses the returned playerId to connect.
    """
    store = get_session_store()

    settings = LobbySettings.sanitize(request.rounds, request.theme, request.max_players)
    lobby, host = store.create_lobby(settings, host_name=request.name, host_avatar=request.avatar)

    logger.info(f"Lobby {lobby.id} created via API")

    return CreateLobbyResponse(
        lobby_id=lobby.id,
        player_id=host.id,
        settings=lobby.settings.to_dict(),
        host=HostInfo(id=host.id, name=host.name, avatar=host.avatar),
    )


@router.get("/{lobby_id}")
async def get_lobby(lobby_id: str) -> dict[str, Any]:
    """Get a lobby summary by id."""
    store = get_session_store()

    lobby = store.get_lobby(lobby_id)
    if lobby is None:
        raise HTTPException(status_code=404, detail="Lobby not found")

    return serialize_lobby_summary(lobby)


@router.post("/{lobby_id}/join", response_model=JoinLobbyResponse)
async def join_lobby(lobby_id: str, request: JoinLobbyRequest) -> JoinLobbyResponse:
    """Join an existing lobby.

    Joining with a known playerId returns that player unchanged. Once a
    game has started and the active seats are taken, the player joins as
    a spectator and the response carries a message saying so.
    """
    store = get_session_store()

    result = await store.join(
        lobby_id,
        player_id=request.player_id,
        name=request.name,
        avatar=request.avatar,
        spectator=request.spectator,
    )

    if isinstance(result, LobbyError):
        if result.code == "not_found":
            raise HTTPException(status_code=404, detail=result.message)
        raise HTTPException(status_code=400, detail=result.message)

    logger.info(f"Player {result.player.name} joined lobby {lobby_id} via API")

    return JoinLobbyResponse(
        lobby_id=lobby_id,
        player_id=result.player.id,
        spectator=result.spectator,
        message=result.note,
    )
