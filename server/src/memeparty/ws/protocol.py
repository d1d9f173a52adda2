"""WebSocket protocol message types."""

from enum import Enum
from typing import Any

from pydantic import BaseModel, Field, ValidationError


class ServerMessageType(Enum):
    """Types of messages sent from server to client."""

    JOINED = "joined"
    LOBBY_STATE = "lobby_state"
    PONG = "pong"
    ERROR = "error"


class ClientMessageType(Enum):
    """Types of messages sent from client to server."""

    PING = "ping"
    UPDATE_NAME = "update_name"
    UPDATE_AVATAR = "update_avatar"
    UPDATE_SETTINGS = "update_settings"
    START_GAME = "start_game"
    SUBMIT_CARD = "submit_card"
    SUBMIT_VOTE = "submit_vote"
    LEAVE = "leave"


# Server -> Client Messages


class JoinedMessage(BaseModel):
    """Sent once when a client's connection is attached to a lobby."""

    type: str = "joined"
    player_id: str = Field(alias="playerId")
    spectator: bool
    message: str | None = None  # e.g. "Lobby is full, joined as spectator."

    model_config = {"populate_by_name": True}


class LobbyStateMessage(BaseModel):
    """Full lobby state as seen by the receiving player."""

    type: str = "lobby_state"
    state: dict[str, Any]


class PongMessage(BaseModel):
    """Response to ping."""

    type: str = "pong"


class ErrorMessage(BaseModel):
    """Error message."""

    type: str = "error"
    code: str
    message: str


# Client -> Server Messages


class PingMessage(BaseModel):
    """Keepalive ping."""

    type: str = "ping"


class UpdateNameMessage(BaseModel):
    type: str = "update_name"
    name: str


class UpdateAvatarMessage(BaseModel):
    type: str = "update_avatar"
    avatar: str


class SettingsPayload(BaseModel):
    """Requested settings. Values are clamped by the lobby, not rejected here."""

    rounds: Any = None
    theme: Any = None
    max_players: Any = Field(default=None, alias="maxPlayers")

    model_config = {"populate_by_name": True}


class UpdateSettingsMessage(BaseModel):
    """Request to replace lobby settings (host only)."""

    type: str = "update_settings"
    settings: SettingsPayload


class StartGameMessage(BaseModel):
    type: str = "start_game"


class SubmitCardMessage(BaseModel):
    """Request to play a card from the player's hand."""

    type: str = "submit_card"
    card_id: str = Field(alias="cardId")

    model_config = {"populate_by_name": True}


class SubmitVoteMessage(BaseModel):
    """Ranking of the other submissions, best first."""

    type: str = "submit_vote"
    ranking: list[str]


class LeaveMessage(BaseModel):
    type: str = "leave"


ClientMessage = (
    PingMessage
    | UpdateNameMessage
    | UpdateAvatarMessage
    | UpdateSettingsMessage
    | StartGameMessage
    | SubmitCardMessage
    | SubmitVoteMessage
    | LeaveMessage
)

CLIENT_MESSAGE_MODELS: dict[str, type[BaseModel]] = {
    ClientMessageType.PING.value: PingMessage,
    ClientMessageType.UPDATE_NAME.value: UpdateNameMessage,
    ClientMessageType.UPDATE_AVATAR.value: UpdateAvatarMessage,
    ClientMessageType.UPDATE_SETTINGS.value: UpdateSettingsMessage,
    ClientMessageType.START_GAME.value: StartGameMessage,
    ClientMessageType.SUBMIT_CARD.value: SubmitCardMessage,
    ClientMessageType.SUBMIT_VOTE.value: SubmitVoteMessage,
    ClientMessageType.LEAVE.value: LeaveMessage,
}


def is_known_message_type(msg_type: Any) -> bool:
    return isinstance(msg_type, str) and msg_type in CLIENT_MESSAGE_MODELS


def parse_client_message(data: dict[str, Any]) -> ClientMessage | None:
    """Parse a client message from JSON data.

    Args:
        data: Parsed JSON data

    Returns:
        Parsed message or None if the type is unknown or a field is invalid
    """
    msg_type = data.get("type")
    if not is_known_message_type(msg_type):
        return None

    model = CLIENT_MESSAGE_MODELS[msg_type]
    try:
        return model.model_validate(data)  # type: ignore[return-value]
    except ValidationError:
        return None
