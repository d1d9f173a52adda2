"""Lobby registry for Meme Party.

The session store owns every lobby in the process and routes player
actions to the right lobby state machine.
"""

from memeparty.game.engine import JoinResult, LobbyError
from memeparty.lobby.manager import (
    SessionStore,
    get_session_store,
    init_session_store,
    reset_session_store,
)

__all__ = [
    "JoinResult",
    "LobbyError",
    "SessionStore",
    "get_session_store",
    "init_session_store",
    "reset_session_store",
]
