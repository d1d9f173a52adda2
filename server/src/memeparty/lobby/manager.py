"""Session store for Meme Party.

This module provides the SessionStore class which owns every active lobby
in memory. Callers address lobbies by id; each operation is routed to the
lobby's state machine, which serializes it against timers and other actions.
Nothing is persisted: a process restart loses all lobbies.
"""

import logging
import uuid
from collections.abc import Callable
from datetime import UTC, datetime
from typing import Any

from memeparty.content.base import ContentProvider
from memeparty.content.mock import MockContentProvider
from memeparty.game.engine import (
    JoinResult,
    LobbyError,
    LobbyStateMachine,
    PhaseDurations,
    clean_avatar,
    clean_name,
)
from memeparty.game.models import Lobby, LobbySettings, Player
from memeparty.game.prompts import prompts_for_theme, random_avatar, random_name
from memeparty.game.timers import TimerScheduler

logger = logging.getLogger(__name__)

StateListener = Callable[[str], None]


def _not_found() -> LobbyError:
    return LobbyError(code="not_found", message="Lobby not found")


class SessionStore:
    """Registry of lobby state machines with change notification fan-out.

    This class is responsible for:
    - Creating lobbies with sanitized settings and a host player
    - Routing player actions to the addressed lobby
    - Notifying listeners (the transport layer) after every lobby change
    - Dropping lobbies that have been idle with nobody connected
    """

    def __init__(
        self,
        provider: ContentProvider | None = None,
        durations: PhaseDurations | None = None,
    ) -> None:
        """Initialize the session store.

        Args:
            provider: Content provider shared by all lobbies (mock if None)
            durations: Phase deadline lengths (defaults if None)
        """
        self._sessions: dict[str, LobbyStateMachine] = {}  # lobby_id -> state machine
        self._listeners: list[StateListener] = []
        self._provider = provider or MockContentProvider()
        self._durations = durations or PhaseDurations()
        self.timers = TimerScheduler()

    # Notifications

    def add_listener(self, listener: StateListener) -> Callable[[], None]:
        """Register a listener called with a lobby id after each change.

        Returns:
            Function that removes the listener again
        """
        self._listeners.append(listener)

        def remove() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return remove

    def notify(self, lobby_id: str) -> None:
        """Tell every listener that a lobby changed."""
        for listener in list(self._listeners):
            try:
                listener(lobby_id)
            except Exception:
                logger.exception(f"State listener failed for lobby {lobby_id}")

    # Registry

    def create_lobby(
        self,
        settings: LobbySettings | None = None,
        host_name: str | None = None,
        host_avatar: str | None = None,
    ) -> tuple[Lobby, Player]:
        """Create a new lobby with its host.

        Args:
            settings: Requested settings (re-sanitized; defaults if None)
            host_name: Host display name (random celebrity if empty)
            host_avatar: Host avatar (random emoji if empty)

        Returns:
            Tuple of (Lobby, host Player)
        """
        settings = settings or LobbySettings()
        settings = LobbySettings.sanitize(settings.rounds, settings.theme, settings.max_players)

        lobby_id = str(uuid.uuid4())
        while lobby_id in self._sessions:
            lobby_id = str(uuid.uuid4())

        host = Player(
            id=str(uuid.uuid4()),
            name=clean_name(host_name) or random_name(),
            avatar=clean_avatar(host_avatar) or random_avatar(),
            is_host=True,
        )
        lobby = Lobby(
            id=lobby_id,
            settings=settings,
            host_id=host.id,
            players={host.id: host},
            prompt_pool=prompts_for_theme(settings.theme),
        )
        self._sessions[lobby_id] = LobbyStateMachine(
            lobby,
            provider=self._provider,
            timers=self.timers,
            on_change=self.notify,
            durations=self._durations,
        )

        logger.info(f"Lobby {lobby_id} created by {host.name} (host_id={host.id})")
        return lobby, host

    def get_lobby(self, lobby_id: str) -> Lobby | None:
        """Get a lobby by id."""
        session = self._sessions.get(lobby_id)
        return session.lobby if session else None

    def get_session(self, lobby_id: str) -> LobbyStateMachine | None:
        """Get the state machine for a lobby."""
        return self._sessions.get(lobby_id)

    def remove_lobby(self, lobby_id: str) -> bool:
        """Drop a lobby and cancel its pending deadline.

        Returns:
            True if removed, False if not found
        """
        session = self._sessions.pop(lobby_id, None)
        if session is None:
            return False
        session.close()
        logger.info(f"Lobby {lobby_id} removed")
        return True

    def cleanup_stale_lobbies(self, max_idle_seconds: int = 3600) -> int:
        """Remove lobbies nobody is connected to that have been idle too long.

        Args:
            max_idle_seconds: Idle time after which a lobby is dropped

        Returns:
            Number of lobbies removed
        """
        now = datetime.now(UTC)
        stale = [
            lobby_id
            for lobby_id, session in self._sessions.items()
            if not session.lobby.has_connected_players
            and not session.is_starting
            and (now - session.lobby.last_activity).total_seconds() > max_idle_seconds
        ]
        for lobby_id in stale:
            self.remove_lobby(lobby_id)

        if stale:
            logger.info(f"Cleaned up {len(stale)} stale lobbies")
        return len(stale)

    def shutdown(self) -> None:
        """Cancel every pending deadline."""
        self.timers.cancel_all()

    # Routed operations

    async def join(
        self,
        lobby_id: str,
        player_id: str | None = None,
        name: str | None = None,
        avatar: str | None = None,
        spectator: bool = False,
    ) -> JoinResult | LobbyError:
        session = self._sessions.get(lobby_id)
        if session is None:
            return _not_found()
        return await session.join(player_id=player_id, name=name, avatar=avatar, spectator=spectator)

    async def mark_connected(self, lobby_id: str, player_id: str, session_id: str) -> bool:
        session = self._sessions.get(lobby_id)
        if session is None:
            return False
        return await session.mark_connected(player_id, session_id)

    async def mark_disconnected(
        self, lobby_id: str, player_id: str, session_id: str | None = None
    ) -> bool:
        session = self._sessions.get(lobby_id)
        if session is None:
            return False
        return await session.mark_disconnected(player_id, session_id)

    async def update_name(self, lobby_id: str, player_id: str, name: str) -> bool:
        session = self._sessions.get(lobby_id)
        if session is None:
            return False
        return await session.update_name(player_id, name)

    async def update_avatar(self, lobby_id: str, player_id: str, avatar: str) -> bool:
        session = self._sessions.get(lobby_id)
        if session is None:
            return False
        return await session.update_avatar(player_id, avatar)

    async def update_settings(
        self,
        lobby_id: str,
        player_id: str,
        rounds: Any = None,
        theme: Any = None,
        max_players: Any = None,
    ) -> bool:
        session = self._sessions.get(lobby_id)
        if session is None:
            return False
        return await session.update_settings(player_id, rounds, theme, max_players)

    async def start_game(self, lobby_id: str, player_id: str) -> Lobby | LobbyError:
        session = self._sessions.get(lobby_id)
        if session is None:
            return _not_found()
        return await session.start_game(player_id)

    async def submit_card(self, lobby_id: str, player_id: str, card_id: str) -> bool:
        session = self._sessions.get(lobby_id)
        if session is None:
            return False
        return await session.submit_card(player_id, card_id)

    async def submit_vote(self, lobby_id: str, player_id: str, ranking: list[str]) -> bool:
        session = self._sessions.get(lobby_id)
        if session is None:
            return False
        return await session.submit_vote(player_id, ranking)

    def project_state(self, lobby_id: str, viewer_id: str) -> dict[str, Any] | None:
        """Build a viewer's state payload, None if lobby or viewer is unknown."""
        session = self._sessions.get(lobby_id)
        if session is None:
            return None
        return session.project(viewer_id)


# Global singleton instance
_session_store: SessionStore | None = None


def get_session_store() -> SessionStore:
    """Get the global session store instance."""
    global _session_store
    if _session_store is None:
        _session_store = SessionStore()
    return _session_store


def init_session_store(
    provider: ContentProvider | None = None,
    durations: PhaseDurations | None = None,
) -> SessionStore:
    """Initialize the global session store.

    Args:
        provider: Content provider shared by all lobbies.
        durations: Phase deadline lengths.

    Returns:
        The initialized SessionStore instance.
    """
    global _session_store
    if _session_store is not None:
        _session_store.shutdown()
    _session_store = SessionStore(provider=provider, durations=durations)
    return _session_store


def reset_session_store() -> None:
    """Reset the global session store. Used for testing."""
    global _session_store
    if _session_store is not None:
        _session_store.shutdown()
    _session_store = None
