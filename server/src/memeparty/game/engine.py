"""Per-lobby state machine.

LobbyStateMachine owns one lobby: its players, settings and active round.
Player actions and deadline expirations both enter through async methods
that take the lobby lock, so every mutation of a lobby is serialized. All
state changes after the content provider await are synchronous, and each
operation emits at most one notification once the lobby is consistent again.
"""

import asyncio
import logging
import math
import uuid
from collections.abc import Callable
from dataclasses import dataclass
from functools import partial
from typing import TYPE_CHECKING, Any

from memeparty.game.models import (
    DECK_OVERSUPPLY,
    Card,
    GamePhase,
    Lobby,
    LobbySettings,
    Player,
)
from memeparty.game.projection import project_lobby_state
from memeparty.game.prompts import random_avatar, random_name
from memeparty.game.rounds import RoundEngine
from memeparty.game.timers import TimerScheduler
from memeparty.settings import Settings

if TYPE_CHECKING:
    from memeparty.content.base import ContentProvider

logger = logging.getLogger(__name__)

MIN_ACTIVE_PLAYERS = 2
MAX_NAME_LENGTH = 40
MAX_AVATAR_LENGTH = 8

FORCED_SPECTATOR_NOTE = "Lobby is full, joined as spectator."
REQUESTED_SPECTATOR_NOTE = "Joined as spectator."


@dataclass
class LobbyError:
    """Error result from a lobby operation."""

    code: str
    message: str


@dataclass
class JoinResult:
    """Result of a successful join."""

    player: Player
    spectator: bool
    note: str | None = None


@dataclass
class PhaseDurations:
    """Deadline lengths in seconds for each timed phase."""

    selection: float = 45.0
    voting: float = 60.0
    results: float = 12.0

    @classmethod
    def from_settings(cls, settings: Settings) -> "PhaseDurations":
        return cls(
            selection=settings.selection_duration_seconds,
            voting=settings.voting_duration_seconds,
            results=settings.results_duration_seconds,
        )

    def for_phase(self, phase: GamePhase) -> float:
        if phase == GamePhase.SELECTION:
            return self.selection
        if phase == GamePhase.VOTING:
            return self.voting
        return self.results


def clean_name(name: Any) -> str | None:
    """Trim a display name, None if nothing usable remains."""
    if not isinstance(name, str):
        return None
    trimmed = name.strip()
    return trimmed[:MAX_NAME_LENGTH] if trimmed else None


def clean_avatar(avatar: Any) -> str | None:
    if not isinstance(avatar, str):
        return None
    trimmed = avatar.strip()
    return trimmed[:MAX_AVATAR_LENGTH] if trimmed else None


class LobbyStateMachine:
    """Coordinates one lobby's players, settings and rounds.

    This class is responsible for:
    - Player join, reconnect, spectator overflow and host assignment
    - Host-only settings updates
    - Starting a game: fetching, shuffling and dealing cards
    - Card submissions and vote rankings
    - Advancing phases on full participation or deadline expiry
    """

    def __init__(
        self,
        lobby: Lobby,
        provider: "ContentProvider",
        timers: TimerScheduler,
        on_change: Callable[[str], None],
        durations: PhaseDurations | None = None,
    ) -> None:
        """Initialize the state machine.

        Args:
            lobby: Lobby to own
            provider: Shared content card provider
            timers: Shared deadline scheduler, keyed by lobby id
            on_change: Called with the lobby id after every mutation
            durations: Phase deadline lengths (defaults if None)
        """
        self.lobby = lobby
        self._provider = provider
        self._timers = timers
        self._on_change = on_change
        self._durations = durations or PhaseDurations()
        self._lock = asyncio.Lock()
        self._starting = False
        self._closed = False

    @property
    def is_starting(self) -> bool:
        return self._starting

    # Players

    async def join(
        self,
        player_id: str | None = None,
        name: str | None = None,
        avatar: str | None = None,
        spectator: bool = False,
    ) -> JoinResult:
        """Join the lobby or reclaim an existing player record.

        Args:
            player_id: Previously issued handle, reused unchanged if known
            name: Display name (random celebrity if empty)
            avatar: Emoji avatar (random if empty)
            spectator: Whether the player asked to spectate

        Returns:
            JoinResult with an informational note for spectators
        """
        async with self._lock:
            lobby = self.lobby
            existing = lobby.players.get(player_id) if player_id else None
            if existing is not None:
                logger.info(f"Player {existing.id} rejoined lobby {lobby.id}")
                return JoinResult(player=existing, spectator=existing.spectator)

            forced = (
                not spectator
                and lobby.phase != GamePhase.LOBBY
                and len(lobby.active_players) >= lobby.settings.max_players
            )
            player = Player(
                id=player_id or _new_id(),
                name=clean_name(name) or random_name(lobby.rng),
                avatar=clean_avatar(avatar) or random_avatar(lobby.rng),
                spectator=spectator or forced,
            )
            lobby.players[player.id] = player

            if not player.spectator:
                if lobby.in_game:
                    dealt = RoundEngine.deal(lobby, player, lobby.settings.cards_per_player)
                    logger.info(f"Late joiner {player.id} dealt {dealt} cards in lobby {lobby.id}")
                self._ensure_host()

            note = None
            if forced:
                note = FORCED_SPECTATOR_NOTE
            elif spectator:
                note = REQUESTED_SPECTATOR_NOTE

            logger.info(
                f"Player {player.name} joined lobby {lobby.id} "
                f"(id={player.id}, spectator={player.spectator})"
            )
            self._changed()
            return JoinResult(player=player, spectator=player.spectator, note=note)

    async def mark_connected(self, player_id: str, session_id: str) -> bool:
        async with self._lock:
            player = self.lobby.players.get(player_id)
            if player is None:
                return False
            player.connected = True
            player.session_id = session_id
            if not player.spectator:
                self._ensure_host()
            self._changed()
            return True

    async def mark_disconnected(self, player_id: str, session_id: str | None = None) -> bool:
        """Mark a player disconnected and reassign host if needed.

        Args:
            player_id: Player to mark
            session_id: If given, only act when it is the player's current
                session (a stale socket closing after a reconnect is ignored)

        Returns:
            True if the player was marked disconnected
        """
        async with self._lock:
            player = self.lobby.players.get(player_id)
            if player is None:
                return False
            if session_id is not None and player.session_id != session_id:
                return False
            player.connected = False
            player.session_id = None
            self._ensure_host()
            logger.info(f"Player {player_id} disconnected from lobby {self.lobby.id}")
            self._changed()
            return True

    async def update_name(self, player_id: str, name: str) -> bool:
        async with self._lock:
            player = self.lobby.players.get(player_id)
            cleaned = clean_name(name)
            if player is None or cleaned is None:
                return False
            player.name = cleaned
            self._changed()
            return True

    async def update_avatar(self, player_id: str, avatar: str) -> bool:
        async with self._lock:
            player = self.lobby.players.get(player_id)
            cleaned = clean_avatar(avatar)
            if player is None or cleaned is None:
                return False
            player.avatar = cleaned
            self._changed()
            return True

    async def update_settings(
        self,
        player_id: str,
        rounds: Any = None,
        theme: Any = None,
        max_players: Any = None,
    ) -> bool:
        """Replace settings (host only). Values are sanitized."""
        async with self._lock:
            lobby = self.lobby
            if lobby.host_id != player_id:
                return False

            settings = LobbySettings.sanitize(rounds, theme, max_players)
            theme_changed = settings.theme != lobby.settings.theme
            lobby.settings = settings
            if theme_changed:
                RoundEngine.reset_prompts(lobby)

            logger.info(f"Settings updated in lobby {lobby.id}: {settings.to_dict()}")
            self._changed()
            return True

    # Game flow

    async def start_game(self, player_id: str) -> Lobby | LobbyError:
        """Start a new game.

        The content provider is awaited before anything is mutated, and the
        preconditions are checked again once the cards are in.

        Args:
            player_id: Active player requesting the start

        Returns:
            The lobby in round 1 selection, or LobbyError
        """
        async with self._lock:
            error = self._check_can_start(player_id)
            if error is not None:
                return error
            self._starting = True
            settings = self.lobby.settings
            desired = math.ceil(
                len(self.lobby.active_players) * settings.cards_per_player * DECK_OVERSUPPLY
            )

        try:
            cards = await self._provider.fetch(desired, settings.theme)
        finally:
            self._starting = False

        async with self._lock:
            error = self._check_can_start(player_id)
            if error is not None:
                return error

            self._deal_new_game(cards)
            self._arm_deadline()
            logger.info(
                f"Game started in lobby {self.lobby.id} with "
                f"{len(self.lobby.active_players)} players"
            )
            self._changed()
            return self.lobby

    async def submit_card(self, player_id: str, card_id: str) -> bool:
        async with self._lock:
            player = self.lobby.players.get(player_id)
            if player is None:
                return False
            if not RoundEngine.submit_card(self.lobby, player, card_id):
                return False

            if RoundEngine.all_submitted(self.lobby):
                self._close_selection()
            self._changed()
            return True

    async def submit_vote(self, player_id: str, ranking: list[str]) -> bool:
        async with self._lock:
            player = self.lobby.players.get(player_id)
            if player is None:
                return False
            if not RoundEngine.submit_vote(self.lobby, player, ranking):
                return False

            if RoundEngine.all_voted(self.lobby):
                self._close_voting()
            self._changed()
            return True

    async def expire_deadline(self) -> bool:
        """Expire the pending deadline now, as if its timer had fired."""
        return await self._timers.fire(self.lobby.id)

    def project(self, viewer_id: str) -> dict[str, Any] | None:
        """Build the state payload for one viewer."""
        return project_lobby_state(self.lobby, viewer_id)

    def close(self) -> None:
        """Cancel the pending deadline and ignore any that fire later."""
        self._closed = True
        self._timers.cancel(self.lobby.id)

    # Internals

    def _check_can_start(self, player_id: str) -> LobbyError | None:
        lobby = self.lobby
        player = lobby.players.get(player_id)
        if player is None or player.spectator:
            return LobbyError(code="not_player", message="Only active players can start the game")
        if self._starting:
            return LobbyError(code="already_starting", message="Game is already starting")
        if lobby.in_game:
            return LobbyError(code="game_in_progress", message="Game is already in progress")
        if len(lobby.active_players) < MIN_ACTIVE_PLAYERS:
            return LobbyError(
                code="not_enough_players",
                message=f"At least {MIN_ACTIVE_PLAYERS} active players are required",
            )
        return None

    def _deal_new_game(self, cards: list[Card]) -> None:
        lobby = self.lobby
        lobby.round = None
        RoundEngine.reset_prompts(lobby)
        lobby.deck = list(cards)
        lobby.rng.shuffle(lobby.deck)

        for player in lobby.players.values():
            player.reset_for_game()

        per_player = lobby.settings.cards_per_player
        for player in lobby.active_players:
            dealt = RoundEngine.deal(lobby, player, per_player)
            if dealt < per_player:
                logger.warning(
                    f"Under-dealt player {player.id} in lobby {lobby.id}: {dealt}/{per_player} cards"
                )

        RoundEngine.begin_round(lobby)

    def _arm_deadline(self) -> None:
        """Arm the deadline for the current phase of the active round."""
        round_ = self.lobby.round
        if round_ is None:
            self._timers.cancel(self.lobby.id)
            return
        phase = self.lobby.phase
        callback = partial(self._on_deadline, phase, round_.round_number)
        round_.ends_at = self._timers.arm(
            self.lobby.id, self._durations.for_phase(phase), callback
        )

    async def _on_deadline(self, phase: GamePhase, round_number: int) -> None:
        async with self._lock:
            if self._closed:
                logger.info(f"[timer-abort] lobby={self.lobby.id} closed")
                return
            lobby = self.lobby
            round_ = lobby.round
            if lobby.phase != phase or round_ is None or round_.round_number != round_number:
                logger.info(
                    f"[timer-abort] lobby={lobby.id} expected={phase.value}/{round_number} "
                    f"actual={lobby.phase.value}/{round_.round_number if round_ else None}"
                )
                return

            logger.debug(f"Deadline reached in lobby {lobby.id}: {phase.value} round {round_number}")
            if phase == GamePhase.SELECTION:
                self._close_selection()
            elif phase == GamePhase.VOTING:
                self._close_voting()
            elif phase == GamePhase.ROUND_RESULTS:
                self._finish_round()
            self._changed()

    def _close_selection(self) -> None:
        self._timers.cancel(self.lobby.id)
        RoundEngine.close_selection(self.lobby)
        # Voting may already be complete (a single participant has no one to rank)
        if RoundEngine.all_voted(self.lobby):
            self._close_voting()
            return
        self._arm_deadline()

    def _close_voting(self) -> None:
        self._timers.cancel(self.lobby.id)
        RoundEngine.close_voting(self.lobby)
        self._arm_deadline()

    def _finish_round(self) -> None:
        self._timers.cancel(self.lobby.id)
        if RoundEngine.finish_round(self.lobby):
            self._arm_deadline()

    def _ensure_host(self) -> None:
        """Keep exactly one eligible host, preferring connected players."""
        lobby = self.lobby
        current = lobby.host
        candidates = lobby.active_players

        if current is not None and not current.spectator and current.connected:
            new_host = current
        else:
            connected = next((p for p in candidates if p.connected), None)
            if connected is not None:
                new_host = connected
            elif current is not None and not current.spectator:
                new_host = current
            else:
                new_host = candidates[0] if candidates else None

        new_id = new_host.id if new_host else None
        if new_id != lobby.host_id:
            logger.info(f"Host of lobby {lobby.id} changed from {lobby.host_id} to {new_id}")
        lobby.host_id = new_id
        for player in lobby.players.values():
            player.is_host = player.id == new_id

    def _changed(self) -> None:
        self.lobby.touch()
        self._on_change(self.lobby.id)


def _new_id() -> str:
    return str(uuid.uuid4())
