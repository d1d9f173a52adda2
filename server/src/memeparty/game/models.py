"""Data model for meme party lobbies, players and rounds."""

import math
import random
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import Any

MIN_ROUNDS = 5
MAX_ROUNDS = 20
DEFAULT_ROUNDS = 5

MIN_PLAYERS = 2
MAX_PLAYERS = 7
DEFAULT_MAX_PLAYERS = 5

# Extra cards dealt beyond one per round
HAND_SURPLUS = 2
# Deck size multiplier over the exact number of cards dealt
DECK_OVERSUPPLY = 1.2


class Theme(Enum):
    """Content themes for prompts and cards."""

    FUN = "fun"
    UNIVERSITY = "university"
    MATURE = "18+"


DEFAULT_THEME = Theme.FUN


class GamePhase(Enum):
    """Lobby and round phases."""

    LOBBY = "lobby"
    SELECTION = "selection"
    VOTING = "voting"
    ROUND_RESULTS = "roundResults"
    FINAL_RESULTS = "finalResults"


def _clamp_int(value: Any, low: int, high: int, default: int) -> int:
    """Floor a numeric value and clamp it into [low, high]."""
    try:
        number = float(value)
    except (TypeError, ValueError):
        return default
    if not math.isfinite(number):
        return default
    return min(high, max(low, math.floor(number)))


@dataclass
class Card:
    """A displayable meme card.

    Attributes:
        id: Unique within the batch the provider returned
        url: Image URL to display
        alt: Optional alt text
    """

    id: str
    url: str
    alt: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {"id": self.id, "url": self.url, "alt": self.alt}


@dataclass
class Prompt:
    """A situation prompt players respond to."""

    id: str
    text: str
    theme: Theme

    def to_dict(self) -> dict[str, Any]:
        return {"id": self.id, "text": self.text, "theme": self.theme.value}


@dataclass
class HighlightMoment:
    """A player's best scoring submission so far."""

    card: Card
    prompt: Prompt
    points: int
    round_number: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "card": self.card.to_dict(),
            "prompt": self.prompt.to_dict(),
            "points": self.points,
            "roundNumber": self.round_number,
        }


@dataclass
class LobbySettings:
    """Host-configurable lobby settings.

    Attributes:
        rounds: Number of rounds to play (5-20)
        theme: Content theme
        max_players: Active player cap once the game has started (2-7)
    """

    rounds: int = DEFAULT_ROUNDS
    theme: Theme = DEFAULT_THEME
    max_players: int = DEFAULT_MAX_PLAYERS

    @classmethod
    def sanitize(cls, rounds: Any = None, theme: Any = None, max_players: Any = None) -> "LobbySettings":
        """Build settings from untrusted input, clamping every field.

        Args:
            rounds: Requested round count
            theme: Requested theme value (e.g. "fun")
            max_players: Requested active player cap

        Returns:
            Settings with every field in its valid range
        """
        if isinstance(theme, Theme):
            resolved_theme = theme
        else:
            try:
                resolved_theme = Theme(theme)
            except ValueError:
                resolved_theme = DEFAULT_THEME

        return cls(
            rounds=_clamp_int(rounds, MIN_ROUNDS, MAX_ROUNDS, DEFAULT_ROUNDS),
            theme=resolved_theme,
            max_players=_clamp_int(max_players, MIN_PLAYERS, MAX_PLAYERS, DEFAULT_MAX_PLAYERS),
        )

    @property
    def cards_per_player(self) -> int:
        return self.rounds + HAND_SURPLUS

    def to_dict(self) -> dict[str, Any]:
        return {
            "rounds": self.rounds,
            "theme": self.theme.value,
            "maxPlayers": self.max_players,
        }


@dataclass
class Player:
    """A participant in a lobby.

    Attributes:
        id: Opaque handle, stable across reconnects
        name: Display name
        avatar: Emoji avatar
        is_host: Whether this player is the lobby host
        connected: Whether a transport connection is open
        session_id: Transport connection id used to address pushes
        spectator: Spectators never submit, vote or score
        score: Cumulative score for the current game
        hand: Unused cards owned by this player
        submitted_card_id: Card submitted in the active round
        vote_ranking: Ranking submitted in the active round
        best_moment: Highest scoring submission so far
    """

    id: str
    name: str
    avatar: str
    is_host: bool = False
    connected: bool = False
    session_id: str | None = None
    spectator: bool = False
    score: int = 0
    hand: list[Card] = field(default_factory=list)
    submitted_card_id: str | None = None
    vote_ranking: list[str] | None = None
    best_moment: HighlightMoment | None = None

    def find_card(self, card_id: str) -> Card | None:
        for card in self.hand:
            if card.id == card_id:
                return card
        return None

    def reset_for_game(self) -> None:
        self.score = 0
        self.hand = []
        self.submitted_card_id = None
        self.vote_ranking = None
        self.best_moment = None


@dataclass
class RoundResultEntry:
    """One submitter's line in a round leaderboard."""

    player_id: str
    points: int = 0
    first_place_votes: int = 0
    second_place_votes: int = 0
    placements: list[int] = field(default_factory=list)


@dataclass
class Round:
    """State of one play cycle.

    Attributes:
        round_number: 1-based round number
        prompt: Situation shown this round
        submissions: player_id -> submitted card
        slots: player_id -> anonymized slot label
        votes: voter_id -> ranking of other submitters, best first
        phase: Current sub-phase
        ends_at: Epoch seconds when the current sub-phase deadline expires
        seed: Round-scoped seed for leaderboard tie-breaks
        leaderboard: Ranked results once voting has closed
    """

    round_number: int
    prompt: Prompt
    seed: int
    phase: GamePhase = GamePhase.SELECTION
    submissions: dict[str, Card] = field(default_factory=dict)
    slots: dict[str, str] = field(default_factory=dict)
    votes: dict[str, list[str]] = field(default_factory=dict)
    ends_at: float | None = None
    leaderboard: list[RoundResultEntry] | None = None


@dataclass
class Lobby:
    """A game lobby and everything it owns.

    Attributes:
        id: Lobby identifier
        settings: Sanitized lobby settings
        host_id: Current host, None when no eligible player exists
        players: player_id -> Player
        deck: Shared draw pile
        used_prompts: Prompt ids already shown from the current pool
        prompt_pool: Prompts available for the active theme
        phase: Current lobby phase
        round: Active round, if any
        rng: Session random source for shuffles and auto-actions
    """

    id: str
    settings: LobbySettings
    host_id: str | None = None
    players: dict[str, Player] = field(default_factory=dict)
    deck: list[Card] = field(default_factory=list)
    used_prompts: set[str] = field(default_factory=set)
    prompt_pool: list[Prompt] = field(default_factory=list)
    prompt_generation: int = 0
    phase: GamePhase = GamePhase.LOBBY
    round: Round | None = None
    rng: random.Random = field(default_factory=random.Random, repr=False)
    created_at: datetime = field(default_factory=lambda: datetime.now(UTC))
    last_activity: datetime = field(default_factory=lambda: datetime.now(UTC))

    @property
    def active_players(self) -> list[Player]:
        """Non-spectator players."""
        return [p for p in self.players.values() if not p.spectator]

    @property
    def host(self) -> Player | None:
        if self.host_id is None:
            return None
        return self.players.get(self.host_id)

    @property
    def has_connected_players(self) -> bool:
        return any(p.connected for p in self.players.values())

    @property
    def in_game(self) -> bool:
        """True once a game has started and has not reached final results."""
        return self.phase not in (GamePhase.LOBBY, GamePhase.FINAL_RESULTS)

    def touch(self) -> None:
        self.last_activity = datetime.now(UTC)
