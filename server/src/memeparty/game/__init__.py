"""Game engine module for Meme Party."""

from memeparty.game.engine import (
    JoinResult,
    LobbyError,
    LobbyStateMachine,
    PhaseDurations,
)
from memeparty.game.models import (
    Card,
    GamePhase,
    HighlightMoment,
    Lobby,
    LobbySettings,
    Player,
    Prompt,
    Round,
    RoundResultEntry,
    Theme,
)
from memeparty.game.rounds import RoundEngine
from memeparty.game.scoring import score_round
from memeparty.game.timers import TimerScheduler

__all__ = [
    # Models
    "Card",
    "GamePhase",
    "HighlightMoment",
    "Lobby",
    "LobbySettings",
    "Player",
    "Prompt",
    "Round",
    "RoundResultEntry",
    "Theme",
    # Rules
    "RoundEngine",
    "score_round",
    "TimerScheduler",
    # State machine
    "JoinResult",
    "LobbyError",
    "LobbyStateMachine",
    "PhaseDurations",
]
