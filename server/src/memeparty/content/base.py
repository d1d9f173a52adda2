"""Base class for content card providers."""

from abc import ABC, abstractmethod

from memeparty.game.models import Card, Theme


class ContentProvider(ABC):
    """Source of displayable meme cards.

    Providers are shared across lobbies and must tolerate concurrent calls.
    """

    @abstractmethod
    async def fetch(self, count: int, theme: Theme) -> list[Card]:
        """Return up to count cards for a theme.

        Implementations absorb their own failures and may return fewer
        cards than requested.

        Args:
            count: Number of cards wanted (positive)
            theme: Lobby theme

        Returns:
            Cards with ids unique within the returned list
        """
