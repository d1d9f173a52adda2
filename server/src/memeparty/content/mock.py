"""Mock provider that cycles a fixed set of placeholder images.

Used in development, in tests, and as the fallback for remote providers.
"""

from memeparty.content.base import ContentProvider
from memeparty.game.models import Card, Theme

MOCK_IMAGE_COUNT = 15


def _mock_card(index: int) -> Card:
    base = index % MOCK_IMAGE_COUNT + 1
    cycle = index // MOCK_IMAGE_COUNT
    return Card(
        id=f"meme-{base}-{cycle}",
        url=f"https://picsum.photos/seed/meme-{base}/600/400",
        alt=f"Random meme {base}",
    )


class MockContentProvider(ContentProvider):
    """Provider that always returns exactly the requested number of cards."""

    async def fetch(self, count: int, theme: Theme) -> list[Card]:
        """Return count placeholder cards (theme is ignored)."""
        return [_mock_card(i) for i in range(max(0, count))]
