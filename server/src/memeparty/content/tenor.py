"""Tenor-backed content provider.

Searches the Tenor v2 API for reaction GIFs matching the lobby theme. Any
transport error, bad status or malformed payload falls back to the mock
provider so a game can always start.
"""

import logging
from typing import Any

import httpx

from memeparty.content.base import ContentProvider
from memeparty.content.mock import MockContentProvider
from memeparty.game.models import Card, Theme

logger = logging.getLogger(__name__)

# Tenor caps a single search page at 50 results
TENOR_PAGE_LIMIT = 50

SEARCH_TERMS: dict[Theme, str] = {
    Theme.FUN: "funny reaction meme",
    Theme.UNIVERSITY: "college student meme",
    Theme.MATURE: "awkward adult meme",
}

CONTENT_FILTERS: dict[Theme, str] = {
    Theme.FUN: "medium",
    Theme.UNIVERSITY: "medium",
    Theme.MATURE: "low",
}


class TenorError(Exception):
    """Raised internally when a Tenor response cannot be used."""


def _parse_card(result: Any) -> Card | None:
    if not isinstance(result, dict) or "id" not in result:
        return None
    media = result.get("media_formats")
    if not isinstance(media, dict):
        return None
    for fmt in ("gif", "mediumgif", "tinygif"):
        entry = media.get(fmt)
        url = entry.get("url") if isinstance(entry, dict) else None
        if isinstance(url, str) and url:
            return Card(
                id=f"tenor-{result['id']}",
                url=url,
                alt=result.get("content_description") or None,
            )
    return None


class TenorContentProvider(ContentProvider):
    """Provider that pages through Tenor search results."""

    def __init__(
        self,
        api_key: str,
        base_url: str = "https://tenor.googleapis.com/v2",
        client_key: str = "memeparty",
        timeout_seconds: float = 5.0,
        client: httpx.AsyncClient | None = None,
        fallback: ContentProvider | None = None,
    ) -> None:
        """Initialize the provider.

        Args:
            api_key: Tenor API key
            base_url: API root, overridable for tests
            client_key: Tenor client key identifying this integration
            timeout_seconds: Per-request timeout
            client: Optional shared HTTP client (a new one is created if None)
            fallback: Provider used when Tenor fails (mock by default)
        """
        self.api_key = api_key
        self.client_key = client_key
        self._client = client or httpx.AsyncClient(base_url=base_url, timeout=timeout_seconds)
        self._fallback = fallback or MockContentProvider()

    async def fetch(self, count: int, theme: Theme) -> list[Card]:
        try:
            cards = await self._search(count, theme)
        except (httpx.HTTPError, TenorError, KeyError, TypeError, ValueError) as e:
            logger.warning(f"Tenor fetch failed ({e!r}), using fallback provider")
            return await self._fallback.fetch(count, theme)

        if not cards:
            logger.warning(f"Tenor returned no cards for theme {theme.value}, using fallback provider")
            return await self._fallback.fetch(count, theme)

        if len(cards) < count:
            logger.info(f"Tenor returned {len(cards)}/{count} cards for theme {theme.value}")
        return cards

    async def _search(self, count: int, theme: Theme) -> list[Card]:
        cards: list[Card] = []
        seen: set[str] = set()
        position: str | None = None

        while len(cards) < count:
            params: dict[str, Any] = {
                "q": SEARCH_TERMS[theme],
                "key": self.api_key,
                "client_key": self.client_key,
                "limit": min(TENOR_PAGE_LIMIT, count - len(cards)),
                "media_filter": "gif,tinygif",
                "contentfilter": CONTENT_FILTERS[theme],
            }
            if position:
                params["pos"] = position

            response = await self._client.get("/search", params=params)
            response.raise_for_status()
            payload = response.json()
            if not isinstance(payload, dict) or not isinstance(payload.get("results"), list):
                raise TenorError("Unexpected search payload")

            for result in payload["results"]:
                card = _parse_card(result)
                if card is None or card.id in seen:
                    continue
                seen.add(card.id)
                cards.append(card)

            position = payload.get("next") or None
            if not payload["results"] or not position:
                break

        return cards[:count]

    async def aclose(self) -> None:
        await self._client.aclose()
