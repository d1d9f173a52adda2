"""Content card providers.

The engine only depends on the ContentProvider interface; the concrete
provider is picked from settings at startup.
"""

import logging

from memeparty.content.base import ContentProvider
from memeparty.content.mock import MockContentProvider
from memeparty.content.tenor import TenorContentProvider
from memeparty.settings import Settings

logger = logging.getLogger(__name__)


def create_content_provider(settings: Settings) -> ContentProvider:
    """Build the provider configured in settings (Tenor if keyed, else mock)."""
    if settings.tenor_enabled:
        logger.info("Using Tenor content provider")
        return TenorContentProvider(
            api_key=settings.tenor_api_key,
            base_url=settings.tenor_base_url,
            client_key=settings.tenor_client_key,
            timeout_seconds=settings.tenor_timeout_seconds,
        )
    logger.info("Using mock content provider")
    return MockContentProvider()


__all__ = [
    "ContentProvider",
    "MockContentProvider",
    "TenorContentProvider",
    "create_content_provider",
]
