"""Rate limiting for lobby creation.

Uses SlowAPI to keep a single client from flooding the server with lobbies.
"""

from collections.abc import Callable

from fastapi import Request, Response
from slowapi import Limiter
from slowapi.util import get_remote_address

from memeparty.settings import get_settings

# Create the limiter instance using IP address as the key
limiter = Limiter(key_func=get_remote_address)

# Format: "requests/period" (e.g., "5/minute", "3/hour")
CREATE_LOBBY_LIMIT = "10/minute"


def create_rate_limit_dependency(limit_string: str, name: str) -> Callable:
    """Create a rate limit dependency for use with FastAPI routes.

    Args:
        limit_string: Rate limit in format "requests/period" (e.g., "5/minute")
        name: Unique name for this rate limit (used by SlowAPI for tracking)

    Returns:
        An async dependency function that applies rate limiting
    """
    # SlowAPI tracks limits by function identity, so decorate once here
    @limiter.limit(limit_string)
    async def _check_limit(request: Request, response: Response) -> None:
        pass

    _check_limit.__name__ = f"_check_limit_{name}"

    async def rate_limit_dependency(request: Request, response: Response) -> None:
        """Apply rate limiting to this request."""
        # Skip rate limiting if disabled (e.g., during tests)
        if not get_settings().rate_limiting_enabled:
            return

        await _check_limit(request, response)

    return rate_limit_dependency


create_lobby_rate_limit = create_rate_limit_dependency(CREATE_LOBBY_LIMIT, "create_lobby")
