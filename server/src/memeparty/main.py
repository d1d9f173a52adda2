"""FastAPI application entry point."""

import asyncio
import logging
import sys
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI, WebSocket
from fastapi.middleware.cors import CORSMiddleware
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from memeparty.api.rate_limit import limiter
from memeparty.api.router import api_router
from memeparty.content import create_content_provider
from memeparty.game.engine import PhaseDurations
from memeparty.lobby.manager import SessionStore, init_session_store
from memeparty.settings import get_settings
from memeparty.ws.lobby_handler import handle_lobby_websocket, lobby_connection_manager


def setup_logging() -> None:
    """Configure logging for the application."""
    # Create formatter
    formatter = logging.Formatter(
        "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    # Configure root logger
    root_logger = logging.getLogger()
    root_logger.setLevel(logging.DEBUG)

    # Console handler
    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(logging.DEBUG)
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    # Set specific loggers
    logging.getLogger("memeparty").setLevel(logging.DEBUG)
    logging.getLogger("uvicorn").setLevel(logging.INFO)
    logging.getLogger("uvicorn.access").setLevel(logging.INFO)
    logging.getLogger("httpx").setLevel(logging.WARNING)


# Set up logging on import
setup_logging()
logger = logging.getLogger(__name__)


async def _cleanup_loop(store: SessionStore, interval: int, max_idle: int) -> None:
    """Periodically drop lobbies nobody has used for a while."""
    while True:
        await asyncio.sleep(interval)
        try:
            store.cleanup_stale_lobbies(max_idle)
        except Exception:
            logger.exception("Stale lobby cleanup failed")


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan handler for startup/shutdown."""
    # Startup
    settings = get_settings()
    logger.info(f"Starting Meme Party server (dev_mode={settings.dev_mode})")

    provider = create_content_provider(settings)
    store = init_session_store(provider=provider, durations=PhaseDurations.from_settings(settings))
    lobby_connection_manager.listen_to(store)

    cleanup_task = asyncio.create_task(
        _cleanup_loop(
            store,
            settings.cleanup_interval_seconds,
            settings.lobby_idle_timeout_seconds,
        )
    )

    yield

    # Shutdown
    logger.info("Shutting down Meme Party server")
    cleanup_task.cancel()
    try:
        await cleanup_task
    except asyncio.CancelledError:
        pass
    store.shutdown()
    aclose = getattr(provider, "aclose", None)
    if aclose is not None:
        await aclose()


app = FastAPI(
    title="Meme Party",
    description="Real-time multiplayer meme party game API",
    version="0.1.0",
    lifespan=lifespan,
)

# CORS middleware
# In dev mode, allow localhost. In production, allow the configured origins.
settings = get_settings()
cors_origins = (
    ["http://localhost:5173", "http://127.0.0.1:5173"]
    if settings.dev_mode
    else settings.cors_allowed_origins or [settings.frontend_url]
)
app.add_middleware(
    CORSMiddleware,
    allow_origins=cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Rate limiting
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)


@app.get("/health")
async def health_check() -> dict[str, str]:
    """Health check endpoint."""
    return {"status": "ok"}


@app.get("/")
async def root() -> dict[str, str]:
    """Root endpoint."""
    return {"message": "Meme Party API", "version": "0.1.0"}


# Include API routers
app.include_router(api_router, prefix="/api")


# WebSocket endpoint for lobby real-time communication
@app.websocket("/ws/lobby/{lobby_id}")
async def lobby_websocket_endpoint(
    websocket: WebSocket,
    lobby_id: str,
    player_id: str | None = None,
    name: str | None = None,
    avatar: str | None = None,
    spectator: str | None = None,
) -> None:
    """WebSocket endpoint for lobby real-time communication."""
    await handle_lobby_websocket(websocket, lobby_id, player_id, name, avatar, spectator)
