"""Main API router."""

from fastapi import APIRouter

from memeparty.api.lobbies import router as lobbies_router

api_router = APIRouter()
api_router.include_router(lobbies_router)
