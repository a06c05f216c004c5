from fastapi import APIRouter

from app.api.v1.endpoints import (
    # Slotting Engine
    slotting,
    # Wave & Route Planning
    waves,
)


api_router = APIRouter(prefix="/api/v1")

api_router.include_router(
    slotting.router,
    prefix="/slotting",
    tags=["Slotting"]
)
api_router.include_router(
    waves.router,
    prefix="/waves",
    tags=["Wave Picking"]
)
