"""Health API routes."""

from pydantic import BaseModel
from fastapi import APIRouter


class StatusResponse(BaseModel):
    """Response model for status."""

    status: str


def create_health_router() -> APIRouter:
    """Create health router."""
    router = APIRouter(prefix="/api", tags=["health"])

    @router.get("/health", response_model=StatusResponse)
    async def health() -> dict:
        return {"status": "ok"}

    return router
