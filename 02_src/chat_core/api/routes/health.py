"""Health API routes."""

from pydantic import BaseModel
from fastapi import APIRouter, HTTPException

from ...app import IApplication


class HealthResponse(BaseModel):
    """Response model for health."""

    status: str
    relay: str


def create_health_router(app: IApplication) -> APIRouter:
    """Create health router."""
    router = APIRouter(prefix="/api", tags=["health"])

    @router.get("/health", response_model=HealthResponse)
    async def health() -> dict:
        """Report liveness and the relay dispatcher state."""
        try:
            running = app.event_bus.running
            return {"status": "ok", "relay": "running" if running else "stopped"}
        except RuntimeError as e:
            raise HTTPException(status_code=503, detail=str(e))

    return router
