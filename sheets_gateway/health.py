"""Health check API endpoints."""

from fastapi import APIRouter, Depends, Request

from sheets_gateway.config import Settings, get_settings

router = APIRouter(prefix="/health", tags=["health"])

SERVICE_NAME = "sheets-gateway"


@router.get("")
async def health_check() -> dict:
    """Basic health check endpoint."""
    return {"status": "healthy", "service": SERVICE_NAME}


@router.get("/ready")
async def readiness_check(request: Request, settings: Settings = Depends(get_settings)) -> dict:
    """Readiness check for Kubernetes/Cloud Run."""
    return {
        "status": "ready",
        "service": SERVICE_NAME,
        "environment": settings.environment,
        "sessions": len(request.app.state.session_store),
    }
