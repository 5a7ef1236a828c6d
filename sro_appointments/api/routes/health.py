"""Health check endpoints."""

from fastapi import APIRouter, Request

from sro_appointments import __version__

router = APIRouter()


@router.get("/health")
async def health_check(request: Request) -> dict:
    """Basic health check."""
    dispatcher = getattr(request.app.state, "dispatcher", None)
    return {
        "status": "healthy",
        "service": "sro-appointments",
        "version": __version__,
        "pending_notifications": dispatcher.pending if dispatcher else 0,
    }
