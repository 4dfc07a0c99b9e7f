"""Health check endpoint — no dependencies, always available."""

from fastapi import APIRouter

from app.config import get_settings
from app.infrastructure.engine import TikaEngine

router = APIRouter(tags=["Health"])


@router.get("/health")
async def health_check() -> dict:
    """Returns the application health status and whether the engine can run."""
    settings = get_settings()
    engine = TikaEngine(java=settings.engine_java, jar_path=settings.engine_jar)
    return {
        "status": "healthy",
        "version": settings.app_version,
        "environment": settings.app_env,
        "engine_available": engine.is_available(),
    }
