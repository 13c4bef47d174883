from datetime import datetime, timezone

from fastapi import APIRouter
from fastapi.responses import JSONResponse

from app.config import settings
from app.core.logging_config import get_logger
from app.models.workspace import WorkspaceMember

router = APIRouter()
logger = get_logger(__name__)


# Health check endpoint
@router.get("/health")
async def health_check():
    """
    Health check endpoint used by the deploy smoke check.

    Verifies MongoDB connectivity through the membership collection (the
    collection every authorized request touches first).

    Returns 200 if MongoDB answers, 503 otherwise.
    """
    checks = {
        "application": "healthy",
        "mongodb": "unknown",
    }

    try:
        await WorkspaceMember.find().limit(1).to_list()
        checks["mongodb"] = "healthy"
    except Exception as e:
        logger.error("health_check_mongodb_failed", error=str(e))
        checks["mongodb"] = f"unhealthy: {type(e).__name__}"

    all_healthy = checks["mongodb"] == "healthy"

    response_data = {
        "status": "healthy" if all_healthy else "degraded",
        "service": "chatwave-api",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "app": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "environment": settings.ENVIRONMENT,
        "checks": checks
    }

    return JSONResponse(content=response_data, status_code=200 if all_healthy else 503)


# Root endpoint
@router.get("/")
async def root():
    """Root endpoint."""
    return {
        "app": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "docs": "/docs" if settings.ENABLE_DOCS else None,
        "health": "/health",
        "api": settings.API_PREFIX
    }
