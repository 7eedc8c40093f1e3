from fastapi import APIRouter, HTTPException

from tutor_chat.core.config import settings
from tutor_chat.database import check_database_health
from tutor_chat.utils.time_utils import utc_now

router = APIRouter(tags=["Health"])


@router.get("/health")
async def health_check():
    """Application health check endpoint"""
    try:
        db_health = await check_database_health()

        overall_status = "healthy" if db_health["overall"] else "unhealthy"

        return {
            "status": overall_status,
            "timestamp": utc_now(),
            "databases": {
                "mongodb": "connected" if db_health["mongodb"] else "disconnected"
            },
            "service": settings.app_name
        }
    except Exception as e:
        raise HTTPException(
            status_code=503,
            detail=f"Health check failed: {str(e)}"
        )


@router.get("/health/ready")
async def readiness_check():
    """Kubernetes readiness probe endpoint"""
    db_health = await check_database_health()

    if not db_health["overall"]:
        raise HTTPException(
            status_code=503,
            detail="Service not ready - database connections failed"
        )

    return {"status": "ready"}


@router.get("/health/live")
async def liveness_check():
    """Kubernetes liveness probe endpoint"""
    return {"status": "alive", "timestamp": utc_now()}
