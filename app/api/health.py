from fastapi import APIRouter, HTTPException
from datetime import datetime
from app.database import check_database_health
from app.websockets import manager

router = APIRouter()


@router.get("/health")
async def health_check():
    """Application health check endpoint"""
    try:
        db_health = await check_database_health()

        overall_status = "healthy" if db_health["overall"] else "unhealthy"

        databases = {"mongodb": "connected" if db_health["mongodb"] else "disconnected"}
        if db_health["redis"] is not None:
            databases["redis"] = "connected" if db_health["redis"] else "disconnected"

        return {
            "status": overall_status,
            "timestamp": datetime.utcnow(),
            "databases": databases,
            "realtime": {
                "sessions": manager.session_count,
                "rooms": manager.registry.room_count,
                "active_signals": len(manager.signals),
            },
            "service": "collab-hub-realtime"
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
    return {"status": "alive", "timestamp": datetime.utcnow()}
