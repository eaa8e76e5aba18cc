"""Health check endpoint."""

from datetime import datetime, timezone

from fastapi import APIRouter, Request

router = APIRouter(tags=["Health"])


@router.get("/health")
async def health_check(request: Request) -> dict:
    """Report service and database status.

    Returns:
        Status, timestamp in ISO8601 format and database connectivity
    """
    database = request.app.state.database
    connected = await database.health_check()
    return {
        "status": "healthy" if connected else "degraded",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "database": {"connected": connected},
    }
