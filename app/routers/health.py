from datetime import datetime, timezone
import time

from fastapi import APIRouter

from app.config import settings

router = APIRouter(tags=["health"])

_STARTED = time.monotonic()


@router.get("/health")
def health() -> dict:
    return {
        "status": "healthy",
        "ts": datetime.now(timezone.utc).isoformat(),
        "uptime": round(time.monotonic() - _STARTED, 3),
        "env": settings.environment,
    }
