"""Health endpoints used by deployment monitoring."""
import logging
import time

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from ...models import utc_now_iso

logger = logging.getLogger(__name__)

router = APIRouter()


def _uptime(request: Request) -> int:
    return int(time.monotonic() - request.app.state.started_at)


@router.get("")
async def health(request: Request):
    ctx = request.app.state.context
    status = {
        "status": "healthy",
        "timestamp": utc_now_iso(),
        "uptime": _uptime(request),
        "version": request.app.version,
        "environment": ctx.config.environment,
    }

    try:
        connected = await ctx.sessions.check_connection()
    except Exception as e:
        logger.error("Health check error: %s", e)
        status.update(status="down", error="Health check failed", megaConnected=False)
        return JSONResponse(status_code=503, content=status)

    status["megaConnected"] = connected
    if not connected:
        status["status"] = "degraded"

    logger.debug(
        "Health check - Status: %s, MEGA: %s, Uptime: %ss",
        status["status"], "connected" if connected else "disconnected", status["uptime"],
    )
    return status


@router.get("/info")
async def info(request: Request):
    from ..app import APP_NAME, ENDPOINTS

    return {
        "name": APP_NAME,
        "version": request.app.version,
        "environment": request.app.state.context.config.environment,
        "uptime": _uptime(request),
        "timestamp": utc_now_iso(),
        "endpoints": ENDPOINTS,
    }
