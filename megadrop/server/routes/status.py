"""Per-device status endpoint."""
from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

router = APIRouter()


@router.get("/{device_id}")
async def device_status(request: Request, device_id: str):
    ctx = request.app.state.context
    record = ctx.devices.get(device_id)
    if record is None:
        return JSONResponse(
            status_code=404,
            content={"success": False, "error": "Device not found", "deviceId": device_id},
        )
    return {
        "success": True,
        "device": record.to_dict(),
        "folderCached": device_id in ctx.folders,
        "connection": ctx.sessions.status(),
        "progress": ctx.batch.upload_progress(),
    }
