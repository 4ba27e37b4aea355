"""Upload endpoints: single file, batch, and stored-file validation."""
import logging
import secrets
import time
from typing import List, Optional

from fastapi import APIRouter, File, Form, Request, UploadFile
from fastapi.responses import JSONResponse

from ...context import UploadContext
from ...errors import InputValidationError, InvalidSourceLocationError
from ...models import BatchFile, SourceLocation, UploadOptions
from ...naming import validate_device_id, validate_file_name
from ...orchestrator import generate_upload_id

logger = logging.getLogger(__name__)

router = APIRouter()

VALID_SOURCE_LOCATIONS = [location.value for location in SourceLocation]


def _context(request: Request) -> UploadContext:
    return request.app.state.context


def _bad_request(error: str, message: str) -> JSONResponse:
    return JSONResponse(status_code=400, content={"success": False, "error": error, "message": message})


def _service_unavailable() -> JSONResponse:
    return JSONResponse(
        status_code=503,
        content={
            "success": False,
            "error": "MEGA service unavailable",
            "message": "Unable to connect to MEGA Drive",
            "retryable": True,
        },
    )


def _parse_source_location(value: Optional[str]) -> SourceLocation:
    location = SourceLocation.parse(value or SourceLocation.CAMERA.value)
    if location is None:
        raise InvalidSourceLocationError(
            f"sourceLocation must be one of: {', '.join(VALID_SOURCE_LOCATIONS)}"
        )
    return location


def _check_size(ctx: UploadContext, file_name: str, size: int) -> None:
    limit = ctx.config.max_file_size
    if size > limit:
        raise InputValidationError(
            f"File too large. Maximum size: {limit // (1024 * 1024)}MB, "
            f"received: {round(size / (1024 * 1024), 2)}MB ({file_name})"
        )
    if not size:
        raise InputValidationError(f"File is empty ({file_name})")


async def _read_upload(ctx: UploadContext, file_name: str, file: UploadFile) -> bytes:
    """Reject by declared size before pulling the body into memory."""
    if file.size is not None:
        _check_size(ctx, file_name, file.size)
    data = await file.read()
    _check_size(ctx, file_name, len(data))
    return data


@router.post("")
async def upload_single(
    request: Request,
    file: Optional[UploadFile] = File(None),
    deviceId: Optional[str] = Form(None),
    sourceLocation: Optional[str] = Form(None),
    originalPath: Optional[str] = Form(None),
    timestamp: Optional[str] = Form(None),
):
    ctx = _context(request)
    start = time.monotonic()

    if file is None:
        return _bad_request("No file provided", "File is required for upload")
    if not deviceId:
        return _bad_request("Device ID is required", "deviceId field must be provided")

    try:
        validate_device_id(deviceId)
        location = _parse_source_location(sourceLocation)
        file_name = validate_file_name(file.filename)
    except InvalidSourceLocationError as e:
        return _bad_request("Invalid source location", str(e))
    except InputValidationError as e:
        return _bad_request("File validation failed", str(e))

    try:
        data = await _read_upload(ctx, file_name, file)
    except InputValidationError as e:
        return _bad_request("File validation failed", str(e))

    upload_id = generate_upload_id(deviceId)
    logger.info(
        "Upload request [%s]: %s from device %s (%s) - %d bytes",
        upload_id, file_name, deviceId, location.value, len(data),
    )

    if not await ctx.sessions.ensure_connected():
        return _service_unavailable()

    ctx.devices.register(deviceId, location.value, last_upload_attempt=time.time())

    result = await ctx.upload_file(
        data,
        file_name,
        deviceId,
        location,
        UploadOptions(upload_id=upload_id, original_path=originalPath, timestamp=timestamp),
    )

    response = result.to_dict()
    response["uploadId"] = upload_id
    response["uploadDurationMs"] = int((time.monotonic() - start) * 1000)

    if result.success:
        logger.info("Upload successful [%s]: %s (%d bytes)", upload_id, result.file_name, len(data))
        return JSONResponse(status_code=200, content=response)

    logger.error("Upload failed [%s]: %s", upload_id, result.error)
    status_code = 400 if result.error_kind == "validation" else 500
    return JSONResponse(status_code=status_code, content=response)


@router.post("/batch")
async def upload_batch(
    request: Request,
    files: Optional[List[UploadFile]] = File(None),
    deviceId: Optional[str] = Form(None),
    sourceLocation: Optional[str] = Form(None),
):
    ctx = _context(request)
    start = time.monotonic()

    if not files:
        return _bad_request("No files provided", "At least one file is required for batch upload")
    if len(files) > ctx.config.max_batch_files:
        return _bad_request(
            "Upload failed", f"Too many files (maximum {ctx.config.max_batch_files} files)"
        )
    if not deviceId:
        return _bad_request("Device ID is required", "deviceId field must be provided")

    try:
        validate_device_id(deviceId)
        location = _parse_source_location(sourceLocation)
        batch_files = []
        for item in files:
            file_name = validate_file_name(item.filename)
            data = await _read_upload(ctx, file_name, item)
            batch_files.append(BatchFile(data=data, file_name=file_name))
    except InvalidSourceLocationError as e:
        return _bad_request("Invalid source location", str(e))
    except InputValidationError as e:
        return _bad_request("File validation failed", str(e))

    batch_id = f"batch_{deviceId}_{int(time.time() * 1000)}_{secrets.token_hex(4)}"
    logger.info(
        "Batch upload request [%s]: %d files from device %s (%s)",
        batch_id, len(batch_files), deviceId, location.value,
    )

    if not await ctx.sessions.ensure_connected():
        return _service_unavailable()

    ctx.devices.register(deviceId, location.value, last_upload_attempt=time.time())

    batch = await ctx.upload_multiple_files(batch_files, deviceId, location)
    payload = batch.to_dict()

    response = {
        "success": batch.all_success,
        "batchId": batch_id,
        "deviceId": deviceId,
        "sourceLocation": location.value,
        "summary": payload["summary"],
        "results": payload["results"],
        "batchDurationMs": int((time.monotonic() - start) * 1000),
    }

    logger.info(
        "Batch upload completed [%s]: %d/%d successful",
        batch_id, batch.summary.successful, batch.summary.total,
    )
    return JSONResponse(status_code=200 if batch.all_success else 207, content=response)


@router.get("/validate/{file_id}")
async def validate_upload(request: Request, file_id: str):
    validation = await _context(request).sessions.validate_upload(file_id)
    return {"success": True, "validation": validation}
