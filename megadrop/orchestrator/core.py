"""Upload Orchestrator - single file upload with duplicate skip and re-auth retry."""
import logging
import secrets
import time
from typing import Optional

from ..errors import (
    AuthenticationExhausted,
    EmptyFileError,
    FileTooLargeError,
    InputValidationError,
    RemoteError,
    RemoteErrorKind,
    classify_error,
)
from ..models import SourceLocation, UploadConfig, UploadOptions, UploadResult
from ..naming import device_folder_name, generate_file_name, validate_device_id
from ..services.devices import DeviceRegistry
from ..services.folders import FolderCache
from ..services.session import SessionManager

logger = logging.getLogger(__name__)

MAX_ATTEMPTS = 2  # first try plus one retry after re-authentication


def generate_upload_id(device_id: str) -> str:
    return f"{device_id}_{int(time.time() * 1000)}_{secrets.token_hex(4)}"


class UploadOrchestrator:
    """
    Top-level entry point for storing one file.

    Never raises: every outcome, including validation errors and remote
    failures, comes back as an UploadResult.
    """

    def __init__(
        self,
        session_manager: SessionManager,
        folder_cache: FolderCache,
        devices: DeviceRegistry,
        config: Optional[UploadConfig] = None,
    ):
        self._sessions = session_manager
        self._folders = folder_cache
        self._devices = devices
        self._config = config or UploadConfig()

    def folder_path(self, device_id: str, location: SourceLocation) -> str:
        return f"{self._config.base_folder_name}/{device_folder_name(device_id)}/{location.folder_name}"

    def validate(self, data: bytes, device_id: str) -> None:
        """Reject input that must never reach the store."""
        if not data:
            raise EmptyFileError()
        if len(data) > self._config.max_file_size:
            raise FileTooLargeError(len(data), self._config.max_file_size)
        validate_device_id(device_id)

    async def upload_file(
        self,
        data: bytes,
        original_name: str,
        device_id: str,
        source_location=SourceLocation.CAMERA,
        options: Optional[UploadOptions] = None,
    ) -> UploadResult:
        """
        Upload data into the device's folder for source_location.

        Args:
            data: File contents
            original_name: Name as sent by the device
            device_id: Uploading device
            source_location: SourceLocation or its name; unknown values use CAMERA
            options: overwrite / tracking switches

        Returns:
            UploadResult (success, skipped, or failure with retryable flag)
        """
        options = options or UploadOptions()
        location = SourceLocation.resolve(source_location)
        upload_id = options.upload_id or generate_upload_id(device_id)
        size = len(data) if data else 0
        start = time.monotonic()

        try:
            self.validate(data, device_id)
        except InputValidationError as e:
            logger.warning("Upload rejected [%s]: %s (%s)", upload_id, original_name, e)
            return UploadResult.fail(
                original_name, device_id, location.value, str(e),
                error_kind="validation", retryable=False, size=size,
            )

        attempt = 0
        while True:
            attempt += 1
            try:
                return await self._attempt(data, original_name, device_id, location, options, upload_id, attempt)
            except Exception as e:
                duration_ms = _elapsed_ms(start)
                kind = classify_error(e)
                logger.error(
                    "Upload failed [%s] after %dms: %s: %s", upload_id, duration_ms, original_name, e
                )

                if kind is RemoteErrorKind.AUTH and attempt < MAX_ATTEMPTS:
                    logger.info("Authentication error detected [%s], attempting to reconnect...", upload_id)
                    if await self._reauthenticate(upload_id):
                        logger.info("Retrying upload [%s] after re-authentication...", upload_id)
                        continue

                return UploadResult.fail(
                    original_name, device_id, location.value, str(e),
                    error_kind=kind.value, retryable=kind.retryable,
                    size=size, duration_ms=duration_ms, attempts=attempt,
                )

    async def _attempt(
        self,
        data: bytes,
        original_name: str,
        device_id: str,
        location: SourceLocation,
        options: UploadOptions,
        upload_id: str,
        attempt: int,
    ) -> UploadResult:
        start = time.monotonic()
        logger.info(
            "Starting upload [%s]: %s from device %s (%s) - %d bytes",
            upload_id, original_name, device_id, location.value, len(data),
        )

        if not self._sessions.is_connected:
            logger.warning("MEGA not connected [%s], attempting reconnection...", upload_id)
            if not await self._sessions.reconnect():
                raise RemoteError("MEGA service unavailable", RemoteErrorKind.NETWORK)

        folder_set = await self._folders.get_device_folder(device_id)
        target = folder_set.for_location(location)
        file_name = generate_file_name(device_id, original_name, location)
        folder_path = self.folder_path(device_id, location)

        existing = None
        for child in await target.children():
            if child.name == file_name:
                existing = child
                break

        if existing is not None and not options.overwrite:
            logger.info("File already exists [%s]: %s", upload_id, file_name)
            return UploadResult.skip(
                file_name, original_name, device_id, location.value,
                file_id=getattr(existing, "node_id", None), size=len(data),
                folder_path=folder_path, attempts=attempt,
            )

        logger.info("Uploading to MEGA [%s]: %s", upload_id, file_name)
        uploaded = await target.upload(file_name, data)
        duration_ms = _elapsed_ms(start)

        self._devices.record_upload(device_id, location.value)

        logger.info(
            "Upload completed [%s]: %s (%d bytes) in %dms", upload_id, file_name, len(data), duration_ms
        )
        return UploadResult.ok(
            file_name, original_name, device_id, location.value,
            file_id=uploaded.node_id, size=len(data), duration_ms=duration_ms,
            folder_path=folder_path, attempts=attempt,
        )

    async def _reauthenticate(self, upload_id: str) -> bool:
        try:
            await self._sessions.authenticate()
        except AuthenticationExhausted as e:
            logger.error("Re-authentication failed [%s]: %s", upload_id, e)
            return False
        if self._sessions.session.base_folder is None:
            try:
                await self._sessions.setup_folder_structure()
            except Exception as e:
                logger.error("Base folder setup failed after re-authentication [%s]: %s", upload_id, e)
                self._sessions.session.connected = False
                return False
        return True


def _elapsed_ms(start: float) -> int:
    return int((time.monotonic() - start) * 1000)
