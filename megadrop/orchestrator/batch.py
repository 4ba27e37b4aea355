"""Batch Coordinator - sequential multi-file upload for one device."""
import asyncio
import logging
import time
from typing import Iterable, List, Optional, Dict, Any

from ..models import (
    BatchFile,
    BatchResult,
    BatchSummary,
    SourceLocation,
    UploadConfig,
    UploadOptions,
    UploadResult,
    utc_now_iso,
)
from ..services.devices import DeviceRegistry
from .core import UploadOrchestrator, generate_upload_id

logger = logging.getLogger(__name__)


class BatchCoordinator:
    """
    Uploads a list of files one after another.

    Files are never uploaded in parallel; a fixed delay between items keeps
    the remote store from being flooded. A failed file does not stop the batch.
    """

    def __init__(
        self,
        orchestrator: UploadOrchestrator,
        devices: DeviceRegistry,
        config: Optional[UploadConfig] = None,
    ):
        self._orchestrator = orchestrator
        self._devices = devices
        self._config = config or UploadConfig()
        self._active = 0

    async def upload_multiple_files(
        self,
        files: Iterable[BatchFile],
        device_id: str,
        source_location=SourceLocation.CAMERA,
        options: Optional[UploadOptions] = None,
    ) -> BatchResult:
        files = list(files)
        location = SourceLocation.resolve(source_location)
        base_options = options or UploadOptions()
        results: List[UploadResult] = []
        start = time.monotonic()

        logger.info("Starting batch upload: %d files from device %s", len(files), device_id)

        for index, batch_file in enumerate(files):
            logger.info("Batch upload progress: %d/%d - %s", index + 1, len(files), batch_file.file_name)
            item_options = UploadOptions(
                overwrite=base_options.overwrite,
                batch_upload=True,
                upload_id=generate_upload_id(device_id),
            )
            self._active += 1
            try:
                result = await self._orchestrator.upload_file(
                    batch_file.data,
                    batch_file.file_name,
                    device_id,
                    location,
                    item_options,
                )
            except Exception as e:
                logger.error("Batch upload failed for file %s: %s", batch_file.file_name, e)
                result = UploadResult.fail(
                    batch_file.file_name, device_id, location.value, str(e),
                    error_kind="unknown", size=batch_file.size,
                )
            finally:
                self._active -= 1
            results.append(result)

            if index < len(files) - 1 and self._config.batch_delay > 0:
                await asyncio.sleep(self._config.batch_delay)

        total_ms = int((time.monotonic() - start) * 1000)
        successful = sum(1 for r in results if r.success)
        failed = len(results) - successful

        logger.info(
            "Batch upload completed: %d successful, %d failed in %dms", successful, failed, total_ms
        )
        summary = BatchSummary(
            total=len(files),
            successful=successful,
            failed=failed,
            total_duration_ms=total_ms,
            device_id=device_id,
            source_location=location.value,
        )
        return BatchResult(results=results, summary=summary)

    def upload_progress(self) -> Dict[str, Any]:
        """Counters for the status endpoint."""
        stats = self._devices.stats()
        return {
            "activeUploads": self._active,
            "completedUploads": self._devices.total_uploads,
            "deviceCount": len(stats),
            "deviceStats": stats,
            "lastUpdate": utc_now_iso(),
        }
