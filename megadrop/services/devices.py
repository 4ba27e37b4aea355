"""
Device Registry - in-memory activity records per uploading device.

Records are created on the first upload attempt and never removed while
the process runs.
"""
import logging
from typing import Dict, Optional, Any

from ..models import DeviceRecord

logger = logging.getLogger(__name__)


class DeviceRegistry:
    """Tracks registration, last activity and upload count per device."""

    def __init__(self):
        self._devices: Dict[str, DeviceRecord] = {}

    def register(self, device_id: str, source_location: Optional[str] = None, **extra) -> DeviceRecord:
        """Register a device if absent; refresh its source location otherwise."""
        record = self._devices.get(device_id)
        if record is None:
            record = DeviceRecord(id=device_id, source_location=source_location, extra=dict(extra))
            self._devices[device_id] = record
            logger.info("Device registered: %s (%s)", device_id, source_location)
        else:
            if source_location:
                record.source_location = source_location
            record.extra.update(extra)
        return record

    def record_upload(self, device_id: str, source_location: Optional[str] = None) -> DeviceRecord:
        """Register-if-absent, then bump count and activity timestamp."""
        record = self.register(device_id, source_location)
        record.touch()
        logger.debug("Device %s upload count: %d", device_id, record.upload_count)
        return record

    def get(self, device_id: str) -> Optional[DeviceRecord]:
        return self._devices.get(device_id)

    def __contains__(self, device_id: str) -> bool:
        return device_id in self._devices

    def __len__(self) -> int:
        return len(self._devices)

    def stats(self) -> Dict[str, Dict[str, Any]]:
        return {
            device_id: {
                "uploadCount": record.upload_count,
                "lastActivity": record.last_activity,
                "registeredAt": record.registered_at,
            }
            for device_id, record in self._devices.items()
        }

    @property
    def total_uploads(self) -> int:
        return sum(record.upload_count for record in self._devices.values())
