"""Naming policy and input validation for stored files."""
from __future__ import annotations

import re
from datetime import datetime, timezone
from typing import Optional

from .errors import InvalidDeviceIdError, InvalidFileNameError
from .models import SourceLocation

DEVICE_ID_PATTERN = re.compile(r"[A-Za-z0-9_-]{3,50}")

_DANGEROUS_NAME_PATTERNS = (
    re.compile(r"\.\."),
    re.compile(r'[<>:"|?*]'),
    re.compile(r"^(CON|PRN|AUX|NUL|COM[1-9]|LPT[1-9])$", re.IGNORECASE),
)


def generate_file_name(
    device_id: str,
    original_name: str,
    source_location: SourceLocation | str | None = None,
    now: Optional[datetime] = None,
) -> str:
    """
    Build the stored name: DEVICEID_YYYYMMDD_HHMMSS_basename.ext

    The timestamp is the time of naming, in UTC, at one-second resolution,
    so the same file sent twice within a second maps to the same name.
    source_location does not take part in the name.
    """
    moment = now or datetime.now(timezone.utc)
    stamp = moment.strftime("%Y%m%d_%H%M%S")
    if "." in original_name:
        base, ext = original_name.rsplit(".", 1)
    else:
        base, ext = original_name, ""
    return f"{device_id}_{stamp}_{base}.{ext}"


def device_folder_name(device_id: str) -> str:
    return f"DEVICE_{device_id}"


def is_valid_device_id(device_id: Optional[str]) -> bool:
    return bool(device_id) and DEVICE_ID_PATTERN.fullmatch(device_id) is not None


def validate_device_id(device_id: Optional[str]) -> str:
    if not device_id:
        raise InvalidDeviceIdError("Device ID is required")
    if not is_valid_device_id(device_id):
        raise InvalidDeviceIdError(
            "Device ID must be 3-50 characters of letters, digits, '_' or '-'"
        )
    return device_id


def validate_file_name(file_name: Optional[str]) -> str:
    if not file_name or not file_name.strip():
        raise InvalidFileNameError("File name is required")
    for pattern in _DANGEROUS_NAME_PATTERNS:
        if pattern.search(file_name):
            raise InvalidFileNameError("Invalid file name format")
    return file_name
