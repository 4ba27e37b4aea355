"""
Models for megadrop.

Immutable dataclasses for results and configuration; the device record is
the only mutable one since the registry updates it in place.
"""
import os
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Optional, List, Dict, Any, Tuple


MB = 1024 * 1024


class SourceLocation(Enum):
    """Where on the device a file originated. Values are remote folder names."""
    CAMERA = "DCIM_CAMERA"
    SNAPCHAT_MEDIA = "DCIM_SNAPCHAT"
    SNAPCHAT_ROOT = "SNAPCHAT_ROOT"

    @property
    def folder_name(self) -> str:
        return self.value

    @classmethod
    def parse(cls, value) -> Optional["SourceLocation"]:
        """Accept a member, member name or folder name. None if unknown."""
        if isinstance(value, cls):
            return value
        if not isinstance(value, str):
            return None
        key = value.strip().upper()
        for location in cls:
            if key in (location.name, location.value):
                return location
        return None

    @classmethod
    def resolve(cls, value) -> "SourceLocation":
        """Like parse() but falls back to CAMERA."""
        return cls.parse(value) or cls.CAMERA


@dataclass(frozen=True)
class UploadOptions:
    """Per-call upload switches."""
    overwrite: bool = False
    batch_upload: bool = False
    upload_id: Optional[str] = None
    original_path: Optional[str] = None
    timestamp: Optional[str] = None


@dataclass(frozen=True)
class UploadResult:
    """Immutable result of a single upload attempt."""
    success: bool
    file_name: str
    original_name: str
    device_id: str
    source_location: str
    size: int = 0
    duration_ms: int = 0
    file_id: Optional[str] = None
    folder_path: Optional[str] = None
    upload_speed: Optional[int] = None
    skipped: bool = False
    skip_reason: Optional[str] = None
    error: Optional[str] = None
    error_kind: Optional[str] = None
    retryable: bool = False
    attempts: int = 1
    upload_time: str = field(default_factory=lambda: utc_now_iso())

    @classmethod
    def ok(
        cls,
        file_name: str,
        original_name: str,
        device_id: str,
        source_location: str,
        file_id: str,
        size: int,
        duration_ms: int,
        folder_path: str,
        attempts: int = 1,
    ):
        return cls(
            success=True,
            file_name=file_name,
            original_name=original_name,
            device_id=device_id,
            source_location=source_location,
            file_id=file_id,
            size=size,
            duration_ms=duration_ms,
            folder_path=folder_path,
            upload_speed=throughput(size, duration_ms),
            attempts=attempts,
        )

    @classmethod
    def skip(
        cls,
        file_name: str,
        original_name: str,
        device_id: str,
        source_location: str,
        file_id: Optional[str],
        size: int,
        folder_path: str,
        reason: str = "File already exists",
        attempts: int = 1,
    ):
        return cls(
            success=True,
            file_name=file_name,
            original_name=original_name,
            device_id=device_id,
            source_location=source_location,
            file_id=file_id,
            size=size,
            folder_path=folder_path,
            skipped=True,
            skip_reason=reason,
            attempts=attempts,
        )

    @classmethod
    def fail(
        cls,
        original_name: str,
        device_id: str,
        source_location: str,
        error: str,
        error_kind: Optional[str] = None,
        retryable: bool = False,
        size: int = 0,
        duration_ms: int = 0,
        attempts: int = 1,
    ):
        return cls(
            success=False,
            file_name=original_name,
            original_name=original_name,
            device_id=device_id,
            source_location=source_location,
            size=size,
            duration_ms=duration_ms,
            error=error,
            error_kind=error_kind,
            retryable=retryable,
            attempts=attempts,
        )

    def to_dict(self) -> Dict[str, Any]:
        """camelCase payload for the HTTP layer."""
        payload: Dict[str, Any] = {
            "success": self.success,
            "fileName": self.file_name,
            "originalName": self.original_name,
            "deviceId": self.device_id,
            "sourceLocation": self.source_location,
            "fileSize": self.size,
            "uploadTime": self.upload_time,
            "uploadDurationMs": self.duration_ms,
        }
        if self.folder_path:
            payload["folderPath"] = self.folder_path
        if self.success:
            payload["fileId"] = self.file_id
            if self.upload_speed is not None:
                payload["uploadSpeed"] = self.upload_speed
            if self.skipped:
                payload["skipped"] = True
                payload["reason"] = self.skip_reason
        else:
            payload["error"] = self.error
            payload["errorKind"] = self.error_kind
            payload["retryable"] = self.retryable
        return payload


@dataclass(frozen=True)
class BatchFile:
    """One file of a batch upload."""
    data: bytes
    file_name: str

    @property
    def size(self) -> int:
        return len(self.data)


@dataclass(frozen=True)
class BatchSummary:
    total: int
    successful: int
    failed: int
    total_duration_ms: int
    device_id: str
    source_location: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total": self.total,
            "successful": self.successful,
            "failed": self.failed,
            "totalTimeMs": self.total_duration_ms,
            "deviceId": self.device_id,
            "sourceLocation": self.source_location,
        }


@dataclass(frozen=True)
class BatchResult:
    """Ordered per-file results of a batch plus the aggregate summary."""
    results: List[UploadResult]
    summary: BatchSummary

    @property
    def all_success(self) -> bool:
        return self.summary.failed == 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "results": [r.to_dict() for r in self.results],
            "summary": self.summary.to_dict(),
        }


@dataclass
class DeviceRecord:
    """Activity of one uploading device. Lives for the process lifetime."""
    id: str
    source_location: Optional[str] = None
    registered_at: str = field(default_factory=lambda: utc_now_iso())
    last_activity: str = field(default_factory=lambda: utc_now_iso())
    upload_count: int = 0
    extra: Dict[str, Any] = field(default_factory=dict)

    def touch(self) -> None:
        self.last_activity = utc_now_iso()
        self.upload_count += 1

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "sourceLocation": self.source_location,
            "registeredAt": self.registered_at,
            "lastActivity": self.last_activity,
            "uploadCount": self.upload_count,
        }


@dataclass(frozen=True)
class UploadConfig:
    """Immutable configuration for the upload engine."""
    email: str = ""
    password: str = ""
    base_folder_name: str = "KP-Demo-Files"
    max_file_size: int = 100 * MB
    max_auth_retries: int = 3
    auth_retry_delay: float = 2.0
    batch_delay: float = 0.5
    max_batch_files: int = 10
    environment: str = "development"
    cors_origins: Tuple[str, ...] = ("*",)

    @property
    def credentials(self) -> Dict[str, str]:
        return {"email": self.email, "password": self.password}

    @property
    def is_production(self) -> bool:
        return self.environment.lower() == "production"

    @classmethod
    def from_env(cls, environ: Optional[Dict[str, str]] = None) -> "UploadConfig":
        """Build config from environment variables, keeping defaults for unset ones."""
        env = os.environ if environ is None else environ
        defaults = cls()

        def _int(name: str, default: int) -> int:
            raw = env.get(name)
            return int(raw) if raw not in (None, "") else default

        def _float(name: str, default: float) -> float:
            raw = env.get(name)
            return float(raw) if raw not in (None, "") else default

        def _origins(name: str, default: Tuple[str, ...]) -> Tuple[str, ...]:
            raw = env.get(name)
            if not raw:
                return default
            return tuple(origin.strip() for origin in raw.split(",") if origin.strip())

        return cls(
            email=env.get("MEGA_EMAIL", defaults.email),
            password=env.get("MEGA_PASSWORD", defaults.password),
            base_folder_name=env.get("MEGADROP_BASE_FOLDER") or defaults.base_folder_name,
            max_file_size=_int("MEGADROP_MAX_FILE_SIZE", defaults.max_file_size),
            max_auth_retries=_int("MEGADROP_MAX_AUTH_RETRIES", defaults.max_auth_retries),
            auth_retry_delay=_float("MEGADROP_AUTH_RETRY_DELAY", defaults.auth_retry_delay),
            batch_delay=_float("MEGADROP_BATCH_DELAY", defaults.batch_delay),
            max_batch_files=_int("MEGADROP_MAX_BATCH_FILES", defaults.max_batch_files),
            environment=env.get("ENVIRONMENT") or defaults.environment,
            cors_origins=_origins("MEGADROP_CORS_ORIGINS", defaults.cors_origins),
        )


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


def throughput(size: int, duration_ms: int) -> int:
    """Bytes per second, 0 when the duration rounds to nothing."""
    if duration_ms <= 0:
        return 0
    return round(size / (duration_ms / 1000))
