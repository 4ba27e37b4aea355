"""
megadrop - device file uploads into a MEGA account.

Files arrive from registered devices and are stored under
{base}/DEVICE_{id}/{source folder} with collision-resistant names.

Usage:
    from megadrop import UploadContext, UploadConfig
    from megadrop.services.mega_store import MegaStore

    config = UploadConfig.from_env()
    async with UploadContext(MegaStore(config), config) as ctx:
        result = await ctx.upload_file(data, "photo.jpg", "DEV1", "CAMERA")
        if result.skipped:
            print(result.skip_reason)

    # Several files, uploaded one after another
    batch = await ctx.upload_multiple_files(files, "DEV1", "SNAPCHAT_MEDIA")
    print(batch.summary.successful, batch.summary.failed)
"""
from .context import UploadContext
from .errors import (
    AuthenticationExhausted,
    EmptyFileError,
    FileTooLargeError,
    InputValidationError,
    InvalidDeviceIdError,
    MegaDropError,
    RemoteError,
    RemoteErrorKind,
    RemoteStructuralError,
)
from .models import (
    BatchFile,
    BatchResult,
    BatchSummary,
    DeviceRecord,
    SourceLocation,
    UploadConfig,
    UploadOptions,
    UploadResult,
)
from .naming import generate_file_name

__version__ = "1.0.0"
__all__ = [
    # Main
    "UploadContext",
    "generate_file_name",
    # Models
    "BatchFile",
    "BatchResult",
    "BatchSummary",
    "DeviceRecord",
    "SourceLocation",
    "UploadConfig",
    "UploadOptions",
    "UploadResult",
    # Errors
    "AuthenticationExhausted",
    "EmptyFileError",
    "FileTooLargeError",
    "InputValidationError",
    "InvalidDeviceIdError",
    "MegaDropError",
    "RemoteError",
    "RemoteErrorKind",
    "RemoteStructuralError",
]
