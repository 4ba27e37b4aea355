"""Upload context - the shared state one process serves every request from."""
import logging
from typing import Optional, Iterable

from .models import BatchFile, BatchResult, SourceLocation, UploadConfig, UploadOptions, UploadResult
from .orchestrator import BatchCoordinator, UploadOrchestrator
from .protocols import IRemoteStore
from .services.devices import DeviceRegistry
from .services.folders import FolderCache
from .services.session import Session, SessionManager

logger = logging.getLogger(__name__)


class UploadContext:
    """
    Wires the session, folder cache, device registry and orchestrators
    around one remote store.

    Usage:
        async with UploadContext(MegaStore(), config) as ctx:
            result = await ctx.upload_file(data, "photo.jpg", "DEV1", "CAMERA")

    Tests build one context per test for isolation.
    """

    def __init__(self, store: IRemoteStore, config: Optional[UploadConfig] = None):
        self.config = config or UploadConfig()
        self.store = store
        self.session = Session(credentials=self.config.credentials)
        self.devices = DeviceRegistry()
        self.folders = FolderCache(self.session)
        self.sessions = SessionManager(store, self.session, self.folders, self.config)
        self.orchestrator = UploadOrchestrator(self.sessions, self.folders, self.devices, self.config)
        self.batch = BatchCoordinator(self.orchestrator, self.devices, self.config)

    async def __aenter__(self):
        await self.start()
        return self

    async def __aexit__(self, *args):
        await self.close()

    async def start(self) -> bool:
        """Initialize the session; a failure leaves the context in degraded mode."""
        try:
            return await self.sessions.initialize()
        except Exception as e:
            logger.error("Failed to initialize MEGA service: %s", e)
            return False

    async def close(self) -> None:
        await self.sessions.close()

    async def upload_file(
        self,
        data: bytes,
        original_name: str,
        device_id: str,
        source_location=SourceLocation.CAMERA,
        options: Optional[UploadOptions] = None,
    ) -> UploadResult:
        return await self.orchestrator.upload_file(data, original_name, device_id, source_location, options)

    async def upload_multiple_files(
        self,
        files: Iterable[BatchFile],
        device_id: str,
        source_location=SourceLocation.CAMERA,
        options: Optional[UploadOptions] = None,
    ) -> BatchResult:
        return await self.batch.upload_multiple_files(files, device_id, source_location, options)
