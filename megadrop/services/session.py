"""
Session Manager - owns the authenticated connection to the remote store.

Tracks connection state, authenticates with bounded retries and rebuilds
all derived state (base folder, folder cache) on reconnect.
"""
import asyncio
import logging
from dataclasses import dataclass, field
from typing import Optional, Dict, Any

from ..errors import AuthenticationExhausted, NotConnectedError
from ..models import UploadConfig, utc_now_iso
from ..protocols import IRemoteStore
from .folders import FolderCache, find_or_create_folder

logger = logging.getLogger(__name__)


@dataclass
class Session:
    """Mutable connection state shared by every request of one context."""
    credentials: Dict[str, str] = field(default_factory=dict, repr=False)
    connected: bool = False
    retry_count: int = 0
    remote: Any = None
    base_folder: Any = None
    last_check: Optional[str] = None

    @property
    def email(self) -> str:
        return self.credentials.get("email", "")

    def reset(self) -> None:
        self.connected = False
        self.remote = None
        self.base_folder = None


class SessionManager:
    """
    Authenticates against the store and keeps the session usable.

    Usage:
        >>> manager = SessionManager(store, session, folder_cache, config)
        >>> await manager.initialize()
        >>> if not await manager.check_connection():
        ...     await manager.reconnect()
    """

    def __init__(
        self,
        store: IRemoteStore,
        session: Session,
        folder_cache: FolderCache,
        config: Optional[UploadConfig] = None,
    ):
        self._store = store
        self._session = session
        self._folders = folder_cache
        self._config = config or UploadConfig()
        self._reconnect_lock = asyncio.Lock()
        self._reconnect_task: Optional[asyncio.Task] = None

    @property
    def session(self) -> Session:
        return self._session

    @property
    def is_connected(self) -> bool:
        return self._session.connected

    async def initialize(self) -> bool:
        """Authenticate and prepare the base folder. Raises on failure."""
        logger.info("Initializing MEGA service...")
        await self.authenticate()
        try:
            await self.setup_folder_structure()
        except Exception:
            # no base folder, no usable session: let the next connection check reconnect
            self._session.connected = False
            raise
        logger.info("MEGA service initialized successfully")
        return True

    async def authenticate(self) -> bool:
        """
        Establish a remote session.

        Tries up to max_auth_retries times with auth_retry_delay seconds
        between attempts.

        Raises:
            AuthenticationExhausted: every attempt failed; carries the last error.
        """
        max_retries = self._config.max_auth_retries
        last_error: Optional[BaseException] = None

        for attempt in range(1, max_retries + 1):
            self._session.retry_count = attempt
            logger.info("MEGA authentication attempt %d/%d", attempt, max_retries)
            try:
                remote = await self._store.authenticate(self._session.credentials)
            except Exception as e:
                last_error = e
                logger.error("MEGA authentication failed: %s", e)
                if attempt < max_retries:
                    logger.info("Retrying authentication in %.1fs...", self._config.auth_retry_delay)
                    await asyncio.sleep(self._config.auth_retry_delay)
                continue

            await self._close_remote()
            self._session.remote = remote
            self._session.connected = True
            self._session.retry_count = 0
            logger.info("MEGA authentication successful")
            logger.info("MEGA account info: %s", await self.account_info())
            return True

        self._session.connected = False
        raise AuthenticationExhausted(max_retries, last_error) from last_error

    async def setup_folder_structure(self) -> Any:
        """Find or create the base folder under the store root."""
        remote = self._require_remote()
        logger.info("Setting up MEGA folder structure...")
        root = await remote.get_root()
        base_folder = await find_or_create_folder(root, self._config.base_folder_name)
        self._session.base_folder = base_folder
        logger.info('Base folder "%s" ready', self._config.base_folder_name)
        return base_folder

    async def check_connection(self) -> bool:
        """Cheap liveness check. Never raises; demotes to disconnected on failure."""
        self._session.last_check = utc_now_iso()
        remote = self._session.remote
        if remote is None or self._session.base_folder is None:
            self._session.connected = False
            return False
        try:
            root = await remote.get_root()
        except Exception as e:
            logger.error("Connection check failed: %s", e)
            self._session.connected = False
            return False
        if root is None:
            self._session.connected = False
            return False
        return self._session.connected

    async def reconnect(self) -> bool:
        """
        Tear everything down and initialize from scratch.

        Concurrent callers share the reconnect already in flight instead of
        starting another teardown.
        """
        async with self._reconnect_lock:
            task = self._reconnect_task
            if task is None or task.done():
                task = asyncio.ensure_future(self._do_reconnect())
                self._reconnect_task = task
        return await asyncio.shield(task)

    async def _do_reconnect(self) -> bool:
        logger.info("Attempting to reconnect to MEGA...")
        await self._close_remote()
        self._session.reset()
        self._folders.clear()
        try:
            await self.initialize()
        except Exception as e:
            logger.error("Reconnection failed: %s", e)
            return False
        return True

    async def ensure_connected(self) -> bool:
        """Check the session and reconnect when the check fails."""
        if await self.check_connection():
            return True
        logger.warning("MEGA not connected, attempting reconnection...")
        return await self.reconnect()

    async def account_info(self) -> Dict[str, Any]:
        info: Dict[str, Any] = {
            "email": self._session.email,
            "connected": self._session.connected,
            "connectionTime": utc_now_iso(),
        }
        remote = self._session.remote
        if remote is None:
            info["error"] = "MEGA storage not initialized"
            return info
        try:
            info.update(await remote.account_info())
        except Exception as e:
            logger.error("Failed to get account info: %s", e)
            info["error"] = str(e)
        return info

    async def storage_info(self) -> Dict[str, Any]:
        """Count stored files and bytes under the base folder."""
        try:
            base_folder = self._session.base_folder
            if self._session.remote is None or base_folder is None:
                raise NotConnectedError("MEGA storage not initialized")

            total_files = 0
            total_size = 0
            for device_folder in await base_folder.children():
                if not device_folder.is_folder:
                    continue
                for source_folder in await device_folder.children():
                    if not source_folder.is_folder:
                        continue
                    for child in await source_folder.children():
                        if not child.is_folder:
                            total_files += 1
                            total_size += child.size or 0

            return {
                "totalFiles": total_files,
                "totalSize": total_size,
                "totalSizeMB": round(total_size / (1024 * 1024), 2),
                "deviceFolders": len(self._folders),
                "baseFolderName": self._config.base_folder_name,
                "lastCheck": utc_now_iso(),
            }
        except Exception as e:
            logger.error("Failed to get storage info: %s", e)
            return {"error": str(e), "lastCheck": utc_now_iso()}

    async def validate_upload(self, file_id: str) -> Dict[str, Any]:
        """Check that a stored file exists by its remote identifier."""
        try:
            remote = self._require_remote()
            node = await remote.get_file(file_id)
            if node is None:
                return {"valid": False, "error": "File not found", "fileId": file_id}
            return {
                "valid": True,
                "fileId": file_id,
                "fileName": node.name,
                "fileSize": node.size,
            }
        except Exception as e:
            logger.error("Upload validation failed for file %s: %s", file_id, e)
            return {"valid": False, "error": str(e), "fileId": file_id}

    def status(self) -> Dict[str, Any]:
        return {
            "connected": self._session.connected,
            "email": self._session.email,
            "baseFolder": self._config.base_folder_name,
            "deviceCount": len(self._folders),
            "lastCheck": utc_now_iso(),
        }

    async def close(self) -> None:
        await self._close_remote()
        self._session.reset()
        self._folders.clear()

    def _require_remote(self):
        if self._session.remote is None:
            raise NotConnectedError("MEGA storage not initialized")
        return self._session.remote

    async def _close_remote(self) -> None:
        remote = self._session.remote
        if remote is None:
            return
        try:
            await remote.close()
        except Exception as e:
            logger.debug("Error closing previous MEGA session: %s", e)
