"""
Folder Cache - maps a device id to its folder structure in the store.

Layout under the base folder:

    {base}/DEVICE_{device_id}/DCIM_CAMERA
                             /DCIM_SNAPCHAT
                             /SNAPCHAT_ROOT

Built lazily on first reference and memoized until the next reconnect.
"""
import asyncio
import logging
from dataclasses import dataclass, field
from typing import Dict, Optional, Any

from ..errors import RemoteError, RemoteErrorKind, RemoteStructuralError, classify_error
from ..models import SourceLocation
from ..naming import device_folder_name

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FolderSet:
    """A device root folder and its per-source subfolders."""
    device_id: str
    root: Any
    folders: Dict[SourceLocation, Any] = field(default_factory=dict)

    def for_location(self, location: SourceLocation) -> Any:
        return self.folders.get(location) or self.folders[SourceLocation.CAMERA]


async def find_or_create_folder(parent, name: str):
    """
    Return the direct child folder of parent named exactly name, creating it if absent.

    Files with the same name do not count as a match.
    """
    try:
        children = await parent.children()
        for child in children:
            if child.is_folder and child.name == name:
                logger.debug("Found existing folder: %s", name)
                return child

        logger.info("Creating new folder: %s", name)
        folder = await parent.mkdir(name)
        logger.info("Created folder: %s", name)
        return folder
    except RemoteStructuralError:
        raise
    except Exception as e:
        logger.error("Failed to find or create folder %r: %s", name, e)
        raise RemoteStructuralError(
            f"Failed to find or create folder {name!r}: {e}", classify_error(e)
        ) from e


class FolderCache:
    """
    Lazily built, session-scoped cache of device FolderSets.

    Cold lookups perform four find-or-create calls (device root plus three
    source folders); warm lookups perform none. Concurrent cold lookups
    for one device are serialized so the structure is built once.
    """

    def __init__(self, session):
        self._session = session
        self._entries: Dict[str, FolderSet] = {}
        self._locks: Dict[str, asyncio.Lock] = {}
        self._generation = 0

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, device_id: str) -> bool:
        return device_id in self._entries

    @property
    def generation(self) -> int:
        return self._generation

    def peek(self, device_id: str) -> Optional[FolderSet]:
        return self._entries.get(device_id)

    def clear(self) -> None:
        """Drop every entry. Builds already in flight will not be stored."""
        self._entries.clear()
        self._locks.clear()
        self._generation += 1
        logger.debug("Folder cache cleared (generation %d)", self._generation)

    async def get_device_folder(self, device_id: str) -> FolderSet:
        cached = self._entries.get(device_id)
        if cached is not None:
            return cached

        lock = self._locks.setdefault(device_id, asyncio.Lock())
        async with lock:
            cached = self._entries.get(device_id)
            if cached is not None:
                return cached

            base_folder = self._session.base_folder
            if base_folder is None:
                raise RemoteStructuralError("Base folder not initialized", RemoteErrorKind.AUTH)

            generation = self._generation
            folder_set = await self._build(device_id, base_folder)

            if generation != self._generation:
                logger.warning(
                    "Folder cache was reset while resolving device %s; result discarded",
                    device_id,
                )
                raise RemoteStructuralError(
                    "Folder cache was reset during resolution", RemoteErrorKind.NETWORK
                )

            self._entries[device_id] = folder_set
            # warm lookups never take the lock again
            self._locks.pop(device_id, None)
            logger.info("Device folder structure ready for device: %s", device_id)
            return folder_set

    async def _build(self, device_id: str, base_folder) -> FolderSet:
        try:
            root = await find_or_create_folder(base_folder, device_folder_name(device_id))
            folders = {}
            for location in SourceLocation:
                folders[location] = await find_or_create_folder(root, location.folder_name)
        except RemoteError as e:
            logger.error("Failed to get device folder for %s: %s", device_id, e)
            raise
        return FolderSet(device_id=device_id, root=root, folders=folders)
